"""Concept map models."""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.text import fold_term


class ConceptImportance(str, Enum):
    CORE = "core"
    SUPPORTING = "supporting"
    PERIPHERAL = "peripheral"


class ConceptDifficulty(str, Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class RelationshipType(str, Enum):
    PREREQUISITE = "prerequisite"
    RELATED = "related"
    EXAMPLE = "example"
    OPPOSITE = "opposite"


def _sorted_unique(values: List[float]) -> List[float]:
    return sorted(set(round(value, 3) for value in values))


class Concept(BaseModel):
    """A named idea taught in the video."""
    name: str = Field(..., min_length=1, description="Unique concept name")
    definition: str = Field("", description="Short definition")
    aliases: List[str] = Field(default_factory=list, description="Alternative names")
    timestamps: List[float] = Field(default_factory=list, description="Sorted mention times in seconds")
    related_concepts: List[str] = Field(default_factory=list, description="Names of related concepts")
    importance: ConceptImportance = Field(ConceptImportance.SUPPORTING, description="Weight within the video")
    difficulty: ConceptDifficulty = Field(ConceptDifficulty.INTERMEDIATE, description="Estimated difficulty")
    visual_aids: Optional[List[float]] = Field(None, description="Sorted timestamps of frames illustrating it")

    @field_validator("timestamps")
    @classmethod
    def sort_timestamps(cls, value: List[float]) -> List[float]:
        return _sorted_unique(value)

    @field_validator("visual_aids")
    @classmethod
    def sort_visual_aids(cls, value: Optional[List[float]]) -> Optional[List[float]]:
        return _sorted_unique(value) if value is not None else None

    @property
    def folded_names(self) -> List[str]:
        """Folded keys for the name and every alias."""
        keys = []
        for term in [self.name, *self.aliases]:
            key = fold_term(term)
            if key and key not in keys:
                keys.append(key)
        return keys


class ConceptRelationship(BaseModel):
    """Typed, weighted edge between two concepts. A prerequisite edge reads "from comes before to"."""
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from", description="Concept the edge starts at")
    target: str = Field(..., alias="to", description="Concept the edge points to")
    type: RelationshipType = Field(RelationshipType.RELATED, description="Relationship kind")
    strength: float = Field(0.5, ge=0.0, le=1.0, description="Edge weight")


class ConceptMap(BaseModel):
    """Concepts, the relationships among them and their dependency layering."""
    concepts: List[Concept] = Field(default_factory=list, description="Concepts, unique by name")
    relationships: List[ConceptRelationship] = Field(default_factory=list, description="Edges between known concepts")
    hierarchy_levels: List[List[str]] = Field(default_factory=list, description="Concept names grouped by prerequisite depth")
    structural_warnings: List[str] = Field(default_factory=list, description="Corrections applied while building the map")

    @model_validator(mode="after")
    def check_integrity(self):
        names = [concept.name for concept in self.concepts]
        if len(names) != len(set(names)):
            raise ValueError("Concept names must be unique")

        known = set(names)
        for relationship in self.relationships:
            for endpoint in (relationship.source, relationship.target):
                if endpoint not in known:
                    raise ValueError(f"Relationship references unknown concept '{endpoint}'")

        if self.hierarchy_levels:
            level_of: Dict[str, int] = {}
            for depth, level in enumerate(self.hierarchy_levels):
                for name in level:
                    if name not in known:
                        raise ValueError(f"Hierarchy references unknown concept '{name}'")
                    if name in level_of:
                        raise ValueError(f"Concept '{name}' appears in more than one hierarchy level")
                    level_of[name] = depth
            if set(level_of) != known:
                raise ValueError("Hierarchy levels must place every concept")

            for relationship in self.prerequisites():
                if level_of[relationship.source] >= level_of[relationship.target]:
                    raise ValueError(
                        f"Prerequisite '{relationship.source}' -> '{relationship.target}' "
                        "violates the hierarchy ordering"
                    )
        return self

    @property
    def names(self) -> List[str]:
        return [concept.name for concept in self.concepts]

    def get(self, name: str) -> Optional[Concept]:
        for concept in self.concepts:
            if concept.name == name:
                return concept
        return None

    def find(self, term: str) -> Optional[Concept]:
        """Concept whose name or alias folds to the same key as term."""
        key = fold_term(term)
        if not key:
            return None
        for concept in self.concepts:
            if key in concept.folded_names:
                return concept
        return None

    def prerequisites(self) -> List[ConceptRelationship]:
        return [r for r in self.relationships if r.type == RelationshipType.PREREQUISITE]

    def by_importance(self, importance: ConceptImportance) -> List[Concept]:
        return [concept for concept in self.concepts if concept.importance == importance]
