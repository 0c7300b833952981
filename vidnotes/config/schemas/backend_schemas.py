"""
Parsers for generative backend output.

Backend text is untrusted. Every parser returns either a typed ``Parsed*``
model or a ``MalformedOutput`` describing why the text was rejected.
"""
import json
from enum import Enum
from typing import Any, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ...core.exceptions import MalformedBackendOutputError
from ...models.concepts import ConceptDifficulty, RelationshipType
from ...models.structure import ChapterImportance, FlowType
from ...utils.logging import CorrelatedLogger

logger = CorrelatedLogger(__name__)

E = TypeVar("E", bound=Enum)

MAX_KEY_POINTS = 6
MAX_ALIASES = 6
MAX_ELEMENTS = 15


def find_enum_fallback(value: Any, enum_cls: Type[E], fallback: E) -> E:
    """Case-insensitive, then partial match of value against enum_cls; fallback otherwise."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return fallback

    value_lower = value.strip().lower()
    for member in enum_cls:
        if member.value == value_lower:
            return member

    for member in enum_cls:
        if value_lower and (value_lower in member.value or member.value in value_lower):
            return member

    return fallback


def _clean_str_list(value: Any, limit: int) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError("expected a list of strings")
    cleaned = [str(item).strip() for item in value if item is not None and str(item).strip()]
    return cleaned[:limit]


class MalformedOutput(BaseModel):
    """Backend text that could not be parsed into the expected shape."""
    operation: str
    reason: str
    raw: str = ""

    def to_exception(self) -> MalformedBackendOutputError:
        return MalformedBackendOutputError(self.operation, self.reason, self.raw)


class ParsedChapter(BaseModel):
    title: str = Field(..., min_length=1)
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    importance: ChapterImportance = ChapterImportance.MEDIUM

    @field_validator("title", "summary", mode="before")
    @classmethod
    def strip_text(cls, value):
        return str(value).strip() if value is not None else ""

    @field_validator("key_points", mode="before")
    @classmethod
    def trim_points(cls, value):
        return _clean_str_list(value, MAX_KEY_POINTS)

    @field_validator("importance", mode="before")
    @classmethod
    def coerce_importance(cls, value):
        return find_enum_fallback(value, ChapterImportance, ChapterImportance.MEDIUM)


class ParsedChapterSet(BaseModel):
    chapters: List[ParsedChapter] = Field(..., min_length=1)
    main_topics: List[str] = Field(default_factory=list)
    flow_type: FlowType = FlowType.LINEAR

    @field_validator("main_topics", mode="before")
    @classmethod
    def trim_topics(cls, value):
        return _clean_str_list(value, 8)

    @field_validator("flow_type", mode="before")
    @classmethod
    def coerce_flow(cls, value):
        return find_enum_fallback(value, FlowType, FlowType.LINEAR)


class ParsedConceptCandidate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    definition: str = ""
    aliases: List[str] = Field(default_factory=list)
    difficulty: Optional[ConceptDifficulty] = None

    @field_validator("name", "definition", mode="before")
    @classmethod
    def strip_text(cls, value):
        return str(value).strip() if value is not None else ""

    @field_validator("aliases", mode="before")
    @classmethod
    def trim_aliases(cls, value):
        return _clean_str_list(value, MAX_ALIASES)

    @field_validator("difficulty", mode="before")
    @classmethod
    def coerce_difficulty(cls, value):
        if value is None:
            return None
        return find_enum_fallback(value, ConceptDifficulty, ConceptDifficulty.INTERMEDIATE)


class ParsedConceptSet(BaseModel):
    concepts: List[ParsedConceptCandidate] = Field(default_factory=list)


class ParsedRelationship(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from", min_length=1)
    target: str = Field(..., alias="to", min_length=1)
    type: RelationshipType = RelationshipType.RELATED
    strength: float = 0.5

    @field_validator("source", "target", mode="before")
    @classmethod
    def strip_names(cls, value):
        return str(value).strip() if value is not None else ""

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, value):
        return find_enum_fallback(value, RelationshipType, RelationshipType.RELATED)

    @field_validator("strength", mode="before")
    @classmethod
    def clamp_strength(cls, value):
        try:
            strength = float(value)
        except (TypeError, ValueError):
            return 0.5
        return min(max(strength, 0.0), 1.0)


class ParsedRelationshipSet(BaseModel):
    relationships: List[ParsedRelationship] = Field(default_factory=list)


class ParsedFrame(BaseModel):
    timestamp: float = Field(..., ge=0)
    description: str = ""
    elements: List[str] = Field(default_factory=list)
    extracted_text: Optional[str] = None
    spoken_summary: Optional[str] = None

    @field_validator("elements", mode="before")
    @classmethod
    def trim_elements(cls, value):
        return _clean_str_list(value, MAX_ELEMENTS)

    @field_validator("extracted_text", "spoken_summary", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None


class ParsedFrameSet(BaseModel):
    frames: List[ParsedFrame] = Field(..., min_length=1)


ChapterSetResult = Union[ParsedChapterSet, MalformedOutput]
ConceptSetResult = Union[ParsedConceptSet, MalformedOutput]
RelationshipSetResult = Union[ParsedRelationshipSet, MalformedOutput]
FrameSetResult = Union[ParsedFrameSet, MalformedOutput]

M = TypeVar("M", bound=BaseModel)


def extract_json_payload(content: str) -> Any:
    """Locate and decode the JSON document inside backend text."""
    json_content = (content or "").strip()

    if json_content.startswith('```json'):
        json_content = json_content[7:]
    elif json_content.startswith('```'):
        json_content = json_content[3:]

    if json_content.endswith('```'):
        json_content = json_content[:-3]

    json_content = json_content.strip()

    if not json_content.startswith(('{', '[')):
        start_idx = json_content.find('{')
        end_idx = json_content.rfind('}')
        if start_idx == -1 or end_idx <= start_idx:
            raise ValueError("no JSON object found")
        json_content = json_content[start_idx:end_idx + 1]

    return json.loads(json_content)


def _parse(operation: str, content: str, model: Type[M], list_key: str) -> Union[M, MalformedOutput]:
    try:
        payload = extract_json_payload(content)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        return _malformed(operation, f"invalid JSON: {e}", content)

    if isinstance(payload, list):
        payload = {list_key: payload}
    if not isinstance(payload, dict):
        return _malformed(operation, "expected a JSON object", content)

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        return _malformed(operation, f"schema mismatch: {e.error_count()} error(s), first: {e.errors()[0]['msg']}", content)


def _malformed(operation: str, reason: str, content: str) -> MalformedOutput:
    logger.warning(f"Malformed backend output for {operation}: {reason}; raw={content[:500]!r}")
    return MalformedOutput(operation=operation, reason=reason, raw=(content or "")[:500])


def parse_chapter_set(content: str) -> ChapterSetResult:
    return _parse("chapter_outline", content, ParsedChapterSet, "chapters")


def parse_concept_candidates(content: str) -> ConceptSetResult:
    return _parse("concept_extraction", content, ParsedConceptSet, "concepts")


def parse_relationships(content: str) -> RelationshipSetResult:
    return _parse("concept_relationships", content, ParsedRelationshipSet, "relationships")


def parse_frame_descriptions(content: str) -> FrameSetResult:
    return _parse("frame_sampling", content, ParsedFrameSet, "frames")
