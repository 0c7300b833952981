"""Classification fields, practice questions and key moments derived from a built analysis."""
from dataclasses import dataclass, field
from typing import List, Optional

from ..models.analysis import (
    DifficultyLevel, KeyTimestamp, KeyTimestampType, QuestionDifficulty,
    QuestionType, StudyQuestion
)
from ..models.concepts import ConceptDifficulty, ConceptImportance, ConceptMap, RelationshipType
from ..models.structure import ContentStructure, FlowType
from ..models.transcript import FullTranscript
from ..models.visual import VisualAnalysis, VisualComplexity
from ..utils.text import first_sentence, truncate_words
from ..utils.timestamps import format_timestamp

MAX_QUESTIONS = 8
MAX_SECONDARY_SUBJECTS = 4
MAX_TAGS = 8

QUESTION_DIFFICULTY = {
    ConceptDifficulty.BASIC: QuestionDifficulty.EASY,
    ConceptDifficulty.INTERMEDIATE: QuestionDifficulty.MEDIUM,
    ConceptDifficulty.ADVANCED: QuestionDifficulty.HARD,
}


@dataclass
class StudyAids:
    primary_subject: str = ""
    secondary_subjects: List[str] = field(default_factory=list)
    content_tags: List[str] = field(default_factory=list)
    difficulty_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    suggested_questions: List[StudyQuestion] = field(default_factory=list)
    key_timestamps: List[KeyTimestamp] = field(default_factory=list)


class StudyAidBuilder:
    """Pure derivation; every reference it emits points into the same analysis."""

    def build(
        self,
        transcript: FullTranscript,
        visual: VisualAnalysis,
        structure: ContentStructure,
        concept_map: ConceptMap,
        degraded: bool = False
    ) -> StudyAids:
        primary, secondary = self.subjects(structure, concept_map)
        difficulty = self.difficulty_level(concept_map)
        return StudyAids(
            primary_subject=primary,
            secondary_subjects=secondary,
            content_tags=self.content_tags(structure, visual, difficulty, degraded),
            difficulty_level=difficulty,
            suggested_questions=self.questions(concept_map, transcript.total_duration),
            key_timestamps=self.key_timestamps(structure, concept_map, transcript.total_duration),
        )

    @staticmethod
    def subjects(structure: ContentStructure, concept_map: ConceptMap):
        core = concept_map.by_importance(ConceptImportance.CORE)
        ranked = sorted(core, key=lambda c: -len(c.timestamps)) + [
            c for c in concept_map.concepts if c.importance != ConceptImportance.CORE
        ]

        candidates = list(structure.main_topics) + [c.name for c in ranked]
        seen = set()
        unique = []
        for candidate in candidates:
            key = candidate.lower()
            if key not in seen:
                seen.add(key)
                unique.append(candidate)

        if not unique:
            return "", []
        return unique[0], unique[1:1 + MAX_SECONDARY_SUBJECTS]

    @staticmethod
    def difficulty_level(concept_map: ConceptMap) -> DifficultyLevel:
        """Overall level from the difficulty mix of the concepts, core ones counted twice."""
        if not concept_map.concepts:
            return DifficultyLevel.INTERMEDIATE

        scores = {ConceptDifficulty.BASIC: 0, ConceptDifficulty.INTERMEDIATE: 1, ConceptDifficulty.ADVANCED: 2}
        total = weight = 0
        for concept in concept_map.concepts:
            factor = 2 if concept.importance == ConceptImportance.CORE else 1
            total += scores[concept.difficulty] * factor
            weight += factor

        average = total / weight
        if average < 0.67:
            return DifficultyLevel.BEGINNER
        if average > 1.33:
            return DifficultyLevel.ADVANCED
        return DifficultyLevel.INTERMEDIATE

    @staticmethod
    def content_tags(
        structure: ContentStructure,
        visual: VisualAnalysis,
        difficulty: DifficultyLevel,
        degraded: bool
    ) -> List[str]:
        tags = [difficulty.value]
        if structure.flow_type != FlowType.LINEAR:
            tags.append(f"{structure.flow_type.value}-flow")
        if visual.has_slides:
            tags.append("slides")
        if visual.has_diagrams:
            tags.append("diagrams")
        if visual.has_charts:
            tags.append("charts")
        if visual.visual_complexity == VisualComplexity.HIGH:
            tags.append("visually-dense")
        if len(structure.chapters) >= 5:
            tags.append("multi-part")
        if degraded:
            tags.append("visual-only")
        return tags[:MAX_TAGS]

    def questions(self, concept_map: ConceptMap, total_duration: float) -> List[StudyQuestion]:
        questions: List[StudyQuestion] = []

        ordered = sorted(
            concept_map.concepts,
            key=lambda c: (c.importance != ConceptImportance.CORE, c.importance != ConceptImportance.SUPPORTING)
        )
        for concept in ordered:
            if concept.importance == ConceptImportance.PERIPHERAL:
                continue
            questions.append(StudyQuestion(
                question=f"What is {concept.name}?",
                type=QuestionType.FACTUAL,
                difficulty=QUESTION_DIFFICULTY[concept.difficulty],
                related_timestamp=self._within(concept.timestamps[0] if concept.timestamps else None, total_duration),
                related_concepts=[concept.name],
                suggested_answer=first_sentence(concept.definition) or None
            ))

        for relationship in concept_map.relationships:
            source = concept_map.get(relationship.source)
            target = concept_map.get(relationship.target)
            if relationship.type == RelationshipType.PREREQUISITE:
                text = f"Why do you need to understand {source.name} before {target.name}?"
                kind = QuestionType.CONCEPTUAL
            elif relationship.type == RelationshipType.OPPOSITE:
                text = f"How does {source.name} differ from {target.name}?"
                kind = QuestionType.ANALYTICAL
            elif relationship.type == RelationshipType.EXAMPLE:
                text = f"How does {source.name} illustrate {target.name}?"
                kind = QuestionType.ANALYTICAL
            else:
                text = f"How are {source.name} and {target.name} connected?"
                kind = QuestionType.SYNTHESIS

            mentions = sorted(set(source.timestamps) & set(target.timestamps)) or target.timestamps
            questions.append(StudyQuestion(
                question=text,
                type=kind,
                difficulty=QuestionDifficulty.HARD if kind == QuestionType.SYNTHESIS else QuestionDifficulty.MEDIUM,
                related_timestamp=self._within(mentions[0] if mentions else None, total_duration),
                related_concepts=[source.name, target.name]
            ))

        return questions[:MAX_QUESTIONS]

    def key_timestamps(
        self,
        structure: ContentStructure,
        concept_map: ConceptMap,
        total_duration: float
    ) -> List[KeyTimestamp]:
        moments: List[KeyTimestamp] = []

        for index, chapter in enumerate(structure.chapters):
            if index > 0:
                moments.append(KeyTimestamp(
                    time=chapter.start_time,
                    title=chapter.title,
                    description=truncate_words(chapter.summary, 25),
                    type=KeyTimestampType.TRANSITION
                ))

        for concept in concept_map.by_importance(ConceptImportance.CORE):
            first = self._within(concept.timestamps[0] if concept.timestamps else None, total_duration)
            if first is None:
                continue
            moments.append(KeyTimestamp(
                time=first,
                title=f"{concept.name} introduced",
                description=truncate_words(concept.definition, 25),
                type=KeyTimestampType.DEFINITION,
                related_concepts=[concept.name]
            ))

        if structure.has_conclusion and structure.chapters:
            last = structure.chapters[-1]
            moments.append(KeyTimestamp(
                time=last.start_time,
                title="Wrap-up",
                description=f"Conclusion starting at {format_timestamp(last.start_time)}",
                type=KeyTimestampType.SUMMARY
            ))

        return sorted(moments, key=lambda moment: moment.time)

    @staticmethod
    def _within(time: Optional[float], total_duration: float) -> Optional[float]:
        if time is None or time < 0:
            return None
        return min(time, total_duration)
