"""Unit tests for StudyAidBuilder."""
import pytest

from vidnotes.models.analysis import DifficultyLevel, KeyTimestampType, QuestionDifficulty, QuestionType
from vidnotes.models.concepts import Concept, ConceptDifficulty, ConceptImportance, ConceptMap
from vidnotes.models.structure import FlowType
from vidnotes.models.visual import VisualAnalysis, VisualComplexity
from vidnotes.services.study_aids import StudyAidBuilder


class TestStudyAidBuilder:
    """Test cases for derived study aids."""

    @pytest.fixture
    def builder(self):
        return StudyAidBuilder()

    def test_subjects_lead_with_main_topic(self, builder, lecture_analysis):
        primary, secondary = builder.subjects(lecture_analysis.content_structure, lecture_analysis.concept_map)

        assert primary == "Gradient Descent"
        assert secondary == ["Loss Function", "Learning Rate"]

    def test_subjects_empty(self, builder, lecture_analysis):
        structure = lecture_analysis.content_structure.model_copy(update={"main_topics": []})

        assert builder.subjects(structure, ConceptMap()) == ("", [])

    def test_difficulty_weights_core_concepts(self, builder, lecture_concept_map):
        assert builder.difficulty_level(lecture_concept_map) == DifficultyLevel.INTERMEDIATE
        assert builder.difficulty_level(ConceptMap()) == DifficultyLevel.INTERMEDIATE

        basics = ConceptMap(concepts=[
            Concept(name="Addition", difficulty=ConceptDifficulty.BASIC, importance=ConceptImportance.CORE),
            Concept(name="Tensors", difficulty=ConceptDifficulty.ADVANCED),
        ])
        assert builder.difficulty_level(basics) == DifficultyLevel.BEGINNER

    def test_questions_cover_concepts_and_relationships(self, builder, lecture_concept_map):
        questions = builder.questions(lecture_concept_map, 270)

        assert [q.question for q in questions[:3]] == [
            "What is Gradient Descent?", "What is Loss Function?", "What is Learning Rate?"
        ]
        first = questions[0]
        assert first.difficulty == QuestionDifficulty.MEDIUM
        assert first.related_timestamp == 0
        assert first.suggested_answer.startswith("An iterative method")

        prerequisite, related = questions[3], questions[4]
        assert prerequisite.question == "Why do you need to understand Loss Function before Gradient Descent?"
        assert prerequisite.type == QuestionType.CONCEPTUAL
        assert prerequisite.related_timestamp == 25
        assert related.type == QuestionType.SYNTHESIS
        assert related.difficulty == QuestionDifficulty.HARD
        assert related.related_timestamp == 45

    def test_question_timestamps_stay_inside_video(self, builder, lecture_concept_map):
        questions = builder.questions(lecture_concept_map, 20)

        assert all(q.related_timestamp is None or q.related_timestamp <= 20 for q in questions)

    def test_key_timestamps(self, builder, lecture_analysis):
        moments = builder.key_timestamps(
            lecture_analysis.content_structure, lecture_analysis.concept_map, 270
        )

        assert [m.time for m in moments] == [0, 95, 205, 205]
        assert [m.type for m in moments] == [
            KeyTimestampType.DEFINITION, KeyTimestampType.TRANSITION,
            KeyTimestampType.TRANSITION, KeyTimestampType.SUMMARY
        ]
        assert moments[0].title == "Gradient Descent introduced"

    def test_content_tags(self, builder, lecture_analysis):
        structure = lecture_analysis.content_structure.model_copy(update={"flow_type": FlowType.BRANCHING})
        visual = VisualAnalysis(has_slides=True, visual_complexity=VisualComplexity.HIGH)

        tags = builder.content_tags(structure, visual, DifficultyLevel.ADVANCED, degraded=True)

        assert tags == ["advanced", "branching-flow", "slides", "visually-dense", "visual-only"]

    def test_build(self, builder, lecture_analysis):
        aids = builder.build(
            lecture_analysis.full_transcript,
            VisualAnalysis(),
            lecture_analysis.content_structure,
            lecture_analysis.concept_map
        )

        assert aids.primary_subject == "Gradient Descent"
        assert aids.content_tags == ["intermediate"]
        assert len(aids.suggested_questions) == 5
        assert len(aids.key_timestamps) == 4
