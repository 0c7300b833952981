"""Unit tests for citation grounding."""
import pytest

from vidnotes.core.exceptions import CitationGroundingViolation
from vidnotes.models.chat import Citation, CitationType
from vidnotes.services.grounding import GroundingContext, assert_grounded, grounding_problem, is_grounded


@pytest.fixture
def context():
    return GroundingContext(
        source_text="Welcome to this introduction to gradient descent. A loss function measures error.",
        total_duration=270.0,
        concept_names=frozenset({"Gradient Descent", "Loss Function"})
    )


def citation(kind, value):
    return Citation(type=kind, value=value)


class TestGrounding:
    """Test cases for citation grounding."""

    @pytest.mark.parametrize("value,grounded", [
        ("0:00", True),
        ("4:30", True),
        ("4:31", False),
        ("1:02:03", False),
        ("soon", False),
    ])
    def test_timestamp_within_duration(self, context, value, grounded):
        assert is_grounded(citation(CitationType.TIMESTAMP, value), context) is grounded

    def test_timestamp_without_timeline(self):
        notes_only = GroundingContext(source_text="Some note text")

        problem = grounding_problem(citation(CitationType.TIMESTAMP, "0:10"), notes_only)

        assert problem == "no timeline available"

    def test_concept_must_be_known(self, context):
        assert is_grounded(citation(CitationType.CONCEPT, "Loss Function"), context)
        assert not is_grounded(citation(CitationType.CONCEPT, "Momentum"), context)

    def test_transcript_excerpt_must_be_literal(self, context):
        assert is_grounded(citation(CitationType.TRANSCRIPT, "A loss function measures error."), context)
        assert not is_grounded(citation(CitationType.TRANSCRIPT, "A loss function measures mistakes."), context)
        assert not is_grounded(citation(CitationType.TRANSCRIPT, "   "), context)

    def test_assert_grounded_raises_on_first_violation(self, context):
        citations = [
            citation(CitationType.CONCEPT, "Gradient Descent"),
            citation(CitationType.TIMESTAMP, "7:45"),
        ]

        with pytest.raises(CitationGroundingViolation) as exc_info:
            assert_grounded(citations, context)

        assert exc_info.value.error_code == "CITATION_GROUNDING_VIOLATION"
        assert exc_info.value.details["value"] == "7:45"
