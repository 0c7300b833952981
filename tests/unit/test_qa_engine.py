"""Unit tests for QAEngine."""
from unittest.mock import patch

import pytest

from vidnotes.core.exceptions import BackendTimeoutError, ValidationError
from vidnotes.models.analysis import ChatbotVideoContext
from vidnotes.models.chat import ChatMessage, CitationType
from vidnotes.services.qa_engine import QAEngine, find_literal
from vidnotes.utils.timestamps import parse_timestamp

FULL_ANSWER = (
    "Gradient descent follows the gradient downhill [Citation: 0:25]. "
    "The learning rate matters a lot [Citation: 7:45]. "
    "See also [Citation: Loss Function] and [Citation: \"the learning rate controls the step size\"]. "
    "[Citation: a quote nobody said] Around 9:00 the lecture recaps.\n"
    "[RELATED_CONCEPTS: Learning Rate, Quantum Physics]"
)

NOTE = (
    "## Video Overview\n"
    "Gradient descent minimizes a loss function.\n"
    "Smaller rates are slower but more stable."
)


class TestQAEngine:
    """Test cases for grounded question answering."""

    @pytest.fixture
    def context(self, lecture_analysis):
        return ChatbotVideoContext(analysis=lecture_analysis, currently_viewing_format="basic-summary")

    @pytest.mark.asyncio
    async def test_citations_never_exceed_video_duration(self, fake_backend_factory, context):
        backend = fake_backend_factory({"chat:full": FULL_ANSWER})

        response = await QAEngine(backend).answer("How does gradient descent work?", context=context)

        assert response.success is True
        assert response.notes_only is False
        for citation in response.citations:
            if citation.type == CitationType.TIMESTAMP:
                assert parse_timestamp(citation.value) <= 270
        assert [(c.type, c.value) for c in response.citations] == [
            (CitationType.TIMESTAMP, "0:25"),
            (CitationType.CONCEPT, "Loss Function"),
            (CitationType.TRANSCRIPT, "The learning rate controls the step size"),
        ]

    @pytest.mark.asyncio
    async def test_markers_are_removed_from_response(self, fake_backend_factory, context):
        backend = fake_backend_factory({"chat:full": FULL_ANSWER})

        response = await QAEngine(backend).answer("How does gradient descent work?", context=context)

        assert "[Citation" not in response.response
        assert "RELATED_CONCEPTS" not in response.response
        assert response.response.startswith("Gradient descent follows the gradient downhill.")

    @pytest.mark.asyncio
    async def test_related_concepts_are_known_concepts(self, fake_backend_factory, context):
        backend = fake_backend_factory({"chat:full": FULL_ANSWER})

        response = await QAEngine(backend).answer("How does gradient descent work?", context=context)

        assert response.related_concepts == ["Learning Rate", "Loss Function"]

    @pytest.mark.asyncio
    async def test_timestamp_citation_describes_the_moment(self, fake_backend_factory, context):
        backend = fake_backend_factory({"chat:full": "It is defined early on [Citation: 0:12]."})

        response = await QAEngine(backend).answer("Where is the loss function defined?", context=context)

        assert len(response.citations) == 1
        assert response.citations[0].description.startswith("At 0:12: A loss function")
        assert response.citations[0].url == "https://www.youtube.com/watch?v=abc123def45&t=12s"

    @pytest.mark.asyncio
    async def test_prompt_includes_transcript_and_current_note(self, fake_backend_factory, context):
        backend = fake_backend_factory({"chat:full": "An answer."})

        await QAEngine(backend).answer("What happens at 2:20?", context=context)

        _operation, mode, prompt = backend.calls[0]
        assert mode == "text"
        assert "A smaller learning rate is slower but more stable." in prompt
        assert "**Video Summary**" in prompt

    @pytest.mark.asyncio
    async def test_notes_only_mode_cites_only_the_note(self, fake_backend_factory):
        backend = fake_backend_factory({"chat:notes_only": (
            "Lower rates trade speed for stability [Citation: smaller rates are slower but more stable] "
            "as shown at [Citation: 1:30]. [Citation: Momentum]\n"
            "[RELATED_CONCEPTS: Gradient Descent]"
        )})

        response = await QAEngine(backend).answer(
            "Why use a small learning rate?", current_note=NOTE, current_format="study-notes"
        )

        assert response.notes_only is True
        assert response.related_concepts == []
        assert [(c.type, c.value) for c in response.citations] == [
            (CitationType.TRANSCRIPT, "Smaller rates are slower but more stable")
        ]
        assert response.citations[0].description == "Note excerpt"
        assert backend.operations() == ["chat:notes_only"]

    @pytest.mark.asyncio
    async def test_requires_context_or_note(self, fake_backend_factory):
        backend = fake_backend_factory()

        with pytest.raises(ValidationError):
            await QAEngine(backend).answer("Anything?", current_note="   ")

        assert backend.call_count == 0

    @pytest.mark.asyncio
    async def test_backend_errors_propagate(self, fake_backend_factory, context):
        backend = fake_backend_factory({"chat:full": BackendTimeoutError("chat:full", 60)})

        with pytest.raises(BackendTimeoutError):
            await QAEngine(backend).answer("How does it work?", context=context)

    @pytest.mark.asyncio
    async def test_history_is_limited_and_truncated(self, fake_backend_factory):
        backend = fake_backend_factory({"chat:notes_only": "Fine."})
        history = [
            ChatMessage(content=f"message {index} " + "x" * 300, is_user=index % 2 == 0)
            for index in range(8)
        ]

        with patch("vidnotes.services.qa_engine.settings") as mock_settings:
            mock_settings.chat_history_limit = 3
            await QAEngine(backend).answer("Next?", history=history, current_note=NOTE)

        _operation, _mode, prompt = backend.calls[0]
        assert "message 5" in prompt and "message 7" in prompt
        assert "message 4" not in prompt
        assert "x" * 101 not in prompt


class TestAnswerParsing:
    """Marker extraction and literal lookup."""

    def test_parse_answer(self):
        text, citations, related = QAEngine.parse_answer(
            "Answer text [Citation: 1:05] more [citation: 'quoted words'].\n[RELATED_CONCEPTS: A, B,]"
        )

        assert text == "Answer text more."
        assert citations == ["1:05", "quoted words"]
        assert related == ["A", "B"]

    def test_parse_answer_without_markers(self):
        assert QAEngine.parse_answer("Plain answer.") == ("Plain answer.", [], [])

    def test_find_literal_ignores_case_and_spacing(self):
        source = "The learning rate\ncontrols the step size."

        assert find_literal("the LEARNING rate controls", source) == "The learning rate\ncontrols"
        assert find_literal("momentum", source) is None
        assert find_literal("  ", source) is None

    def test_recent_history_keeps_newest(self):
        history = [ChatMessage(content=str(index)) for index in range(10)]

        recent = QAEngine.recent_history(history)

        assert [m.content for m in recent] == ["5", "6", "7", "8", "9"]
