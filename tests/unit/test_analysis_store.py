"""Unit tests for InMemoryAnalysisStore and NoteService."""
import asyncio

import pytest

from vidnotes.core.exceptions import AnalysisNotFoundError, UnknownFormatError
from vidnotes.models.analysis import VerbosityLevel
from vidnotes.services.analysis_pipeline import NoteService
from vidnotes.services.analysis_store import InMemoryAnalysisStore


class TestInMemoryAnalysisStore:
    """Test cases for the artifact store."""

    @pytest.fixture
    def store(self):
        return InMemoryAnalysisStore()

    @pytest.mark.asyncio
    async def test_versions_increase_per_save(self, store, lecture_analysis):
        first = await store.save_analysis("abc123def45", lecture_analysis, user_id="u1")
        second = await store.save_analysis("abc123def45", lecture_analysis, user_id="u1")

        assert (first.analysis_version, second.analysis_version) == (1, 2)
        assert await store.list_versions("abc123def45", "u1") == [1, 2]
        latest = await store.get_analysis("abc123def45", "u1")
        assert latest.analysis_version == 2

    @pytest.mark.asyncio
    async def test_concurrent_saves_get_distinct_versions(self, store, lecture_analysis):
        saved = await asyncio.gather(*(store.save_analysis("abc123def45", lecture_analysis) for _ in range(5)))

        assert sorted(a.analysis_version for a in saved) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_user_lookup_falls_back_to_anonymous(self, store, lecture_analysis):
        await store.save_analysis("abc123def45", lecture_analysis)

        assert await store.get_analysis("abc123def45", "someone") is not None
        assert await store.get_analysis("other", "someone") is None

    @pytest.mark.asyncio
    async def test_require_analysis_raises_when_missing(self, store):
        with pytest.raises(AnalysisNotFoundError) as exc_info:
            await store.require_analysis("missing")

        assert exc_info.value.details == {"video_id": "missing"}

    @pytest.mark.asyncio
    async def test_rendered_notes_are_stored_for_every_tier(self, store, lecture_analysis):
        await store.save_analysis("abc123def45", lecture_analysis)

        for level in VerbosityLevel:
            note = await store.get_rendered_note("abc123def45", "basic-summary", level)
            assert note == lecture_analysis.all_template_outputs["basic-summary"].verbosity_levels.get(level)

    @pytest.mark.asyncio
    async def test_save_rendered_note_overrides_tier(self, store, lecture_analysis):
        await store.save_analysis("abc123def45", lecture_analysis)

        await store.save_rendered_note("abc123def45", "basic-summary", "edited", VerbosityLevel.BRIEF)

        assert await store.get_rendered_note("abc123def45", "basic-summary", "brief") == "edited"
        assert await store.get_rendered_note("abc123def45", "study-notes") is None

    @pytest.mark.asyncio
    async def test_stats_and_clear(self, store, lecture_analysis):
        await store.save_analysis("abc123def45", lecture_analysis)
        await store.save_analysis("abc123def45", lecture_analysis, user_id="u1")

        assert store.get_stats() == {"stored_analyses": 2, "videos": 1, "rendered_notes": 6}

        store.clear()
        assert store.get_stats()["stored_analyses"] == 0


class TestNoteService:
    """Switching verbosity reads stored tiers and never calls the backend."""

    @pytest.mark.asyncio
    async def test_switch_verbosity_returns_stored_tier(self, lecture_analysis):
        store = InMemoryAnalysisStore()
        await store.save_analysis("abc123def45", lecture_analysis)
        service = NoteService(store)

        response = await service.switch_verbosity("abc123def45", "basic-summary", VerbosityLevel.BRIEF)

        assert response.content == "**Video Summary**\nGradient descent minimizes a loss function."
        assert response.verbosity == VerbosityLevel.BRIEF
        assert response.analysis_version == 1

    @pytest.mark.asyncio
    async def test_switch_verbosity_for_unrendered_format(self, lecture_analysis):
        store = InMemoryAnalysisStore()
        await store.save_analysis("abc123def45", lecture_analysis)

        with pytest.raises(AnalysisNotFoundError):
            await NoteService(store).switch_verbosity("abc123def45", "study-notes", VerbosityLevel.STANDARD)

    @pytest.mark.asyncio
    async def test_switch_verbosity_unknown_format(self, lecture_analysis):
        store = InMemoryAnalysisStore()
        await store.save_analysis("abc123def45", lecture_analysis)

        with pytest.raises(UnknownFormatError):
            await NoteService(store).switch_verbosity("abc123def45", "mind-map", VerbosityLevel.STANDARD)

    @pytest.mark.asyncio
    async def test_switch_verbosity_without_analysis(self):
        with pytest.raises(AnalysisNotFoundError):
            await NoteService(InMemoryAnalysisStore()).switch_verbosity("nope", "basic-summary", "brief")
