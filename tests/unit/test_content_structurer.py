"""Unit tests for ContentStructurer."""
import pytest

from vidnotes.core.exceptions import BackendTimeoutError
from vidnotes.models.transcript import FullTranscript, TranscriptSegment
from vidnotes.models.visual import RawFrame, VisualAnalysis
from vidnotes.services.content_structurer import ContentStructurer
from vidnotes.services.visual_summarizer import VisualSignalSummarizer


def build_transcript(total=600, step=10, gaps=(), markers=None):
    """Continuous ten-second segments; a gap pushes the segment start back by five seconds."""
    markers = markers or {}
    segments = []
    for start in range(0, total, step):
        text = markers.get(start, f"We keep working through the example number {start // step}.")
        segment_start = start
        end = start + step
        if start + step in gaps:
            end = start + step - 5
        segments.append(TranscriptSegment(start_time=segment_start, end_time=end, text=text, confidence=0.9))
    return FullTranscript(
        segments=segments,
        total_duration=float(total),
        language="en",
        average_confidence=0.9,
        word_count=sum(len(s.text.split()) for s in segments)
    )


class TestContentStructurer:
    """Test cases for chapter detection and coverage."""

    @pytest.mark.asyncio
    async def test_ten_minute_video_in_three_chapters_covers_timeline(self, fake_backend_factory, chapter_outline):
        transcript = build_transcript(
            gaps=(200, 400),
            markers={
                0: "Welcome, today we will cover optimization.",
                200: "Moving on, let's talk about momentum.",
                400: "Finally, we look at adaptive methods.",
                590: "In conclusion, thanks for watching.",
            }
        )
        backend = fake_backend_factory({"chapter_outline": chapter_outline(3)})

        structure, used_backend = await ContentStructurer(backend).structure(transcript, VisualAnalysis(), "Optimizers")

        assert used_backend is True
        assert len(structure.chapters) == 3
        assert structure.transition_points == [200, 400]
        covered = sum(chapter.duration for chapter in structure.chapters)
        assert covered >= transcript.total_duration - 2
        assert structure.largest_gap(transcript.total_duration) <= 2
        assert structure.chapters[0].start_time == 0
        assert structure.chapters[-1].end_time == transcript.total_duration
        assert structure.has_introduction is True
        assert structure.has_conclusion is True
        assert backend.call_count == 1

    @pytest.mark.asyncio
    async def test_backend_failure_falls_back_to_local_titles(self, fake_backend_factory):
        transcript = build_transcript(gaps=(300,), markers={300: "Next up, regularization techniques."})
        backend = fake_backend_factory({"chapter_outline": BackendTimeoutError("chapter_outline", 60)})

        structure, used_backend = await ContentStructurer(backend).structure(transcript, VisualAnalysis())

        assert used_backend is False
        assert len(structure.chapters) == 2
        assert all(chapter.title for chapter in structure.chapters)
        for previous, current in zip(structure.chapters, structure.chapters[1:]):
            assert previous.end_time <= current.start_time

    @pytest.mark.asyncio
    async def test_chapter_count_mismatch_uses_local_titles(self, fake_backend_factory, chapter_outline):
        transcript = build_transcript(gaps=(300,), markers={300: "Next up, regularization techniques."})
        backend = fake_backend_factory({"chapter_outline": chapter_outline(5)})

        structure, used_backend = await ContentStructurer(backend).structure(transcript, VisualAnalysis())

        assert used_backend is False
        assert len(structure.chapters) == 2

    @pytest.mark.asyncio
    async def test_prefers_boundary_at_frame_type_change(self, fake_backend_factory, chapter_outline):
        transcript = build_transcript(markers={300: "Now let's look at the second method."})
        visual = VisualSignalSummarizer().summarize([
            RawFrame(timestamp=0, description="Presenter talking to the camera", elements=["person"]),
            RawFrame(timestamp=305, description="Slide with a bullet list"),
            RawFrame(timestamp=590, description="Slide with a heading"),
        ])
        backend = fake_backend_factory({"chapter_outline": chapter_outline(2)})

        structure, _ = await ContentStructurer(backend).structure(transcript, visual)

        assert structure.transition_points == [305]
        assert structure.chapters[1].start_time == 305

    @pytest.mark.asyncio
    async def test_short_video_without_signals_is_one_chapter(self, fake_backend_factory, chapter_outline):
        transcript = build_transcript(total=90)
        backend = fake_backend_factory({"chapter_outline": chapter_outline(1)})

        structure, _ = await ContentStructurer(backend).structure(transcript, VisualAnalysis())

        assert len(structure.chapters) == 1
        assert structure.chapters[0].start_time == 0
        assert structure.chapters[0].end_time == 90

    @pytest.mark.asyncio
    async def test_long_video_without_signals_is_split_evenly(self, fake_backend_factory):
        transcript = build_transcript(total=1200)
        backend = fake_backend_factory()

        structure, _ = await ContentStructurer(backend).structure(transcript, VisualAnalysis())

        assert len(structure.chapters) >= 2
        assert structure.largest_gap(1200) <= 2

    @pytest.mark.asyncio
    async def test_empty_timeline(self, fake_backend_factory):
        transcript = FullTranscript(segments=[], total_duration=0, language="en", average_confidence=0, word_count=0)

        structure, used_backend = await ContentStructurer(fake_backend_factory()).structure(transcript, VisualAnalysis())

        assert structure.chapters == []
        assert used_backend is False
