"""Runs the full analysis of one video and stores the result."""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from ..config.formats import get_format
from ..config.schemas.backend_schemas import ParsedFrame
from ..core.config import settings
from ..core.exceptions import (
    AnalysisNotFoundError, BackendError, BackendUnavailableError, CaptionExtractionError,
    MalformedBackendOutputError, NoTranscriptAvailableError,
    VideoNotesBaseException
)
from ..models.analysis import EnhancedVideoAnalysis, VerbosityLevel
from ..models.responses import NoteResponse
from ..models.transcript import CaptionCue, FullTranscript, VideoFacts
from ..models.visual import VisualAnalysis
from ..utils.logging import CorrelatedLogger, MetricsLogger
from ..utils.validators import RequestValidator, URLValidator
from .analysis_store import InMemoryAnalysisStore
from .captions_provider import YtDlpCaptionsProvider
from .concept_extractor import ConceptExtractor
from .content_structurer import ContentStructurer
from .format_renderer import FormatRenderer
from .study_aids import StudyAidBuilder
from .transcript_normalizer import TranscriptNormalizer, backfill_importance
from .visual_summarizer import VisualSignalSummarizer, clamp_frames, to_raw_frames


@dataclass
class PipelineResult:
    """The stored artifact plus the recoverable problems met while building it."""
    analysis: EnhancedVideoAnalysis
    notices: List[VideoNotesBaseException] = field(default_factory=list)

    @property
    def no_transcript(self) -> Optional[NoTranscriptAvailableError]:
        for notice in self.notices:
            if isinstance(notice, NoTranscriptAvailableError):
                return notice
        return None

    @property
    def notice_codes(self) -> List[str]:
        return [notice.error_code for notice in self.notices]


class AnalysisPipeline:
    """
    Transcript and frames are processed concurrently, then structure,
    concepts and study aids are built, every requested format is rendered,
    and the finished artifact is saved once at the end.
    """

    def __init__(
        self,
        backend,
        store: InMemoryAnalysisStore,
        captions_provider: Optional[YtDlpCaptionsProvider] = None,
        normalizer: Optional[TranscriptNormalizer] = None,
        summarizer: Optional[VisualSignalSummarizer] = None
    ):
        self.backend = backend
        self.store = store
        self.captions_provider = captions_provider or YtDlpCaptionsProvider()
        self.normalizer = normalizer or TranscriptNormalizer()
        self.summarizer = summarizer or VisualSignalSummarizer()
        self.structurer = ContentStructurer(backend)
        self.extractor = ConceptExtractor(backend)
        self.aid_builder = StudyAidBuilder()
        self.renderer = FormatRenderer(backend)
        self.logger = CorrelatedLogger(__name__)
        self.metrics_logger = MetricsLogger()

    async def process(
        self,
        video_url: str,
        user_id: str = "anonymous",
        formats: Optional[List[str]] = None,
        preferred_language: Optional[str] = None,
        transcript_text: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> PipelineResult:
        start_time = datetime.now()
        if request_id:
            self.logger.request_id = request_id

        video_id = URLValidator.extract_video_id_from_url(video_url)
        format_ids = RequestValidator.normalize_formats(formats, settings.default_formats)
        calls_before = getattr(self.backend, "call_count", 0)
        notices: List[VideoNotesBaseException] = []

        # Frame sampling only needs the URL and runs while captions load
        visual_task = asyncio.create_task(self._visual_stage(video_url, video_id))
        try:
            transcript, no_transcript, facts, language = await self._transcript_stage(
                video_url, video_id, preferred_language, transcript_text, request_id, notices
            )
        except BaseException:
            visual_task.cancel()
            raise
        frames, visual_ok = await visual_task

        degraded = transcript is None
        frames = clamp_frames(frames, facts.duration if degraded else transcript.total_duration)
        visual = self.summarizer.summarize(to_raw_frames(frames)) if visual_ok else VisualAnalysis()
        if degraded:
            notices.append(no_transcript)
            transcript = self._empty_transcript(facts, frames, language)
            units = [(frame.timestamp, self._frame_text(frame)) for frame in frames]
            self.logger.warning(f"No transcript for {video_id}, continuing with {len(frames)} frames only")
        else:
            units = [(segment.start_time, segment.text) for segment in transcript.segments]

        title = facts.title or video_id
        structure, structure_ok = await self.structurer.structure(transcript, visual, title, request_id)
        concept_map, concept_steps = await self.extractor.extract(units, structure, visual, title, request_id)
        if not degraded:
            transcript = backfill_importance(transcript, concept_map)
        aids = self.aid_builder.build(transcript, visual, structure, concept_map, degraded)

        draft = EnhancedVideoAnalysis(
            video_id=video_id,
            video_url=video_url,
            title=title,
            video_facts=facts,
            full_transcript=transcript,
            visual_analysis=visual,
            content_structure=structure,
            concept_map=concept_map,
            primary_subject=aids.primary_subject,
            secondary_subjects=aids.secondary_subjects,
            content_tags=aids.content_tags,
            difficulty_level=aids.difficulty_level,
            suggested_questions=aids.suggested_questions,
            key_timestamps=aids.key_timestamps,
            transcript_confidence=transcript.average_confidence,
            degraded_mode=degraded
        )

        render = await self.renderer.render_all(draft, format_ids, request_id)

        backend_successes = int(visual_ok) + int(structure_ok) + concept_steps + len(render.outputs)
        if backend_successes == 0:
            raise BackendUnavailableError("every generative step failed")

        stages = [
            0.0 if degraded else 1.0,
            1.0 if visual_ok else 0.0,
            1.0 if structure_ok else 0.0,
            concept_steps / 2,
            len(render.outputs) / len(format_ids) if format_ids else 1.0,
        ]
        processing_time = int((datetime.now() - start_time).total_seconds() * 1000)
        backend_calls = getattr(self.backend, "call_count", 0) - calls_before

        final = draft.model_copy(update={
            "all_template_outputs": render.outputs,
            "failed_formats": render.failed,
            "processing_time_ms": processing_time,
            "backend_calls": backend_calls,
            "analysis_completeness": round(sum(stages) / len(stages), 3),
        })
        stored = await self.store.save_analysis(video_id, final, user_id)

        self.metrics_logger.log_pipeline_metrics(
            request_id or "", video_id, processing_time, backend_calls, degraded, sorted(render.failed)
        )
        return PipelineResult(analysis=stored, notices=notices)

    async def _transcript_stage(
        self,
        video_url: str,
        video_id: str,
        preferred_language: Optional[str],
        transcript_text: Optional[str],
        request_id: Optional[str],
        notices: List[VideoNotesBaseException]
    ) -> Tuple[Optional[FullTranscript], Optional[NoTranscriptAvailableError], VideoFacts, str]:
        cues, facts, language = await self._load_captions(
            video_url, video_id, preferred_language, transcript_text, request_id, notices
        )
        try:
            return self.normalizer.normalize(cues, facts.duration, language, video_id), None, facts, language
        except NoTranscriptAvailableError as e:
            return None, e, facts, language

    async def _load_captions(
        self,
        video_url: str,
        video_id: str,
        preferred_language: Optional[str],
        transcript_text: Optional[str],
        request_id: Optional[str],
        notices: List[VideoNotesBaseException]
    ) -> Tuple[List[CaptionCue], VideoFacts, str]:
        language = preferred_language or settings.default_language

        if transcript_text:
            cues = self.normalizer.parse_text_transcript(transcript_text)
            return cues, VideoFacts(video_id=video_id, url=video_url), language

        try:
            track = await self.captions_provider.fetch(video_url, preferred_language, request_id)
        except CaptionExtractionError as e:
            self.logger.warning(f"Caption extraction failed, continuing without captions: {e.message}")
            notices.append(e)
            return [], VideoFacts(video_id=video_id, url=video_url), language

        return track.segments, track.video_facts, track.language or language

    async def _visual_stage(self, video_url: str, video_id: str) -> Tuple[List[ParsedFrame], bool]:
        """Sampled frames, unclamped; the caller clamps them once the transcript length is known."""
        try:
            frames = await self.summarizer.sample_frames(
                self.backend, video_url, VideoFacts(video_id=video_id, url=video_url)
            )
        except (BackendError, MalformedBackendOutputError) as e:
            self.logger.warning(f"Frame sampling failed ({e.error_code}), continuing without visual signal")
            return [], False
        return frames, True

    @staticmethod
    def _empty_transcript(facts: VideoFacts, frames: List[ParsedFrame], language: str) -> FullTranscript:
        last_frame = max((frame.timestamp for frame in frames), default=0.0)
        return FullTranscript(
            segments=[],
            total_duration=max(facts.duration or 0.0, last_frame),
            language=language,
            average_confidence=0.0,
            word_count=0
        )

    @staticmethod
    def _frame_text(frame: ParsedFrame) -> str:
        parts = [frame.description, frame.extracted_text or "", frame.spoken_summary or ""]
        return " ".join(part for part in parts if part)


class NoteService:
    """Reads stored notes; switching verbosity never calls the backend."""

    def __init__(self, store: InMemoryAnalysisStore):
        self.store = store

    async def switch_verbosity(
        self,
        video_id: str,
        format_id: str,
        level: VerbosityLevel = VerbosityLevel.STANDARD,
        user_id: Optional[str] = None
    ) -> NoteResponse:
        analysis = await self.store.require_analysis(video_id, user_id)
        get_format(format_id)

        output = analysis.get_output(format_id)
        if output is None:
            # Registered format that was never rendered, or whose render failed
            raise AnalysisNotFoundError(f"{video_id}/{format_id}")

        level = VerbosityLevel(level)
        return NoteResponse(
            video_id=video_id,
            template=format_id,
            verbosity=level,
            content=output.verbosity_levels.get(level),
            analysis_version=analysis.analysis_version,
            available_levels=list(VerbosityLevel)
        )
