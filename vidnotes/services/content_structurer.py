"""Splits a video's timeline into chapters and classifies its flow."""
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..config.schemas import MalformedOutput, ParsedChapterSet, parse_chapter_set
from ..config.templates import get_template_engine
from ..core.config import settings
from ..core.exceptions import BackendError
from ..models.structure import ChapterImportance, ContentChapter, ContentStructure, FlowType
from ..models.transcript import FullTranscript
from ..models.visual import VisualAnalysis
from ..utils.logging import CorrelatedLogger
from ..utils.text import first_sentence, fold_term, split_sentences, truncate_words
from ..utils.timestamps import format_timestamp

VERBAL_MARKERS = re.compile(
    r"\b(moving on|next up|the next (?:topic|step|part|thing)|now let'?s|let'?s (?:talk about|move on|look at)|"
    r"in this (?:section|part)|first(?:ly)?,|second(?:ly)?,|third(?:ly)?,|finally|in conclusion|"
    r"to (?:summarize|sum up|wrap up)|part (?:one|two|three|\d+)|step (?:one|two|three|\d+))\b",
    re.IGNORECASE
)
BRANCHING_MARKERS = re.compile(r"\b(alternatively|on the other hand|another option|option (?:a|b|one|two)|either)\b", re.IGNORECASE)
INTRO_MARKERS = re.compile(r"\b(welcome|today|in this video|introduction|intro|hello|hi everyone|we(?:'ll| will) (?:cover|learn))\b", re.IGNORECASE)
OUTRO_MARKERS = re.compile(r"\b(in conclusion|to summarize|to sum up|summary|recap|wrap up|thanks for watching|that'?s (?:it|all))\b", re.IGNORECASE)

PAUSE_WEIGHT = 1.0
MARKER_WEIGHT = 1.5
VISUAL_WEIGHT = 1.0
SLIDE_CHANGE_WEIGHT = 0.8
# A candidate this close to a frame-type change counts as coinciding with it
VISUAL_COINCIDENCE_SECONDS = 2.0
# Preferred chapter length when no transition signal exists at all
EVEN_SPLIT_SECONDS = 300
EXCERPT_WORDS = 120
# Stretch at either end searched for introduction and conclusion cues
OPENING_SECONDS = 60


@dataclass
class BoundaryCandidate:
    time: float
    weight: float
    kind: str


class ContentStructurer:
    """
    Detects topic transitions (long pauses, verbal markers, slide changes) and
    turns the chosen boundaries into chapters that cover the whole timeline.
    Titles and summaries come from one backend call; when that call fails or
    returns something unusable, local titles are used instead.
    """

    def __init__(self, backend):
        self.backend = backend
        self.logger = CorrelatedLogger(__name__)

    async def structure(
        self,
        transcript: FullTranscript,
        visual: VisualAnalysis,
        title: str = "",
        request_id: Optional[str] = None
    ) -> Tuple[ContentStructure, bool]:
        """Return the structure and whether the backend outline was used."""
        if request_id:
            self.logger.request_id = request_id

        total = transcript.total_duration
        if total <= 0:
            return ContentStructure(), False

        boundaries = self.choose_boundaries(self.find_candidates(transcript, visual), visual, total)
        if not boundaries:
            boundaries = self._even_split(transcript, total)

        edges = [0.0, *boundaries, total]
        ranges = [(start, end) for start, end in zip(edges, edges[1:]) if end > start]
        excerpts = [self._excerpt(transcript, visual, start, end) for start, end in ranges]

        outline = await self._request_outline(title, total, ranges, excerpts)
        used_backend = outline is not None

        if outline is not None:
            chapters = [
                ContentChapter(
                    title=parsed.title,
                    start_time=start,
                    end_time=end,
                    summary=parsed.summary,
                    key_points=parsed.key_points,
                    importance=parsed.importance
                )
                for parsed, (start, end) in zip(outline.chapters, ranges)
            ]
            main_topics = outline.main_topics or self._local_topics(chapters)
            flow_type = outline.flow_type
        else:
            chapters = self._local_chapters(ranges, excerpts, total)
            main_topics = self._local_topics(chapters)
            flow_type = self._local_flow(chapters, transcript)

        first_text = self._excerpt(transcript, visual, 0.0, min(OPENING_SECONDS, total), max_words=None)
        last_text = self._excerpt(transcript, visual, max(total - OPENING_SECONDS, 0.0), total, max_words=None)

        structure = ContentStructure(
            chapters=chapters,
            main_topics=main_topics,
            flow_type=flow_type,
            has_introduction=bool(INTRO_MARKERS.search(first_text) or INTRO_MARKERS.search(chapters[0].title)),
            has_conclusion=bool(OUTRO_MARKERS.search(last_text) or OUTRO_MARKERS.search(chapters[-1].title)),
            transition_points=list(boundaries)
        )

        self.logger.info(
            f"Structured {format_timestamp(total)} into {len(chapters)} chapters "
            f"({'backend' if used_backend else 'local'} titles)"
        )
        return structure, used_backend

    def find_candidates(self, transcript: FullTranscript, visual: VisualAnalysis) -> List[BoundaryCandidate]:
        candidates = []
        segments = transcript.segments

        for previous, current in zip(segments, segments[1:]):
            gap = current.start_time - previous.end_time
            if gap >= settings.pause_threshold_seconds:
                candidates.append(BoundaryCandidate(current.start_time, PAUSE_WEIGHT + min(gap / 10, 1.0), "pause"))

        for segment in segments:
            if VERBAL_MARKERS.search(segment.text):
                candidates.append(BoundaryCandidate(segment.start_time, MARKER_WEIGHT, "marker"))

        for timestamp in visual.type_changes():
            candidates.append(BoundaryCandidate(timestamp, VISUAL_WEIGHT, "visual"))

        for previous, current in zip(visual.key_frames, visual.key_frames[1:]):
            if (
                previous.type == current.type
                and previous.has_text and current.has_text
                and fold_term(previous.extracted_text) != fold_term(current.extracted_text)
            ):
                candidates.append(BoundaryCandidate(current.timestamp, SLIDE_CHANGE_WEIGHT, "slide"))

        return sorted(candidates, key=lambda c: c.time)

    def choose_boundaries(
        self,
        candidates: Sequence[BoundaryCandidate],
        visual: VisualAnalysis,
        total: float
    ) -> List[float]:
        """Collapse nearby candidates, then keep the strongest ones that respect the minimum chapter length."""
        min_length = settings.min_chapter_seconds
        window = settings.boundary_window_seconds
        type_changes = visual.type_changes()

        clusters: List[List[BoundaryCandidate]] = []
        for candidate in candidates:
            if clusters and candidate.time - clusters[-1][0].time <= window:
                clusters[-1].append(candidate)
            else:
                clusters.append([candidate])

        scored = []
        for cluster in clusters:
            winner = self._pick_in_window(cluster, type_changes)
            scored.append((sum(c.weight for c in cluster), winner.time))

        accepted: List[float] = []
        for _score, time in sorted(scored, key=lambda item: (-item[0], item[1])):
            if len(accepted) >= settings.max_chapters - 1:
                break
            if time < min_length or total - time < min_length:
                continue
            if all(abs(time - other) >= min_length for other in accepted):
                accepted.append(time)

        return sorted(accepted)

    @staticmethod
    def _pick_in_window(cluster: Sequence[BoundaryCandidate], type_changes: Sequence[float]) -> BoundaryCandidate:
        """Within one window prefer the candidate that coincides with a frame-type change."""
        def coincides(candidate: BoundaryCandidate) -> bool:
            return candidate.kind == "visual" or any(
                abs(candidate.time - change) <= VISUAL_COINCIDENCE_SECONDS for change in type_changes
            )

        return min(cluster, key=lambda c: (not coincides(c), -c.weight, c.time))

    def _even_split(self, transcript: FullTranscript, total: float) -> List[float]:
        """Evenly spaced boundaries snapped to segment starts, for long videos without any signal."""
        if total < 4 * settings.min_chapter_seconds:
            return []

        count = min(settings.max_chapters, max(2, round(total / EVEN_SPLIT_SECONDS)))
        starts = [segment.start_time for segment in transcript.segments]
        boundaries: List[float] = []
        for index in range(1, count):
            target = total * index / count
            if starts:
                target = min(starts, key=lambda start: abs(start - target))
            if (
                settings.min_chapter_seconds <= target <= total - settings.min_chapter_seconds
                and all(abs(target - other) >= settings.min_chapter_seconds for other in boundaries)
            ):
                boundaries.append(target)
        return sorted(boundaries)

    @staticmethod
    def _excerpt(
        transcript: FullTranscript,
        visual: VisualAnalysis,
        start: float,
        end: float,
        max_words: Optional[int] = EXCERPT_WORDS
    ) -> str:
        text = transcript.text_between(start, end)
        if not text:
            text = " ".join(
                " ".join(filter(None, [frame.description, frame.extracted_text]))
                for frame in visual.key_frames
                if start <= frame.timestamp < end or (frame.timestamp == end == transcript.total_duration)
            )
        return truncate_words(text, max_words) if max_words else text

    async def _request_outline(
        self,
        title: str,
        total: float,
        ranges: Sequence[Tuple[float, float]],
        excerpts: Sequence[str]
    ) -> Optional[ParsedChapterSet]:
        prompt = get_template_engine().render_prompt(
            "chapter_outline",
            title=title or "Untitled video",
            duration_label=format_timestamp(total),
            chapter_count=len(ranges),
            chapters=[
                {
                    "index": index + 1,
                    "start_label": format_timestamp(start),
                    "end_label": format_timestamp(end),
                    "excerpt": excerpt or "(no speech)",
                }
                for index, ((start, end), excerpt) in enumerate(zip(ranges, excerpts))
            ]
        )

        try:
            raw = await self.backend.generate(prompt, mode="json", operation="chapter_outline")
        except BackendError as e:
            self.logger.warning(f"Chapter outline unavailable ({e.error_code}), using local titles")
            return None

        parsed = parse_chapter_set(raw)
        if isinstance(parsed, MalformedOutput):
            return None
        if len(parsed.chapters) != len(ranges):
            self.logger.warning(
                f"Chapter outline returned {len(parsed.chapters)} chapters for {len(ranges)} sections, "
                "using local titles"
            )
            return None
        return parsed

    @staticmethod
    def _local_chapters(
        ranges: Sequence[Tuple[float, float]],
        excerpts: Sequence[str],
        total: float
    ) -> List[ContentChapter]:
        average = total / len(ranges)
        chapters = []
        for index, ((start, end), excerpt) in enumerate(zip(ranges, excerpts), start=1):
            lead = first_sentence(excerpt)
            title = truncate_words(lead.rstrip(".!?"), 6) if lead else f"Part {index}"

            duration = end - start
            if duration >= 1.5 * average:
                importance = ChapterImportance.HIGH
            elif duration <= 0.5 * average:
                importance = ChapterImportance.LOW
            else:
                importance = ChapterImportance.MEDIUM

            chapters.append(ContentChapter(
                title=title or f"Part {index}",
                start_time=start,
                end_time=end,
                summary=truncate_words(lead, 30),
                key_points=[truncate_words(s, 15) for s in split_sentences(excerpt)[1:4]],
                importance=importance
            ))
        return chapters

    @staticmethod
    def _local_topics(chapters: Sequence[ContentChapter]) -> List[str]:
        topics: List[str] = []
        seen = set()
        for chapter in chapters:
            key = fold_term(chapter.title)
            if key and key not in seen:
                seen.add(key)
                topics.append(chapter.title)
        return topics[:5]

    @staticmethod
    def _local_flow(chapters: Sequence[ContentChapter], transcript: FullTranscript) -> FlowType:
        titles = [fold_term(chapter.title) for chapter in chapters]
        if len(titles) != len(set(titles)):
            return FlowType.CYCLICAL
        if len(BRANCHING_MARKERS.findall(transcript.full_text)) >= 2:
            return FlowType.BRANCHING
        return FlowType.LINEAR
