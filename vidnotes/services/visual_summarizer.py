"""Classifies sampled frames and summarizes the visual signal of a video."""
from collections import Counter
from typing import List, Optional, Sequence

from ..config.schemas import MalformedOutput, parse_frame_descriptions
from ..config.schemas.backend_schemas import ParsedFrame
from ..config.templates import get_template_engine
from ..core.config import settings
from ..models.transcript import VideoFacts
from ..models.visual import FrameType, RawFrame, VisualAnalysis, VisualComplexity, VisualFrame
from ..utils.logging import CorrelatedLogger
from ..utils.text import contains_term, fold_term, fold_text, word_count
from ..utils.timestamps import format_timestamp
from .generative_client import BackendReference

FRAME_KEYWORDS = {
    FrameType.CHART: (
        "chart", "graph", "plot", "histogram", "bar chart", "pie chart", "line graph",
        "axis", "scatter", "data table",
    ),
    FrameType.DIAGRAM: (
        "diagram", "flowchart", "flow chart", "schematic", "architecture", "arrow",
        "mind map", "venn", "tree", "pipeline", "block diagram",
    ),
    FrameType.SLIDE: (
        "slide", "bullet", "bullet list", "bullet point", "presentation", "title card",
        "heading", "code", "code editor", "whiteboard", "screen recording", "terminal",
    ),
    FrameType.SCENE: (
        "person", "presenter", "speaker", "face", "room", "outdoor", "people", "host",
        "studio", "talking", "camera", "crowd", "landscape",
    ),
}

# First match wins
TYPE_PRECEDENCE = (FrameType.CHART, FrameType.DIAGRAM, FrameType.SLIDE, FrameType.SCENE)

# On-screen text at or above this many words marks a frame as a slide
TEXT_DENSE_WORDS = 8

LOW_COMPLEXITY_LIMIT = 3
MEDIUM_COMPLEXITY_LIMIT = 8

_FOLDED_KEYWORDS = {
    frame_type: [fold_term(keyword) for keyword in keywords]
    for frame_type, keywords in FRAME_KEYWORDS.items()
}


class VisualSignalSummarizer:
    """Pure transform from raw frames to a VisualAnalysis, plus backend frame sampling."""

    def __init__(self):
        self.logger = CorrelatedLogger(__name__)

    def classify_frame(self, frame: RawFrame) -> VisualFrame:
        """Assign one of the five frame types from detected elements and text density."""
        folded = fold_text(" ".join([frame.description, *frame.elements]))
        matches = {
            frame_type: sum(1 for key in keys if contains_term(folded, key))
            for frame_type, keys in _FOLDED_KEYWORDS.items()
        }

        frame_type = FrameType.OTHER
        for candidate in TYPE_PRECEDENCE:
            if matches[candidate]:
                frame_type = candidate
                break

        text_words = word_count(frame.extracted_text or "")
        if text_words >= TEXT_DENSE_WORDS and frame_type in (FrameType.SCENE, FrameType.OTHER):
            frame_type = FrameType.SLIDE

        if frame.confidence is not None:
            confidence = frame.confidence
        elif frame_type == FrameType.OTHER:
            confidence = 0.3
        else:
            confidence = min(0.5 + 0.1 * matches.get(frame_type, 0), 0.95)

        return VisualFrame(
            timestamp=frame.timestamp,
            description=frame.description,
            elements=frame.elements,
            extracted_text=frame.extracted_text.strip() if frame.extracted_text else None,
            type=frame_type,
            confidence=confidence
        )

    def summarize(self, frames: Sequence[RawFrame]) -> VisualAnalysis:
        if not frames:
            return VisualAnalysis()

        key_frames = [self.classify_frame(frame) for frame in sorted(frames, key=lambda f: f.timestamp)]
        types = Counter(frame.type for frame in key_frames)

        with_text = sum(1 for frame in key_frames if frame.has_text)

        return VisualAnalysis(
            key_frames=key_frames,
            has_slides=types[FrameType.SLIDE] > 0,
            has_charts=types[FrameType.CHART] > 0,
            has_diagrams=types[FrameType.DIAGRAM] > 0,
            visual_complexity=self.complexity_for(key_frames),
            screen_text_ratio=with_text / len(key_frames)
        )

    @staticmethod
    def complexity_for(frames: Sequence[VisualFrame]) -> VisualComplexity:
        """Monotone in type diversity times average elements per frame."""
        if not frames:
            return VisualComplexity.LOW
        diversity = len({frame.type for frame in frames})
        elements_per_frame = sum(len(frame.elements) for frame in frames) / len(frames)
        score = diversity * elements_per_frame

        if score < LOW_COMPLEXITY_LIMIT:
            return VisualComplexity.LOW
        if score < MEDIUM_COMPLEXITY_LIMIT:
            return VisualComplexity.MEDIUM
        return VisualComplexity.HIGH

    async def sample_frames(
        self,
        backend,
        video_url: str,
        facts: Optional[VideoFacts] = None,
        frame_count: Optional[int] = None
    ) -> List[ParsedFrame]:
        """Ask the backend to describe representative frames of the video."""
        frame_count = frame_count or settings.fallback_frame_count
        duration = facts.duration if facts else None

        prompt = get_template_engine().render_prompt(
            "frame_sampling",
            title=(facts.title if facts and facts.title else video_url),
            duration_label=format_timestamp(duration) if duration else "",
            frame_count=frame_count
        )
        reference = BackendReference(
            video_url=video_url,
            image_urls=[facts.thumbnail_url] if facts and facts.thumbnail_url else []
        )

        raw = await backend.generate(prompt, mode="video", reference=reference, operation="frame_sampling")
        parsed = parse_frame_descriptions(raw)
        if isinstance(parsed, MalformedOutput):
            raise parsed.to_exception()

        frames = clamp_frames(sorted(parsed.frames, key=lambda f: f.timestamp), duration)

        self.logger.info(f"Backend described {len(frames)} frames")
        return frames


def to_raw_frames(frames: Sequence[ParsedFrame]) -> List[RawFrame]:
    return [
        RawFrame(
            timestamp=frame.timestamp,
            description=frame.description,
            elements=frame.elements,
            extracted_text=frame.extracted_text
        )
        for frame in frames
    ]


def clamp_frames(frames: Sequence[ParsedFrame], duration: Optional[float]) -> List[ParsedFrame]:
    """Move frames described past the end of the video onto its last second."""
    if duration is None:
        return list(frames)
    return [
        frame.model_copy(update={"timestamp": float(duration)}) if frame.timestamp > duration else frame
        for frame in frames
    ]
