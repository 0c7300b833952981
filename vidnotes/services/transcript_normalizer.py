"""Turns raw caption cues into an ordered, non-overlapping transcript."""
import re
from typing import List, Optional, Sequence

from ..core.config import settings
from ..core.exceptions import NoTranscriptAvailableError
from ..models.concepts import ConceptImportance, ConceptMap
from ..models.transcript import CaptionCue, FullTranscript, TranscriptSegment
from ..utils.logging import CorrelatedLogger
from ..utils.text import contains_term, fold_text, word_count

DEFAULT_CUE_CONFIDENCE = 0.8
TEXT_TRANSCRIPT_CONFIDENCE = 0.7
# Speaking rate used to estimate the end of the last line of a text transcript
WORDS_PER_SECOND = 2.5

TEXT_MARKER = re.compile(r"^\s*\[(?:(\d{1,2}):)?(\d{1,2}):(\d{2})\]\s*(.*)$")


class TranscriptNormalizer:
    """
    Sorts cues, clips overlaps and merges fragments.

    Two neighbouring cues are merged when the gap between them is below
    ``caption_merge_gap_seconds``, their confidences differ by at most
    ``caption_merge_confidence_delta`` and the merged segment stays within
    ``max_segment_seconds``.
    """

    def __init__(
        self,
        merge_gap: Optional[float] = None,
        confidence_delta: Optional[float] = None,
        max_segment_seconds: Optional[float] = None
    ):
        self.logger = CorrelatedLogger(__name__)
        self.merge_gap = settings.caption_merge_gap_seconds if merge_gap is None else merge_gap
        self.confidence_delta = (
            settings.caption_merge_confidence_delta if confidence_delta is None else confidence_delta
        )
        self.max_segment_seconds = (
            settings.max_segment_seconds if max_segment_seconds is None else max_segment_seconds
        )

    def normalize(
        self,
        cues: Sequence[CaptionCue],
        total_duration: Optional[float] = None,
        language: str = "en",
        video_id: str = ""
    ) -> FullTranscript:
        """Build a draft transcript; importance flags are filled in later by backfill_importance."""
        usable = sorted(
            (cue for cue in cues if cue.text.strip()),
            key=lambda cue: (cue.start, cue.end)
        )
        if not usable:
            raise NoTranscriptAvailableError(video_id or "unknown")

        segments: List[TranscriptSegment] = []
        for cue in usable:
            confidence = cue.confidence if cue.confidence is not None else DEFAULT_CUE_CONFIDENCE
            text = " ".join(cue.text.split())
            start, end = cue.start, max(cue.end, cue.start)

            if segments:
                previous = segments[-1]
                # Rolling captions repeat the previous line
                if text == previous.text:
                    if end > previous.end_time:
                        segments[-1] = previous.model_copy(update={"end_time": end})
                    continue

                start = max(start, previous.end_time)
                if end <= start:
                    # Fully covered by the previous cue: keep its words, not its timing
                    segments[-1] = previous.model_copy(update={"text": f"{previous.text} {text}"})
                    continue

                if self._should_merge(previous, start, end, confidence):
                    segments[-1] = self._merge(previous, end, text, confidence)
                    continue

            segments.append(TranscriptSegment(
                start_time=start,
                end_time=end,
                text=text,
                confidence=confidence
            ))

        last_end = segments[-1].end_time
        duration = max(total_duration or 0.0, last_end)
        average_confidence = sum(s.confidence for s in segments) / len(segments)

        self.logger.debug(f"Normalized {len(usable)} cues into {len(segments)} segments")

        return FullTranscript(
            segments=segments,
            total_duration=duration,
            language=language or "en",
            average_confidence=round(average_confidence, 4),
            word_count=sum(word_count(s.text) for s in segments)
        )

    def _should_merge(self, previous: TranscriptSegment, start: float, end: float, confidence: float) -> bool:
        return (
            start - previous.end_time < self.merge_gap
            and abs(confidence - previous.confidence) <= self.confidence_delta
            and end - previous.start_time <= self.max_segment_seconds
        )

    @staticmethod
    def _merge(previous: TranscriptSegment, end: float, text: str, confidence: float) -> TranscriptSegment:
        """Extend previous to end; confidence is weighted by duration."""
        previous_duration = previous.duration
        added_duration = end - previous.end_time
        total = previous_duration + added_duration
        if total > 0:
            merged_confidence = (previous.confidence * previous_duration + confidence * added_duration) / total
        else:
            merged_confidence = (previous.confidence + confidence) / 2

        return previous.model_copy(update={
            "end_time": end,
            "text": f"{previous.text} {text}",
            "confidence": min(max(merged_confidence, 0.0), 1.0),
        })

    def parse_text_transcript(self, text: str) -> List[CaptionCue]:
        """Read a plain transcript with [MM:SS] or [H:MM:SS] line markers into cues."""
        entries = []
        for line in text.splitlines():
            match = TEXT_MARKER.match(line)
            if match:
                hours = int(match.group(1) or 0)
                start = hours * 3600 + int(match.group(2)) * 60 + int(match.group(3))
                entries.append([float(start), match.group(4).strip()])
            elif line.strip() and entries:
                entries[-1][1] = f"{entries[-1][1]} {line.strip()}".strip()

        cues = []
        for index, (start, line_text) in enumerate(entries):
            if index + 1 < len(entries):
                end = max(entries[index + 1][0], start)
            else:
                end = start + max(1.0, word_count(line_text) / WORDS_PER_SECOND)
            cues.append(CaptionCue(start=start, end=end, text=line_text, confidence=TEXT_TRANSCRIPT_CONFIDENCE))
        return cues


def backfill_importance(transcript: FullTranscript, concept_map: ConceptMap) -> FullTranscript:
    """Mark segments mentioning a core concept, or two or more distinct concepts, as important."""
    core_keys = [
        concept.folded_names for concept in concept_map.concepts
        if concept.importance == ConceptImportance.CORE
    ]
    all_keys = [concept.folded_names for concept in concept_map.concepts]

    segments = []
    for segment in transcript.segments:
        folded = fold_text(segment.text)
        mentions_core = any(any(contains_term(folded, key) for key in keys) for keys in core_keys)
        distinct_mentions = sum(1 for keys in all_keys if any(contains_term(folded, key) for key in keys))
        segments.append(segment.model_copy(update={"is_important": mentions_core or distinct_mentions >= 2}))

    return transcript.model_copy(update={"segments": segments})
