"""Transcript-related data models."""
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

# Float tolerance when comparing caption boundaries
TIME_EPSILON = 1e-6


class CaptionCue(BaseModel):
    """Raw caption cue as returned by the captions provider."""
    start: float = Field(..., ge=0, description="Start time in seconds")
    end: float = Field(..., ge=0, description="End time in seconds")
    text: str = Field(..., description="Cue text")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Source confidence (0.0-1.0)")


class VideoFacts(BaseModel):
    """Basic metadata about the video the captions belong to."""
    video_id: str = Field(..., description="Platform video identifier")
    title: str = Field("", description="Video title")
    duration: Optional[float] = Field(None, description="Duration in seconds")
    channel: Optional[str] = Field(None, description="Uploader or channel name")
    thumbnail_url: Optional[str] = Field(None, description="Thumbnail image URL")
    url: Optional[str] = Field(None, description="Canonical video URL")


class CaptionTrack(BaseModel):
    """Captions provider response. An empty segment list means the video has no captions."""
    segments: List[CaptionCue] = Field(default_factory=list, description="Raw caption cues")
    language: Optional[str] = Field(None, description="Caption language code")
    video_facts: VideoFacts = Field(..., description="Video metadata")
    is_automatic: bool = Field(False, description="Whether captions are auto-generated")
    source_format: Optional[str] = Field(None, description="Subtitle format the cues were parsed from")

    @property
    def has_captions(self) -> bool:
        return any(cue.text.strip() for cue in self.segments)


class TranscriptSegment(BaseModel):
    """Individual transcript segment with timing information."""
    start_time: float = Field(..., ge=0, description="Start time in seconds")
    end_time: float = Field(..., ge=0, description="End time in seconds")
    text: str = Field(..., description="Segment text content")
    speaker: Optional[str] = Field(None, description="Speaker label when known")
    confidence: float = Field(1.0, ge=0.0, le=1.0, description="Confidence score for this segment (0.0-1.0)")
    is_important: Optional[bool] = Field(None, description="Mentions a core concept; back-filled after concept extraction")

    @model_validator(mode="after")
    def check_range(self):
        if self.end_time < self.start_time:
            raise ValueError(f"Segment ends before it starts ({self.start_time} > {self.end_time})")
        return self

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class FullTranscript(BaseModel):
    """Complete, time-ordered transcript of one video."""
    segments: List[TranscriptSegment] = Field(default_factory=list, description="Ordered, non-overlapping segments")
    total_duration: float = Field(..., ge=0, description="Video duration in seconds")
    language: str = Field("en", description="Language code")
    average_confidence: float = Field(0.0, ge=0.0, le=1.0, description="Mean of segment confidences")
    word_count: int = Field(0, ge=0, description="Total word count")

    @model_validator(mode="after")
    def check_timeline(self):
        previous = None
        for segment in self.segments:
            if previous is not None:
                if segment.start_time < previous.start_time:
                    raise ValueError("Transcript segments must be ordered by start time")
                if segment.start_time < previous.end_time - TIME_EPSILON:
                    raise ValueError(
                        f"Transcript segments overlap at {segment.start_time:.2f}s"
                    )
            previous = segment

        if self.segments and self.total_duration + TIME_EPSILON < self.segments[-1].end_time:
            raise ValueError("Total duration is shorter than the last segment")
        return self

    @property
    def full_text(self) -> str:
        return " ".join(segment.text for segment in self.segments)

    def segment_at(self, timestamp: float) -> Optional[TranscriptSegment]:
        """Segment playing at timestamp, if any."""
        for segment in self.segments:
            if segment.start_time <= timestamp <= segment.end_time:
                return segment
        return None

    def text_between(self, start: float, end: float) -> str:
        """Text of every segment that starts inside [start, end)."""
        return " ".join(
            segment.text for segment in self.segments
            if start <= segment.start_time < end
        )
