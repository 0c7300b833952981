"""Chapter and content structure models."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .transcript import TIME_EPSILON


class ChapterImportance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FlowType(str, Enum):
    LINEAR = "linear"
    BRANCHING = "branching"
    CYCLICAL = "cyclical"


class ContentChapter(BaseModel):
    """One contiguous section of the video timeline."""
    title: str = Field(..., description="Chapter title")
    start_time: float = Field(..., ge=0, description="Start time in seconds")
    end_time: float = Field(..., ge=0, description="End time in seconds")
    summary: str = Field("", description="Short chapter summary")
    key_points: List[str] = Field(default_factory=list, description="Ordered key points")
    importance: ChapterImportance = Field(ChapterImportance.MEDIUM, description="Relative importance")

    @model_validator(mode="after")
    def check_range(self):
        if self.start_time >= self.end_time:
            raise ValueError(f"Chapter '{self.title}' must start before it ends")
        return self

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class ContentStructure(BaseModel):
    """Ordered chapters plus document-level flow information."""
    chapters: List[ContentChapter] = Field(default_factory=list, description="Ordered, non-overlapping chapters")
    main_topics: List[str] = Field(default_factory=list, description="Distinct main topics")
    flow_type: FlowType = Field(FlowType.LINEAR, description="How the content progresses")
    has_introduction: bool = Field(False, description="Opens with an introduction")
    has_conclusion: bool = Field(False, description="Ends with a conclusion")
    transition_points: List[float] = Field(default_factory=list, description="Sorted chapter boundaries")

    @model_validator(mode="after")
    def check_chapters(self):
        for previous, current in zip(self.chapters, self.chapters[1:]):
            if current.start_time < previous.end_time - TIME_EPSILON:
                raise ValueError(
                    f"Chapters '{previous.title}' and '{current.title}' overlap"
                )
        if self.transition_points != sorted(self.transition_points):
            raise ValueError("Transition points must be sorted")
        return self

    def chapter_at(self, timestamp: float) -> Optional[ContentChapter]:
        for chapter in self.chapters:
            if chapter.start_time <= timestamp < chapter.end_time:
                return chapter
        if self.chapters and timestamp == self.chapters[-1].end_time:
            return self.chapters[-1]
        return None

    def largest_gap(self, total_duration: float) -> float:
        """Largest stretch of the timeline not covered by any chapter."""
        if not self.chapters:
            return total_duration
        gaps = [self.chapters[0].start_time, total_duration - self.chapters[-1].end_time]
        gaps.extend(
            current.start_time - previous.end_time
            for previous, current in zip(self.chapters, self.chapters[1:])
        )
        return max(0.0, max(gaps))
