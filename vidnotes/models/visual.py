"""Visual signal data models."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class FrameType(str, Enum):
    SLIDE = "slide"
    DIAGRAM = "diagram"
    CHART = "chart"
    SCENE = "scene"
    OTHER = "other"


class VisualComplexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RawFrame(BaseModel):
    """A sampled frame before classification: backend description and/or OCR text."""
    timestamp: float = Field(..., ge=0, description="Frame position in seconds")
    description: str = Field("", description="Free-form description of the frame")
    elements: List[str] = Field(default_factory=list, description="Detected visual elements")
    extracted_text: Optional[str] = Field(None, description="On-screen text (OCR)")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Detection confidence")


class VisualFrame(BaseModel):
    """Classified visual observation."""
    timestamp: float = Field(..., ge=0, description="Frame position in seconds")
    description: str = Field("", description="What the frame shows")
    elements: List[str] = Field(default_factory=list, description="Distinct visual elements")
    extracted_text: Optional[str] = Field(None, description="On-screen text")
    type: FrameType = Field(FrameType.OTHER, description="Frame classification")
    confidence: float = Field(0.5, ge=0.0, le=1.0, description="Classification confidence")

    @field_validator("elements")
    @classmethod
    def unique_elements(cls, value: List[str]) -> List[str]:
        seen = []
        for element in value:
            element = element.strip().lower()
            if element and element not in seen:
                seen.append(element)
        return seen

    @property
    def has_text(self) -> bool:
        return bool(self.extracted_text and self.extracted_text.strip())


class VisualAnalysis(BaseModel):
    """Summary of the visual signal across all sampled frames."""
    key_frames: List[VisualFrame] = Field(default_factory=list, description="Frames ordered by timestamp")
    has_slides: bool = Field(False, description="At least one slide frame")
    has_charts: bool = Field(False, description="At least one chart frame")
    has_diagrams: bool = Field(False, description="At least one diagram frame")
    visual_complexity: VisualComplexity = Field(VisualComplexity.LOW, description="Overall visual complexity")
    screen_text_ratio: float = Field(0.0, ge=0.0, le=1.0, description="Fraction of frames with on-screen text")

    @model_validator(mode="after")
    def check_order(self):
        timestamps = [frame.timestamp for frame in self.key_frames]
        if timestamps != sorted(timestamps):
            raise ValueError("Key frames must be ordered by timestamp")
        return self

    def type_changes(self) -> List[float]:
        """Timestamps where the frame type differs from the previous frame."""
        changes = []
        for previous, current in zip(self.key_frames, self.key_frames[1:]):
            if current.type != previous.type:
                changes.append(current.timestamp)
        return changes
