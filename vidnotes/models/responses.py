"""Response models for the Video Notes Engine."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .analysis import DifficultyLevel, KeyTimestamp, VerbosityLevel, VerbosityLevels
from .chat import ApiModel


class ResponseMetadata(BaseModel):
    """Standard response metadata."""
    request_id: str
    api_version: str = "1.0.0"
    timestamp: Optional[str] = None
    processing_time_ms: Optional[int] = None


class ErrorInfo(BaseModel):
    """Error information structure."""
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class SuccessResponse(BaseModel):
    """Standard success response."""
    success: bool = True
    data: Any
    metadata: ResponseMetadata


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: ErrorInfo
    metadata: ResponseMetadata


class FormatRender(ApiModel):
    """One rendered format with its three verbosity versions."""
    template: str
    title: str
    content: str
    verbosity_versions: VerbosityLevels


class ContentAnalysis(ApiModel):
    """Digest of the artifact shown next to the notes."""
    primary_subject: str
    secondary_subjects: List[str] = Field(default_factory=list)
    difficulty_level: DifficultyLevel
    content_tags: List[str] = Field(default_factory=list)
    chapter_titles: List[str] = Field(default_factory=list)
    concepts: List[str] = Field(default_factory=list)
    key_timestamps: List[KeyTimestamp] = Field(default_factory=list)
    degraded_mode: bool = False


class QualityReport(ApiModel):
    transcript_confidence: float
    analysis_completeness: float
    backend_calls: int
    processing_time_ms: int


class ProcessingResponse(ApiModel):
    """Result of processing a video. Failed formats are listed, not raised."""
    video_id: str
    analysis_version: int
    title: str
    template: Optional[str] = Field(None, description="Primary format shown first")
    content: str = Field("", description="Standard content of the primary format")
    verbosity_versions: Optional[VerbosityLevels] = None
    content_analysis: Optional[ContentAnalysis] = None
    quality: Optional[QualityReport] = None
    outputs: Dict[str, FormatRender] = Field(default_factory=dict)
    failed_formats: Dict[str, str] = Field(default_factory=dict, description="Format id to error code")
    notices: List[str] = Field(default_factory=list, description="Recoverable error codes, e.g. NO_TRANSCRIPT_AVAILABLE")


class NoteResponse(ApiModel):
    """A stored note at one verbosity tier."""
    video_id: str
    template: str
    verbosity: VerbosityLevel
    content: str
    analysis_version: int = 1
    available_levels: List[VerbosityLevel] = Field(default_factory=list)


class FormatInfo(ApiModel):
    id: str
    name: str
    description: str
    category: str
    is_premium: bool


class DependencyStatus(BaseModel):
    """Service dependency status."""
    yt_dlp: str
    openai: str


class HealthData(BaseModel):
    """Complete health check response."""
    status: str
    timestamp: str
    version: str
    dependencies: DependencyStatus
    uptime_seconds: int
    stored_analyses: int
