"""The analysis artifact, its study aids and the chatbot view over it."""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .concepts import ConceptMap
from .structure import ContentStructure
from .transcript import FullTranscript, TIME_EPSILON, VideoFacts
from .visual import VisualAnalysis


class VerbosityLevel(str, Enum):
    BRIEF = "brief"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class QuestionType(str, Enum):
    FACTUAL = "factual"
    CONCEPTUAL = "conceptual"
    ANALYTICAL = "analytical"
    SYNTHESIS = "synthesis"


class QuestionDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class KeyTimestampType(str, Enum):
    DEFINITION = "definition"
    EXAMPLE = "example"
    SUMMARY = "summary"
    TRANSITION = "transition"
    IMPORTANT = "important"


class SubscriptionTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"


class StudyQuestion(BaseModel):
    """Practice question tied to concepts of the same artifact."""
    question: str = Field(..., description="Question text")
    type: QuestionType = Field(QuestionType.CONCEPTUAL, description="Question kind")
    difficulty: QuestionDifficulty = Field(QuestionDifficulty.MEDIUM, description="Expected difficulty")
    related_timestamp: Optional[float] = Field(None, ge=0, description="Where the answer is discussed")
    related_concepts: List[str] = Field(default_factory=list, description="Concept names the question covers")
    suggested_answer: Optional[str] = Field(None, description="Answer hint")


class KeyTimestamp(BaseModel):
    """A moment worth jumping to."""
    time: float = Field(..., ge=0, description="Position in seconds")
    title: str = Field(..., description="Short label")
    description: str = Field("", description="What happens at this moment")
    type: KeyTimestampType = Field(KeyTimestampType.IMPORTANT, description="Moment kind")
    related_concepts: List[str] = Field(default_factory=list, description="Concept names discussed here")


class VerbosityLevels(BaseModel):
    brief: str = Field(..., description="Compressed rendering")
    standard: str = Field(..., description="Rendering produced by the backend")
    comprehensive: str = Field(..., description="Expanded rendering")

    def get(self, level: VerbosityLevel) -> str:
        return getattr(self, VerbosityLevel(level).value)


class TemplateOutput(BaseModel):
    """One rendered format with all three verbosity tiers."""
    content: str = Field(..., description="Standard tier content")
    verbosity_levels: VerbosityLevels = Field(..., description="All verbosity tiers")


class EnhancedVideoAnalysis(BaseModel):
    """The persisted analysis artifact for one video. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    video_id: str = Field(..., description="Video identifier")
    video_url: str = Field("", description="Source URL")
    title: str = Field("", description="Video title")
    video_facts: Optional[VideoFacts] = Field(None, description="Metadata from the captions provider")

    full_transcript: FullTranscript = Field(..., description="Normalized transcript")
    visual_analysis: VisualAnalysis = Field(default_factory=VisualAnalysis, description="Visual signal summary")
    content_structure: ContentStructure = Field(default_factory=ContentStructure, description="Chapters and flow")
    concept_map: ConceptMap = Field(default_factory=ConceptMap, description="Concepts and relationships")

    primary_subject: str = Field("", description="Main subject of the video")
    secondary_subjects: List[str] = Field(default_factory=list, description="Other subjects covered")
    content_tags: List[str] = Field(default_factory=list, description="Descriptive tags")
    difficulty_level: DifficultyLevel = Field(DifficultyLevel.INTERMEDIATE, description="Overall difficulty")

    suggested_questions: List[StudyQuestion] = Field(default_factory=list, description="Practice questions")
    key_timestamps: List[KeyTimestamp] = Field(default_factory=list, description="Moments worth revisiting")

    all_template_outputs: Dict[str, TemplateOutput] = Field(default_factory=dict, description="Rendered formats by id")
    failed_formats: Dict[str, str] = Field(default_factory=dict, description="Format id to error code for failed renders")

    analysis_version: int = Field(1, ge=1, description="Artifact version for this video")
    processing_time_ms: int = Field(0, ge=0, description="Pipeline wall time")
    backend_calls: int = Field(0, ge=0, description="Generative backend calls made")
    transcript_confidence: float = Field(0.0, ge=0.0, le=1.0, description="Average transcript confidence")
    analysis_completeness: float = Field(1.0, ge=0.0, le=1.0, description="Fraction of stages completed without fallback")
    degraded_mode: bool = Field(False, description="Built without a transcript")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation time")

    @model_validator(mode="after")
    def check_study_aids(self):
        known = set(self.concept_map.names)
        limit = self.total_duration + TIME_EPSILON

        for question in self.suggested_questions:
            unknown = [name for name in question.related_concepts if name not in known]
            if unknown:
                raise ValueError(f"Study question references unknown concepts: {unknown}")
            if question.related_timestamp is not None and question.related_timestamp > limit:
                raise ValueError("Study question timestamp is outside the video")

        for moment in self.key_timestamps:
            unknown = [name for name in moment.related_concepts if name not in known]
            if unknown:
                raise ValueError(f"Key timestamp references unknown concepts: {unknown}")
            if moment.time > limit:
                raise ValueError(f"Key timestamp {moment.time} is outside the video")
        return self

    @property
    def total_duration(self) -> float:
        return self.full_transcript.total_duration

    def get_output(self, format_id: str) -> Optional[TemplateOutput]:
        return self.all_template_outputs.get(format_id)


class RecentQuestion(BaseModel):
    question: str
    asked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    related_concepts: List[str] = Field(default_factory=list)


class ChatbotVideoContext(BaseModel):
    """Session-scoped, read-only view over a persisted artifact."""
    model_config = ConfigDict(frozen=True)

    analysis: EnhancedVideoAnalysis = Field(..., description="Referenced artifact")
    currently_viewing_format: Optional[str] = Field(None, description="Format open in the UI")
    current_verbosity_level: VerbosityLevel = Field(VerbosityLevel.STANDARD, description="Tier open in the UI")
    user_subscription_tier: SubscriptionTier = Field(SubscriptionTier.FREE, description="Caller's tier")
    recent_questions: List[RecentQuestion] = Field(default_factory=list, description="Earlier questions this session")

    @property
    def video_id(self) -> str:
        return self.analysis.video_id

    @property
    def title(self) -> str:
        return self.analysis.title

    @property
    def duration(self) -> float:
        return self.analysis.total_duration

    def current_note(self) -> Optional[str]:
        """Text of the note the user is looking at, if it was rendered."""
        if not self.currently_viewing_format:
            return None
        output = self.analysis.get_output(self.currently_viewing_format)
        if output is None:
            return None
        return output.verbosity_levels.get(self.current_verbosity_level)
