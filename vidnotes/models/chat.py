"""Question answering models: citations, turns and the chat request/response shapes."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .analysis import SubscriptionTier, VerbosityLevel


class CitationType(str, Enum):
    TIMESTAMP = "timestamp"
    CONCEPT = "concept"
    TRANSCRIPT = "transcript"


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_ANSWER = "awaiting_answer"
    ANSWERED = "answered"
    FAILED = "failed"


class ApiModel(BaseModel):
    """Base for models exchanged with the UI; serialized in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Citation(ApiModel):
    type: CitationType = Field(..., description="What the citation points at")
    value: str = Field(..., description="Timestamp (M:SS), concept name or transcript excerpt")
    description: str = Field("", description="Human-readable description")
    url: Optional[str] = Field(None, description="Link that opens the video at a cited timestamp")


class ChatMessage(ApiModel):
    """One prior message of the conversation."""
    content: str
    is_user: bool = True
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class VideoContextRef(ApiModel):
    """Identifies which persisted artifact a question is about."""
    video_id: str
    user_id: Optional[str] = None
    currently_viewing_format: Optional[str] = None
    current_verbosity_level: VerbosityLevel = VerbosityLevel.STANDARD
    user_subscription_tier: SubscriptionTier = SubscriptionTier.FREE


class ChatRequest(ApiModel):
    message: str = Field(..., description="User question")
    video_context: Optional[VideoContextRef] = Field(None, description="Artifact reference; absent in notes-only mode")
    current_note: Optional[str] = Field(None, description="Rendered note the user is viewing")
    current_format: Optional[str] = Field(None, description="Format id of the current note")
    conversation_history: List[ChatMessage] = Field(default_factory=list, description="Prior messages, newest last")
    conversation_id: Optional[str] = Field(None, description="Conversation to append this turn to")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message is required")
        return value.strip()


class ChatResponse(ApiModel):
    success: bool = True
    response: str = ""
    related_concepts: List[str] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    notes_only: bool = Field(False, description="Answered from the note text alone")


class ConversationTurn(BaseModel):
    """One question/answer exchange and where it is in its lifecycle."""
    question: str
    state: TurnState = TurnState.IDLE
    answer: Optional[ChatResponse] = None
    error_code: Optional[str] = None
    asked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def as_messages(self) -> List[ChatMessage]:
        """History entries for a completed turn."""
        messages = [ChatMessage(content=self.question, is_user=True, timestamp=self.asked_at)]
        if self.state == TurnState.ANSWERED and self.answer is not None:
            messages.append(ChatMessage(content=self.answer.response, is_user=False))
        return messages
