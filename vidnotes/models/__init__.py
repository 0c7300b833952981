"""Data models for the Video Notes Engine."""
from .transcript import CaptionCue, CaptionTrack, FullTranscript, TranscriptSegment, VideoFacts
from .visual import FrameType, RawFrame, VisualAnalysis, VisualComplexity, VisualFrame
from .structure import ChapterImportance, ContentChapter, ContentStructure, FlowType
from .concepts import (
    Concept, ConceptDifficulty, ConceptImportance, ConceptMap,
    ConceptRelationship, RelationshipType
)
from .analysis import (
    ChatbotVideoContext, DifficultyLevel, EnhancedVideoAnalysis, KeyTimestamp,
    StudyQuestion, TemplateOutput, VerbosityLevel, VerbosityLevels
)
from .chat import ChatMessage, ChatRequest, ChatResponse, Citation, CitationType, ConversationTurn, TurnState
from .requests import ProcessRequest
from .responses import (
    ErrorInfo, ErrorResponse, FormatInfo, NoteResponse, ProcessingResponse,
    ResponseMetadata, SuccessResponse
)

__all__ = [
    "CaptionCue", "CaptionTrack", "FullTranscript", "TranscriptSegment", "VideoFacts",
    "FrameType", "RawFrame", "VisualAnalysis", "VisualComplexity", "VisualFrame",
    "ChapterImportance", "ContentChapter", "ContentStructure", "FlowType",
    "Concept", "ConceptDifficulty", "ConceptImportance", "ConceptMap",
    "ConceptRelationship", "RelationshipType",
    "ChatbotVideoContext", "DifficultyLevel", "EnhancedVideoAnalysis", "KeyTimestamp",
    "StudyQuestion", "TemplateOutput", "VerbosityLevel", "VerbosityLevels",
    "ChatMessage", "ChatRequest", "ChatResponse", "Citation", "CitationType",
    "ConversationTurn", "TurnState",
    "ProcessRequest",
    "ErrorInfo", "ErrorResponse", "FormatInfo", "NoteResponse", "ProcessingResponse",
    "ResponseMetadata", "SuccessResponse",
]
