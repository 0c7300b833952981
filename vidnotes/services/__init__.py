"""Service layer modules for the Video Notes Engine."""
from .generative_client import GenerativeClient, BackendReference
from .captions_provider import YtDlpCaptionsProvider
from .transcript_normalizer import TranscriptNormalizer, backfill_importance
from .visual_summarizer import VisualSignalSummarizer
from .content_structurer import ContentStructurer
from .concept_extractor import ConceptExtractor
from .study_aids import StudyAidBuilder
from .format_renderer import FormatRenderer, VerbosityDeriver
from .grounding import GroundingContext, assert_grounded
from .qa_engine import QAEngine
from .conversation import ConversationActor, ConversationRegistry
from .analysis_store import InMemoryAnalysisStore
from .analysis_pipeline import AnalysisPipeline, NoteService, PipelineResult

__all__ = [
    "GenerativeClient", "BackendReference", "YtDlpCaptionsProvider",
    "TranscriptNormalizer", "backfill_importance", "VisualSignalSummarizer",
    "ContentStructurer", "ConceptExtractor", "StudyAidBuilder",
    "FormatRenderer", "VerbosityDeriver", "GroundingContext",
    "assert_grounded", "QAEngine", "ConversationActor", "ConversationRegistry",
    "InMemoryAnalysisStore", "AnalysisPipeline", "NoteService", "PipelineResult"
]
