"""Dependency injection setup for FastAPI."""
from functools import lru_cache
from fastapi import Depends

from vidnotes.services import (
    AnalysisPipeline, ConversationRegistry, GenerativeClient,
    InMemoryAnalysisStore, NoteService, QAEngine, YtDlpCaptionsProvider
)


# Service instances cache
@lru_cache()
def get_generative_client() -> GenerativeClient:
    """Get GenerativeClient instance."""
    return GenerativeClient()


@lru_cache()
def get_analysis_store() -> InMemoryAnalysisStore:
    """Get InMemoryAnalysisStore instance."""
    return InMemoryAnalysisStore()


@lru_cache()
def get_captions_provider() -> YtDlpCaptionsProvider:
    """Get YtDlpCaptionsProvider instance."""
    return YtDlpCaptionsProvider()


@lru_cache()
def get_qa_engine() -> QAEngine:
    """Get QAEngine instance."""
    return QAEngine(get_generative_client())


@lru_cache()
def get_conversation_registry() -> ConversationRegistry:
    """Get ConversationRegistry instance."""
    return ConversationRegistry(get_qa_engine())


# Service dependencies
def get_analysis_pipeline_dep(
    backend: GenerativeClient = Depends(get_generative_client),
    store: InMemoryAnalysisStore = Depends(get_analysis_store),
    captions_provider: YtDlpCaptionsProvider = Depends(get_captions_provider)
) -> AnalysisPipeline:
    """Dependency for AnalysisPipeline."""
    return AnalysisPipeline(backend, store, captions_provider)


def get_note_service_dep(
    store: InMemoryAnalysisStore = Depends(get_analysis_store)
) -> NoteService:
    """Dependency for NoteService."""
    return NoteService(store)


def get_analysis_store_dep(
    store: InMemoryAnalysisStore = Depends(get_analysis_store)
) -> InMemoryAnalysisStore:
    """Dependency for InMemoryAnalysisStore."""
    return store


def get_conversation_registry_dep(
    registry: ConversationRegistry = Depends(get_conversation_registry)
) -> ConversationRegistry:
    """Dependency for ConversationRegistry."""
    return registry
