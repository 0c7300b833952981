"""API module initialization."""
from .notes import router as notes_router
from .chatbot import router as chatbot_router
from .health import router as health_router

__all__ = ["notes_router", "chatbot_router", "health_router"]
