"""Core application modules."""
from .config import settings, CaptionConfig

__all__ = ["settings", "CaptionConfig"]
