"""
Configuration management for the Video Notes Engine.
Centralizes environment variable handling and pipeline tuning knobs.
"""
import os
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        # API Configuration
        self.api_title = "Video Notes Engine"
        self.api_description = (
            "Turns a video's captions and visual signal into a concept-mapped analysis, "
            "multi-format notes at three verbosity tiers, and citation-grounded answers"
        )
        self.api_version = "1.0.0"
        self.debug_mode = _env_bool("DEBUG_MODE", "false")
        self.allowed_origins = ["*"]

        # Generative backend
        self.openai_api_key = os.getenv("OPENAI_API_KEY", "")
        self.generation_model = os.getenv("GENERATION_MODEL", "gpt-4o-mini")
        self.vision_model = os.getenv("VISION_MODEL", "gpt-4o")
        self.generation_temperature = float(os.getenv("GENERATION_TEMPERATURE", "0.3"))
        self.generation_max_tokens = int(os.getenv("GENERATION_MAX_TOKENS", "4000"))
        self.backend_timeout_seconds = float(os.getenv("BACKEND_TIMEOUT_SECONDS", "60"))
        self.backend_max_attempts = int(os.getenv("BACKEND_MAX_ATTEMPTS", "2"))  # first call + one retry
        self.backend_retry_backoff_seconds = float(os.getenv("BACKEND_RETRY_BACKOFF_SECONDS", "1.0"))
        self.max_concurrent_generations = int(os.getenv("MAX_CONCURRENT_GENERATIONS", "3"))

        # Transcript normalization
        self.caption_merge_gap_seconds = float(os.getenv("CAPTION_MERGE_GAP_SECONDS", "0.5"))
        self.caption_merge_confidence_delta = float(os.getenv("CAPTION_MERGE_CONFIDENCE_DELTA", "0.1"))
        self.max_segment_seconds = float(os.getenv("MAX_SEGMENT_SECONDS", "15"))
        self.caption_extraction_timeout = int(os.getenv("CAPTION_EXTRACTION_TIMEOUT", "60"))
        self.caption_retry_attempts = int(os.getenv("CAPTION_RETRY_ATTEMPTS", "3"))

        # Content structure
        self.pause_threshold_seconds = float(os.getenv("PAUSE_THRESHOLD_SECONDS", "2.0"))
        self.min_chapter_seconds = float(os.getenv("MIN_CHAPTER_SECONDS", "30"))
        self.max_chapters = int(os.getenv("MAX_CHAPTERS", "12"))
        self.boundary_window_seconds = float(os.getenv("BOUNDARY_WINDOW_SECONDS", "10"))
        self.chapter_gap_tolerance_seconds = float(os.getenv("CHAPTER_GAP_TOLERANCE_SECONDS", "2.0"))

        # Visual fallback
        self.fallback_frame_count = int(os.getenv("FALLBACK_FRAME_COUNT", "8"))

        # Rendering and chat
        self.default_formats = _env_list("DEFAULT_FORMATS", "basic-summary,study-notes")
        self.chat_history_limit = int(os.getenv("CHAT_HISTORY_LIMIT", "5"))
        self.max_conversations = int(os.getenv("MAX_CONVERSATIONS", "500"))
        self.conversation_idle_seconds = float(os.getenv("CONVERSATION_IDLE_SECONDS", "300"))
        self.default_language = os.getenv("DEFAULT_LANGUAGE", "en")

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_format = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")


class CaptionConfig:
    """Configuration for yt-dlp caption extraction."""

    BASE_OPTIONS = {
        'quiet': True,
        'no_warnings': True,
        'writesubtitles': True,
        'writeautomaticsub': True,
        'skip_download': True,
        'extract_flat': False,
        'ignoreerrors': False,
        'socket_timeout': 60,
        'retries': 3,
    }

    @classmethod
    def get_options(cls, timeout: int = 60, retries: int = 3) -> dict:
        """Get yt-dlp options with custom timeout and retries."""
        options = cls.BASE_OPTIONS.copy()
        options.update({
            'socket_timeout': timeout,
            'retries': retries
        })
        return options


# Create global settings instance
settings = Settings()
