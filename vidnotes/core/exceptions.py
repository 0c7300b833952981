"""Custom exceptions for the Video Notes Engine."""
from typing import Optional


class VideoNotesBaseException(Exception):
    """Base exception for the notes engine."""

    def __init__(self, message: str, error_code: str, details: Optional[dict] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(VideoNotesBaseException):
    """Exception raised for input validation errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class ConfigurationError(VideoNotesBaseException):
    """Exception raised for configuration errors."""

    def __init__(self, setting: str, reason: str):
        message = f"Configuration error for {setting}: {reason}"
        details = {"setting": setting, "reason": reason}
        super().__init__(message, "CONFIGURATION_ERROR", details)


class NoTranscriptAvailableError(VideoNotesBaseException):
    """Raised when a video has no usable captions; triggers the visual-only path."""

    def __init__(self, video_id: str, reason: str = "No captions available for this video"):
        message = f"No transcript available: {reason}"
        details = {"video_id": video_id, "reason": reason}
        super().__init__(message, "NO_TRANSCRIPT_AVAILABLE", details)


class VideoUnavailableError(VideoNotesBaseException):
    """Exception raised when video is unavailable."""

    def __init__(self, url: str, reason: str = "Video is private, deleted, or restricted"):
        message = f"Video unavailable: {reason}"
        details = {"url": url, "reason": reason}
        super().__init__(message, "VIDEO_UNAVAILABLE", details)


class CaptionExtractionError(VideoNotesBaseException):
    """Exception raised when captions or metadata could not be fetched."""

    def __init__(self, url: str, reason: str = "Technical error during caption extraction"):
        message = f"Caption extraction failed: {reason}"
        details = {"url": url, "reason": reason}
        super().__init__(message, "CAPTION_EXTRACTION_FAILED", details)


class BackendError(VideoNotesBaseException):
    """Base class for generative backend failures."""

    retryable = False


class BackendTimeoutError(BackendError):
    """Exception raised when a backend call exceeds its timeout."""

    retryable = True

    def __init__(self, operation: str, timeout_seconds: float):
        message = f"Backend call timed out: {operation} (timeout: {timeout_seconds}s)"
        details = {"operation": operation, "timeout_seconds": timeout_seconds}
        super().__init__(message, "BACKEND_TIMEOUT", details)


class BackendQuotaExceededError(BackendError):
    """Exception raised when the backend rejects a call for quota or rate limits."""

    retryable = True

    def __init__(self, operation: str, reason: str = "Quota exceeded"):
        message = f"Backend quota exceeded during {operation}: {reason}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, "BACKEND_QUOTA_EXCEEDED", details)


class BackendProviderError(BackendError):
    """Exception raised for any other provider-side failure."""

    def __init__(self, operation: str, reason: str):
        message = f"Backend provider error during {operation}: {reason}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, "BACKEND_PROVIDER_ERROR", details)


class BackendUnavailableError(BackendError):
    """Exception raised when the backend cannot serve any request at all."""

    retryable = True

    def __init__(self, reason: str = "Generative backend is unavailable"):
        message = f"Service unavailable: {reason}. Please retry later."
        details = {"reason": reason, "retryable": True}
        super().__init__(message, "BACKEND_UNAVAILABLE", details)


class MalformedBackendOutputError(VideoNotesBaseException):
    """Exception raised when backend text cannot be parsed into the expected shape."""

    def __init__(self, operation: str, reason: str, raw_payload: str = ""):
        message = f"Malformed backend output for {operation}: {reason}"
        details = {"operation": operation, "reason": reason, "raw_payload": raw_payload[:500]}
        super().__init__(message, "MALFORMED_BACKEND_OUTPUT", details)


class ConceptGraphIntegrityError(VideoNotesBaseException):
    """Relationship to an unknown concept or an unresolved prerequisite cycle."""

    def __init__(self, reason: str, details: Optional[dict] = None):
        message = f"Concept graph integrity issue: {reason}"
        super().__init__(message, "CONCEPT_GRAPH_INTEGRITY", details)


class CitationGroundingViolation(VideoNotesBaseException):
    """A citation references something absent from the supplied context."""

    def __init__(self, citation_type: str, value: str, reason: str):
        message = f"Ungrounded {citation_type} citation '{value}': {reason}"
        details = {"type": citation_type, "value": value, "reason": reason}
        super().__init__(message, "CITATION_GROUNDING_VIOLATION", details)


class UnknownFormatError(VideoNotesBaseException):
    """Exception raised when a requested note format is not registered."""

    def __init__(self, format_id: str):
        message = f"Unknown note format: {format_id}"
        details = {"format_id": format_id}
        super().__init__(message, "UNKNOWN_FORMAT", details)


class AnalysisNotFoundError(VideoNotesBaseException):
    """Exception raised when no analysis artifact exists for a video."""

    def __init__(self, video_id: str):
        message = f"No analysis found for video: {video_id}"
        details = {"video_id": video_id}
        super().__init__(message, "ANALYSIS_NOT_FOUND", details)
