"""Unit tests for custom exceptions."""
import pytest
from vidnotes.core.exceptions import (
    VideoNotesBaseException, ValidationError, VideoUnavailableError, BackendError,
    BackendTimeoutError, BackendQuotaExceededError, BackendProviderError, BackendUnavailableError,
    MalformedBackendOutputError, CitationGroundingViolation, UnknownFormatError, NoTranscriptAvailableError
)

class TestCustomExceptions:
    """Test custom exception classes."""

    def test_base_exception(self):
        """Test base exception functionality."""
        exc = VideoNotesBaseException(
            "Test message",
            "TEST_ERROR",
            {"key": "value"}
        )

        assert str(exc) == "Test message"
        assert exc.message == "Test message"
        assert exc.error_code == "TEST_ERROR"
        assert exc.details == {"key": "value"}

    def test_validation_error(self):
        """Test validation error."""
        exc = ValidationError("Invalid input", {"field": "video_url"})

        assert exc.error_code == "VALIDATION_ERROR"
        assert exc.message == "Invalid input"
        assert exc.details == {"field": "video_url"}

    def test_video_unavailable_error(self):
        """Test video unavailable error."""
        url = "https://www.youtube.com/watch?v=abc123def45"
        reason = "Video is private"
        exc = VideoUnavailableError(url, reason)

        assert exc.error_code == "VIDEO_UNAVAILABLE"
        assert reason in exc.message
        assert exc.details["url"] == url
        assert exc.details["reason"] == reason

    def test_no_transcript_error(self):
        """Test no transcript error."""
        exc = NoTranscriptAvailableError("abc123def45")

        assert exc.error_code == "NO_TRANSCRIPT_AVAILABLE"
        assert exc.details["video_id"] == "abc123def45"

    @pytest.mark.parametrize("exc,code,retryable", [
        (BackendTimeoutError("chapter_outline", 60), "BACKEND_TIMEOUT", True),
        (BackendQuotaExceededError("render:study-notes"), "BACKEND_QUOTA_EXCEEDED", True),
        (BackendProviderError("chat:full", "bad request"), "BACKEND_PROVIDER_ERROR", False),
        (BackendUnavailableError(), "BACKEND_UNAVAILABLE", True),
    ])
    def test_backend_errors(self, exc, code, retryable):
        """Test backend error codes and retry classification."""
        assert isinstance(exc, BackendError)
        assert exc.error_code == code
        assert exc.retryable is retryable

    def test_malformed_output_truncates_payload(self):
        """Test malformed output keeps only the start of the raw payload."""
        exc = MalformedBackendOutputError("concept_extraction", "not JSON", "x" * 2000)

        assert exc.error_code == "MALFORMED_BACKEND_OUTPUT"
        assert len(exc.details["raw_payload"]) == 500
        assert not isinstance(exc, BackendError)

    def test_citation_grounding_violation(self):
        """Test citation grounding violation."""
        exc = CitationGroundingViolation("timestamp", "7:45", "after the end of the video (270s)")

        assert exc.error_code == "CITATION_GROUNDING_VIOLATION"
        assert "7:45" in exc.message
        assert exc.details["type"] == "timestamp"

    def test_unknown_format_error(self):
        """Test unknown format error."""
        exc = UnknownFormatError("mind-map")

        assert exc.error_code == "UNKNOWN_FORMAT"
        assert exc.details == {"format_id": "mind-map"}

    def test_exception_inheritance(self):
        """Test that all custom exceptions inherit from base exception."""
        exceptions = [
            ValidationError("test"),
            VideoUnavailableError("url"),
            BackendUnavailableError(),
            UnknownFormatError("x"),
            NoTranscriptAvailableError("v")
        ]

        for exc in exceptions:
            assert isinstance(exc, VideoNotesBaseException)
            assert isinstance(exc, Exception)
