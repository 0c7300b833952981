"""Unit tests for validation utilities."""
import pytest
from vidnotes.core.exceptions import ValidationError
from vidnotes.utils.validators import URLValidator, RequestValidator

class TestURLValidator:
    """Test URL validation utilities."""

    def test_extract_youtube_ids(self):
        """Test YouTube id extraction across link styles."""
        urls = [
            "https://www.youtube.com/watch?v=abc123def45",
            "https://youtube.com/watch?v=abc123def45&t=30s",
            "https://youtu.be/abc123def45",
            "https://m.youtube.com/shorts/abc123def45",
            "https://www.youtube.com/embed/abc123def45"
        ]

        for url in urls:
            assert URLValidator.is_youtube_url(url) is True
            assert URLValidator.extract_youtube_id(url) == "abc123def45"

    def test_non_youtube_urls(self):
        """Test that other sites are accepted but have no YouTube id."""
        url = "https://vimeo.com/123456789"

        assert URLValidator.validate_video_url(url) is True
        assert URLValidator.extract_youtube_id(url) is None
        assert URLValidator.extract_video_id_from_url(url) == "123456789"

    def test_reject_invalid_urls(self):
        """Test rejection of invalid URLs."""
        invalid_urls = [
            "invalid-url",
            "ftp://example.com/video.mp4",
            ""
        ]

        for url in invalid_urls:
            assert URLValidator.validate_video_url(url) is False
            with pytest.raises(ValidationError):
                URLValidator.extract_video_id_from_url(url)

    def test_url_without_path(self):
        """Test URL that has no path to derive an id from."""
        with pytest.raises(ValidationError):
            URLValidator.extract_video_id_from_url("https://example.com")

class TestRequestValidator:
    """Test request validation utilities."""

    def test_normalize_formats_deduplicates(self):
        """Test duplicate and blank format ids are dropped, order kept."""
        formats = RequestValidator.normalize_formats(
            ["study-notes", " basic-summary ", "study-notes", ""], ["basic-summary"]
        )

        assert formats == ["study-notes", "basic-summary"]

    def test_normalize_formats_defaults(self):
        """Test empty request falls back to defaults."""
        assert RequestValidator.normalize_formats(None, ["basic-summary"]) == ["basic-summary"]
        assert RequestValidator.normalize_formats([], ["basic-summary"]) == ["basic-summary"]
