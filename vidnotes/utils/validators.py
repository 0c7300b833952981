"""URL and request validation utilities."""
import re
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from ..core.exceptions import ValidationError

YOUTUBE_ID_PATTERN = re.compile(r"^[\w-]{11}$")


class URLValidator:
    """URL validation utilities for video sources."""

    YOUTUBE_DOMAINS = ("youtube.com", "youtu.be", "youtube-nocookie.com")

    @staticmethod
    def is_youtube_url(url: str) -> bool:
        try:
            domain = urlparse(url).netloc.lower()
        except ValueError:
            return False
        return any(domain == d or domain.endswith("." + d) for d in URLValidator.YOUTUBE_DOMAINS)

    @staticmethod
    def validate_video_url(url: str) -> bool:
        """Any absolute http(s) URL is accepted; yt-dlp decides whether it can read it."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    @staticmethod
    def extract_youtube_id(url: str) -> Optional[str]:
        """Extract the 11-character id from watch, short, embed and youtu.be links."""
        if not url or not URLValidator.is_youtube_url(url):
            return None

        parsed = urlparse(url)
        if parsed.netloc.lower().endswith("youtu.be"):
            candidate = parsed.path.lstrip("/").split("/")[0]
            return candidate if YOUTUBE_ID_PATTERN.match(candidate) else None

        query_id = parse_qs(parsed.query).get("v", [None])[0]
        if query_id and YOUTUBE_ID_PATTERN.match(query_id):
            return query_id

        parts = [part for part in parsed.path.split("/") if part]
        if len(parts) >= 2 and parts[0] in ("embed", "shorts", "live", "v"):
            return parts[1] if YOUTUBE_ID_PATTERN.match(parts[1]) else None

        return None

    @staticmethod
    def extract_video_id_from_url(url: str) -> str:
        """Video id for storage keys; raises ValidationError when none can be derived."""
        if not URLValidator.validate_video_url(url):
            raise ValidationError(f"Invalid video URL: {url}", {"url": url})

        youtube_id = URLValidator.extract_youtube_id(url)
        if youtube_id:
            return youtube_id

        path_parts = [part for part in urlparse(url).path.split("/") if part]
        if path_parts:
            return re.sub(r"[^\w-]", "", path_parts[-1]) or path_parts[-1]

        raise ValidationError(f"Could not extract video ID from URL: {url}", {"url": url})


class RequestValidator:
    """Validation of request parameters shared by the routers."""

    @staticmethod
    def normalize_formats(formats: Optional[List[str]], default: List[str]) -> List[str]:
        """Deduplicate requested format ids, keeping order; empty means defaults."""
        requested = formats or default
        seen = []
        for format_id in requested:
            format_id = format_id.strip()
            if format_id and format_id not in seen:
                seen.append(format_id)
        return seen
