"""Timestamp formatting and parsing helpers."""
import re
from typing import List, Optional

from .validators import URLValidator

CLOCK_PATTERN = re.compile(r"\b(?:(\d{1,2}):)?(\d{1,2}):(\d{2})\b")


def format_timestamp(seconds: float) -> str:
    """Format seconds as M:SS, or H:MM:SS past the hour."""
    total = int(max(seconds, 0))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def parse_timestamp(text: str) -> Optional[float]:
    """Parse the first M:SS or H:MM:SS clock value in text into seconds."""
    match = CLOCK_PATTERN.search(text or "")
    if not match:
        return None

    hours = int(match.group(1)) if match.group(1) else 0
    minutes = int(match.group(2))
    seconds = int(match.group(3))
    if seconds >= 60:
        return None
    return float(hours * 3600 + minutes * 60 + seconds)


def find_timestamps(text: str) -> List[float]:
    """Every clock value mentioned in text, in order of appearance."""
    found = []
    for match in CLOCK_PATTERN.finditer(text or ""):
        value = parse_timestamp(match.group(0))
        if value is not None:
            found.append(value)
    return found


def create_timestamp_url(video_url: str, seconds: float) -> str:
    """Link that opens the video at the given second."""
    video_id = URLValidator.extract_youtube_id(video_url)
    if video_id:
        return f"https://www.youtube.com/watch?v={video_id}&t={int(seconds)}s"

    separator = "&" if "?" in video_url else "?"
    return f"{video_url}{separator}t={int(seconds)}s"
