"""Captions and metadata provider backed by yt-dlp subtitle data."""
import asyncio
import json
import re
from typing import Dict, List, Optional, Tuple

import aiohttp
import yt_dlp

from ..core.config import CaptionConfig, settings
from ..core.exceptions import CaptionExtractionError, VideoUnavailableError
from ..models.transcript import CaptionCue, CaptionTrack, VideoFacts
from ..utils.logging import CorrelatedLogger
from ..utils.validators import URLValidator

MANUAL_CONFIDENCE = 0.9
AUTOMATIC_CONFIDENCE = 0.7


class YtDlpCaptionsProvider:
    """Fetches video facts and the best caption track for a video URL."""

    PREFERRED_LANGUAGES = ['en', 'en-US', 'en-GB']

    # Lower number wins
    FORMAT_PRIORITY = {
        'vtt': 1,
        'srt': 2,
        'json3': 3,
        'srv1': 4,
        'srv2': 5,
        'srv3': 6,
        'ttml': 7,
    }

    VTT_TIME = re.compile(r'((?:\d{2}:)?\d{2}:\d{2}\.\d{3}) --> ((?:\d{2}:)?\d{2}:\d{2}\.\d{3})')
    SRT_TIME = re.compile(r'(\d{2}:\d{2}:\d{2},\d{3}) --> (\d{2}:\d{2}:\d{2},\d{3})')
    SRV_TEXT = re.compile(r'<text start="([^"]*)"(?:\s+dur="([^"]*)")?[^>]*>([^<]*)</text>')
    TTML_P = re.compile(r'<p[^>]*begin="([^"]*)"[^>]*end="([^"]*)"[^>]*>(.*?)</p>', re.DOTALL)

    def __init__(self):
        self.logger = CorrelatedLogger(__name__)

    async def fetch(
        self,
        video_url: str,
        preferred_language: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> CaptionTrack:
        """
        Fetch captions for a video.

        A video without captions yields a track with no segments; only an
        unreachable video or a broken extraction raises.
        """
        if request_id:
            self.logger.request_id = request_id

        video_info = await self._extract_info(video_url)
        facts = self._build_video_facts(video_url, video_info)

        choice = self._choose_track(video_info, preferred_language or settings.default_language)
        if choice is None:
            self.logger.info(f"No captions available for {facts.video_id}")
            return CaptionTrack(video_facts=facts)

        language, format_id, is_automatic, track = choice
        content = track.get('data') or None
        if not content and track.get('url'):
            content = await self._download_subtitle_content(track['url'])

        cues = self.parse_subtitle_content(content or "", format_id, is_automatic)
        self.logger.info(
            f"Fetched {len(cues)} caption cues for {facts.video_id} "
            f"({language}, {format_id}, {'auto' if is_automatic else 'manual'})"
        )

        return CaptionTrack(
            segments=cues,
            language=language,
            video_facts=facts,
            is_automatic=is_automatic,
            source_format=format_id
        )

    async def _extract_info(self, url: str) -> dict:
        """Extract using yt-dlp directly."""
        ydl_opts = CaptionConfig.get_options(
            timeout=settings.caption_extraction_timeout,
            retries=settings.caption_retry_attempts
        )

        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                return await asyncio.to_thread(ydl.extract_info, url, download=False)
        except yt_dlp.utils.DownloadError as e:
            error_msg = str(e).lower()
            if any(keyword in error_msg for keyword in ['private', 'deleted', 'unavailable', 'not found']):
                raise VideoUnavailableError(url, str(e))
            raise CaptionExtractionError(url, str(e))

    def _build_video_facts(self, url: str, video_info: dict) -> VideoFacts:
        video_id = video_info.get('id') or URLValidator.extract_video_id_from_url(url)
        duration = video_info.get('duration')
        return VideoFacts(
            video_id=str(video_id),
            title=video_info.get('title') or "",
            duration=float(duration) if duration else None,
            channel=video_info.get('channel') or video_info.get('uploader'),
            thumbnail_url=video_info.get('thumbnail'),
            url=video_info.get('webpage_url') or url
        )

    def _choose_track(
        self,
        video_info: dict,
        target_language: str
    ) -> Optional[Tuple[str, str, bool, Dict]]:
        """Manual before automatic; target language, then preferred ones, then any; best format first."""
        languages = [target_language] + [lang for lang in self.PREFERRED_LANGUAGES if lang != target_language]

        for is_automatic, source_key in ((False, 'subtitles'), (True, 'automatic_captions')):
            source = video_info.get(source_key) or {}
            ordered_languages = [lang for lang in languages if lang in source]
            ordered_languages += sorted(lang for lang in source if lang not in ordered_languages)

            for language in ordered_languages:
                formats = [
                    fmt for fmt in source.get(language) or []
                    if isinstance(fmt, dict) and fmt.get('ext') in self.FORMAT_PRIORITY
                    and (fmt.get('data') or fmt.get('url'))
                ]
                if formats:
                    best = min(formats, key=lambda fmt: self.FORMAT_PRIORITY[fmt['ext']])
                    return language, best['ext'], is_automatic, best
        return None

    async def _download_subtitle_content(self, url: str) -> Optional[str]:
        """Download subtitle content from URL."""
        try:
            timeout = aiohttp.ClientTimeout(total=30)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status == 200:
                        return await response.text()
                    self.logger.warning(f"Failed to download subtitle: HTTP {response.status}")
                    return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Error downloading subtitle from {url}: {str(e)}")
            return None

    def parse_subtitle_content(self, content: str, format_id: str, is_automatic: bool = False) -> List[CaptionCue]:
        """Parse subtitle content into raw cues."""
        confidence = AUTOMATIC_CONFIDENCE if is_automatic else MANUAL_CONFIDENCE

        if format_id == 'vtt':
            spans = self._parse_timed_blocks(content, self.VTT_TIME, self._clock_to_seconds)
        elif format_id == 'srt':
            spans = self._parse_timed_blocks(content, self.SRT_TIME, self._clock_to_seconds)
        elif format_id == 'json3':
            spans = self._parse_json3_content(content)
        elif format_id.startswith('srv'):
            spans = self._parse_srv_content(content)
        elif format_id == 'ttml':
            spans = self._parse_ttml_content(content)
        else:
            self.logger.warning(f"Unsupported subtitle format: {format_id}")
            return []

        cues = []
        for start, end, text in spans:
            text = self._clean_subtitle_text(text)
            if text and end >= start:
                cues.append(CaptionCue(start=start, end=end, text=text, confidence=confidence))
        return cues

    def _parse_timed_blocks(self, content: str, pattern, to_seconds) -> List[Tuple[float, float, str]]:
        """Shared parser for VTT and SRT blocks: a timing line followed by text lines."""
        spans = []
        for block in re.split(r'\n\s*\n+', content.replace('\r\n', '\n')):
            lines = block.strip().split('\n')
            for index, line in enumerate(lines):
                match = pattern.search(line)
                if match:
                    text = ' '.join(lines[index + 1:])
                    spans.append((to_seconds(match.group(1)), to_seconds(match.group(2)), text))
                    break
        return spans

    def _parse_json3_content(self, content: str) -> List[Tuple[float, float, str]]:
        """Parse JSON3 subtitle content (YouTube specific)."""
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Error parsing JSON3 content: {str(e)}")
            return []

        spans = []
        for event in data.get('events', []):
            if 'tStartMs' in event and 'dDurationMs' in event:
                start = event['tStartMs'] / 1000.0
                end = start + event['dDurationMs'] / 1000.0
                text = ''.join(seg.get('utf8', '') for seg in event.get('segs', []))
                spans.append((start, end, text))
        return spans

    def _parse_srv_content(self, content: str) -> List[Tuple[float, float, str]]:
        """Parse YouTube SRV (XML) subtitle content."""
        spans = []
        for start, duration, text in self.SRV_TEXT.findall(content):
            try:
                start_time = float(start)
                spans.append((start_time, start_time + (float(duration) if duration else 3.0), text))
            except ValueError:
                continue
        return spans

    def _parse_ttml_content(self, content: str) -> List[Tuple[float, float, str]]:
        """Parse TTML subtitle content."""
        spans = []
        for begin, end, text in self.TTML_P.findall(content):
            try:
                spans.append((self._ttml_time_to_seconds(begin), self._ttml_time_to_seconds(end), text))
            except ValueError:
                continue
        return spans

    @staticmethod
    def _clock_to_seconds(time_str: str) -> float:
        """Convert HH:MM:SS.mmm, MM:SS.mmm or HH:MM:SS,mmm to seconds."""
        parts = time_str.replace(',', '.').split(':')
        seconds = float(parts[-1])
        minutes = int(parts[-2]) if len(parts) >= 2 else 0
        hours = int(parts[-3]) if len(parts) >= 3 else 0
        return hours * 3600 + minutes * 60 + seconds

    def _ttml_time_to_seconds(self, time_str: str) -> float:
        if ':' in time_str:
            return self._clock_to_seconds(time_str)
        return float(time_str.rstrip('s'))

    @staticmethod
    def _clean_subtitle_text(text: str) -> str:
        """Clean and normalize subtitle text."""
        if not text:
            return ""

        text = re.sub(r'<[^>]+>', '', text)

        text = text.replace('&amp;', '&')
        text = text.replace('&lt;', '<')
        text = text.replace('&gt;', '>')
        text = text.replace('&quot;', '"')
        text = text.replace('&#39;', "'")

        text = re.sub(r'♪.*?♪', '', text)
        text = re.sub(r'\[.*?\]', '', text)

        text = re.sub(r'\s+', ' ', text)
        return text.strip()
