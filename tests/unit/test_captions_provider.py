"""Unit tests for YtDlpCaptionsProvider."""
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yt_dlp

from vidnotes.core.exceptions import CaptionExtractionError, VideoUnavailableError
from vidnotes.services.captions_provider import YtDlpCaptionsProvider

SAMPLE_VTT = """WEBVTT

00:00:01.000 --> 00:00:05.000
Hello and <c>welcome</c>

00:00:05.000 --> 00:00:10.000
to this [Music] tutorial"""

SAMPLE_SRT = """1
00:00:01,000 --> 00:00:04,500
First line

2
00:01:00,000 --> 00:01:02,000
Second &amp; last line
"""


class TestYtDlpCaptionsProvider:
    """Test cases for caption fetching and parsing."""

    @pytest.fixture
    def provider(self):
        return YtDlpCaptionsProvider()

    @pytest.fixture
    def video_info(self):
        return {
            'id': 'abc123def45',
            'title': 'Gradient Descent Explained',
            'duration': 270,
            'channel': 'ML Lectures',
            'thumbnail': 'https://example.com/thumbnail.jpg',
            'webpage_url': 'https://www.youtube.com/watch?v=abc123def45',
            'subtitles': {
                'en': [
                    {'ext': 'json3', 'url': 'https://example.com/subs.json3'},
                    {'ext': 'vtt', 'data': SAMPLE_VTT},
                ]
            },
            'automatic_captions': {
                'en': [{'ext': 'vtt', 'data': SAMPLE_VTT}]
            }
        }

    def test_parse_vtt(self, provider):
        cues = provider.parse_subtitle_content(SAMPLE_VTT, 'vtt')

        assert [(c.start, c.end, c.text) for c in cues] == [
            (1.0, 5.0, "Hello and welcome"),
            (5.0, 10.0, "to this tutorial"),
        ]
        assert all(c.confidence == 0.9 for c in cues)

    def test_parse_srt(self, provider):
        cues = provider.parse_subtitle_content(SAMPLE_SRT, 'srt', is_automatic=True)

        assert [(c.start, c.text) for c in cues] == [(1.0, "First line"), (60.0, "Second & last line")]
        assert all(c.confidence == 0.7 for c in cues)

    def test_parse_json3(self, provider):
        content = json.dumps({'events': [
            {'tStartMs': 1500, 'dDurationMs': 2000, 'segs': [{'utf8': 'gradient '}, {'utf8': 'descent'}]},
            {'tStartMs': 4000},
        ]})

        cues = provider.parse_subtitle_content(content, 'json3')

        assert len(cues) == 1
        assert (cues[0].start, cues[0].end, cues[0].text) == (1.5, 3.5, "gradient descent")

    def test_parse_srv_and_ttml(self, provider):
        srv = '<transcript><text start="2.5" dur="1.5">Loss &amp; gradients</text></transcript>'
        ttml = '<tt><body><p begin="00:00:03.000" end="00:00:04.000">Step size</p></body></tt>'

        assert provider.parse_subtitle_content(srv, 'srv3')[0].text == "Loss & gradients"
        assert provider.parse_subtitle_content(ttml, 'ttml')[0].start == 3.0

    def test_parse_unsupported_format(self, provider):
        assert provider.parse_subtitle_content("anything", 'ass') == []

    def test_choose_track_prefers_manual_and_best_format(self, provider, video_info):
        language, format_id, is_automatic, _track = provider._choose_track(video_info, 'en')

        assert (language, format_id, is_automatic) == ('en', 'vtt', False)

    def test_choose_track_falls_back_to_any_language(self, provider):
        info = {'subtitles': {}, 'automatic_captions': {'de': [{'ext': 'srt', 'url': 'https://x/de.srt'}]}}

        language, format_id, is_automatic, _track = provider._choose_track(info, 'en')

        assert (language, format_id, is_automatic) == ('de', 'srt', True)

    def test_choose_track_none(self, provider):
        assert provider._choose_track({'subtitles': {}, 'automatic_captions': {}}, 'en') is None

    @pytest.mark.asyncio
    async def test_fetch_returns_track_and_facts(self, provider, video_info):
        with patch.object(provider, '_extract_info', AsyncMock(return_value=video_info)):
            track = await provider.fetch('https://youtu.be/abc123def45')

        assert track.has_captions
        assert track.language == 'en'
        assert track.source_format == 'vtt'
        assert track.video_facts.video_id == 'abc123def45'
        assert track.video_facts.duration == 270.0
        assert track.video_facts.channel == 'ML Lectures'

    @pytest.mark.asyncio
    async def test_fetch_downloads_track_by_url(self, provider, video_info):
        video_info['subtitles'] = {'en': [{'ext': 'srt', 'url': 'https://example.com/subs.srt'}]}

        with patch.object(provider, '_extract_info', AsyncMock(return_value=video_info)), \
             patch.object(provider, '_download_subtitle_content', AsyncMock(return_value=SAMPLE_SRT)) as download:
            track = await provider.fetch('https://youtu.be/abc123def45')

        download.assert_awaited_once_with('https://example.com/subs.srt')
        assert len(track.segments) == 2

    @pytest.mark.asyncio
    async def test_fetch_without_captions_returns_empty_track(self, provider, video_info):
        video_info['subtitles'] = {}
        video_info['automatic_captions'] = {}

        with patch.object(provider, '_extract_info', AsyncMock(return_value=video_info)):
            track = await provider.fetch('https://youtu.be/abc123def45')

        assert track.segments == []
        assert track.has_captions is False
        assert track.video_facts.title == 'Gradient Descent Explained'

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message,expected", [
        ("ERROR: Private video. Sign in if you've been granted access", VideoUnavailableError),
        ("ERROR: This video has been removed", CaptionExtractionError),
    ])
    async def test_download_errors_are_mapped(self, provider, message, expected):
        ydl = MagicMock()
        ydl.__enter__.return_value = ydl
        ydl.extract_info.side_effect = yt_dlp.utils.DownloadError(message)

        with patch('vidnotes.services.captions_provider.yt_dlp.YoutubeDL', return_value=ydl):
            with pytest.raises(expected):
                await provider.fetch('https://youtu.be/abc123def45')
