"""Unit tests for text and timestamp helpers."""
import pytest

from vidnotes.utils.text import (
    contains_term, enforce_required_prefix, fold_term, fold_text, sanitize_note,
    split_sentences, stem, strip_code_fences, strip_conversational_opening, truncate_words
)
from vidnotes.utils.timestamps import create_timestamp_url, find_timestamps, format_timestamp, parse_timestamp


class TestTermFolding:
    """Test cases for concept-name folding."""

    @pytest.mark.parametrize("token,expected", [
        ("descents", "descent"),
        ("studies", "study"),
        ("classes", "class"),
        ("learning", "learn"),
        ("running", "run"),
        ("trained", "train"),
        ("analysis", "analysis"),
        ("bus", "bus"),
    ])
    def test_stem(self, token, expected):
        assert stem(token) == expected

    def test_fold_term(self):
        assert fold_term("Gradient  Descents!") == "gradient descent"
        assert fold_term("") == ""

    def test_contains_term_matches_whole_tokens(self):
        passage = fold_text("We keep using gradients here.")

        assert contains_term(passage, fold_term("gradient"))
        assert not contains_term(fold_text("a degradient"), "gradient")
        assert not contains_term(passage, "")


class TestSentences:
    """Test cases for sentence splitting and truncation."""

    def test_split_sentences(self):
        assert split_sentences("First one. Second one! third? Fourth.") == [
            "First one.", "Second one! third?", "Fourth."
        ]
        assert split_sentences("   ") == []

    def test_truncate_words(self):
        assert truncate_words("one two three, four", 3) == "one two three..."
        assert truncate_words(" short text ", 5) == "short text"


class TestNoteSanitizing:
    """Test cases for cleaning backend note text."""

    def test_strip_wrapping_fence(self):
        assert strip_code_fences("```markdown\n# Title\nBody\n```") == "# Title\nBody"

    def test_inner_code_blocks_are_kept(self):
        content = "# Title\n```python\nx = 1\n```\nEnd"

        assert strip_code_fences(content) == content

    def test_conversational_opening(self):
        content = "Okay, here's the summary you requested:\n\n**Video Summary**\nBody"

        assert strip_conversational_opening(content) == "**Video Summary**\nBody"

    def test_structural_line_without_summary_keyword_is_kept(self):
        assert strip_conversational_opening("This is gradient descent.") == "This is gradient descent."

    def test_enforce_required_prefix(self):
        assert enforce_required_prefix("intro\n# Tutorial Guide\nx", "# Tutorial Guide") == "# Tutorial Guide\nx"
        assert enforce_required_prefix("x", "# Tutorial Guide") == "# Tutorial Guide\nx"
        assert enforce_required_prefix("x", "") == "x"

    def test_sanitize_note(self):
        raw = "```\nSure! Here is the overview.\n## Video Overview\nNotes\n```"

        assert sanitize_note(raw, "## Video Overview") == "## Video Overview\nNotes"
        assert sanitize_note("Sure!", "## Video Overview") == ""


class TestTimestamps:
    """Test cases for clock formatting and parsing."""

    @pytest.mark.parametrize("seconds,expected", [(0, "0:00"), (65, "1:05"), (3725, "1:02:05"), (-3, "0:00")])
    def test_format_timestamp(self, seconds, expected):
        assert format_timestamp(seconds) == expected

    @pytest.mark.parametrize("text,expected", [
        ("at 4:30", 270.0),
        ("1:02:03", 3723.0),
        ("4:75", None),
        ("no time", None),
    ])
    def test_parse_timestamp(self, text, expected):
        assert parse_timestamp(text) == expected

    def test_find_timestamps(self):
        assert find_timestamps("0:25 and 7:45 then 1:00:00") == [25.0, 465.0, 3600.0]

    def test_create_timestamp_url(self):
        assert create_timestamp_url("https://youtu.be/abc123def45", 90.7) == \
            "https://www.youtube.com/watch?v=abc123def45&t=90s"
        assert create_timestamp_url("https://vimeo.com/123", 90) == "https://vimeo.com/123?t=90s"
        assert create_timestamp_url("https://example.com/v?id=1", 5) == "https://example.com/v?id=1&t=5s"
