"""Text helpers: term folding for concept matching, sentence handling and note sanitizing."""
import re
from typing import List

WORD_PATTERN = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")
SENTENCE_PATTERN = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"'(\[*_`])")
FENCE_BLOCK_PATTERN = re.compile(r"^```(?:[\w-]+)?\s*\n?([\s\S]*?)\n?```$")
LEADING_FENCE_PATTERN = re.compile(r"^```(?:[\w-]+)?\s*\n?")
TRAILING_FENCE_PATTERN = re.compile(r"\n?```\s*$")

CONVERSATIONAL_LEAD = re.compile(r"^(okay|ok|alright|all right|sure|absolutely|right|well|so)\b[\s,.!:-]*", re.IGNORECASE)
STRUCTURAL_LEAD = re.compile(r"^(here'?s|here\s+(?:is|are|we go|you go)|this\s+is|please\s+find|below\s+is|let'?s)\b", re.IGNORECASE)
SUMMARY_KEYWORDS = re.compile(r"(requested|summary|overview|content|notes|breakdown|guide)", re.IGNORECASE)


def stem(token: str) -> str:
    """Light suffix stripping so that plural and -ing/-ed forms fold together."""
    if len(token) <= 3:
        return token

    if token.endswith("ies") and len(token) > 4:
        token = token[:-3] + "y"
    elif token.endswith(("sses", "ches", "shes", "xes")):
        token = token[:-2]
    elif token.endswith("s") and not token.endswith(("ss", "us", "is")):
        token = token[:-1]

    for suffix in ("ing", "ed"):
        if token.endswith(suffix) and len(token) - len(suffix) >= 4:
            token = token[:-len(suffix)]
            # running -> runn -> run
            if len(token) > 3 and token[-1] == token[-2] and token[-1] not in "lsz":
                token = token[:-1]
            break

    return token


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens."""
    return WORD_PATTERN.findall(text.lower())


def fold_term(term: str) -> str:
    """Case-insensitive, stemmed key used to compare concept names and aliases."""
    return " ".join(stem(token) for token in tokenize(term))


def fold_text(text: str) -> str:
    """Fold a passage the same way as terms, padded for whole-token containment checks."""
    return f" {fold_term(text)} "


def contains_term(folded_text: str, folded_term: str) -> bool:
    """Whole-token containment of a folded term inside a padded folded passage."""
    if not folded_term:
        return False
    return f" {folded_term} " in folded_text


def word_count(text: str) -> int:
    return len(text.split())


def split_sentences(text: str) -> List[str]:
    """Split prose into sentences on terminal punctuation."""
    text = " ".join(text.split())
    if not text:
        return []
    return [sentence.strip() for sentence in SENTENCE_PATTERN.split(text) if sentence.strip()]


def first_sentence(text: str) -> str:
    sentences = split_sentences(text)
    return sentences[0] if sentences else ""


def truncate_words(text: str, max_words: int) -> str:
    """Cut text to at most max_words words, marking the cut with an ellipsis."""
    words = text.split()
    if len(words) <= max_words:
        return text.strip()
    return " ".join(words[:max_words]).rstrip(",;:") + "..."


def strip_code_fences(content: str) -> str:
    """Remove a fence wrapping the whole document, leaving inner code blocks alone."""
    if not content:
        return content

    normalized = content.replace("\r\n", "\n").strip()

    block_match = FENCE_BLOCK_PATTERN.match(normalized)
    if block_match:
        return block_match.group(1).strip()

    if LEADING_FENCE_PATTERN.match(normalized) and TRAILING_FENCE_PATTERN.search(normalized):
        normalized = LEADING_FENCE_PATTERN.sub("", normalized, count=1)
        normalized = TRAILING_FENCE_PATTERN.sub("", normalized).strip()

    return normalized


def strip_conversational_opening(content: str) -> str:
    """Drop leading chatter such as "Okay, here's the summary you requested"."""
    lines = content.replace("\r\n", "\n").lstrip().split("\n")

    def is_chatter(line: str) -> bool:
        stripped = line.strip()
        if not stripped:
            return True
        if stripped.startswith(("#", "*", "-", "|")):
            return False
        if CONVERSATIONAL_LEAD.match(stripped):
            return True
        if STRUCTURAL_LEAD.match(stripped) and SUMMARY_KEYWORDS.search(stripped):
            return True
        return "requested" in stripped.lower()

    while lines and is_chatter(lines[0]):
        lines.pop(0)

    return "\n".join(lines).lstrip()


def enforce_required_prefix(content: str, required_prefix: str) -> str:
    """Make sure a rendered note starts with its format's first line."""
    if not required_prefix or not content:
        return content

    index = content.find(required_prefix)
    if index == 0:
        return content
    if index > 0:
        return content[index:]
    return f"{required_prefix}\n{content}"


def sanitize_note(content: str, required_prefix: str = "") -> str:
    """Normalize raw backend note text into clean markdown."""
    cleaned = strip_code_fences(content or "")
    cleaned = strip_conversational_opening(cleaned)
    if not cleaned.strip():
        return ""
    return enforce_required_prefix(cleaned, required_prefix).strip()
