"""Checks that a citation points at something present in the answering context."""
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from ..core.exceptions import CitationGroundingViolation
from ..models.chat import Citation, CitationType
from ..models.transcript import TIME_EPSILON
from ..utils.timestamps import parse_timestamp


@dataclass(frozen=True)
class GroundingContext:
    """
    What an answer may cite.

    ``source_text`` is the transcript, or the note text in notes-only mode.
    ``total_duration`` is None when there is no timeline to cite.
    """
    source_text: str
    total_duration: Optional[float] = None
    concept_names: FrozenSet[str] = field(default_factory=frozenset)


def grounding_problem(citation: Citation, context: GroundingContext) -> Optional[str]:
    """Reason the citation is not grounded, or None when it is."""
    if citation.type == CitationType.TIMESTAMP:
        if context.total_duration is None:
            return "no timeline available"
        seconds = parse_timestamp(citation.value)
        if seconds is None:
            return "not a timestamp"
        if seconds > context.total_duration + TIME_EPSILON:
            return f"after the end of the video ({context.total_duration:.0f}s)"
        return None

    if citation.type == CitationType.CONCEPT:
        if citation.value not in context.concept_names:
            return "unknown concept"
        return None

    if not citation.value.strip():
        return "empty excerpt"
    if citation.value not in context.source_text:
        return "excerpt not found in source text"
    return None


def is_grounded(citation: Citation, context: GroundingContext) -> bool:
    return grounding_problem(citation, context) is None


def assert_grounded(citations: Iterable[Citation], context: GroundingContext) -> None:
    for citation in citations:
        problem = grounding_problem(citation, context)
        if problem:
            raise CitationGroundingViolation(citation.type.value, citation.value, problem)
