"""Parsers that turn backend text into typed results."""

from .backend_schemas import (
    MalformedOutput,
    ParsedChapterSet,
    ParsedConceptSet,
    ParsedFrameSet,
    ParsedRelationshipSet,
    parse_chapter_set,
    parse_concept_candidates,
    parse_frame_descriptions,
    parse_relationships,
)

__all__ = [
    'MalformedOutput',
    'ParsedChapterSet',
    'ParsedConceptSet',
    'ParsedFrameSet',
    'ParsedRelationshipSet',
    'parse_chapter_set',
    'parse_concept_candidates',
    'parse_frame_descriptions',
    'parse_relationships',
]
