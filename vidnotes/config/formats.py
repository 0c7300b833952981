"""
Note format registry.

Each format is a ``FormatSpec`` registered by id. A format knows how to build
its standard-tier prompt from a finished analysis and how to clean the
backend's answer; it never needs the video itself.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import UnknownFormatError
from ..models.analysis import EnhancedVideoAnalysis
from ..models.concepts import ConceptImportance
from ..utils.text import sanitize_note, truncate_words
from ..utils.timestamps import format_timestamp
from .templates import PromptTemplateEngine, get_template_engine

MAX_DIGEST_TRANSCRIPT_WORDS = 3000
MAX_DIGEST_CONCEPTS = 15


def _no_extra_vars(analysis: EnhancedVideoAnalysis) -> Dict[str, Any]:
    return {}


def basic_summary_guidance(analysis: EnhancedVideoAnalysis) -> Dict[str, Any]:
    """Depth guidance scaled to the video's length."""
    duration = analysis.total_duration

    if duration < 300:
        return {
            "content_guidance": "Extract the core concepts concisely",
            "detail_level": "Focus on essential information only",
            "duration_context": "short video",
        }
    if duration < 900:
        return {
            "content_guidance": "Identify all major topics and themes presented",
            "detail_level": "Include supporting details for each major point",
            "duration_context": "medium-length video",
        }
    if duration < 1800:
        return {
            "content_guidance": "Provide comprehensive coverage of all significant concepts, themes, and subtopics",
            "detail_level": "Include examples, context, and detailed explanations",
            "duration_context": "longer video",
        }
    return {
        "content_guidance": "Cover all major sections, concepts, and their interconnections",
        "detail_level": "Include examples, context, detailed explanations, and relationships between concepts",
        "duration_context": "extended video",
    }


def build_analysis_digest(analysis: EnhancedVideoAnalysis) -> str:
    """Compact text rendering of the artifact used as context by every format prompt."""
    lines = [
        f"TITLE: {analysis.title or analysis.video_id}",
        f"DURATION: {format_timestamp(analysis.total_duration)}",
        f"PRIMARY SUBJECT: {analysis.primary_subject or 'unknown'}",
        f"DIFFICULTY: {analysis.difficulty_level.value}",
    ]
    if analysis.content_tags:
        lines.append(f"TAGS: {', '.join(analysis.content_tags)}")

    structure = analysis.content_structure
    if structure.chapters:
        lines.append("")
        lines.append("CHAPTERS:")
        for chapter in structure.chapters:
            lines.append(
                f"- [{format_timestamp(chapter.start_time)}-{format_timestamp(chapter.end_time)}] "
                f"{chapter.title}: {chapter.summary}"
            )
            for point in chapter.key_points:
                lines.append(f"    * {point}")

    concepts = sorted(
        analysis.concept_map.concepts,
        key=lambda c: (c.importance != ConceptImportance.CORE, c.importance != ConceptImportance.SUPPORTING)
    )[:MAX_DIGEST_CONCEPTS]
    if concepts:
        lines.append("")
        lines.append("CONCEPTS:")
        for concept in concepts:
            first_mention = f" (first mentioned {format_timestamp(concept.timestamps[0])})" if concept.timestamps else ""
            lines.append(f"- {concept.name} [{concept.importance.value}]: {concept.definition}{first_mention}")

    if analysis.key_timestamps:
        lines.append("")
        lines.append("KEY MOMENTS:")
        for moment in analysis.key_timestamps:
            lines.append(f"- {format_timestamp(moment.time)} {moment.title}")

    if analysis.full_transcript.segments:
        lines.append("")
        lines.append("TRANSCRIPT:")
        lines.append(truncate_words(analysis.full_transcript.full_text, MAX_DIGEST_TRANSCRIPT_WORDS))
    elif analysis.visual_analysis.key_frames:
        lines.append("")
        lines.append("ON-SCREEN CONTENT (no transcript available):")
        for frame in analysis.visual_analysis.key_frames:
            text = f" | text: {frame.extracted_text}" if frame.has_text else ""
            lines.append(f"- {format_timestamp(frame.timestamp)} {frame.description}{text}")

    return "\n".join(lines)


@dataclass(frozen=True)
class FormatSpec:
    """A named rendering strategy producing note text from an analysis."""
    id: str
    name: str
    description: str
    category: str
    is_premium: bool
    required_prefix: str
    prompt_name: str
    extra_vars: Callable[[EnhancedVideoAnalysis], Dict[str, Any]] = field(default=_no_extra_vars, compare=False)

    def render_standard_prompt(
        self,
        analysis: EnhancedVideoAnalysis,
        engine: Optional[PromptTemplateEngine] = None
    ) -> str:
        engine = engine or get_template_engine()
        return engine.render_prompt(
            self.prompt_name,
            digest=build_analysis_digest(analysis),
            **self.extra_vars(analysis)
        )

    def sanitize(self, content: str) -> str:
        return sanitize_note(content, self.required_prefix)


FORMAT_REGISTRY: Dict[str, FormatSpec] = {}


def register_format(spec: FormatSpec) -> FormatSpec:
    FORMAT_REGISTRY[spec.id] = spec
    return spec


register_format(FormatSpec(
    id="basic-summary",
    name="Basic Summary",
    description="Content extraction that adapts depth to the video's length",
    category="summary",
    is_premium=False,
    required_prefix="**Video Summary**",
    prompt_name="basic_summary",
    extra_vars=basic_summary_guidance,
))

register_format(FormatSpec(
    id="study-notes",
    name="Study Notes",
    description="Structured learning content with sections for notes, questions, and review",
    category="educational",
    is_premium=False,
    required_prefix="## Video Overview",
    prompt_name="study_notes",
))

register_format(FormatSpec(
    id="presentation-slides",
    name="Presentation Slides",
    description="Key points formatted as presentation slides with speaker notes",
    category="professional",
    is_premium=False,
    required_prefix="# Presentation Slides",
    prompt_name="presentation_slides",
))

register_format(FormatSpec(
    id="tutorial-guide",
    name="Tutorial Guide",
    description="Step-by-step instructions for learning or implementing concepts",
    category="educational",
    is_premium=True,
    required_prefix="# Tutorial Guide",
    prompt_name="tutorial_guide",
))

register_format(FormatSpec(
    id="research-paper",
    name="Research Paper Format",
    description="Academic-style paper with introduction, methodology, findings, and conclusions",
    category="professional",
    is_premium=True,
    required_prefix="# Research Paper",
    prompt_name="research_paper",
))


def get_format(format_id: str) -> FormatSpec:
    try:
        return FORMAT_REGISTRY[format_id]
    except KeyError:
        raise UnknownFormatError(format_id)


def list_formats(category: Optional[str] = None) -> List[FormatSpec]:
    return [spec for spec in FORMAT_REGISTRY.values() if category is None or spec.category == category]


def get_free_formats() -> List[FormatSpec]:
    return [spec for spec in FORMAT_REGISTRY.values() if not spec.is_premium]


def get_premium_formats() -> List[FormatSpec]:
    return [spec for spec in FORMAT_REGISTRY.values() if spec.is_premium]


def get_recommended_format(duration_seconds: float, category: Optional[str] = None) -> FormatSpec:
    """First format of a category, or basic-summary for short videos and study-notes otherwise."""
    if category:
        candidates = list_formats(category)
        if candidates:
            return candidates[0]
    if duration_seconds < 900:
        return FORMAT_REGISTRY["basic-summary"]
    return FORMAT_REGISTRY["study-notes"]
