"""Renders note formats from a finished analysis, one backend call per format."""
import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..config.formats import FormatSpec, get_format
from ..core.config import settings
from ..core.exceptions import MalformedBackendOutputError, VideoNotesBaseException
from ..models.analysis import EnhancedVideoAnalysis, TemplateOutput, VerbosityLevels
from ..models.concepts import ConceptImportance
from ..utils.logging import CorrelatedLogger, MetricsLogger
from ..utils.text import first_sentence, split_sentences, truncate_words, word_count
from ..utils.timestamps import format_timestamp

HEADING = re.compile(r"^\s*(#{1,6}\s+\S.*|\*\*[^*]+\*\*:?\s*)$")
LIST_MARKER = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")

BRIEF_RATIO = 0.3
COMPREHENSIVE_MIN_RATIO = 1.5
COMPREHENSIVE_MAX_RATIO = 3.0
BRIEF_SENTENCE_WORDS = 25
MIN_BRIEF_SENTENCE_WORDS = 4


@dataclass
class RenderResult:
    outputs: Dict[str, TemplateOutput] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)


def _sections(content: str) -> List[Tuple[Optional[str], List[str]]]:
    """Split markdown into (heading, body lines) pairs; text before the first heading has no heading."""
    sections: List[Tuple[Optional[str], List[str]]] = [(None, [])]
    for line in content.splitlines():
        if HEADING.match(line):
            sections.append((line.strip(), []))
        elif line.strip():
            sections[-1][1].append(line.strip())
    return [(heading, body) for heading, body in sections if heading or body]


def derive_brief(standard: str) -> str:
    """
    Headings plus the first sentence of each section, aiming for about 30% of
    the standard length. Sentences are shortened until the target is met, and
    the result is always shorter than the standard text.
    """
    standard_words = word_count(standard)
    if standard_words == 0:
        return ""
    target = max(1, int(standard_words * BRIEF_RATIO))

    sections = _sections(standard)
    leads = []
    for heading, body in sections:
        text = " ".join(LIST_MARKER.sub("", line) for line in body)
        leads.append((heading, first_sentence(text)))

    sentence_words = BRIEF_SENTENCE_WORDS
    while True:
        lines = []
        for heading, lead in leads:
            if heading:
                lines.append(heading)
            if lead:
                lines.append(truncate_words(lead, sentence_words))
        brief = "\n".join(lines)
        if word_count(brief) <= target or sentence_words <= MIN_BRIEF_SENTENCE_WORDS:
            break
        sentence_words -= 3

    if len(brief) >= len(standard) or word_count(brief) > max(target, 2 * len(sections)):
        brief = truncate_words(" ".join(standard.split()), target)
    if len(brief) >= len(standard):
        brief = " ".join(standard.split()[:max(1, target - 1)])
    return brief


class VerbosityDeriver:
    """Local, deterministic derivation of the brief and comprehensive tiers."""

    def brief(self, standard: str) -> str:
        return derive_brief(standard)

    def comprehensive(self, standard: str, analysis: EnhancedVideoAnalysis) -> str:
        """Standard text plus per-concept elaboration, capped at three times the standard length."""
        standard_words = word_count(standard)
        # One word is taken by the separator line
        budget = int(standard_words * (COMPREHENSIVE_MAX_RATIO - 1)) - 1
        floor = int(standard_words * (COMPREHENSIVE_MIN_RATIO - 1))

        appendix: List[str] = []
        used = 0

        def add(line: str) -> bool:
            nonlocal used
            words = word_count(line)
            if used + words > budget:
                return False
            appendix.append(line)
            used += words
            return True

        for block in self._elaboration_blocks(analysis):
            for line in block:
                if not add(line):
                    break

        if used < floor:
            for line in self._transcript_excerpts(analysis):
                if used >= floor or not add(line):
                    break

        if not appendix:
            return standard
        return standard.rstrip() + "\n\n---\n\n" + "\n".join(appendix)

    def _elaboration_blocks(self, analysis: EnhancedVideoAnalysis) -> Iterable[List[str]]:
        concept_map = analysis.concept_map
        concepts = sorted(
            concept_map.concepts,
            key=lambda c: (c.importance != ConceptImportance.CORE, c.importance != ConceptImportance.SUPPORTING)
        )
        if concepts:
            block = ["## Concept Deep Dive"]
            for concept in concepts:
                block.append(f"### {concept.name}")
                if concept.definition:
                    block.append(concept.definition)
                details = [f"Difficulty: {concept.difficulty.value}", f"Importance: {concept.importance.value}"]
                if concept.timestamps:
                    details.append("Discussed at " + ", ".join(format_timestamp(t) for t in concept.timestamps[:5]))
                block.append("- " + "; ".join(details))
                if concept.related_concepts:
                    block.append("- Related: " + ", ".join(concept.related_concepts))
            yield block

        if analysis.key_timestamps:
            yield ["## Key Moments"] + [
                f"- {format_timestamp(moment.time)} {moment.title}"
                + (f": {moment.description}" if moment.description else "")
                for moment in analysis.key_timestamps
            ]

        if analysis.suggested_questions:
            yield ["## Review Questions"] + [
                f"{index}. {question.question}"
                for index, question in enumerate(analysis.suggested_questions, start=1)
            ]

        chapters = analysis.content_structure.chapters
        if chapters:
            block = ["## Chapter Walkthrough"]
            for chapter in chapters:
                block.append(
                    f"### {chapter.title} ({format_timestamp(chapter.start_time)}-{format_timestamp(chapter.end_time)})"
                )
                if chapter.summary:
                    block.append(chapter.summary)
                block.extend(f"- {point}" for point in chapter.key_points)
            yield block

    @staticmethod
    def _transcript_excerpts(analysis: EnhancedVideoAnalysis) -> Iterable[str]:
        segments = analysis.full_transcript.segments
        if not segments:
            return
        yield "## Transcript Excerpts"
        important = [s for s in segments if s.is_important] or segments
        for segment in important:
            for sentence in split_sentences(segment.text)[:2]:
                yield f"> [{format_timestamp(segment.start_time)}] {sentence}"


class FormatRenderer:
    """
    Fans out one standard-tier backend call per requested format under a
    bounded concurrency limit. A failing format is recorded and never stops
    the others.
    """

    def __init__(self, backend, deriver: Optional[VerbosityDeriver] = None):
        self.backend = backend
        self.deriver = deriver or VerbosityDeriver()
        self.logger = CorrelatedLogger(__name__)
        self.metrics_logger = MetricsLogger()

    async def render_all(
        self,
        analysis: EnhancedVideoAnalysis,
        format_ids: List[str],
        request_id: Optional[str] = None
    ) -> RenderResult:
        if request_id:
            self.logger.request_id = request_id

        semaphore = asyncio.Semaphore(settings.max_concurrent_generations)

        async def render_one(format_id: str) -> TemplateOutput:
            async with semaphore:
                return await self.render_format(analysis, format_id, request_id)

        results = await asyncio.gather(*(render_one(fid) for fid in format_ids), return_exceptions=True)

        result = RenderResult()
        for format_id, outcome in zip(format_ids, results):
            if isinstance(outcome, VideoNotesBaseException):
                result.failed[format_id] = outcome.error_code
            elif isinstance(outcome, Exception):
                self.logger.error(f"Unexpected error rendering {format_id}: {outcome!r}")
                result.failed[format_id] = "RENDER_FAILED"
            else:
                result.outputs[format_id] = outcome

        self.logger.info(
            f"Rendered {len(result.outputs)}/{len(format_ids)} formats"
            + (f", failed: {', '.join(sorted(result.failed))}" if result.failed else "")
        )
        return result

    async def render_format(
        self,
        analysis: EnhancedVideoAnalysis,
        format_id: str,
        request_id: Optional[str] = None
    ) -> TemplateOutput:
        start_time = datetime.now()
        try:
            spec = get_format(format_id)
            standard = await self._render_standard(spec, analysis)
            output = TemplateOutput(
                content=standard,
                verbosity_levels=VerbosityLevels(
                    brief=self.deriver.brief(standard),
                    standard=standard,
                    comprehensive=self.deriver.comprehensive(standard, analysis)
                )
            )
        except VideoNotesBaseException as e:
            self.logger.warning(f"Format {format_id} failed: {e.error_code} {e.message}")
            self.metrics_logger.log_render_metrics(
                request_id or "", format_id, False, self._elapsed_ms(start_time), error_code=e.error_code
            )
            raise

        self.metrics_logger.log_render_metrics(
            request_id or "", format_id, True, self._elapsed_ms(start_time), standard_chars=len(standard)
        )
        return output

    async def _render_standard(self, spec: FormatSpec, analysis: EnhancedVideoAnalysis) -> str:
        prompt = spec.render_standard_prompt(analysis)
        raw = await self.backend.generate(prompt, mode="text", operation=f"render:{spec.id}")
        content = spec.sanitize(raw)
        if not content or content.strip() == spec.required_prefix:
            raise MalformedBackendOutputError(f"render:{spec.id}", "empty note after sanitizing", raw)
        return content

    @staticmethod
    def _elapsed_ms(start_time: datetime) -> int:
        return int((datetime.now() - start_time).total_seconds() * 1000)
