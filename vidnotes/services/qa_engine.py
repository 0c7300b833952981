"""Answers questions about a processed video, with citations checked against the video's data."""
import re
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from ..config.templates import get_template_engine
from ..core.config import settings
from ..core.exceptions import ValidationError
from ..models.analysis import ChatbotVideoContext
from ..models.chat import ChatMessage, ChatResponse, Citation, CitationType
from ..utils.logging import CorrelatedLogger, MetricsLogger
from ..utils.text import contains_term, fold_term, fold_text, tokenize, truncate_words, word_count
from ..utils.timestamps import create_timestamp_url, find_timestamps, format_timestamp, parse_timestamp
from .grounding import GroundingContext, assert_grounded, is_grounded

CITATION_MARKER = re.compile(r"\[Citation:\s*([^\]]+?)\s*\]", re.IGNORECASE)
RELATED_MARKER = re.compile(r"\[RELATED_CONCEPTS:\s*([^\]]*)\]", re.IGNORECASE)
CLOCK_ONLY = re.compile(r"^(?:\d{1,2}:)?\d{1,2}:\d{2}$")

HISTORY_MESSAGE_CHARS = 100
NOTE_PREVIEW_CHARS = 200
MAX_PROMPT_SEGMENTS = 12
MAX_PROMPT_CONCEPTS = 20


def _normalize_quote(value: str) -> str:
    return value.strip().strip("\"'“”‘’").strip()


def find_literal(excerpt: str, source_text: str) -> Optional[str]:
    """Locate excerpt in source_text ignoring case and spacing; return the literal slice."""
    words = excerpt.split()
    if not words:
        return None
    pattern = re.compile(r"\s+".join(re.escape(word) for word in words), re.IGNORECASE)
    match = pattern.search(source_text)
    return match.group(0) if match else None


class QAEngine:
    """
    One question in, one grounded answer out.

    With an analysis the answer may cite timestamps, concepts and transcript
    quotes. In notes-only mode only quotes from the note itself can be cited.
    """

    def __init__(self, backend):
        self.backend = backend
        self.logger = CorrelatedLogger(__name__)
        self.metrics_logger = MetricsLogger()

    async def answer(
        self,
        question: str,
        context: Optional[ChatbotVideoContext] = None,
        history: Sequence[ChatMessage] = (),
        current_note: Optional[str] = None,
        current_format: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> ChatResponse:
        if request_id:
            self.logger.request_id = request_id
        start_time = datetime.now()

        recent = self.recent_history(history)
        if context is not None:
            mode = "full"
            note = current_note or context.current_note()
            prompt = self._build_full_prompt(question, context, recent, note, current_format)
            grounding = GroundingContext(
                source_text=context.analysis.full_transcript.full_text,
                total_duration=context.duration,
                concept_names=frozenset(context.analysis.concept_map.names)
            )
        elif current_note and current_note.strip():
            mode = "notes_only"
            prompt = self._build_notes_prompt(question, current_note, recent, current_format)
            grounding = GroundingContext(source_text=current_note)
        else:
            raise ValidationError("A processed video or the current note is required to answer questions")

        try:
            raw = await self.backend.generate(prompt, mode="text", operation=f"chat:{mode}")
        except Exception:
            self.metrics_logger.log_qa_metrics(request_id or "", mode, False, self._elapsed_ms(start_time))
            raise

        response_text, raw_citations, raw_related = self.parse_answer(raw)
        candidates = self._classify(raw_citations, context, grounding)
        if context is not None:
            candidates += [
                self._timestamp_citation(context, seconds) for seconds in find_timestamps(response_text)
            ]

        citations = []
        seen = set()
        for citation in candidates:
            key = (citation.type, citation.value)
            if key in seen or not is_grounded(citation, grounding):
                continue
            seen.add(key)
            citations.append(citation)
        dropped = len(candidates) - len(citations)
        if dropped:
            self.logger.info(f"Dropped {dropped} ungrounded or duplicate citations")

        assert_grounded(citations, grounding)

        related = self._related_concepts(raw_related, citations, context)

        self.metrics_logger.log_qa_metrics(
            request_id or "", mode, True, self._elapsed_ms(start_time),
            citations=len(citations), dropped_citations=dropped
        )
        return ChatResponse(
            success=True,
            response=response_text,
            related_concepts=related,
            citations=citations,
            notes_only=context is None
        )

    @staticmethod
    def recent_history(history: Sequence[ChatMessage]) -> List[ChatMessage]:
        """Last few messages, each cut short so the prompt stays small."""
        limited = list(history)[-settings.chat_history_limit:] if settings.chat_history_limit else []
        return [
            message.model_copy(update={"content": message.content[:HISTORY_MESSAGE_CHARS]})
            for message in limited
        ]

    @staticmethod
    def parse_answer(raw: str) -> Tuple[str, List[str], List[str]]:
        """Split backend text into the answer, raw citation values and raw related-concept names."""
        citations = [_normalize_quote(value) for value in CITATION_MARKER.findall(raw or "")]
        related: List[str] = []
        for group in RELATED_MARKER.findall(raw or ""):
            related.extend(name.strip() for name in group.split(",") if name.strip())

        text = RELATED_MARKER.sub("", raw or "")
        text = CITATION_MARKER.sub("", text)
        text = re.sub(r"[ \t]+([.,;:!?])", r"\1", text)
        text = re.sub(r"[ \t]{2,}", " ", text)
        return text.strip(), [value for value in citations if value], related

    def _classify(
        self,
        values: Sequence[str],
        context: Optional[ChatbotVideoContext],
        grounding: GroundingContext
    ) -> List[Citation]:
        citations = []
        for value in values:
            if CLOCK_ONLY.match(value):
                seconds = parse_timestamp(value)
                if context is not None and seconds is not None:
                    citations.append(self._timestamp_citation(context, seconds))
                continue

            if context is not None:
                concept = context.analysis.concept_map.find(value)
                if concept is not None:
                    citations.append(Citation(
                        type=CitationType.CONCEPT,
                        value=concept.name,
                        description=concept.definition or f"Concept discussed in {context.title or 'the video'}"
                    ))
                    continue

            literal = find_literal(value, grounding.source_text)
            if literal is not None:
                source = "Transcript" if context is not None else "Note"
                citations.append(Citation(
                    type=CitationType.TRANSCRIPT,
                    value=literal,
                    description=f"{source} excerpt"
                ))
            else:
                self.logger.debug(f"Citation not found in source text: {value[:60]}")
        return citations

    def _timestamp_citation(self, context: ChatbotVideoContext, seconds: float) -> Citation:
        video_url = context.analysis.video_url
        return Citation(
            type=CitationType.TIMESTAMP,
            value=format_timestamp(seconds),
            description=self._moment_description(context, seconds),
            url=create_timestamp_url(video_url, seconds) if video_url else None
        )

    @staticmethod
    def _moment_description(context: ChatbotVideoContext, seconds: float) -> str:
        segment = context.analysis.full_transcript.segment_at(seconds)
        if segment is not None:
            return f"At {format_timestamp(seconds)}: {truncate_words(segment.text, 15)}"
        chapter = context.analysis.content_structure.chapter_at(seconds)
        if chapter is not None:
            return f"At {format_timestamp(seconds)} in \"{chapter.title}\""
        return f"Moment at {format_timestamp(seconds)}"

    @staticmethod
    def _related_concepts(
        raw_related: Sequence[str],
        citations: Sequence[Citation],
        context: Optional[ChatbotVideoContext]
    ) -> List[str]:
        if context is None:
            return []
        concept_map = context.analysis.concept_map
        names: List[str] = []
        for value in raw_related:
            concept = concept_map.find(value)
            if concept is not None and concept.name not in names:
                names.append(concept.name)
        for citation in citations:
            if citation.type == CitationType.CONCEPT and citation.value not in names:
                names.append(citation.value)
        return names

    def _relevant_segments(self, question: str, context: ChatbotVideoContext) -> List[dict]:
        transcript = context.analysis.full_transcript
        if not transcript.segments:
            return [
                {"label": format_timestamp(frame.timestamp), "text": frame.extracted_text or frame.description}
                for frame in context.analysis.visual_analysis.key_frames[:MAX_PROMPT_SEGMENTS]
            ]

        asked_times = find_timestamps(question)
        terms = [fold_term(token) for token in tokenize(question) if len(token) > 3]

        def relevance(segment) -> float:
            folded = fold_text(segment.text)
            score = sum(1 for term in terms if contains_term(folded, term))
            if any(segment.start_time - 30 <= t <= segment.end_time + 30 for t in asked_times):
                score += 5
            if segment.is_important:
                score += 0.5
            return score

        ranked = sorted(transcript.segments, key=lambda s: -relevance(s))[:MAX_PROMPT_SEGMENTS]
        return [
            {"label": format_timestamp(s.start_time), "text": s.text}
            for s in sorted(ranked, key=lambda s: s.start_time)
        ]

    def _build_full_prompt(
        self,
        question: str,
        context: ChatbotVideoContext,
        history: Sequence[ChatMessage],
        note: Optional[str],
        current_format: Optional[str]
    ) -> str:
        analysis = context.analysis
        return get_template_engine().render_prompt(
            "chat_answer",
            title=analysis.title or analysis.video_id,
            duration_label=format_timestamp(context.duration),
            difficulty=analysis.difficulty_level.value,
            primary_subject=analysis.primary_subject or "unknown",
            content_tags=analysis.content_tags,
            has_slides=analysis.visual_analysis.has_slides,
            concepts=[
                {
                    "name": concept.name,
                    "definition": concept.definition,
                    "timestamps": [format_timestamp(t) for t in concept.timestamps[:5]],
                }
                for concept in analysis.concept_map.concepts[:MAX_PROMPT_CONCEPTS]
            ],
            key_timestamps=[
                {"label": format_timestamp(m.time), "title": m.title, "description": m.description}
                for m in analysis.key_timestamps
            ],
            segments=self._relevant_segments(question, context),
            formats=sorted(analysis.all_template_outputs),
            current_format=current_format or context.currently_viewing_format,
            current_note=note[:NOTE_PREVIEW_CHARS] if note else "",
            history=self._history_vars(history),
            question=question
        )

    def _build_notes_prompt(
        self,
        question: str,
        note: str,
        history: Sequence[ChatMessage],
        current_format: Optional[str]
    ) -> str:
        return get_template_engine().render_prompt(
            "chat_notes_only",
            current_format=current_format,
            word_count=word_count(note),
            note=note,
            history=self._history_vars(history),
            question=question
        )

    @staticmethod
    def _history_vars(history: Sequence[ChatMessage]) -> List[dict]:
        return [
            {"speaker": "User" if message.is_user else "Assistant", "content": message.content}
            for message in history
        ]

    @staticmethod
    def _elapsed_ms(start_time: datetime) -> int:
        return int((datetime.now() - start_time).total_seconds() * 1000)
