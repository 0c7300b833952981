"""Builds the concept map: concepts, typed relationships and prerequisite levels."""
import re
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..config.schemas import MalformedOutput, parse_concept_candidates, parse_relationships
from ..config.schemas.backend_schemas import ParsedConceptCandidate
from ..config.templates import get_template_engine
from ..core.exceptions import BackendError, ConceptGraphIntegrityError
from ..models.concepts import (
    Concept, ConceptDifficulty, ConceptImportance, ConceptMap,
    ConceptRelationship, RelationshipType
)
from ..models.structure import ChapterImportance, ContentStructure
from ..models.visual import VisualAnalysis
from ..utils.logging import CorrelatedLogger
from ..utils.text import contains_term, fold_term, fold_text, truncate_words

MAX_CONCEPTS = 12
MAX_LOCAL_CONCEPTS = 8
TRANSCRIPT_PROMPT_WORDS = 3000

CORE_THRESHOLD = 0.6
SUPPORTING_THRESHOLD = 0.25

CHAPTER_WEIGHTS = {
    ChapterImportance.HIGH: 1.0,
    ChapterImportance.MEDIUM: 0.6,
    ChapterImportance.LOW: 0.3,
}

BASIC_MARKERS = {
    fold_term(word) for word in (
        "basic", "basics", "simple", "introduction", "beginner", "fundamental", "easy",
        "overview", "everyday", "intuition", "example",
    )
}
ADVANCED_MARKERS = {
    fold_term(word) for word in (
        "advanced", "complex", "optimization", "theorem", "derivative", "rigorous", "asymptotic",
        "tradeoff", "proof", "architecture", "formal", "edge case", "internals", "nuanced",
    )
}

STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "can", "do", "for", "from", "get", "go",
    "going", "have", "he", "her", "here", "his", "how", "i", "if", "in", "into", "is", "it", "its",
    "just", "know", "let", "like", "lot", "me", "more", "my", "not", "now", "of", "okay", "on", "one",
    "or", "our", "out", "really", "right", "say", "see", "she", "so", "some", "that", "the", "their",
    "them", "then", "there", "these", "they", "thing", "things", "think", "this", "those", "to", "up",
    "us", "very", "want", "was", "way", "we", "well", "what", "when", "where", "which", "who", "why",
    "will", "with", "would", "you", "your", "also", "about", "because", "been", "being", "could",
    "did", "does", "each", "first", "had", "has", "make", "need", "other", "should", "than", "time",
    "two", "use", "used", "using", "yeah", "gonna", "kind", "actually", "basically", "video", "today",
    "look", "next", "talk", "all", "any", "over", "only", "same", "such", "take", "much", "many",
}

TimedText = Tuple[float, str]


class ConceptExtractor:
    """
    Extracts concepts from timed text and relates them.

    Relationship endpoints are always restricted to the extracted concept set;
    anything else coming back from the backend is dropped with a warning.
    Prerequisite cycles are broken by removing the weakest edge of each cycle.
    """

    def __init__(self, backend):
        self.backend = backend
        self.logger = CorrelatedLogger(__name__)

    async def extract(
        self,
        units: Sequence[TimedText],
        structure: ContentStructure,
        visual: VisualAnalysis,
        title: str = "",
        request_id: Optional[str] = None
    ) -> Tuple[ConceptMap, int]:
        """Return the concept map and how many backend steps succeeded (0-2)."""
        if request_id:
            self.logger.request_id = request_id

        backend_steps = 0
        folded_units = [(time, fold_text(text)) for time, text in units]

        candidates = await self._backend_candidates(units, structure, title)
        if candidates is not None:
            backend_steps += 1
        grounded = self._ground_candidates(self._fold_duplicates(candidates or []), folded_units)
        if not grounded:
            if candidates:
                self.logger.warning("No backend concept is mentioned in the video, using local extraction")
            grounded = self._ground_candidates(self._fold_duplicates(self.local_candidates(units)), folded_units)

        warnings: List[str] = []
        concepts = self._build_concepts(grounded, folded_units, structure, visual)
        names = [concept.name for concept in concepts]

        relationships = None
        if len(concepts) >= 2:
            relationships = await self._backend_relationships(concepts, warnings)
        if relationships is None:
            relationships = self.cooccurrence_relationships(concepts)
        else:
            backend_steps += 1

        relationships, levels = self.resolve_hierarchy(names, relationships, warnings)

        related: Dict[str, Set[str]] = defaultdict(set)
        for relationship in relationships:
            related[relationship.source].add(relationship.target)
            related[relationship.target].add(relationship.source)
        concepts = [
            concept.model_copy(update={"related_concepts": sorted(related.get(concept.name, set()))})
            for concept in concepts
        ]

        concept_map = ConceptMap(
            concepts=concepts,
            relationships=relationships,
            hierarchy_levels=levels,
            structural_warnings=warnings
        )
        self.logger.info(
            f"Extracted {len(concepts)} concepts, {len(relationships)} relationships, "
            f"{len(levels)} hierarchy levels, {len(warnings)} warnings"
        )
        return concept_map, backend_steps

    async def _backend_candidates(
        self,
        units: Sequence[TimedText],
        structure: ContentStructure,
        title: str
    ) -> Optional[List[ParsedConceptCandidate]]:
        prompt = get_template_engine().render_prompt(
            "concept_extraction",
            title=title or "Untitled video",
            max_concepts=MAX_CONCEPTS,
            chapters=[chapter.title for chapter in structure.chapters],
            transcript=truncate_words(" ".join(text for _, text in units), TRANSCRIPT_PROMPT_WORDS)
        )
        try:
            raw = await self.backend.generate(prompt, mode="json", operation="concept_extraction")
        except BackendError as e:
            self.logger.warning(f"Concept extraction unavailable ({e.error_code}), using local extraction")
            return None

        parsed = parse_concept_candidates(raw)
        if isinstance(parsed, MalformedOutput):
            return None
        return parsed.concepts[:MAX_CONCEPTS]

    def local_candidates(self, units: Sequence[TimedText]) -> List[ParsedConceptCandidate]:
        """Recurring content words and word pairs, preferring capitalized terms."""
        counts: Counter = Counter()
        surface: Dict[str, str] = {}

        for _time, text in units:
            words = re.findall(r"[A-Za-z][A-Za-z0-9'-]*", text)
            for index, word in enumerate(words):
                lower = word.lower()
                if lower in STOPWORDS or len(lower) < 4:
                    continue
                key = fold_term(lower)
                counts[key] += 2 if word[0].isupper() and index > 0 else 1
                surface.setdefault(key, word if word[0].isupper() and index > 0 else lower)

                if index + 1 < len(words):
                    nxt = words[index + 1]
                    if nxt.lower() not in STOPWORDS and len(nxt) >= 3:
                        pair = f"{word} {nxt}"
                        pair_key = fold_term(pair)
                        counts[pair_key] += 1.5
                        surface.setdefault(pair_key, pair if word[0].isupper() else pair.lower())

        picked: List[str] = []
        for key, score in counts.most_common():
            if score < 2 or len(picked) >= MAX_LOCAL_CONCEPTS:
                continue
            # Skip single words already covered by a picked pair and vice versa
            if any(key in other.split() or other in key.split() for other in picked):
                continue
            picked.append(key)

        return [ParsedConceptCandidate(name=surface[key]) for key in picked]

    @staticmethod
    def _fold_duplicates(candidates: Sequence[ParsedConceptCandidate]) -> List[ParsedConceptCandidate]:
        """Merge candidates whose names or aliases fold to the same key."""
        merged: List[ParsedConceptCandidate] = []
        keys: List[Set[str]] = []

        for candidate in candidates:
            candidate_keys = {fold_term(term) for term in [candidate.name, *candidate.aliases]} - {""}
            if not candidate_keys:
                continue
            for index, existing_keys in enumerate(keys):
                if existing_keys & candidate_keys:
                    existing = merged[index]
                    aliases = list(existing.aliases)
                    for term in [candidate.name, *candidate.aliases]:
                        if fold_term(term) != fold_term(existing.name) and term not in aliases:
                            aliases.append(term)
                    merged[index] = existing.model_copy(update={
                        "aliases": aliases,
                        "definition": existing.definition or candidate.definition,
                        "difficulty": existing.difficulty or candidate.difficulty,
                    })
                    existing_keys |= candidate_keys
                    break
            else:
                merged.append(candidate)
                keys.append(set(candidate_keys))
        return merged

    @staticmethod
    def _mentions(keys: Sequence[str], folded_units: Sequence[Tuple[float, str]]) -> List[float]:
        return [time for time, folded in folded_units if any(contains_term(folded, key) for key in keys)]

    def _ground_candidates(
        self,
        candidates: Sequence[ParsedConceptCandidate],
        folded_units: Sequence[Tuple[float, str]]
    ) -> List[Tuple[ParsedConceptCandidate, List[float]]]:
        grounded = []
        for candidate in candidates:
            keys = [fold_term(term) for term in [candidate.name, *candidate.aliases]]
            mentions = self._mentions([key for key in keys if key], folded_units)
            if mentions:
                grounded.append((candidate, mentions))
            else:
                self.logger.debug(f"Dropping concept never mentioned in the video: {candidate.name}")
        return grounded

    def _build_concepts(
        self,
        grounded: Sequence[Tuple[ParsedConceptCandidate, List[float]]],
        folded_units: Sequence[Tuple[float, str]],
        structure: ContentStructure,
        visual: VisualAnalysis
    ) -> List[Concept]:
        scores = []
        for _candidate, mentions in grounded:
            score = 0.0
            for time in mentions:
                chapter = structure.chapter_at(time)
                score += CHAPTER_WEIGHTS[chapter.importance] if chapter else CHAPTER_WEIGHTS[ChapterImportance.MEDIUM]
            scores.append(score)
        top_score = max(scores) if scores else 1.0

        concepts = []
        for (candidate, mentions), score in zip(grounded, scores):
            keys = [fold_term(term) for term in [candidate.name, *candidate.aliases] if fold_term(term)]
            ratio = score / top_score if top_score else 0.0
            if ratio >= CORE_THRESHOLD:
                importance = ConceptImportance.CORE
            elif ratio >= SUPPORTING_THRESHOLD:
                importance = ConceptImportance.SUPPORTING
            else:
                importance = ConceptImportance.PERIPHERAL

            visual_aids = [
                frame.timestamp for frame in visual.key_frames
                if any(
                    contains_term(fold_text(" ".join([frame.description, frame.extracted_text or "", *frame.elements])), key)
                    for key in keys
                )
            ]

            aliases = [alias for alias in candidate.aliases if fold_term(alias) != fold_term(candidate.name)]
            concepts.append(Concept(
                name=candidate.name,
                definition=candidate.definition,
                aliases=aliases,
                timestamps=mentions,
                importance=importance,
                difficulty=self.difficulty_for(mentions, folded_units, candidate.difficulty),
                visual_aids=visual_aids or None
            ))
        return concepts

    @staticmethod
    def difficulty_for(
        mentions: Sequence[float],
        folded_units: Sequence[Tuple[float, str]],
        suggested: Optional[ConceptDifficulty] = None
    ) -> ConceptDifficulty:
        """Compare basic and advanced vocabulary in the passages that mention the concept."""
        mention_times = set(mentions)
        basic = advanced = 0
        for time, folded in folded_units:
            if time not in mention_times:
                continue
            basic += sum(1 for marker in BASIC_MARKERS if contains_term(folded, marker))
            advanced += sum(1 for marker in ADVANCED_MARKERS if contains_term(folded, marker))

        if advanced > basic:
            return ConceptDifficulty.ADVANCED
        if basic > advanced:
            return ConceptDifficulty.BASIC
        return suggested or ConceptDifficulty.INTERMEDIATE

    async def _backend_relationships(
        self,
        concepts: Sequence[Concept],
        warnings: List[str]
    ) -> Optional[List[ConceptRelationship]]:
        prompt = get_template_engine().render_prompt(
            "concept_relationships",
            concepts=[{"name": c.name, "definition": c.definition} for c in concepts]
        )
        try:
            raw = await self.backend.generate(prompt, mode="json", operation="concept_relationships")
        except BackendError as e:
            self.logger.warning(f"Relationship extraction unavailable ({e.error_code}), using co-occurrence")
            return None

        parsed = parse_relationships(raw)
        if isinstance(parsed, MalformedOutput):
            return None

        lookup = ConceptMap(concepts=list(concepts))
        edges: Dict[Tuple[str, str, RelationshipType], float] = {}
        for relationship in parsed.relationships:
            source = lookup.find(relationship.source)
            target = lookup.find(relationship.target)
            if source is None or target is None:
                error = ConceptGraphIntegrityError(
                    f"dropped relationship {relationship.source!r} -> {relationship.target!r} with unknown endpoint",
                    {"from": relationship.source, "to": relationship.target}
                )
                self.logger.warning(error.message)
                warnings.append(error.message)
                continue
            if source.name == target.name:
                continue
            key = (source.name, target.name, relationship.type)
            edges[key] = max(edges.get(key, 0.0), relationship.strength)

        return [
            ConceptRelationship(source=source, target=target, type=kind, strength=strength)
            for (source, target, kind), strength in edges.items()
        ]

    @staticmethod
    def cooccurrence_relationships(concepts: Sequence[Concept]) -> List[ConceptRelationship]:
        """Local fallback: concepts mentioned at the same moments are related."""
        relationships = []
        for index, first in enumerate(concepts):
            for second in concepts[index + 1:]:
                shared = len(set(first.timestamps) & set(second.timestamps))
                if shared >= 2:
                    strength = shared / min(len(first.timestamps), len(second.timestamps))
                    relationships.append(ConceptRelationship(
                        source=first.name, target=second.name,
                        type=RelationshipType.RELATED, strength=min(strength, 1.0)
                    ))
        return relationships

    def resolve_hierarchy(
        self,
        names: Sequence[str],
        relationships: Sequence[ConceptRelationship],
        warnings: List[str]
    ) -> Tuple[List[ConceptRelationship], List[List[str]]]:
        """Layer concepts by prerequisite depth, dropping the weakest edge of every cycle."""
        relationships = list(relationships)

        while True:
            levels, remaining = self._topological_levels(names, relationships)
            if not remaining:
                return relationships, levels

            cycle = self._find_cycle(remaining, relationships)
            weakest = min(cycle, key=lambda r: r.strength)
            relationships.remove(weakest)
            error = ConceptGraphIntegrityError(
                f"broke prerequisite cycle by dropping {weakest.source!r} -> {weakest.target!r} "
                f"(strength {weakest.strength:.2f})",
                {"cycle": [r.source for r in cycle]}
            )
            self.logger.warning(error.message)
            warnings.append(error.message)

    @staticmethod
    def _topological_levels(
        names: Sequence[str],
        relationships: Sequence[ConceptRelationship]
    ) -> Tuple[List[List[str]], Set[str]]:
        """Kahn's algorithm in layers; returns the levels and the names stuck in cycles."""
        indegree = {name: 0 for name in names}
        successors: Dict[str, List[str]] = defaultdict(list)
        for relationship in relationships:
            if relationship.type == RelationshipType.PREREQUISITE:
                successors[relationship.source].append(relationship.target)
                indegree[relationship.target] += 1

        order = {name: index for index, name in enumerate(names)}
        levels = []
        current = sorted((name for name, degree in indegree.items() if degree == 0), key=order.get)
        placed: Set[str] = set()
        while current:
            levels.append(current)
            placed.update(current)
            following = []
            for name in current:
                for successor in successors[name]:
                    indegree[successor] -= 1
                    if indegree[successor] == 0:
                        following.append(successor)
            current = sorted(set(following), key=order.get)

        return levels, set(names) - placed

    @staticmethod
    def _find_cycle(
        remaining: Set[str],
        relationships: Sequence[ConceptRelationship]
    ) -> List[ConceptRelationship]:
        """Walk prerequisite edges backwards inside the unplaced nodes until a node repeats."""
        incoming: Dict[str, ConceptRelationship] = {}
        for relationship in relationships:
            if (
                relationship.type == RelationshipType.PREREQUISITE
                and relationship.source in remaining and relationship.target in remaining
            ):
                incoming.setdefault(relationship.target, relationship)

        node = sorted(remaining)[0]
        path: List[str] = []
        while node not in path:
            path.append(node)
            node = incoming[node].source

        cycle_nodes = path[path.index(node):]
        return [incoming[name] for name in cycle_nodes]
