"""
mnemos.retrieval.base — Shared contract and ranking pipeline for strategies.

A strategy scores records against a :class:`RetrievalContext`; the
shared :meth:`RetrievalStrategy.filter_and_sort` then drops results
below the relevance/importance floors, sorts by score, optionally
re-ranks for diversity and truncates to the limit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from mnemos.core.types import MemoryKind, ensure_utc
from mnemos.models.record import MemoryRecord
from mnemos.storage.base import MemoryStore, SortKey


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class ConversationContext:
    recent_messages: List[str] = field(default_factory=list)
    current_topic: Optional[str] = None
    participants: List[str] = field(default_factory=list)


@dataclass
class TemporalContext:
    current_time: Optional[datetime] = None
    time_range: Optional[Tuple[datetime, datetime]] = None

    def __post_init__(self) -> None:
        if self.current_time is not None:
            self.current_time = ensure_utc(self.current_time)
        if self.time_range is not None:
            start, end = self.time_range
            self.time_range = (ensure_utc(start), ensure_utc(end))


@dataclass
class EmotionalContext:
    current_emotion: Optional[str] = None
    emotional_intensity: Optional[float] = None


@dataclass
class QueryParameters:
    """Direct filter passed through to storage by the query strategy."""

    kind: Optional[MemoryKind] = None
    tags: List[str] = field(default_factory=list)
    entities: List[str] = field(default_factory=list)
    date_range: Optional[Tuple[datetime, datetime]] = None
    min_importance: Optional[float] = None
    min_confidence: Optional[float] = None
    consolidated_only: bool = False
    sort_by: Optional[SortKey] = None
    sort_direction: str = "desc"
    text_search: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind is not None:
            self.kind = MemoryKind(self.kind)
        if self.sort_by is not None:
            self.sort_by = SortKey(self.sort_by)
        if self.date_range is not None:
            start, end = self.date_range
            self.date_range = (ensure_utc(start), ensure_utc(end))


@dataclass
class RetrievalContext:
    """What the agent is currently doing; every field is optional."""

    conversation: Optional[ConversationContext] = None
    temporal: Optional[TemporalContext] = None
    entities: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    emotional: Optional[EmotionalContext] = None
    intent: Optional[str] = None
    seed_memory_ids: List[str] = field(default_factory=list)
    query: Optional[QueryParameters] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievalOptions:
    limit: Optional[int] = None
    min_relevance: Optional[float] = None
    min_importance: Optional[float] = None
    consolidated_only: bool = False
    diversity_factor: float = 0.0


@dataclass
class RetrievedMemory:
    record: MemoryRecord
    relevance_score: float
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record.id,
            "kind": self.record.kind.value,
            "relevance_score": round(self.relevance_score, 4),
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Strategy base
# ---------------------------------------------------------------------------


class RetrievalStrategy:
    """Base class for retrieval strategies."""

    name = "base"

    def retrieve(
        self,
        context: RetrievalContext,
        options: RetrievalOptions,
        store: MemoryStore,
    ) -> List[RetrievedMemory]:
        raise NotImplementedError

    def calculate_relevance(self, record: MemoryRecord, context: RetrievalContext) -> float:
        raise NotImplementedError

    # -- shared pipeline ----------------------------------------------------

    def filter_and_sort(
        self, results: List[RetrievedMemory], options: RetrievalOptions
    ) -> List[RetrievedMemory]:
        kept = list(results)
        if options.min_relevance is not None:
            kept = [r for r in kept if r.relevance_score >= options.min_relevance]
        if options.min_importance is not None:
            kept = [r for r in kept if r.record.effective_importance >= options.min_importance]
        if options.consolidated_only:
            kept = [r for r in kept if r.record.is_consolidated]

        kept.sort(key=lambda r: r.relevance_score, reverse=True)

        if options.diversity_factor and options.diversity_factor > 0:
            kept = self.apply_diversity(kept, options.diversity_factor)
        if options.limit is not None:
            kept = kept[: options.limit]
        return kept

    def apply_diversity(
        self, ranked: List[RetrievedMemory], factor: float
    ) -> List[RetrievedMemory]:
        """Greedy re-rank that pushes near-duplicates of earlier picks down.

        Each candidate's score is blended with its dissimilarity to the
        already selected set; the blend decides where it is inserted.
        Reported relevance scores are left unchanged.
        """
        if len(ranked) <= 1:
            return ranked
        selected = [ranked[0]]
        for candidate in ranked[1:]:
            min_dissimilarity = min(
                1.0 - self.similarity(candidate.record, chosen.record) for chosen in selected
            )
            adjusted = candidate.relevance_score * (1 - factor) + min_dissimilarity * factor
            index = next(
                (i for i, chosen in enumerate(selected) if adjusted > chosen.relevance_score),
                len(selected),
            )
            selected.insert(index, candidate)
        return selected

    @staticmethod
    def similarity(a: MemoryRecord, b: MemoryRecord) -> float:
        """Type/tag/entity overlap heuristic in [0, 1]."""
        score = 0.2 if a.kind == b.kind else 0.0
        tags_a, tags_b = a.metadata.tags, b.metadata.tags
        common_tags = sum(1 for t in tags_a if t in tags_b)
        score += common_tags / max(len(tags_a), len(tags_b), 1) * 0.4
        ents_a, ents_b = a.metadata.entities, b.metadata.entities
        common_ents = sum(1 for e in ents_a if e in ents_b)
        score += common_ents / max(len(ents_a), len(ents_b), 1) * 0.4
        return min(1.0, score)

    @staticmethod
    def text_similarity(first: str, second: str) -> float:
        """Jaccard overlap of lowercase whitespace-separated words."""
        words_a = set(first.lower().split())
        words_b = set(second.lower().split())
        union = words_a | words_b
        return len(words_a & words_b) / len(union) if union else 0.0


class WeightedScore:
    """Accumulates ``value * weight`` and normalises by the weights used."""

    __slots__ = ("total", "weights")

    def __init__(self) -> None:
        self.total = 0.0
        self.weights = 0.0

    def add(self, value: float, weight: float) -> None:
        self.total += value * weight
        self.weights += weight

    def result(self, default: float = 0.0) -> float:
        return self.total / self.weights if self.weights > 0 else default
