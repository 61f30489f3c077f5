"""
mnemos.consolidation.consolidator — Promotes buffered records to long-term memory.

For every record the buffer reports as ready:

  1. **Importance reassessment** — bounded boosts are added and the sum
     is capped at 1.0:

        access      min(0.3, access_count * 0.03)
        entities    min(0.2, len(entities) * 0.02)
        confidence  confidence * 0.1
        context     min(0.2, related_consolidated * 0.04)

     where *related_consolidated* counts consolidated records sharing one
     of the record's first three entities.
  2. **Integration** (semantic records only) — if a consolidated semantic
     record about the same subject contradicts the candidate, the
     candidate is merged into it (newest value wins) and then discarded.
  3. Otherwise the record is marked consolidated and persisted.

Afterwards entity pairs co-occurring in three or more of the newly
consolidated records, and tags carried by three or more of them, are
counted per kind as detected patterns.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from itertools import combinations
from typing import Callable, Dict, List, Optional

from mnemos.consolidation.buffer import ShortTermBuffer
from mnemos.core.errors import NotFoundError
from mnemos.core.logging import memory_context
from mnemos.core.types import MemoryKind
from mnemos.models.record import MemoryRecord
from mnemos.models.semantic import merge_semantic
from mnemos.storage.base import MemoryStore, QueryOptions

log = logging.getLogger(__name__)

PATTERN_MIN_OCCURRENCES = 3
RELATED_ENTITY_SAMPLE = 3
RELATED_QUERY_LIMIT = 100


@dataclass
class ConsolidationResult:
    """Outcome of one consolidation pass."""

    consolidated: int = 0
    integrated: int = 0
    patterns_detected: int = 0
    consolidated_memories: List[MemoryRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "consolidated": self.consolidated,
            "integrated": self.integrated,
            "patterns_detected": self.patterns_detected,
            "consolidated_ids": [r.id for r in self.consolidated_memories],
        }


class ConsolidationEngine:
    """
    Moves ready records from the short-term buffer into long-term storage.

    Parameters
    ----------
    store : MemoryStore
        Long-term storage; consolidated records are written back with
        ``update``.
    buffer : ShortTermBuffer
        Source of candidates.
    discard : callable, optional
        Called with the id of a candidate that was merged into an
        existing record.  Defaults to ``store.delete``; the service
        passes its cascading delete so indexes and edges follow.
    persist : callable, optional
        Called with an existing fact after a candidate was merged into
        it.  Defaults to ``store.update``; the service passes its
        re-indexing update so the merged value is searchable.
    prefer_newer : bool
        Merge policy for contradicting facts (default newest wins).
    """

    def __init__(
        self,
        store: MemoryStore,
        buffer: ShortTermBuffer,
        discard: Optional[Callable[[str], object]] = None,
        persist: Optional[Callable[[MemoryRecord], object]] = None,
        prefer_newer: bool = True,
    ) -> None:
        self.store = store
        self.buffer = buffer
        self._discard = discard or store.delete
        self._persist = persist or store.update
        self.prefer_newer = prefer_newer

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def consolidate(self, at: Optional[datetime] = None) -> ConsolidationResult:
        """Run one pass over every ready buffer entry."""
        result = ConsolidationResult()
        for record in self.buffer.ready_for_consolidation(at):
            outcome = self._process(record)
            if outcome == "integrated":
                result.integrated += 1
            elif outcome == "consolidated":
                result.consolidated += 1
                result.consolidated_memories.append(record)

        result.patterns_detected = self.count_patterns(result.consolidated_memories)
        if result.consolidated or result.integrated:
            log.info(
                "Consolidation: %d consolidated, %d integrated, %d patterns",
                result.consolidated,
                result.integrated,
                result.patterns_detected,
            )
        return result

    def consolidate_memory(self, record_id: str) -> bool:
        """Force one buffered record through the pipeline.

        Returns False when *record_id* is not in the buffer.
        """
        record = self.buffer.get(record_id)
        if record is None:
            return False
        self._process(record)
        return True

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _process(self, record: MemoryRecord) -> str:
        self.assess_importance(record)

        if self.try_integrate(record):
            self.buffer.remove(record.id)
            self._discard(record.id)
            return "integrated"

        record.consolidate()
        try:
            self.store.update(record)
        except NotFoundError:
            log.warning(
                "Buffered memory %s vanished from storage; dropping it",
                record.id,
                extra=memory_context(record),
            )
            self.buffer.remove(record.id)
            return "missing"
        self.buffer.remove(record.id)
        return "consolidated"

    def assess_importance(self, record: MemoryRecord) -> float:
        meta = record.metadata
        score = meta.importance
        score += min(0.3, meta.access_count * 0.03)
        score += min(0.2, len(meta.entities) * 0.02)
        score += meta.confidence * 0.1
        score += min(0.2, self.count_related(record) * 0.04)
        meta.importance = min(1.0, score)
        return meta.importance

    def count_related(self, record: MemoryRecord) -> int:
        sample = record.metadata.entities[:RELATED_ENTITY_SAMPLE]
        if not sample:
            return 0
        related = self.store.query(
            QueryOptions(entities=sample, consolidated_only=True, limit=RELATED_QUERY_LIMIT)
        )
        return sum(1 for r in related if r.id != record.id)

    def try_integrate(self, record: MemoryRecord) -> bool:
        """Merge a semantic candidate into a contradicting consolidated fact."""
        if record.kind != MemoryKind.SEMANTIC:
            return False
        existing = self.store.query(
            QueryOptions(
                kind=MemoryKind.SEMANTIC,
                entities=[record.content.subject],
                consolidated_only=True,
            )
        )
        for other in existing:
            if other.id == record.id:
                continue
            if record.content.contradicts(other.content):
                merge_semantic(other, record, prefer_newer=self.prefer_newer)
                self._persist(other)
                log.debug(
                    "Integrated %s into %s",
                    record.id,
                    other.id,
                    extra={**memory_context(record), "target_id": other.id},
                )
                return True
        return False

    # ------------------------------------------------------------------
    # Pattern counting
    # ------------------------------------------------------------------

    @staticmethod
    def count_patterns(records: List[MemoryRecord]) -> int:
        by_kind: Dict[MemoryKind, List[MemoryRecord]] = defaultdict(list)
        for record in records:
            by_kind[record.kind].append(record)

        patterns = 0
        for group in by_kind.values():
            if len(group) < 2:
                continue
            pairs: Counter = Counter()
            tags: Counter = Counter()
            for record in group:
                for pair in combinations(sorted(set(record.metadata.entities)), 2):
                    pairs[pair] += 1
                tags.update(set(record.metadata.tags))
            patterns += sum(1 for n in pairs.values() if n >= PATTERN_MIN_OCCURRENCES)
            patterns += sum(1 for n in tags.values() if n >= PATTERN_MIN_OCCURRENCES)
        return patterns
