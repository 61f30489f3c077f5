"""
mnemos.retrieval.associative — Records that resemble a set of seeds.

Seeds are the context's ``seed_memory_ids`` when given, otherwise the
five most recently accessed records matching the context's entities or
topics.  Every non-seed record is scored by its strongest association
to any seed:

    entity overlap  0.4   (Jaccard)
    tag overlap     0.3   (Jaccard)
    same kind       0.1
    temporal        0.2   exp(-hours / 48)
"""

from __future__ import annotations

import math
from typing import List, Optional

from mnemos.core.types import jaccard
from mnemos.models.record import MemoryRecord
from mnemos.retrieval.base import (
    RetrievalContext,
    RetrievalOptions,
    RetrievalStrategy,
    RetrievedMemory,
)
from mnemos.storage.base import MemoryStore, QueryOptions, SortKey

SEED_LIMIT = 5


class AssociativeRetrieval(RetrievalStrategy):
    name = "associative"

    def retrieve(
        self,
        context: RetrievalContext,
        options: RetrievalOptions,
        store: MemoryStore,
    ) -> List[RetrievedMemory]:
        seeds = self.seeds(context, store)
        if not seeds:
            return []
        seed_ids = {s.id for s in seeds}
        scored = [
            RetrievedMemory(
                r,
                self.calculate_relevance(r, context, seeds),
                "Associated with relevant memories",
            )
            for r in store.get_all()
            if r.id not in seed_ids
        ]
        return self.filter_and_sort(scored, options)

    def calculate_relevance(
        self,
        record: MemoryRecord,
        context: RetrievalContext,
        seeds: Optional[List[MemoryRecord]] = None,
    ) -> float:
        if not seeds:
            return 0.0
        return min(1.0, max(self.association_strength(record, seed) for seed in seeds))

    @staticmethod
    def seeds(context: RetrievalContext, store: MemoryStore) -> List[MemoryRecord]:
        seeds = []
        for record_id in context.seed_memory_ids:
            record = store.retrieve(record_id)
            if record is not None:
                seeds.append(record)
        if not seeds and (context.entities or context.topics):
            seeds = store.query(
                QueryOptions(
                    entities=list(context.entities),
                    tags=list(context.topics),
                    limit=SEED_LIMIT,
                    sort_by=SortKey.LAST_ACCESSED_AT,
                    sort_direction="desc",
                )
            )
        return seeds

    @staticmethod
    def association_strength(a: MemoryRecord, b: MemoryRecord) -> float:
        strength = jaccard(a.metadata.entities, b.metadata.entities) * 0.4
        strength += jaccard(a.metadata.tags, b.metadata.tags) * 0.3
        if a.kind == b.kind:
            strength += 0.1
        hours = abs((a.metadata.created_at - b.metadata.created_at).total_seconds()) / 3600.0
        strength += math.exp(-hours / 48.0) * 0.2
        return strength
