"""
mnemos.retrieval.query — Direct filter pass-through to storage.

Relevance is ``(effective_importance + confidence) / 2``: this strategy
is about filtering, not ranking.
"""

from __future__ import annotations

from typing import List

from mnemos.models.record import MemoryRecord
from mnemos.retrieval.base import (
    QueryParameters,
    RetrievalContext,
    RetrievalOptions,
    RetrievalStrategy,
    RetrievedMemory,
)
from mnemos.storage.base import MemoryStore, QueryOptions


class QueryRetrieval(RetrievalStrategy):
    name = "query"

    def retrieve(
        self,
        context: RetrievalContext,
        options: RetrievalOptions,
        store: MemoryStore,
    ) -> List[RetrievedMemory]:
        params = context.query
        if params is None:
            return []
        records = store.query(
            QueryOptions(
                kind=params.kind,
                tags=list(params.tags),
                entities=list(params.entities),
                date_range=params.date_range,
                min_importance=params.min_importance,
                min_confidence=params.min_confidence,
                consolidated_only=params.consolidated_only,
                sort_by=params.sort_by,
                sort_direction=params.sort_direction,
                limit=None if params.text_search else options.limit,
            )
        )
        if params.text_search:
            needle = params.text_search.lower()
            records = [r for r in records if needle in r.content_text().lower()]
        scored = [
            RetrievedMemory(r, self.calculate_relevance(r, context), self.reason(params))
            for r in records
        ]
        return self.filter_and_sort(scored, options)

    def calculate_relevance(self, record: MemoryRecord, context: RetrievalContext) -> float:
        return (record.effective_importance + record.metadata.confidence) / 2

    @staticmethod
    def reason(params: QueryParameters) -> str:
        reasons = []
        if params.kind is not None:
            reasons.append(f"Type: {params.kind.value}")
        if params.tags:
            reasons.append(f"Tags: {', '.join(params.tags)}")
        if params.entities:
            reasons.append(f"Entities: {', '.join(params.entities)}")
        if params.date_range:
            reasons.append("Within date range")
        if params.text_search:
            reasons.append(f'Text match: "{params.text_search}"')
        return "; ".join(reasons) or "Direct query match"

    @staticmethod
    def build_context(params: QueryParameters) -> RetrievalContext:
        return RetrievalContext(query=params)
