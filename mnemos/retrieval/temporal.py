"""
mnemos.retrieval.temporal — Relevance in time.

    in range   0.5   created inside the requested time range
    recency    0.3   exp(-days / 7)
    pattern    0.2   episodic only; same hour (+-2h) 0.5, same weekday
                     0.3, same calendar date 0.2

Without any temporal context every record scores 0.5.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import List

from mnemos.core.types import MemoryKind, ensure_utc
from mnemos.models.record import MemoryRecord
from mnemos.retrieval.base import (
    RetrievalContext,
    RetrievalOptions,
    RetrievalStrategy,
    RetrievedMemory,
    WeightedScore,
)
from mnemos.storage.base import MemoryStore, QueryOptions

NEUTRAL_SCORE = 0.5


class TemporalRetrieval(RetrievalStrategy):
    name = "temporal"

    def retrieve(
        self,
        context: RetrievalContext,
        options: RetrievalOptions,
        store: MemoryStore,
    ) -> List[RetrievedMemory]:
        query = QueryOptions()
        if context.temporal and context.temporal.time_range:
            query.date_range = context.temporal.time_range
        scored = [
            RetrievedMemory(r, self.calculate_relevance(r, context), self.reason(r, context))
            for r in store.query(query)
        ]
        return self.filter_and_sort(scored, options)

    def calculate_relevance(self, record: MemoryRecord, context: RetrievalContext) -> float:
        temporal = context.temporal
        if temporal is None:
            return NEUTRAL_SCORE

        score = WeightedScore()
        created = record.metadata.created_at
        if temporal.time_range:
            start, end = temporal.time_range
            score.add(1.0 if start <= created <= end else 0.0, 0.5)
        if temporal.current_time:
            days = (temporal.current_time - created).total_seconds() / 86400.0
            score.add(math.exp(-days / 7.0), 0.3)
            if record.kind == MemoryKind.EPISODIC and record.content.temporal.start_time:
                score.add(
                    self.pattern_score(record.content.temporal.start_time, temporal.current_time),
                    0.2,
                )
        return min(1.0, score.result(NEUTRAL_SCORE))

    @staticmethod
    def pattern_score(when: datetime, current: datetime) -> float:
        when, current = ensure_utc(when), ensure_utc(current)
        score = 0.0
        hour_diff = abs(when.hour - current.hour)
        if hour_diff <= 2 or hour_diff >= 22:
            score += 0.5
        if when.weekday() == current.weekday():
            score += 0.3
        if (when.month, when.day) == (current.month, current.day):
            score += 0.2
        return min(1.0, score)

    @staticmethod
    def reason(record: MemoryRecord, context: RetrievalContext) -> str:
        temporal = context.temporal
        reasons = []
        if temporal and temporal.time_range:
            reasons.append("Within specified time range")
        if temporal and temporal.current_time:
            days = int(
                (temporal.current_time - record.metadata.created_at).total_seconds() // 86400
            )
            if days == 0:
                reasons.append("From today")
            elif days == 1:
                reasons.append("From yesterday")
            elif days <= 7:
                reasons.append(f"From {days} days ago")
            else:
                reasons.append("From the past")
        return "; ".join(reasons) or "Temporally relevant"
