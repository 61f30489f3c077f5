"""
mnemos.retrieval.contextual — Relevance to the current conversation.

Weighted blend, normalised by the weights whose context is present:

    entities      0.3   Jaccard of record entities and context entities
    topics        0.3   share of context topics contained in a record tag
    conversation  0.2   word overlap with the recent messages
    recency       0.2   exp(-hours / 24)
"""

from __future__ import annotations

import math
from typing import List

from mnemos.core.types import jaccard
from mnemos.models.record import MemoryRecord
from mnemos.retrieval.base import (
    RetrievalContext,
    RetrievalOptions,
    RetrievalStrategy,
    RetrievedMemory,
    WeightedScore,
)
from mnemos.storage.base import MemoryStore


def matching_topics(record: MemoryRecord, topics: List[str]) -> List[str]:
    """Context topics that appear inside any of the record's tags."""
    tags = [t.lower() for t in record.metadata.tags]
    return [topic for topic in topics if any(topic.lower() in tag for tag in tags)]


class ContextualRetrieval(RetrievalStrategy):
    name = "contextual"

    def retrieve(
        self,
        context: RetrievalContext,
        options: RetrievalOptions,
        store: MemoryStore,
    ) -> List[RetrievedMemory]:
        scored = [
            RetrievedMemory(r, self.calculate_relevance(r, context), self.reason(r, context))
            for r in store.get_all()
        ]
        return self.filter_and_sort(scored, options)

    def calculate_relevance(self, record: MemoryRecord, context: RetrievalContext) -> float:
        score = WeightedScore()
        if context.entities:
            score.add(jaccard(record.metadata.entities, context.entities), 0.3)
        if context.topics:
            score.add(self.topic_relevance(record, context.topics), 0.3)
        if context.conversation and context.conversation.recent_messages:
            conversation = " ".join(context.conversation.recent_messages)
            score.add(self.text_similarity(record.content_text(), conversation), 0.2)
        if context.temporal and context.temporal.current_time:
            hours = (
                context.temporal.current_time - record.metadata.created_at
            ).total_seconds() / 3600.0
            score.add(math.exp(-hours / 24.0), 0.2)
        return min(1.0, score.result())

    @staticmethod
    def topic_relevance(record: MemoryRecord, topics: List[str]) -> float:
        longest = max(len(record.metadata.tags), len(topics))
        if not longest:
            return 0.0
        return len(matching_topics(record, topics)) / longest

    @staticmethod
    def reason(record: MemoryRecord, context: RetrievalContext) -> str:
        reasons = []
        common = [e for e in context.entities if e in record.metadata.entities]
        if common:
            reasons.append(f"Related to: {', '.join(common)}")
        topics = matching_topics(record, context.topics)
        if topics:
            reasons.append(f"Topics: {', '.join(topics)}")
        if context.conversation and context.conversation.current_topic:
            reasons.append(f"Current topic: {context.conversation.current_topic}")
        return "; ".join(reasons) or "Contextually relevant"
