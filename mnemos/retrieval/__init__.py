"""mnemos.retrieval — Pluggable retrieval strategies with shared ranking."""

from typing import Dict

from mnemos.retrieval.associative import AssociativeRetrieval
from mnemos.retrieval.base import (
    ConversationContext,
    EmotionalContext,
    QueryParameters,
    RetrievalContext,
    RetrievalOptions,
    RetrievalStrategy,
    RetrievedMemory,
    TemporalContext,
)
from mnemos.retrieval.contextual import ContextualRetrieval
from mnemos.retrieval.emotional import EmotionalRetrieval
from mnemos.retrieval.query import QueryRetrieval
from mnemos.retrieval.temporal import TemporalRetrieval


def default_strategies() -> Dict[str, RetrievalStrategy]:
    """One instance of each built-in strategy, keyed by name."""
    strategies = (
        ContextualRetrieval(),
        AssociativeRetrieval(),
        TemporalRetrieval(),
        EmotionalRetrieval(),
        QueryRetrieval(),
    )
    return {s.name: s for s in strategies}


__all__ = [
    "AssociativeRetrieval",
    "ContextualRetrieval",
    "ConversationContext",
    "EmotionalContext",
    "EmotionalRetrieval",
    "QueryParameters",
    "QueryRetrieval",
    "RetrievalContext",
    "RetrievalOptions",
    "RetrievalStrategy",
    "RetrievedMemory",
    "TemporalContext",
    "TemporalRetrieval",
    "default_strategies",
]
