"""
mnemos.indexing — Multi-dimensional lookup over the record collection.

:class:`IndexSet` composes the four inverted indexes and the optional
semantic index so callers maintain them with one call.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from mnemos.indexing.inverted import EntityIndex, KeySets, TagIndex, TypeIndex
from mnemos.indexing.semantic import (
    EmbeddingFunc,
    SemanticIndex,
    cosine_similarity,
    hashed_bag_of_words,
)
from mnemos.indexing.temporal import TemporalIndex, bucket_key
from mnemos.models.record import MemoryRecord


class IndexSet:
    """The entity, tag, type and temporal indexes plus an optional semantic one."""

    def __init__(self, semantic: Optional[SemanticIndex] = None) -> None:
        self.entities = EntityIndex()
        self.tags = TagIndex()
        self.types = TypeIndex()
        self.temporal = TemporalIndex()
        self.semantic = semantic

    def _all(self):
        indexes = [self.entities, self.tags, self.types, self.temporal]
        if self.semantic is not None:
            indexes.append(self.semantic)
        return indexes

    def add(self, record: MemoryRecord) -> None:
        for index in self._all():
            index.add(record)

    def remove(self, record_id: str) -> None:
        for index in self._all():
            index.remove(record_id)

    def rebuild(self, records: Iterable[MemoryRecord]) -> None:
        self.clear()
        for record in records:
            self.add(record)

    def clear(self) -> None:
        for index in self._all():
            index.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "entities": self.entities.stats(),
            "tags": self.tags.stats(),
            "types": self.types.stats(),
            "temporal": self.temporal.stats(),
        }


__all__ = [
    "EmbeddingFunc",
    "EntityIndex",
    "IndexSet",
    "KeySets",
    "SemanticIndex",
    "TagIndex",
    "TemporalIndex",
    "TypeIndex",
    "bucket_key",
    "cosine_similarity",
    "hashed_bag_of_words",
]
