"""
mnemos.indexing.semantic — Vector similarity over record text.

Each record is embedded from its tags plus its serialised content.  An
injected ``embedding_func`` (``text -> vector``) does the embedding; when
none is given a deterministic hashed bag-of-words vector is used:

  1. lowercase, strip punctuation, split on whitespace
  2. keep words longer than two characters
  3. hash each word into one of ``dimensions`` buckets, count
  4. L2-normalise

Search is cosine similarity with a minimum-similarity cutoff.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from mnemos.core.logging import memory_context
from mnemos.core.types import now
from mnemos.models.record import MemoryRecord

log = logging.getLogger(__name__)

#: ``text -> vector``; any sequence of floats or a numpy array.
EmbeddingFunc = Callable[[str], Any]

DEFAULT_DIMENSIONS = 100
_PUNCT = re.compile(r"[^\w\s]")


def word_hash(word: str) -> int:
    """Non-negative 32-bit rolling hash (``h = h * 31 + ord(c)``)."""
    h = 0
    for ch in word:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def hashed_bag_of_words(text: str, dimensions: int = DEFAULT_DIMENSIONS) -> np.ndarray:
    vector = np.zeros(dimensions, dtype=np.float64)
    words = [w for w in _PUNCT.sub("", text.lower()).split() if len(w) > 2]
    for word in words:
        vector[word_hash(word) % dimensions] += 1.0
    norm = np.linalg.norm(vector)
    if norm > 0:
        vector /= norm
    return vector


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine of the angle between *a* and *b*; 0.0 on shape mismatch or zero norm."""
    if a.shape != b.shape:
        return 0.0
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)


@dataclass
class Embedding:
    record_id: str
    vector: np.ndarray
    created_at: datetime

    @property
    def dimensions(self) -> int:
        return int(self.vector.shape[0])


class SemanticIndex:
    """
    Id -> embedding map with cosine top-k search.

    Parameters
    ----------
    embedding_func : callable, optional
        ``text -> vector``.  Defaults to :func:`hashed_bag_of_words`.
    dimensions : int
        Size of the fallback vectors.
    """

    def __init__(
        self,
        embedding_func: Optional[EmbeddingFunc] = None,
        dimensions: int = DEFAULT_DIMENSIONS,
    ) -> None:
        self._embedding_func = embedding_func
        self.dimensions = dimensions
        self._embeddings: Dict[str, Embedding] = {}

    # -- embedding ----------------------------------------------------------

    @staticmethod
    def record_text(record: MemoryRecord) -> str:
        parts = []
        if record.metadata.tags:
            parts.append(" ".join(record.metadata.tags))
        parts.append(record.content_text())
        return " ".join(parts)

    def embed(self, text: str) -> np.ndarray:
        if self._embedding_func is not None:
            return np.asarray(self._embedding_func(text), dtype=np.float64).ravel()
        return hashed_bag_of_words(text, self.dimensions)

    # -- maintenance --------------------------------------------------------

    def add(self, record: MemoryRecord) -> None:
        vector = self.embed(self.record_text(record))
        if vector.size == 0:
            log.debug(
                "Empty embedding for %s; not indexed", record.id, extra=memory_context(record)
            )
            self._embeddings.pop(record.id, None)
            return
        self._embeddings[record.id] = Embedding(record.id, vector, now())

    def remove(self, record_id: str) -> None:
        self._embeddings.pop(record_id, None)

    def clear(self) -> None:
        self._embeddings.clear()

    def ids(self) -> List[str]:
        return list(self._embeddings)

    # -- search -------------------------------------------------------------

    def search(
        self,
        text: str,
        limit: int = 10,
        min_similarity: float = 0.5,
    ) -> List[Tuple[str, float]]:
        """Top *limit* ``(record_id, similarity)`` pairs for *text*."""
        query = self.embed(text)
        if query.size == 0:
            return []
        return self._rank(query, limit, min_similarity, exclude=None)

    def find_similar(
        self,
        record_id: str,
        limit: int = 10,
        min_similarity: float = 0.5,
    ) -> List[Tuple[str, float]]:
        """Records most similar to an already indexed one (itself excluded)."""
        source = self._embeddings.get(record_id)
        if source is None:
            return []
        return self._rank(source.vector, limit, min_similarity, exclude=record_id)

    def _rank(
        self,
        query: np.ndarray,
        limit: int,
        min_similarity: float,
        exclude: Optional[str],
    ) -> List[Tuple[str, float]]:
        candidates = [
            e for e in self._embeddings.values()
            if e.record_id != exclude and e.vector.shape == query.shape
        ]
        if not candidates:
            return []

        matrix = np.vstack([e.vector for e in candidates])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        sims = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        results = [
            (candidates[i].record_id, float(sims[i]))
            for i in np.argsort(-sims, kind="stable")
            if sims[i] >= min_similarity
        ]
        return results[:limit]

    # -- stats --------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        embeddings = list(self._embeddings.values())
        if not embeddings:
            return {"total_embeddings": 0, "average_dimensions": 0.0}
        created = [e.created_at for e in embeddings]
        return {
            "total_embeddings": len(embeddings),
            "average_dimensions": sum(e.dimensions for e in embeddings) / len(embeddings),
            "oldest_embedding": min(created).isoformat(),
            "newest_embedding": max(created).isoformat(),
        }

    def __len__(self) -> int:
        return len(self._embeddings)
