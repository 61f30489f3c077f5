"""
mnemos.consolidation.attention — Multi-factor importance re-weighting.

Each record gets an attention score from five normalised components:

    recency       exp(-age_days / 30)
    frequency     min(1, ln(access_count + 1) / ln(100))
    connectivity  min(1, ln(association_count + 1) / ln(20)),
                  or min(1, (entities + tags) / 10) without a graph count
    emotional     0.8 if a tag names an emotion, else importance * 0.5
    interaction   max(0, 1 - since_last_access / age)

With self-attention enabled, the mean pairwise attention against the
rest of the batch adds ``0.1 * self_attention`` on top.  The final score
is capped at 1.0 and can be blended back into stored importance.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from mnemos.core.types import clamp, jaccard, now
from mnemos.models.record import MemoryRecord

EMOTION_KEYWORDS = ("joy", "sadness", "anger", "fear", "surprise", "love", "stress")

_WEIGHT_NAMES = (
    "recency_weight",
    "frequency_weight",
    "connectivity_weight",
    "emotional_weight",
    "interaction_weight",
)


@dataclass
class AttentionComponents:
    recency: float
    frequency: float
    connectivity: float
    emotional: float
    interaction: float
    self_attention: float
    final_score: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class AttentionMechanism:
    """
    Computes attention scores and folds them into importance.

    Weights are normalised to sum to 1 on construction and on every
    :meth:`update_config`.
    """

    def __init__(
        self,
        recency_weight: float = 0.25,
        frequency_weight: float = 0.2,
        connectivity_weight: float = 0.2,
        emotional_weight: float = 0.15,
        interaction_weight: float = 0.2,
        enable_self_attention: bool = True,
    ) -> None:
        self.recency_weight = recency_weight
        self.frequency_weight = frequency_weight
        self.connectivity_weight = connectivity_weight
        self.emotional_weight = emotional_weight
        self.interaction_weight = interaction_weight
        self.enable_self_attention = enable_self_attention
        self._normalize()

    def _normalize(self) -> None:
        total = sum(getattr(self, name) for name in _WEIGHT_NAMES)
        if total > 0:
            for name in _WEIGHT_NAMES:
                setattr(self, name, getattr(self, name) / total)

    # -- configuration ------------------------------------------------------

    @property
    def config(self) -> Dict[str, object]:
        cfg: Dict[str, object] = {name: getattr(self, name) for name in _WEIGHT_NAMES}
        cfg["enable_self_attention"] = self.enable_self_attention
        return cfg

    def update_config(self, **changes: object) -> None:
        for name, value in changes.items():
            if name not in _WEIGHT_NAMES and name != "enable_self_attention":
                raise ValueError(f"Unknown attention setting: {name}")
            setattr(self, name, value)
        self._normalize()

    # -- components ---------------------------------------------------------

    @staticmethod
    def recency(record: MemoryRecord, at: datetime) -> float:
        age_days = (at - record.metadata.created_at).total_seconds() / 86400.0
        return math.exp(-age_days / 30.0)

    @staticmethod
    def frequency(record: MemoryRecord) -> float:
        return min(1.0, math.log(record.metadata.access_count + 1) / math.log(100))

    @staticmethod
    def connectivity(record: MemoryRecord, association_count: Optional[int] = None) -> float:
        if association_count is None:
            links = len(record.metadata.entities) + len(record.metadata.tags)
            return min(1.0, links / 10)
        return min(1.0, math.log(association_count + 1) / math.log(20))

    @staticmethod
    def emotional(record: MemoryRecord) -> float:
        for tag in record.metadata.tags:
            lowered = tag.lower()
            if any(word in lowered for word in EMOTION_KEYWORDS):
                return 0.8
        return record.metadata.importance * 0.5

    @staticmethod
    def interaction(record: MemoryRecord, at: datetime) -> float:
        age = (at - record.metadata.created_at).total_seconds()
        if age <= 0:
            return 0.0
        idle = (at - record.metadata.last_accessed_at).total_seconds()
        return max(0.0, 1.0 - idle / age)

    @staticmethod
    def pairwise(query: MemoryRecord, key: MemoryRecord) -> float:
        score = 0.0
        if query.metadata.entities and key.metadata.entities:
            score += jaccard(query.metadata.entities, key.metadata.entities) * 0.4
        if query.metadata.tags and key.metadata.tags:
            score += jaccard(query.metadata.tags, key.metadata.tags) * 0.3
        if query.kind == key.kind:
            score += 0.2
        days = abs((query.metadata.created_at - key.metadata.created_at).total_seconds()) / 86400.0
        score += math.exp(-days / 7.0) * 0.1
        return score

    def self_attention(self, record: MemoryRecord, batch: List[MemoryRecord]) -> float:
        others = [r for r in batch if r.id != record.id]
        if not others:
            return 0.0
        return sum(self.pairwise(record, other) for other in others) / len(others)

    # -- scoring ------------------------------------------------------------

    def calculate(
        self,
        record: MemoryRecord,
        batch: Optional[List[MemoryRecord]] = None,
        association_count: Optional[int] = None,
        current_time: Optional[datetime] = None,
    ) -> AttentionComponents:
        at = current_time or now()
        recency = self.recency(record, at)
        frequency = self.frequency(record)
        connectivity = self.connectivity(record, association_count)
        emotional = self.emotional(record)
        interaction = self.interaction(record, at)
        self_attention = 0.0
        if self.enable_self_attention and batch:
            self_attention = self.self_attention(record, batch)

        weighted = (
            recency * self.recency_weight
            + frequency * self.frequency_weight
            + connectivity * self.connectivity_weight
            + emotional * self.emotional_weight
            + interaction * self.interaction_weight
        )
        return AttentionComponents(
            recency=recency,
            frequency=frequency,
            connectivity=connectivity,
            emotional=emotional,
            interaction=interaction,
            self_attention=self_attention,
            final_score=min(1.0, weighted + self_attention * 0.1),
        )

    def batch_calculate(
        self,
        records: Iterable[MemoryRecord],
        association_counts: Optional[Dict[str, int]] = None,
        current_time: Optional[datetime] = None,
    ) -> Dict[str, AttentionComponents]:
        batch = list(records)
        counts = association_counts or {}
        return {
            r.id: self.calculate(r, batch, counts.get(r.id), current_time)
            for r in batch
        }

    @staticmethod
    def apply_to_importance(
        record: MemoryRecord, components: AttentionComponents, blend: float = 0.3
    ) -> float:
        """Move importance toward the attention score by *blend*; return it."""
        blended = record.metadata.importance * (1 - blend) + components.final_score * blend
        record.metadata.importance = clamp(blended)
        return record.metadata.importance
