"""
mnemos.consolidation.patterns — Batch frequent-pattern mining.

Each miner is an independent pass over a set of records.  Results are
kept in a map keyed by pattern id: re-mining overwrites a pattern with
the same id, and nothing is pruned automatically.

Pattern ids:

    entity_cooccur_<a>|<b>          pair of entities in the same records
    topic_cluster_<t1>|<t2>...      identical (sorted) tag sets
    temporal_seq_<t1>|...           adjacent episodes sharing tags
    emotional_cycle_<from>-><to>    consecutive primary emotions
    behavioral_time_<hour>          busiest creation hours (top 3)
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional

from mnemos.core.types import MemoryKind, now, to_iso
from mnemos.models.record import MemoryRecord

log = logging.getLogger(__name__)


class PatternType(str, Enum):
    ENTITY_COOCCURRENCE = "entity_cooccurrence"
    TOPIC_CLUSTER = "topic_cluster"
    TEMPORAL_SEQUENCE = "temporal_sequence"
    EMOTIONAL_CYCLE = "emotional_cycle"
    BEHAVIORAL = "behavioral"


@dataclass
class DetectedPattern:
    id: str
    type: PatternType
    description: str
    support: int
    confidence: float
    memory_ids: List[str]
    data: Dict[str, Any] = field(default_factory=dict)
    detected_at: datetime = field(default_factory=now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "support": self.support,
            "confidence": round(self.confidence, 4),
            "memory_ids": list(self.memory_ids),
            "data": dict(self.data),
            "detected_at": to_iso(self.detected_at),
        }


def time_of_day(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


class PatternMiner:
    """
    Mines recurring structure from a record collection.

    Parameters
    ----------
    min_support : int
        Occurrences needed before a pattern is reported (default 3).
    min_confidence : float
        Patterns at or above this confidence count as confident in
        :meth:`stats`.  Mining itself filters on support only.
    max_pattern_size : int
        Topic clusters and sequences over more tags than this are skipped.
    temporal_window_s : float
        Largest gap between adjacent episodes in a sequence (default 24h).
    """

    def __init__(
        self,
        min_support: int = 3,
        min_confidence: float = 0.6,
        max_pattern_size: int = 5,
        temporal_window_s: float = 86400.0,
    ) -> None:
        self.min_support = min_support
        self.min_confidence = min_confidence
        self.max_pattern_size = max_pattern_size
        self.temporal_window_s = temporal_window_s
        self._patterns: Dict[str, DetectedPattern] = {}

    # ------------------------------------------------------------------
    # Mining
    # ------------------------------------------------------------------

    def mine(self, records: Iterable[MemoryRecord]) -> List[DetectedPattern]:
        """Run every miner; remember and return what was found."""
        records = list(records)
        found: List[DetectedPattern] = []
        found.extend(self.mine_entity_cooccurrence(records))
        found.extend(self.mine_topic_clusters(records))
        found.extend(self.mine_temporal_sequences(records))
        found.extend(self.mine_emotional_cycles(records))
        found.extend(self.mine_behavioral(records))
        for pattern in found:
            self._patterns[pattern.id] = pattern
        log.debug("Mined %d patterns from %d memories", len(found), len(records))
        return found

    def mine_entity_cooccurrence(self, records: List[MemoryRecord]) -> List[DetectedPattern]:
        pairs: Dict[tuple, List[str]] = defaultdict(list)
        for record in records:
            for pair in combinations(sorted(set(record.metadata.entities)), 2):
                pairs[pair].append(record.id)

        patterns = []
        for (first, second), ids in pairs.items():
            if len(ids) < self.min_support:
                continue
            key = f"{first}|{second}"
            patterns.append(
                DetectedPattern(
                    id=f"entity_cooccur_{key}",
                    type=PatternType.ENTITY_COOCCURRENCE,
                    description=f"{first} and {second} frequently appear together",
                    support=len(ids),
                    confidence=len(ids) / len(records),
                    memory_ids=ids,
                    data={"entity1": first, "entity2": second},
                )
            )
        return patterns

    def mine_topic_clusters(self, records: List[MemoryRecord]) -> List[DetectedPattern]:
        groups: Dict[str, List[str]] = defaultdict(list)
        for record in records:
            if not record.metadata.tags:
                continue
            tags = sorted(set(record.metadata.tags))
            if len(tags) > self.max_pattern_size:
                continue
            groups["|".join(tags)].append(record.id)

        patterns = []
        for key, ids in groups.items():
            if len(ids) < self.min_support:
                continue
            topics = key.split("|")
            patterns.append(
                DetectedPattern(
                    id=f"topic_cluster_{key}",
                    type=PatternType.TOPIC_CLUSTER,
                    description=f"Recurring topic cluster: {', '.join(topics)}",
                    support=len(ids),
                    confidence=len(ids) / len(records),
                    memory_ids=ids,
                    data={"topics": topics},
                )
            )
        return patterns

    def mine_temporal_sequences(self, records: List[MemoryRecord]) -> List[DetectedPattern]:
        episodes = sorted(
            (r for r in records if r.kind == MemoryKind.EPISODIC),
            key=lambda r: r.metadata.created_at,
        )
        sequences: Dict[str, List[tuple]] = defaultdict(list)
        for current, nxt in zip(episodes, episodes[1:]):
            gap = (nxt.metadata.created_at - current.metadata.created_at).total_seconds()
            if gap > self.temporal_window_s:
                continue
            shared = set(current.metadata.tags) & set(nxt.metadata.tags)
            if shared and len(shared) <= self.max_pattern_size:
                sequences["|".join(sorted(shared))].append((current.id, nxt.id, gap))

        patterns = []
        for key, hits in sequences.items():
            if len(hits) < self.min_support:
                continue
            topics = key.split("|")
            patterns.append(
                DetectedPattern(
                    id=f"temporal_seq_{key}",
                    type=PatternType.TEMPORAL_SEQUENCE,
                    description=f"Recurring sequence with topics: {', '.join(topics)}",
                    support=len(hits),
                    confidence=len(hits) / len(episodes),
                    memory_ids=[rid for a, b, _ in hits for rid in (a, b)],
                    data={
                        "topics": topics,
                        "average_gap_s": sum(g for _, _, g in hits) / len(hits),
                    },
                )
            )
        return patterns

    def mine_emotional_cycles(self, records: List[MemoryRecord]) -> List[DetectedPattern]:
        emotional = sorted(
            (r for r in records if r.kind == MemoryKind.EMOTIONAL),
            key=lambda r: r.metadata.created_at,
        )
        if len(emotional) < self.min_support:
            return []

        transitions: Counter = Counter()
        for current, nxt in zip(emotional, emotional[1:]):
            transitions[
                (current.content.state.primary_emotion, nxt.content.state.primary_emotion)
            ] += 1

        patterns = []
        for (src, dst), count in transitions.items():
            if count < self.min_support:
                continue
            patterns.append(
                DetectedPattern(
                    id=f"emotional_cycle_{src}->{dst}",
                    type=PatternType.EMOTIONAL_CYCLE,
                    description=f"Emotional transition: {src} -> {dst}",
                    support=count,
                    confidence=count / len(emotional),
                    memory_ids=[r.id for r in emotional],
                    data={"from_emotion": src, "to_emotion": dst},
                )
            )
        return patterns

    def mine_behavioral(self, records: List[MemoryRecord]) -> List[DetectedPattern]:
        by_hour: Dict[int, List[str]] = defaultdict(list)
        for record in records:
            by_hour[record.metadata.created_at.hour].append(record.id)

        busiest = sorted(by_hour.items(), key=lambda kv: len(kv[1]), reverse=True)[:3]
        patterns = []
        for hour, ids in busiest:
            if len(ids) < self.min_support:
                continue
            patterns.append(
                DetectedPattern(
                    id=f"behavioral_time_{hour}",
                    type=PatternType.BEHAVIORAL,
                    description=f"High activity at {hour}:00",
                    support=len(ids),
                    confidence=len(ids) / len(records),
                    memory_ids=ids,
                    data={"hour": hour, "time_of_day": time_of_day(hour)},
                )
            )
        return patterns

    # ------------------------------------------------------------------
    # Accumulated patterns
    # ------------------------------------------------------------------

    def patterns(self, type: Optional[PatternType] = None) -> List[DetectedPattern]:
        found = list(self._patterns.values())
        if type is not None:
            type = PatternType(type)
            found = [p for p in found if p.type == type]
        return found

    def pattern(self, pattern_id: str) -> Optional[DetectedPattern]:
        return self._patterns.get(pattern_id)

    def clear(self) -> None:
        self._patterns.clear()

    def stats(self) -> Dict[str, Any]:
        found = list(self._patterns.values())
        by_type = {t.value: 0 for t in PatternType}
        for p in found:
            by_type[p.type.value] += 1
        n = len(found)
        return {
            "total_patterns": n,
            "by_type": by_type,
            "average_support": sum(p.support for p in found) / n if n else 0.0,
            "average_confidence": sum(p.confidence for p in found) / n if n else 0.0,
            "confident_patterns": sum(1 for p in found if p.confidence >= self.min_confidence),
        }
