"""
mnemos.association.graph — Directed weighted graph over record ids.

Edges are keyed by ``(source_id, target_id, type)``; adding an edge whose
key already exists reinforces the existing edge instead of duplicating
it.  Adjacency is kept in both directions so outgoing and incoming
edges of a node are one dict lookup away.  An edge object is shared by
both adjacency lists, so a strength change is seen from either side.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from mnemos.core.types import clamp, now, parse_ts, to_iso

log = logging.getLogger(__name__)

STRONG_ASSOCIATION = 0.7


class AssociationType(str, Enum):
    ENTITY_COOCCURRENCE = "entity_cooccurrence"
    TOPIC_SIMILARITY = "topic_similarity"
    TEMPORAL_PROXIMITY = "temporal_proximity"
    EMOTIONAL_SIMILARITY = "emotional_similarity"
    EXPLICIT_REFERENCE = "explicit_reference"


@dataclass
class Association:
    """One directed edge."""

    source_id: str
    target_id: str
    type: AssociationType
    strength: float
    created_at: datetime = field(default_factory=now)
    reinforcement_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = AssociationType(self.type)
        self.strength = clamp(self.strength)

    @property
    def key(self) -> Tuple[str, str, AssociationType]:
        return (self.source_id, self.target_id, self.type)

    def reinforce(self, increment: float) -> None:
        self.strength = min(1.0, self.strength + increment)
        self.reinforcement_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
            "strength": self.strength,
            "created_at": to_iso(self.created_at),
            "reinforcement_count": self.reinforcement_count,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Association":
        return cls(
            source_id=d["source_id"],
            target_id=d["target_id"],
            type=d["type"],
            strength=float(d.get("strength", 0.0)),
            created_at=parse_ts(d.get("created_at")) or now(),
            reinforcement_count=int(d.get("reinforcement_count", 0)),
            metadata=dict(d.get("metadata") or {}),
        )


class AssociationGraph:
    """Bidirectionally indexed multigraph of :class:`Association` edges."""

    def __init__(self) -> None:
        self._outgoing: Dict[str, List[Association]] = {}
        self._incoming: Dict[str, List[Association]] = {}

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def find(
        self, source_id: str, target_id: str, type: AssociationType
    ) -> Optional[Association]:
        type = AssociationType(type)
        for edge in self._outgoing.get(source_id, ()):
            if edge.target_id == target_id and edge.type == type:
                return edge
        return None

    def add_association(self, association: Association) -> Association:
        """Insert *association*; if its key exists, reinforce that edge.

        Returns the edge that now lives in the graph.
        """
        existing = self.find(*association.key)
        if existing is not None:
            existing.reinforce(association.strength)
            return existing
        self._outgoing.setdefault(association.source_id, []).append(association)
        self._incoming.setdefault(association.target_id, []).append(association)
        return association

    def outgoing(self, record_id: str) -> List[Association]:
        return list(self._outgoing.get(record_id, ()))

    def incoming(self, record_id: str) -> List[Association]:
        return list(self._incoming.get(record_id, ()))

    def all_for(self, record_id: str) -> List[Association]:
        """Outgoing then incoming edges of *record_id*."""
        return self.outgoing(record_id) + self.incoming(record_id)

    def by_type(self, record_id: str, type: AssociationType) -> List[Association]:
        type = AssociationType(type)
        return [a for a in self.all_for(record_id) if a.type == type]

    def strongly_associated(self, record_id: str, min_strength: float = 0.5) -> List[str]:
        """Neighbour ids (either direction) joined by an edge >= *min_strength*."""
        neighbours: List[str] = []
        for edge in self.all_for(record_id):
            if edge.strength < min_strength:
                continue
            other = edge.target_id if edge.source_id == record_id else edge.source_id
            if other != record_id and other not in neighbours:
                neighbours.append(other)
        return neighbours

    def association_count(self, record_id: str) -> int:
        return len(self._outgoing.get(record_id, ())) + len(self._incoming.get(record_id, ()))

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def find_path(self, start: str, end: str, max_depth: int = 3) -> Optional[List[str]]:
        """Shortest path (by hops) along outgoing edges, or None.

        The returned path lists at most *max_depth* ids, start and end
        included.
        """
        if start == end:
            return [start]
        queue = deque([[start]])
        visited = {start}
        while queue:
            path = queue.popleft()
            if len(path) >= max_depth:
                continue
            for edge in self._outgoing.get(path[-1], ()):
                nxt = edge.target_id
                if nxt in visited:
                    continue
                if nxt == end:
                    return path + [nxt]
                visited.add(nxt)
                queue.append(path + [nxt])
        return None

    def neighborhood(self, record_id: str, hops: int = 1) -> Set[str]:
        """Every id reachable within *hops* steps in either direction."""
        reached: Set[str] = set()
        frontier = {record_id}
        for _ in range(hops):
            nxt: Set[str] = set()
            for node in frontier:
                for edge in self._outgoing.get(node, ()):
                    nxt.add(edge.target_id)
                for edge in self._incoming.get(node, ()):
                    nxt.add(edge.source_id)
            nxt -= reached
            nxt.discard(record_id)
            if not nxt:
                break
            reached |= nxt
            frontier = nxt
        return reached

    # ------------------------------------------------------------------
    # Strength dynamics
    # ------------------------------------------------------------------

    def reinforce_association(
        self, source_id: str, target_id: str, increment: float = 0.1
    ) -> bool:
        """Strengthen the first edge source -> target (any type).

        Returns False, creating nothing, when there is no such edge.
        """
        for edge in self._outgoing.get(source_id, ()):
            if edge.target_id == target_id:
                edge.reinforce(increment)
                return True
        return False

    def apply_decay(self, rate: float = 0.01) -> None:
        factor = 1.0 - clamp(rate)
        for edges in self._outgoing.values():
            for edge in edges:
                edge.strength *= factor

    def prune_weak_associations(self, threshold: float = 0.1) -> int:
        """Drop every edge weaker than *threshold*; return how many."""
        removed = 0
        for source in list(self._outgoing):
            kept = [e for e in self._outgoing[source] if e.strength >= threshold]
            removed += len(self._outgoing[source]) - len(kept)
            if kept:
                self._outgoing[source] = kept
            else:
                del self._outgoing[source]
        for target in list(self._incoming):
            kept = [e for e in self._incoming[target] if e.strength >= threshold]
            if kept:
                self._incoming[target] = kept
            else:
                del self._incoming[target]
        if removed:
            log.debug("Pruned %d associations below %.2f", removed, threshold)
        return removed

    def remove_memory(self, record_id: str) -> None:
        """Delete *record_id* and every edge that touches it."""
        self._outgoing.pop(record_id, None)
        self._incoming.pop(record_id, None)
        for adjacency, attr in ((self._outgoing, "target_id"), (self._incoming, "source_id")):
            for node in list(adjacency):
                kept = [e for e in adjacency[node] if getattr(e, attr) != record_id]
                if kept:
                    adjacency[node] = kept
                else:
                    del adjacency[node]

    # ------------------------------------------------------------------
    # Introspection / persistence
    # ------------------------------------------------------------------

    def memory_ids(self) -> Set[str]:
        return set(self._outgoing) | set(self._incoming)

    def edges(self) -> List[Association]:
        return [e for edges in self._outgoing.values() for e in edges]

    def stats(self) -> Dict[str, Any]:
        edges = self.edges()
        nodes = len(self.memory_ids())
        return {
            "total_memories": nodes,
            "total_associations": len(edges),
            "average_associations_per_memory": len(edges) / nodes if nodes else 0.0,
            "strong_associations": sum(1 for e in edges if e.strength >= STRONG_ASSOCIATION),
        }

    def export(self) -> str:
        return json.dumps([e.to_dict() for e in self.edges()], indent=2)

    def import_(self, data: str) -> int:
        """Add edges from :meth:`export` output; returns how many were read."""
        entries = json.loads(data)
        for entry in entries:
            self.add_association(Association.from_dict(entry))
        return len(entries)

    def clear(self) -> None:
        self._outgoing.clear()
        self._incoming.clear()

    def __len__(self) -> int:
        return sum(len(edges) for edges in self._outgoing.values())
