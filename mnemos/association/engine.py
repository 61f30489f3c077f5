"""
mnemos.association.engine — Forms, reinforces and traverses associations.

When a record is stored, :meth:`AssociationEngine.form_associations`
scores it against existing records on up to five signals and keeps only
the strongest signal per pair, provided it clears the similarity
threshold:

  - entity co-occurrence   Jaccard of entity references
  - topic similarity       Jaccard of tags
  - temporal proximity     1 - dt / window, zero outside the window
  - emotional similarity   emotional pairs only
  - explicit reference     1.0 when one record names the other's id
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence

from mnemos.association.graph import (
    STRONG_ASSOCIATION,
    Association,
    AssociationGraph,
    AssociationType,
)
from mnemos.core.types import MemoryKind, jaccard
from mnemos.models.record import MemoryRecord

log = logging.getLogger(__name__)


class AssociationEngine:
    """
    Builds association edges between records.

    Parameters
    ----------
    graph : AssociationGraph
        Graph that receives the edges.
    min_similarity_threshold : float
        Weakest signal that still becomes an edge (default 0.3).
    auto_form : bool
        When False, :meth:`form_associations` is a no-op.
    max_associations_per_memory : int
        Stop linking a new record once it holds this many edges.
    temporal_window_s : float
        Width of the temporal-proximity window in seconds (default 1h).
    """

    def __init__(
        self,
        graph: AssociationGraph,
        min_similarity_threshold: float = 0.3,
        auto_form: bool = True,
        max_associations_per_memory: int = 20,
        temporal_window_s: float = 3600.0,
    ) -> None:
        self.graph = graph
        self.min_similarity_threshold = min_similarity_threshold
        self.auto_form = auto_form
        self.max_associations_per_memory = max_associations_per_memory
        self.temporal_window_s = temporal_window_s

    # ------------------------------------------------------------------
    # Formation
    # ------------------------------------------------------------------

    def form_associations(
        self, record: MemoryRecord, existing: Iterable[MemoryRecord]
    ) -> int:
        """Link *record* to the *existing* records it resembles; return edges formed."""
        if not self.auto_form:
            return 0

        formed = 0
        for other in existing:
            if other.id == record.id:
                continue
            if self.graph.association_count(record.id) >= self.max_associations_per_memory:
                break
            candidates = self.analyze(record, other)
            if not candidates:
                continue
            strongest = max(candidates, key=lambda a: a.strength)
            if strongest.strength >= self.min_similarity_threshold:
                self.graph.add_association(strongest)
                formed += 1
        if formed:
            log.debug("Formed %d associations for %s", formed, record.id)
        return formed

    def analyze(self, a: MemoryRecord, b: MemoryRecord) -> List[Association]:
        """Every non-zero signal from *a* to *b*, as candidate edges."""
        candidates: List[Association] = []

        def _offer(kind: AssociationType, strength: float) -> None:
            if strength > 0:
                candidates.append(Association(a.id, b.id, kind, strength))

        _offer(
            AssociationType.ENTITY_COOCCURRENCE,
            jaccard(a.metadata.entities, b.metadata.entities),
        )
        _offer(AssociationType.TOPIC_SIMILARITY, jaccard(a.metadata.tags, b.metadata.tags))
        _offer(AssociationType.TEMPORAL_PROXIMITY, self.temporal_proximity(a, b))
        if a.kind == MemoryKind.EMOTIONAL and b.kind == MemoryKind.EMOTIONAL:
            _offer(AssociationType.EMOTIONAL_SIMILARITY, a.content.similarity(b.content))
        if self.references(a, b):
            _offer(AssociationType.EXPLICIT_REFERENCE, 1.0)
        return candidates

    def temporal_proximity(self, a: MemoryRecord, b: MemoryRecord) -> float:
        gap = abs((a.metadata.created_at - b.metadata.created_at).total_seconds())
        if gap > self.temporal_window_s:
            return 0.0
        return 1.0 - gap / self.temporal_window_s

    @staticmethod
    def references(a: MemoryRecord, b: MemoryRecord) -> bool:
        """True when *a*'s content names *b* by id."""
        if a.kind == MemoryKind.EPISODIC:
            return b.id in getattr(a.content, "related_memories", ())
        if a.kind == MemoryKind.EMOTIONAL:
            return getattr(a.content, "episodic_memory_id", None) == b.id
        return False

    # ------------------------------------------------------------------
    # Reinforcement
    # ------------------------------------------------------------------

    def reinforce_coactivation(
        self, record_ids: Sequence[str], increment: float = 0.1
    ) -> int:
        """Strengthen existing edges among records retrieved together.

        Missing edges are not created.  Returns how many were reinforced.
        """
        reinforced = 0
        ids = list(record_ids)
        for i in range(len(ids)):
            for j in range(i + 1, len(ids)):
                if self.graph.reinforce_association(ids[i], ids[j], increment):
                    reinforced += 1
                elif self.graph.reinforce_association(ids[j], ids[i], increment):
                    reinforced += 1
        return reinforced

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def spread_activation(
        self, source_id: str, max_hops: int = 2, decay_factor: float = 0.5
    ) -> Dict[str, float]:
        """Propagate activation from *source_id* along outgoing edges.

        Each hop multiplies the injected activation by *decay_factor*; a
        node keeps the strongest activation that reaches it.
        """
        activation: Dict[str, float] = {source_id: 1.0}
        level = {source_id}
        injected = 1.0
        for _ in range(max_hops):
            injected *= decay_factor
            nxt = set()
            for node in level:
                for edge in self.graph.outgoing(node):
                    amount = injected * edge.strength
                    if amount > activation.get(edge.target_id, 0.0):
                        activation[edge.target_id] = amount
                    nxt.add(edge.target_id)
            if not nxt:
                break
            level = nxt
        return activation

    def find_clusters(
        self,
        min_cluster_size: int = 3,
        min_strength: float = STRONG_ASSOCIATION,
        record_ids: Optional[Iterable[str]] = None,
    ) -> List[List[str]]:
        """Groups of ids joined by strong edges (either direction).

        Connected components over edges >= *min_strength*; components
        smaller than *min_cluster_size* are dropped.  Largest first.
        """
        nodes = sorted(record_ids if record_ids is not None else self.graph.memory_ids())
        visited = set()
        clusters: List[List[str]] = []
        for seed in nodes:
            if seed in visited:
                continue
            cluster = []
            queue = deque([seed])
            visited.add(seed)
            while queue:
                node = queue.popleft()
                cluster.append(node)
                for neighbour in self.graph.strongly_associated(node, min_strength):
                    if neighbour not in visited:
                        visited.add(neighbour)
                        queue.append(neighbour)
            if len(cluster) >= min_cluster_size:
                clusters.append(sorted(cluster))
        clusters.sort(key=len, reverse=True)
        return clusters
