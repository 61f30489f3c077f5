"""
mnemos.service — MemoryService: the public API for mnemos.

    from mnemos import MemoryService

    with MemoryService() as memory:
        memory.store_memory(record)
        hits = memory.retrieve_contextual(RetrievalContext(entities=["john"]))

Everything is wired up here: storage, indexes, association graph,
short-term buffer, consolidation, pattern mining, attention and the
retrieval strategies.  Background consolidation/decay timers are only
started when the config asks for them; ``consolidate()`` and ``decay()``
are the same work run on demand.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from mnemos.association.engine import AssociationEngine
from mnemos.association.graph import AssociationGraph
from mnemos.consolidation.attention import AttentionMechanism
from mnemos.consolidation.buffer import ShortTermBuffer
from mnemos.consolidation.consolidator import ConsolidationEngine, ConsolidationResult
from mnemos.consolidation.patterns import DetectedPattern, PatternMiner, PatternType
from mnemos.core.config import Config
from mnemos.core.errors import (
    ConfigError,
    NotFoundError,
    ServiceDisposedError,
    UnknownStrategyError,
)
from mnemos.core.logging import configure_logging, memory_context
from mnemos.core.types import MemoryKind, now
from mnemos.indexing import IndexSet, SemanticIndex
from mnemos.models.record import MemoryRecord
from mnemos.retrieval import (
    RetrievalContext,
    RetrievalOptions,
    RetrievalStrategy,
    RetrievedMemory,
    default_strategies,
)
from mnemos.scheduler import PeriodicTask
from mnemos.storage.base import MemoryStore, QueryOptions
from mnemos.storage.encrypted import Cipher, EncryptedStore
from mnemos.storage.memory import InMemoryStore

log = logging.getLogger(__name__)


class MemoryService:
    """Top-level API: wire every subsystem together.

    Parameters
    ----------
    config:
        Full ``Config`` object; defaults to ``Config()``.
    store:
        Storage backend.  Defaults to an :class:`InMemoryStore`.  When
        ``config.encryption_enabled`` is set it is wrapped in an
        :class:`EncryptedStore`.
    cipher:
        Cipher for the encrypted store (default base64 placeholder).
    clock:
        Returns the current time; injected into the buffer and used for
        recency calculations.  Defaults to UTC now.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[MemoryStore] = None,
        cipher: Optional[Cipher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = (config or Config()).validate()
        self._clock = clock or now
        self._lock = threading.RLock()
        self._disposed = False

        # -- Structured logging --------------------------------------------
        if self.config.structured_logging:
            configure_logging(structured=True, level=self.config.log_level)

        # -- Storage -------------------------------------------------------
        backend = store if store is not None else InMemoryStore()
        if self.config.encryption_enabled:
            backend = EncryptedStore(backend, cipher, self.config.encrypt_levels)
        self.store: MemoryStore = backend

        # -- Indexes -------------------------------------------------------
        try:
            embedding_func = self.config.get_embedding_func()
        except ConfigError as exc:
            log.warning("Falling back to hashed embeddings: %s", exc)
            embedding_func = None
        self.indexes = IndexSet(
            SemanticIndex(embedding_func, dimensions=self.config.embedding_dimensions)
        )

        # -- Associations --------------------------------------------------
        self.graph = AssociationGraph()
        self.associations = AssociationEngine(
            self.graph,
            min_similarity_threshold=self.config.min_similarity_threshold,
            auto_form=self.config.auto_form_associations,
            max_associations_per_memory=self.config.max_associations_per_memory,
            temporal_window_s=self.config.temporal_proximity_window_s,
        )

        # -- Short-term buffer and consolidation ---------------------------
        self.buffer = ShortTermBuffer(
            capacity=self.config.buffer_capacity,
            window_s=self.config.buffer_window_s,
            auto_consolidate_threshold=self.config.auto_consolidate_threshold,
            clock=self._clock,
        )
        self.consolidator = ConsolidationEngine(
            self.store,
            self.buffer,
            discard=self._discard_integrated,
            persist=self._persist_merged,
        )

        # -- Patterns and attention ----------------------------------------
        self.miner = PatternMiner(
            min_support=self.config.min_support,
            min_confidence=self.config.min_confidence,
            max_pattern_size=self.config.max_pattern_size,
            temporal_window_s=self.config.temporal_window_s,
        )
        self.attention = AttentionMechanism(
            recency_weight=self.config.recency_weight,
            frequency_weight=self.config.frequency_weight,
            connectivity_weight=self.config.connectivity_weight,
            emotional_weight=self.config.emotional_weight,
            interaction_weight=self.config.interaction_weight,
            enable_self_attention=self.config.enable_self_attention,
        )

        # -- Retrieval -----------------------------------------------------
        self.strategies: Dict[str, RetrievalStrategy] = default_strategies()

        # -- Timers --------------------------------------------------------
        self._timers: List[PeriodicTask] = []
        if self.config.auto_consolidate:
            self._timers.append(
                PeriodicTask(
                    self.config.consolidation_interval_s, self.consolidate, name="consolidate"
                ).start()
            )
        if self.config.auto_decay:
            self._timers.append(
                PeriodicTask(self.config.decay_interval_s, self.decay, name="decay").start()
            )

        log.debug("MemoryService ready (%d timers)", len(self._timers))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._disposed:
            raise ServiceDisposedError("MemoryService has been disposed")

    def _resolve(self, record_ids: Iterable[str]) -> List[MemoryRecord]:
        found = []
        for record_id in record_ids:
            record = self.store.retrieve(record_id)
            if record is not None:
                found.append(record)
        return found

    def _discard_integrated(self, record_id: str) -> None:
        self.store.delete(record_id)
        self.graph.remove_memory(record_id)
        self.indexes.remove(record_id)

    def _persist_merged(self, record: MemoryRecord) -> None:
        self.store.update(record)
        self.indexes.add(record)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def store_memory(self, record: MemoryRecord) -> None:
        """Persist, index, buffer and associate a new record.

        Raises ValidationError before anything is mutated.
        """
        self._check_open()
        record.validate()
        with self._lock:
            self.store.store(record)
            self.buffer.add(record)
            self.indexes.add(record)
            self.associations.form_associations(record, self.store.get_all())

    def retrieve_memory(self, record_id: str) -> Optional[MemoryRecord]:
        return self.store.retrieve(record_id)

    def update_memory(self, record: MemoryRecord) -> None:
        """Write back a changed record and re-index it.

        Raises NotFoundError for an unknown id, ValidationError for
        invalid content.
        """
        self._check_open()
        with self._lock:
            self.store.update(record)
            self.buffer.refresh(record)
            self.indexes.add(record)

    def delete_memory(self, record_id: str) -> bool:
        """Remove a record from storage, the buffer, every index and the graph."""
        self._check_open()
        with self._lock:
            deleted = self.store.delete(record_id)
            self.buffer.remove(record_id)
            self.graph.remove_memory(record_id)
            self.indexes.remove(record_id)
        return deleted

    def query_memories(self, options: Optional[QueryOptions] = None) -> List[MemoryRecord]:
        return self.store.query(options)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def retrieve_memories(
        self,
        strategy: str,
        context: RetrievalContext,
        options: Optional[RetrievalOptions] = None,
    ) -> List[RetrievedMemory]:
        """Rank records with the named strategy.

        Records returned together have their existing associations
        reinforced.
        """
        impl = self.strategies.get(strategy)
        if impl is None:
            raise UnknownStrategyError(
                f"Unknown retrieval strategy: {strategy!r} "
                f"(known: {', '.join(sorted(self.strategies))})"
            )
        results = impl.retrieve(context, options or RetrievalOptions(), self.store)
        ids = [r.record.id for r in results]
        if len(ids) > 1:
            with self._lock:
                self.associations.reinforce_coactivation(ids)
        return results

    def retrieve_contextual(
        self, context: RetrievalContext, options: Optional[RetrievalOptions] = None
    ) -> List[RetrievedMemory]:
        return self.retrieve_memories("contextual", context, options)

    def register_strategy(self, strategy: RetrievalStrategy) -> None:
        self.strategies[strategy.name] = strategy

    def memories_by_entity(self, entity: str) -> List[MemoryRecord]:
        return self._resolve(sorted(self.indexes.entities.query(entity)))

    def memories_by_tag(self, tag: str) -> List[MemoryRecord]:
        return self._resolve(sorted(self.indexes.tags.query(tag)))

    def memories_by_kind(self, kind: MemoryKind) -> List[MemoryRecord]:
        return self.store.query(QueryOptions(kind=MemoryKind(kind)))

    def recent_memories(self, days: int = 7) -> List[MemoryRecord]:
        ids = self.indexes.temporal.query_last_n_days(days, at=self._clock())
        return self._resolve(sorted(ids))

    def associated_memories(self, record_id: str, min_strength: float = 0.5) -> List[MemoryRecord]:
        return self._resolve(self.graph.strongly_associated(record_id, min_strength))

    def search_semantic(
        self, text: str, limit: int = 10, min_similarity: float = 0.5
    ) -> List[MemoryRecord]:
        hits = self.indexes.semantic.search(text, limit=limit, min_similarity=min_similarity)
        return self._resolve(record_id for record_id, _ in hits)

    def find_clusters(self, min_cluster_size: int = 3) -> List[List[str]]:
        return self.associations.find_clusters(
            min_cluster_size=min_cluster_size,
            min_strength=self.config.strong_association_threshold,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def consolidate(self) -> ConsolidationResult:
        """Run one consolidation pass over the short-term buffer."""
        self._check_open()
        with self._lock:
            return self.consolidator.consolidate(self._clock())

    def consolidate_memory(self, record_id: str) -> bool:
        self._check_open()
        with self._lock:
            return self.consolidator.consolidate_memory(record_id)

    def decay(self, rate: Optional[float] = None) -> int:
        """Decay buffered records and every edge, then prune weak edges.

        Returns the number of pruned associations.
        """
        self._check_open()
        rate = self.config.decay_rate if rate is None else rate
        with self._lock:
            self.buffer.apply_decay(rate)
            for record in self.buffer.all():
                try:
                    self.store.update(record)
                except NotFoundError:
                    log.warning(
                        "Buffered memory %s vanished from storage; dropping it",
                        record.id,
                        extra=memory_context(record),
                    )
                    self.buffer.remove(record.id)
            self.graph.apply_decay(rate)
            pruned = self.graph.prune_weak_associations(self.config.prune_threshold)
        if pruned:
            log.debug("Decay pass pruned %d associations", pruned)
        return pruned

    def mine_patterns(self) -> List[DetectedPattern]:
        with self._lock:
            return self.miner.mine(self.store.get_all())

    def patterns(self, type: Optional[PatternType] = None) -> List[DetectedPattern]:
        return self.miner.patterns(type)

    def apply_attention_weighting(self) -> Dict[str, float]:
        """Blend every record's importance toward its attention score.

        Returns the new importance per record id.
        """
        self._check_open()
        with self._lock:
            records = self.store.get_all()
            counts = {r.id: len(self.graph.all_for(r.id)) for r in records}
            scores = self.attention.batch_calculate(records, counts, self._clock())
            updated = {}
            for record in records:
                components = scores[record.id]
                updated[record.id] = self.attention.apply_to_importance(
                    record, components, self.config.attention_blend
                )
                self.store.update(record)
        return updated

    def optimize(self) -> int:
        """Drop nearly decayed unconsolidated records, cascading the delete."""
        self._check_open()
        with self._lock:
            before = {r.id for r in self.store.get_all()}
            removed = self.store.optimize()
            if removed:
                after = {r.id for r in self.store.get_all()}
                for record_id in before - after:
                    self.buffer.remove(record_id)
                    self.graph.remove_memory(record_id)
                    self.indexes.remove(record_id)
        return removed

    # ------------------------------------------------------------------
    # Introspection and bulk transfer
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        return {
            "storage": self.store.stats(),
            "short_term_buffer": self.buffer.stats(),
            "associations": self.graph.stats(),
            "indexes": self.indexes.stats(),
            "patterns": self.miner.stats(),
            "embeddings": self.indexes.semantic.stats(),
        }

    def export(self) -> str:
        return self.store.export()

    def import_(self, data: str) -> int:
        """Load an export and rebuild every index from storage."""
        self._check_open()
        with self._lock:
            count = self.store.import_(data)
            self.indexes.rebuild(self.store.get_all())
        return count

    def clear_all(self) -> None:
        self._check_open()
        with self._lock:
            self.store.clear()
            self.buffer.clear()
            self.graph.clear()
            self.indexes.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Cancel background timers.  Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        log.debug("MemoryService disposed")

    def __enter__(self) -> "MemoryService":
        return self

    def __exit__(self, *exc: object) -> None:
        self.dispose()
