"""Tests for mnemos.service — MemoryService end to end."""

import time
from datetime import timedelta

import pytest

from mnemos import Config, MemoryService, RetrievalContext, ValidationError
from mnemos.core.errors import ServiceDisposedError, UnknownStrategyError
from mnemos.core.types import MemoryKind
from mnemos.retrieval import ContextualRetrieval, RetrievalOptions
from mnemos.storage import QueryOptions


class TestStorage:
    def test_store_indexes_buffers_and_links(self, service, make_episodic):
        service.store_memory(make_episodic(id="e1", entities=("john",), tags=("work",)))
        service.store_memory(make_episodic(id="e2", entities=("john",), tags=("work",)))
        assert [r.id for r in service.memories_by_entity("john")] == ["e1", "e2"]
        assert [r.id for r in service.memories_by_tag("WORK")] == ["e1", "e2"]
        assert "e2" in service.buffer
        assert [r.id for r in service.associated_memories("e1")] == ["e2"]

    def test_invalid_record_rejected_untouched(self, service, make_episodic):
        rec = make_episodic(id="bad")
        rec.content.description = ""
        with pytest.raises(ValidationError):
            service.store_memory(rec)
        assert service.retrieve_memory("bad") is None
        assert "bad" not in service.buffer

    def test_update_reindexes(self, service, make_episodic):
        rec = make_episodic(id="e1", tags=("draft",))
        service.store_memory(rec)
        rec.metadata.tags = ["final"]
        service.update_memory(rec)
        assert service.memories_by_tag("draft") == []
        assert [r.id for r in service.memories_by_tag("final")] == ["e1"]

    def test_delete_cascades(self, service, make_episodic):
        service.store_memory(make_episodic(id="e1", entities=("john",), tags=("work",)))
        service.store_memory(make_episodic(id="e2", entities=("john",), tags=("work",)))
        assert service.delete_memory("e1")
        assert [r.id for r in service.memories_by_entity("john")] == ["e2"]
        assert [r.id for r in service.memories_by_tag("work")] == ["e2"]
        assert service.graph.all_for("e1") == []
        assert service.graph.all_for("e2") == []
        assert "e1" not in service.buffer
        assert not service.delete_memory("e1")

    def test_entity_lookup_scenario(self, service, make_episodic, make_semantic):
        service.store_memory(make_episodic(id="e1", entities=("john",)))
        service.store_memory(make_episodic(id="e2", entities=("jane",)))
        service.store_memory(make_semantic(id="s1", subject="john"))
        assert [r.id for r in service.memories_by_entity("john")] == ["e1", "s1"]
        assert [r.id for r in service.memories_by_entity("jane")] == ["e2"]
        assert service.memories_by_entity("nobody") == []
        assert [r.id for r in service.memories_by_kind(MemoryKind.SEMANTIC)] == ["s1"]

    def test_recent_and_query(self, service, make_episodic, now):
        service.store_memory(make_episodic(id="new"))
        service.store_memory(make_episodic(id="old", created_at=now - timedelta(days=30)))
        assert [r.id for r in service.recent_memories(days=7)] == ["new"]
        older = service.query_memories(QueryOptions(date_range=(now - timedelta(days=60), now - timedelta(days=1))))
        assert [r.id for r in older] == ["old"]

    def test_search_semantic(self, service, make_episodic):
        service.store_memory(make_episodic(id="coffee", description="brewing espresso coffee beans"))
        service.store_memory(make_episodic(id="hike", description="mountain hiking trail"))
        hits = service.search_semantic("espresso coffee", min_similarity=0.1)
        assert hits[0].id == "coffee"


class TestRetrieval:
    def test_contextual_ranks_and_reinforces(self, service, make_episodic, now):
        service.store_memory(
            make_episodic(id="e1", entities=("john",), created_at=now - timedelta(hours=2))
        )
        service.store_memory(make_episodic(id="e2", entities=("jane",)))
        (edge,) = service.graph.outgoing("e2")
        before = edge.strength

        results = service.retrieve_contextual(RetrievalContext(entities=["user"]))
        assert {r.record.id for r in results} == {"e1", "e2"}
        assert edge.strength == pytest.approx(before + 0.1)

    def test_single_result_does_not_reinforce(self, service, make_episodic, now):
        service.store_memory(
            make_episodic(id="e1", entities=("john",), created_at=now - timedelta(hours=2))
        )
        service.store_memory(make_episodic(id="e2", entities=("jane",)))
        (edge,) = service.graph.outgoing("e2")
        before = edge.strength
        service.retrieve_contextual(RetrievalContext(entities=["jane"]), RetrievalOptions(limit=1))
        assert edge.strength == before

    def test_unknown_strategy(self, service):
        with pytest.raises(UnknownStrategyError):
            service.retrieve_memories("telepathic", RetrievalContext())

    def test_register_strategy(self, service, make_episodic):
        class Everything(ContextualRetrieval):
            name = "everything"

            def calculate_relevance(self, record, context):
                return 1.0

        service.register_strategy(Everything())
        service.store_memory(make_episodic(id="e1"))
        results = service.retrieve_memories("everything", RetrievalContext())
        assert [r.relevance_score for r in results] == [1.0]

    def test_find_clusters(self, service, make_episodic):
        for i in range(3):
            service.store_memory(make_episodic(id=f"e{i}"))
        assert service.find_clusters(min_cluster_size=3) == [["e0", "e1", "e2"]]


class TestMaintenance:
    def test_newest_fact_wins(self, service, make_semantic, now):
        service.store_memory(make_semantic(id="s1", value="blue", created_at=now - timedelta(days=1)))
        service.store_memory(make_semantic(id="s2", value="red", created_at=now))

        result = service.consolidate()
        assert [r.id for r in result.consolidated_memories] == ["s1"]
        assert service.consolidate_memory("s2")

        survivors = service.memories_by_entity("John")
        assert [r.id for r in survivors] == ["s1"]
        assert survivors[0].content.value == "red"
        assert service.retrieve_memory("s2") is None
        assert service.graph.all_for("s2") == []

    def test_merged_fact_searchable_by_new_value(self, service, make_semantic, now):
        service.store_memory(make_semantic(id="s1", value="blue", created_at=now - timedelta(days=1)))
        service.store_memory(make_semantic(id="s2", value="crimson", created_at=now))
        service.consolidate()
        assert service.consolidate_memory("s2")

        assert service.retrieve_memory("s1").content.value == "crimson"
        assert [r.id for r in service.search_semantic("crimson", min_similarity=0.1)] == ["s1"]

    def test_decay_prunes_weak_edges(self, service, make_episodic, now):
        service.store_memory(
            make_episodic(id="e1", entities=("john",), created_at=now - timedelta(hours=2))
        )
        service.store_memory(make_episodic(id="e2", entities=("jane",)))
        assert service.decay(0) == 0
        assert len(service.graph) == 1
        assert service.decay(0.8) == 1
        assert len(service.graph) == 0

    def test_mine_patterns(self, service, make_episodic):
        for i in range(3):
            service.store_memory(make_episodic(id=f"e{i}", tags=("work",)))
        service.mine_patterns()
        assert [p.id for p in service.patterns("topic_cluster")] == ["topic_cluster_work"]

    def test_attention_weighting(self, service, make_episodic):
        service.store_memory(make_episodic(id="e1", importance=0.9))
        service.store_memory(make_episodic(id="e2", importance=0.1))
        updated = service.apply_attention_weighting()
        assert set(updated) == {"e1", "e2"}
        assert all(0.0 <= v <= 1.0 for v in updated.values())
        assert service.retrieve_memory("e1").metadata.importance == pytest.approx(updated["e1"])
        assert updated["e1"] < 0.9
        assert updated["e2"] > 0.1

    def test_optimize_cascades(self, service, make_episodic):
        keep = make_episodic(id="keep", tags=("x",))
        fade = make_episodic(id="fade", tags=("x",))
        service.store_memory(keep)
        service.store_memory(fade)
        fade.apply_decay(0.999)
        assert service.optimize() == 1
        assert [r.id for r in service.memories_by_tag("x")] == ["keep"]
        assert "fade" not in service.buffer
        assert service.graph.all_for("fade") == []


class TestIntrospection:
    def test_stats_sections(self, service, make_episodic):
        service.store_memory(make_episodic(id="e1"))
        stats = service.stats()
        assert set(stats) == {
            "storage",
            "short_term_buffer",
            "associations",
            "indexes",
            "patterns",
            "embeddings",
        }
        assert stats["storage"]["total_memories"] == 1
        assert stats["short_term_buffer"]["size"] == 1

    def test_export_import_after_clear(self, service, make_episodic, make_semantic):
        service.store_memory(make_episodic(id="e1", entities=("john",)))
        service.store_memory(make_semantic(id="s1"))
        dump = service.export()
        service.clear_all()
        assert service.stats()["storage"]["total_memories"] == 0
        assert service.memories_by_entity("john") == []

        assert service.import_(dump) == 2
        assert [r.id for r in service.memories_by_entity("john")] == ["e1"]
        assert service.retrieve_memory("s1").content.value == "blue"


class TestLifecycle:
    def test_dispose_idempotent(self, config, clock, make_episodic):
        svc = MemoryService(config, clock=clock)
        svc.dispose()
        svc.dispose()
        assert svc.disposed
        with pytest.raises(ServiceDisposedError):
            svc.store_memory(make_episodic())
        with pytest.raises(ServiceDisposedError):
            svc.consolidate()

    def test_context_manager(self, config):
        with MemoryService(config) as svc:
            assert not svc.disposed
        assert svc.disposed

    def test_timers_run_and_stop(self):
        cfg = Config(
            auto_consolidate=True,
            consolidation_interval_s=0.01,
            auto_decay=True,
            decay_interval_s=0.01,
        )
        svc = MemoryService(cfg)
        try:
            assert len(svc._timers) == 2
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline and not all(t.ticks for t in svc._timers):
                time.sleep(0.01)
            assert all(t.ticks > 0 for t in svc._timers)
            timers = list(svc._timers)
        finally:
            svc.dispose()
        assert all(t.cancelled for t in timers)
        assert svc._timers == []

    def test_no_timers_by_default(self, service):
        assert service._timers == []

    def test_encryption_wraps_store(self, clock):
        from mnemos.storage import EncryptedStore

        svc = MemoryService(Config(encryption_enabled=True), clock=clock)
        try:
            assert isinstance(svc.store, EncryptedStore)
        finally:
            svc.dispose()
