"""Tests for mnemos.consolidation.consolidator — buffer to long-term promotion."""

from datetime import timedelta

import pytest

from mnemos.consolidation import ConsolidationEngine, ShortTermBuffer


@pytest.fixture
def buffer(clock):
    return ShortTermBuffer(clock=clock)


@pytest.fixture
def engine(store, buffer):
    return ConsolidationEngine(store, buffer)


def admit(store, buffer, record):
    store.store(record)
    buffer.add(record)
    return record


class TestImportance:
    def test_boosts(self, engine, make_episodic):
        rec = make_episodic(entities=("john",), importance=0.5, confidence=0.8)
        # entities: john, user
        assert engine.assess_importance(rec) == pytest.approx(0.5 + 0.04 + 0.08)

    def test_access_boost_capped(self, engine, make_episodic):
        rec = make_episodic(participants=("solo",), importance=0.2, confidence=0.0)
        rec.metadata.access_count = 50
        assert engine.assess_importance(rec) == pytest.approx(0.2 + 0.3 + 0.02)

    def test_related_consolidated_records(self, engine, store, make_episodic):
        other = make_episodic(id="other", entities=("john",))
        other.consolidate()
        store.store(other)
        rec = make_episodic(id="rec", entities=("john",), importance=0.5)
        assert engine.count_related(rec) == 1
        assert engine.assess_importance(rec) == pytest.approx(0.5 + 0.04 + 0.08 + 0.04)

    def test_capped_at_one(self, engine, make_episodic):
        rec = make_episodic(importance=0.99)
        assert engine.assess_importance(rec) == 1.0


class TestConsolidate:
    def test_ready_records_promoted(self, engine, store, buffer, make_episodic, now):
        old = admit(store, buffer, make_episodic(id="old", created_at=now - timedelta(hours=2)))
        admit(store, buffer, make_episodic(id="fresh", importance=0.3))
        result = engine.consolidate()
        assert result.consolidated == 1
        assert [r.id for r in result.consolidated_memories] == ["old"]
        assert old.is_consolidated
        assert "old" not in buffer
        assert "fresh" in buffer
        assert not store.get("fresh").is_consolidated

    def test_vanished_record_dropped(self, engine, store, buffer, make_episodic):
        admit(store, buffer, make_episodic(id="gone", importance=0.9))
        store.delete("gone")
        result = engine.consolidate()
        assert result.consolidated == 0
        assert "gone" not in buffer

    def test_consolidate_memory(self, engine, store, buffer, make_episodic):
        admit(store, buffer, make_episodic(id="e1", importance=0.1))
        assert engine.consolidate_memory("e1")
        assert store.get("e1").is_consolidated
        assert not engine.consolidate_memory("e1")

    def test_pattern_counts(self, engine, store, buffer, make_episodic, now):
        for i in range(3):
            admit(
                store, buffer,
                make_episodic(id=f"e{i}", entities=("john",), tags=("work",), importance=0.9),
            )
        result = engine.consolidate(now)
        assert result.consolidated == 3
        # (john, user) pair and the "work" tag
        assert result.patterns_detected == 2
        assert result.to_dict()["consolidated_ids"] == ["e0", "e1", "e2"]


class TestIntegration:
    def test_contradiction_newest_wins(self, engine, store, buffer, make_semantic, now):
        s1 = admit(store, buffer, make_semantic(id="s1", value="blue", created_at=now - timedelta(days=1)))
        admit(store, buffer, make_semantic(id="s2", value="red", created_at=now))
        assert s1.content.contradicts(store.get("s2").content)

        first = engine.consolidate()
        assert first.consolidated == 1
        assert s1.is_consolidated

        assert engine.consolidate_memory("s2")
        assert not store.exists("s2")
        assert "s2" not in buffer
        assert store.get("s1").content.value == "red"
        assert "Previous value: blue" in store.get("s1").content.contradictions

    def test_integrated_counted(self, engine, store, buffer, make_semantic, now):
        s1 = admit(store, buffer, make_semantic(id="s1", value="blue", created_at=now - timedelta(days=2)))
        s1.consolidate()
        admit(store, buffer, make_semantic(id="s2", value="red", importance=0.9))
        buffer.remove("s1")
        result = engine.consolidate()
        assert result.integrated == 1
        assert result.consolidated == 0

    def test_discard_callback(self, store, buffer, make_semantic, now):
        discarded = []
        engine = ConsolidationEngine(store, buffer, discard=discarded.append)
        s1 = make_semantic(id="s1", value="blue", created_at=now - timedelta(days=1))
        s1.consolidate()
        store.store(s1)
        admit(store, buffer, make_semantic(id="s2", value="red", importance=0.9))
        engine.consolidate()
        assert discarded == ["s2"]

    def test_persist_callback_receives_merged_fact(self, store, buffer, make_semantic, now):
        persisted = []
        engine = ConsolidationEngine(store, buffer, persist=persisted.append)
        s1 = make_semantic(id="s1", value="blue", created_at=now - timedelta(days=1))
        s1.consolidate()
        store.store(s1)
        admit(store, buffer, make_semantic(id="s2", value="red", importance=0.9))
        engine.consolidate()
        assert [r.id for r in persisted] == ["s1"]
        assert persisted[0].content.value == "red"

    def test_non_contradicting_semantic_consolidates(self, engine, store, buffer, make_semantic):
        s1 = make_semantic(id="s1", property="age", value=30)
        s1.consolidate()
        store.store(s1)
        admit(store, buffer, make_semantic(id="s2", importance=0.9))
        result = engine.consolidate()
        assert result.consolidated == 1
        assert store.exists("s2")
