"""Tests for mnemos.storage — the store contract and in-memory backend."""

import json
from datetime import timedelta

import pytest

from mnemos.core.errors import MemoryImportError, NotFoundError, ValidationError
from mnemos.core.types import MemoryKind
from mnemos.storage import InMemoryStore, QueryOptions, SortKey


@pytest.fixture
def populated(store, make_episodic, make_semantic, make_emotional, now):
    store.store(make_episodic(id="e1", entities=("john",), tags=("work",), importance=0.9))
    store.store(
        make_episodic(
            id="e2", entities=("jane",), tags=("Home",), importance=0.3,
            created_at=now - timedelta(days=3),
        )
    )
    store.store(make_semantic(id="s1", importance=0.6, confidence=0.95))
    store.store(make_emotional(id="m1", importance=0.4))
    return store


class TestInMemoryStore:
    def test_store_and_retrieve_counts_access(self, store, make_episodic):
        store.store(make_episodic(id="e1"))
        rec = store.retrieve("e1")
        assert rec.metadata.access_count == 1
        store.retrieve("e1")
        assert rec.metadata.access_count == 2

    def test_get_does_not_count_access(self, store, make_episodic):
        store.store(make_episodic(id="e1"))
        assert store.get("e1").metadata.access_count == 0

    def test_retrieve_missing(self, store):
        assert store.retrieve("nope") is None

    def test_store_rejects_invalid(self, store, make_emotional):
        bad = make_emotional(intensity=2.0)
        with pytest.raises(ValidationError):
            store.store(bad)
        assert not store.exists(bad.id)

    def test_update_unknown(self, store, make_episodic):
        with pytest.raises(NotFoundError) as exc_info:
            store.update(make_episodic(id="ghost"))
        assert exc_info.value.record_id == "ghost"

    def test_update_invalid_leaves_store_untouched(self, store, make_emotional):
        rec = make_emotional(id="m1")
        store.store(rec)
        broken = make_emotional(id="m1", valence=5.0)
        with pytest.raises(ValidationError):
            store.update(broken)
        assert store.get("m1") is rec

    def test_delete(self, populated):
        assert populated.delete("e1")
        assert not populated.delete("e1")
        assert not populated.exists("e1")

    def test_bulk(self, store, make_episodic, make_emotional):
        store.bulk_store([make_episodic(id="a"), make_episodic(id="b")])
        assert store.count() == 2
        with pytest.raises(ValidationError):
            store.bulk_store([make_episodic(id="c"), make_emotional(id="d", arousal=9)])
        assert not store.exists("c")
        assert store.bulk_delete(["a", "b", "zzz"]) == 2

    def test_clear(self, populated):
        populated.clear()
        assert populated.count() == 0
        assert len(populated) == 0


class TestQuery:
    def test_kind(self, populated):
        ids = {r.id for r in populated.query(QueryOptions(kind=MemoryKind.EPISODIC))}
        assert ids == {"e1", "e2"}

    def test_tags_any_case_insensitive(self, populated):
        ids = {r.id for r in populated.query(QueryOptions(tags=["home", "WORK"]))}
        assert ids == {"e1", "e2"}

    def test_entities_any(self, populated):
        ids = {r.id for r in populated.query(QueryOptions(entities=["john", "John"]))}
        assert ids == {"e1", "s1"}

    def test_conjunctive_across_fields(self, populated):
        opts = QueryOptions(kind=MemoryKind.EPISODIC, entities=["john", "jane"], min_importance=0.5)
        assert [r.id for r in populated.query(opts)] == ["e1"]

    def test_date_range(self, populated, now):
        opts = QueryOptions(date_range=(now - timedelta(days=4), now - timedelta(days=2)))
        assert [r.id for r in populated.query(opts)] == ["e2"]

    def test_date_range_naive_bounds_read_as_utc(self, populated, now):
        naive = now.replace(tzinfo=None)
        opts = QueryOptions(date_range=(naive - timedelta(days=4), naive - timedelta(days=2)))
        assert [r.id for r in populated.query(opts)] == ["e2"]

    def test_min_confidence_and_consolidated(self, populated):
        assert [r.id for r in populated.query(QueryOptions(min_confidence=0.9))] == ["s1"]
        populated.get("m1").consolidate()
        assert [r.id for r in populated.query(QueryOptions(consolidated_only=True))] == ["m1"]

    def test_sort_and_page(self, populated):
        opts = QueryOptions(sort_by=SortKey.IMPORTANCE, sort_direction="desc")
        assert [r.id for r in populated.query(opts)] == ["e1", "s1", "m1", "e2"]
        opts = QueryOptions(sort_by="importance", sort_direction="asc", offset=1, limit=2)
        assert [r.id for r in populated.query(opts)] == ["m1", "s1"]

    def test_bad_direction(self):
        with pytest.raises(ValueError):
            QueryOptions(sort_direction="sideways")


class TestStats:
    def test_stats(self, populated):
        stats = populated.stats()
        assert stats["total_memories"] == 4
        assert stats["by_kind"]["episodic"] == 2
        assert stats["by_kind"]["procedural"] == 0
        assert stats["consolidated_count"] == 0
        assert stats["average_importance"] == pytest.approx((0.9 + 0.3 + 0.6 + 0.4) / 4)
        assert stats["storage_size"] > 0


class TestExportImport:
    def test_round_trip(self, populated):
        data = populated.export()
        ids = {r.id for r in populated.get_all()}
        populated.clear()
        assert populated.import_(data) == 4
        assert {r.id for r in populated.get_all()} == ids

    def test_export_is_json_array(self, populated):
        parsed = json.loads(populated.export())
        assert isinstance(parsed, list)
        assert {d["kind"] for d in parsed} == {"episodic", "semantic", "emotional"}

    def test_bad_entries_skipped(self, populated):
        entries = json.loads(populated.export())
        entries[0]["kind"] = "dream"
        entries[1]["content"] = {"state": {"primary_emotion": "joy", "intensity": 7}}
        entries[1]["kind"] = "emotional"
        fresh = InMemoryStore()
        assert fresh.import_(json.dumps(entries)) == 2

    def test_single_object(self, make_episodic):
        fresh = InMemoryStore()
        assert fresh.import_(make_episodic(id="solo").to_json()) == 1
        assert fresh.exists("solo")

    def test_unparseable(self, store):
        with pytest.raises(MemoryImportError):
            store.import_("{not json")


class TestOptimize:
    def test_drops_decayed_unconsolidated(self, store, make_episodic):
        faded = make_episodic(id="faded")
        kept = make_episodic(id="kept")
        consolidated = make_episodic(id="old")
        for rec in (faded, kept, consolidated):
            store.store(rec)
        faded.decay_factor = 0.005
        consolidated.decay_factor = 0.005
        consolidated.consolidate()
        assert store.optimize() == 1
        assert {r.id for r in store.get_all()} == {"kept", "old"}
