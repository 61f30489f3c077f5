"""Tests for mnemos.indexing — inverted, temporal and semantic indexes."""

from datetime import datetime, timedelta, timezone
from unittest import mock

import numpy as np
import pytest

from mnemos.core.types import MemoryKind
from mnemos.indexing import (
    EntityIndex,
    IndexSet,
    SemanticIndex,
    TagIndex,
    TemporalIndex,
    TypeIndex,
    bucket_key,
    cosine_similarity,
    hashed_bag_of_words,
)


class TestEntityIndex:
    def test_query_and_remove(self, make_episodic):
        idx = EntityIndex()
        idx.add(make_episodic(id="e1", entities=("john",)))
        idx.add(make_episodic(id="e2", entities=("jane",)))
        assert idx.query("john") == {"e1"}
        assert idx.query("user") == {"e1", "e2"}
        idx.remove("e1")
        assert idx.query("john") == set()
        assert "john" not in idx.keys()

    def test_query_all_intersects(self, make_episodic):
        idx = EntityIndex()
        idx.add(make_episodic(id="e1", entities=("john", "jane")))
        idx.add(make_episodic(id="e2", entities=("john",)))
        assert idx.query_all(["john", "jane"]) == {"e1"}
        assert idx.query_all([]) == set()
        assert idx.entities_for("e2") == {"john", "user"}

    def test_readd_replaces_keys(self, make_episodic):
        idx = EntityIndex()
        rec = make_episodic(id="e1", entities=("john",), participants=("bob",))
        idx.add(rec)
        rec.metadata.entities = ["jane"]
        idx.add(rec)
        assert idx.query("john") == set()
        assert idx.query("jane") == {"e1"}

    def test_returned_sets_are_copies(self, make_episodic):
        idx = EntityIndex()
        idx.add(make_episodic(id="e1", entities=("john",)))
        idx.query("john").add("intruder")
        assert idx.query("john") == {"e1"}


class TestTagIndex:
    def test_case_folded(self, make_episodic):
        idx = TagIndex()
        idx.add(make_episodic(id="e1", tags=("Work",)))
        assert idx.query("WORK") == {"e1"}
        assert idx.keys() == ["work"]

    def test_query_any_unions(self, make_episodic):
        idx = TagIndex()
        idx.add(make_episodic(id="e1", tags=("work",)))
        idx.add(make_episodic(id="e2", tags=("home",)))
        assert idx.query_any(["work", "home", "gym"]) == {"e1", "e2"}

    def test_stats(self, make_episodic):
        idx = TagIndex()
        idx.add(make_episodic(id="e1", tags=("a", "b")))
        idx.add(make_episodic(id="e2", tags=("a",)))
        assert idx.stats() == {
            "unique_keys": 2,
            "total_entries": 3,
            "average_entries_per_key": 1.5,
        }


class TestTypeIndex:
    def test_query_and_remove(self, make_episodic, make_semantic):
        idx = TypeIndex()
        idx.add(make_episodic(id="e1"))
        idx.add(make_semantic(id="s1"))
        assert idx.query(MemoryKind.EPISODIC) == {"e1"}
        assert idx.query("semantic") == {"s1"}
        idx.remove("s1")
        assert MemoryKind.SEMANTIC not in idx.keys()


class TestTemporalIndex:
    def test_bucket_key(self):
        ts = datetime(2024, 3, 5, 7, 30, tzinfo=timezone.utc)
        assert bucket_key(ts) == "2024-03-05"
        assert bucket_key(ts, "hour") == "2024-03-05T07"
        assert bucket_key(ts, "month") == "2024-03"
        with pytest.raises(ValueError):
            bucket_key(ts, "week")

    def test_range_inclusive(self, make_episodic, now):
        idx = TemporalIndex()
        for days in range(5):
            idx.add(make_episodic(id=f"e{days}", created_at=now - timedelta(days=days)))
        found = idx.query_range(now - timedelta(days=3), now - timedelta(days=1))
        assert found == {"e1", "e2", "e3"}

    def test_today_last_n_and_month(self, make_episodic, now):
        idx = TemporalIndex()
        idx.add(make_episodic(id="today", created_at=now))
        idx.add(make_episodic(id="week", created_at=now - timedelta(days=6)))
        idx.add(make_episodic(id="old", created_at=now - timedelta(days=40)))
        assert idx.query_today(now) == {"today"}
        assert idx.query_last_n_days(7, at=now) == {"today", "week"}
        assert idx.query_month(2024, 6) == {"today", "week"}
        assert idx.query_month(2024, 5) == {"old"}

    def test_remove_drops_empty_bucket(self, make_episodic, now):
        idx = TemporalIndex()
        idx.add(make_episodic(id="e1", created_at=now))
        idx.remove("e1")
        assert idx.buckets() == []


class TestSemanticIndex:
    def test_hashed_vector_normalised(self):
        vec = hashed_bag_of_words("The quick brown fox jumps", 100)
        assert vec.shape == (100,)
        assert np.linalg.norm(vec) == pytest.approx(1.0)

    def test_short_words_ignored(self):
        assert not hashed_bag_of_words("a an to", 100).any()

    def test_deterministic(self):
        a = hashed_bag_of_words("coffee in the morning")
        b = hashed_bag_of_words("coffee in the morning")
        assert cosine_similarity(a, b) == pytest.approx(1.0)

    def test_cosine_shape_mismatch(self):
        assert cosine_similarity(np.ones(3), np.ones(4)) == 0.0

    def test_search_finds_related_text(self, make_episodic):
        idx = SemanticIndex()
        idx.add(make_episodic(id="coffee", description="brewing espresso coffee beans"))
        idx.add(make_episodic(id="hike", description="mountain hiking trail adventure"))
        hits = idx.search("espresso coffee", limit=5, min_similarity=0.1)
        assert hits[0][0] == "coffee"
        assert all(rid != "hike" or sim < hits[0][1] for rid, sim in hits)

    def test_find_similar_excludes_self(self, make_episodic):
        idx = SemanticIndex()
        idx.add(make_episodic(id="a", description="coffee beans roasting"))
        idx.add(make_episodic(id="b", description="coffee beans grinding"))
        hits = idx.find_similar("a", min_similarity=0.0)
        assert [rid for rid, _ in hits] == ["b"]
        assert idx.find_similar("missing") == []

    def test_injected_embedding_func(self, make_episodic):
        func = mock.Mock(return_value=[1.0, 0.0, 0.0])
        idx = SemanticIndex(embedding_func=func)
        idx.add(make_episodic(id="e1"))
        hits = idx.search("anything", min_similarity=0.9)
        assert hits == [("e1", pytest.approx(1.0))]
        assert func.call_count == 2

    def test_limit_and_stats(self, make_episodic):
        idx = SemanticIndex()
        for i in range(5):
            idx.add(make_episodic(id=f"e{i}", description="shared words here"))
        assert len(idx.search("shared words here", limit=3, min_similarity=0.0)) == 3
        stats = idx.stats()
        assert stats["total_embeddings"] == 5
        assert stats["average_dimensions"] == 100
        idx.remove("e0")
        assert len(idx) == 4


class TestIndexSet:
    def test_add_remove_everywhere(self, make_episodic):
        indexes = IndexSet(SemanticIndex())
        rec = make_episodic(id="e1", entities=("john",), tags=("work",))
        indexes.add(rec)
        assert indexes.entities.query("john") == {"e1"}
        assert indexes.semantic.ids() == ["e1"]
        indexes.remove("e1")
        assert indexes.entities.query("john") == set()
        assert indexes.tags.query("work") == set()
        assert indexes.types.query(MemoryKind.EPISODIC) == set()
        assert indexes.temporal.buckets() == []
        assert indexes.semantic.ids() == []

    def test_rebuild(self, make_episodic):
        indexes = IndexSet()
        indexes.add(make_episodic(id="stale", tags=("x",)))
        indexes.rebuild([make_episodic(id="fresh", tags=("y",))])
        assert indexes.tags.query("x") == set()
        assert indexes.tags.query("y") == {"fresh"}
