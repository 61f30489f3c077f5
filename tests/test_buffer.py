"""Tests for mnemos.consolidation.buffer — the short-term buffer."""

from datetime import timedelta

import pytest

from mnemos.consolidation import ShortTermBuffer


@pytest.fixture
def buffer(clock):
    return ShortTermBuffer(capacity=3, window_s=3600, clock=clock)


class TestCapacity:
    def test_never_exceeds_capacity(self, clock, make_episodic):
        buf = ShortTermBuffer(capacity=50, clock=clock)
        for i in range(100):
            buf.add(make_episodic(id=f"e{i}"))
            assert buf.size <= 50
        assert buf.is_full()
        buf.clear()
        assert len(buf) == 0

    def test_evicts_lowest_retention(self, buffer, make_episodic):
        buffer.add(make_episodic(id="keep1", importance=0.9))
        buffer.add(make_episodic(id="drop", importance=0.1))
        buffer.add(make_episodic(id="keep2", importance=0.8))
        evicted = buffer.add(make_episodic(id="new", importance=0.5))
        assert evicted.id == "drop"
        assert "drop" not in buffer
        assert "new" in buffer

    def test_readd_does_not_evict(self, buffer, make_episodic):
        for i in range(3):
            buffer.add(make_episodic(id=f"e{i}"))
        assert buffer.add(make_episodic(id="e1")) is None
        assert buffer.size == 3

    def test_on_evict_called_and_errors_contained(self, clock, make_episodic):
        seen = []

        def boom(record):
            seen.append(record.id)
            raise RuntimeError("callback failed")

        buf = ShortTermBuffer(capacity=1, on_evict=boom, clock=clock)
        buf.add(make_episodic(id="a"))
        buf.add(make_episodic(id="b"))
        assert seen == ["a"]
        assert "b" in buf


class TestRetention:
    def test_score_components(self, buffer, make_episodic, now):
        rec = make_episodic(importance=1.0)
        assert buffer.retention_score(rec, now) == pytest.approx(0.5 + 0.3)
        for _ in range(20):
            rec.record_access()
        assert buffer.retention_score(rec, now) == pytest.approx(1.0)

    def test_recency_falls_off(self, buffer, make_episodic, now):
        rec = make_episodic(importance=0.0, created_at=now - timedelta(hours=1))
        assert buffer.retention_score(rec, now) == pytest.approx(0.3 * 0.36788, rel=1e-3)


class TestReadiness:
    def test_old_or_important(self, buffer, make_episodic, now):
        buffer.add(make_episodic(id="fresh", importance=0.5))
        buffer.add(make_episodic(id="old", importance=0.5, created_at=now - timedelta(hours=2)))
        buffer.add(make_episodic(id="vital", importance=0.85))
        ready = {r.id for r in buffer.ready_for_consolidation()}
        assert ready == {"old", "vital"}

    def test_explicit_time(self, buffer, make_episodic, now):
        buffer.add(make_episodic(id="fresh", importance=0.5))
        later = now + timedelta(hours=2)
        assert [r.id for r in buffer.ready_for_consolidation(later)] == ["fresh"]


class TestDecayAndStats:
    def test_apply_decay(self, buffer, make_episodic):
        rec = make_episodic(importance=0.8)
        buffer.add(rec)
        buffer.apply_decay(0.5)
        assert rec.decay_factor == pytest.approx(0.5)
        buffer.apply_decay(0)
        assert rec.decay_factor == pytest.approx(0.5)

    def test_stats(self, buffer, make_episodic, now):
        buffer.add(make_episodic(id="a", importance=0.4))
        buffer.add(make_episodic(id="b", importance=0.8, created_at=now - timedelta(minutes=30)))
        stats = buffer.stats()
        assert stats["size"] == 2
        assert stats["capacity"] == 3
        assert stats["utilization"] == pytest.approx(2 / 3)
        assert stats["average_importance"] == pytest.approx(0.6)
        assert stats["oldest_age_s"] == pytest.approx(1800)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ShortTermBuffer(capacity=0)
