"""Tests for mnemos.consolidation.attention — importance re-weighting."""

import math
from datetime import timedelta

import pytest

from mnemos.consolidation import AttentionComponents, AttentionMechanism


@pytest.fixture
def attention():
    return AttentionMechanism(enable_self_attention=False)


class TestComponents:
    def test_recency(self, make_episodic, now):
        assert AttentionMechanism.recency(make_episodic(), now) == pytest.approx(1.0)
        old = make_episodic(created_at=now - timedelta(days=30))
        assert AttentionMechanism.recency(old, now) == pytest.approx(math.exp(-1))

    def test_frequency(self, make_episodic):
        rec = make_episodic()
        assert AttentionMechanism.frequency(rec) == 0.0
        rec.metadata.access_count = 99
        assert AttentionMechanism.frequency(rec) == pytest.approx(1.0)

    def test_connectivity(self, make_episodic):
        rec = make_episodic(entities=("john",), tags=("a", "b", "c"))
        assert AttentionMechanism.connectivity(rec) == pytest.approx(0.5)
        assert AttentionMechanism.connectivity(rec, 0) == 0.0
        assert AttentionMechanism.connectivity(rec, 19) == pytest.approx(1.0)

    def test_emotional(self, make_episodic):
        assert AttentionMechanism.emotional(make_episodic(tags=("Stressful",))) == 0.8
        assert AttentionMechanism.emotional(make_episodic(importance=0.6)) == pytest.approx(0.3)

    def test_interaction(self, make_episodic, now):
        assert AttentionMechanism.interaction(make_episodic(), now) == 0.0
        rec = make_episodic(created_at=now - timedelta(days=10))
        rec.metadata.last_accessed_at = now - timedelta(days=5)
        assert AttentionMechanism.interaction(rec, now) == pytest.approx(0.5)


class TestWeights:
    def test_normalised_on_construction(self):
        mech = AttentionMechanism(1, 1, 1, 1, 1)
        assert mech.recency_weight == pytest.approx(0.2)
        assert sum(v for k, v in mech.config.items() if k.endswith("_weight")) == pytest.approx(1.0)

    def test_update_config(self, attention):
        attention.update_config(recency_weight=1.75)
        assert attention.recency_weight == pytest.approx(1.75 / 2.5)
        attention.update_config(enable_self_attention=True)
        assert attention.config["enable_self_attention"] is True

    def test_unknown_setting(self, attention):
        with pytest.raises(ValueError):
            attention.update_config(novelty_weight=0.5)


class TestScoring:
    def test_fresh_record(self, attention, make_episodic, now):
        components = attention.calculate(make_episodic(), current_time=now)
        # recency 1, connectivity 0.1 (one entity), emotional 0.25
        assert components.final_score == pytest.approx(0.25 + 0.2 * 0.1 + 0.15 * 0.25)
        assert components.self_attention == 0.0

    def test_self_attention_bonus(self, make_episodic, now):
        mech = AttentionMechanism()
        a, b = make_episodic(id="a"), make_episodic(id="b")
        with_batch = mech.calculate(a, [a, b], current_time=now)
        alone = mech.calculate(a, current_time=now)
        # shared entity 0.4 + same kind 0.2 + same time 0.1
        assert with_batch.self_attention == pytest.approx(0.7)
        assert with_batch.final_score == pytest.approx(alone.final_score + 0.07)

    def test_batch_uses_association_counts(self, attention, make_episodic, now):
        records = [make_episodic(id="a"), make_episodic(id="b")]
        scores = attention.batch_calculate(records, {"a": 19}, current_time=now)
        assert set(scores) == {"a", "b"}
        assert scores["a"].connectivity == pytest.approx(1.0)
        assert scores["b"].connectivity == pytest.approx(0.1)

    def test_apply_to_importance(self, make_episodic):
        rec = make_episodic(importance=0.5)
        components = AttentionComponents(1, 1, 1, 1, 1, 0, final_score=0.9)
        assert AttentionMechanism.apply_to_importance(rec, components, blend=0.5) == pytest.approx(0.7)
        assert rec.metadata.importance == pytest.approx(0.7)
        assert components.to_dict()["final_score"] == 0.9
