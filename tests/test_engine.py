"""Tests for the hybrid scoring engine.

Covers recency decay, personal affinity scoring, signal merging and
engine configuration.
"""

from datetime import timedelta

import pytest

from conftest import NOW
from storerec.recommender.engine import EngineConfig, RecommendationEngine, Weightings
from storerec.recommender.exceptions import ConfigurationError
from storerec.recommender.types import (
    CollaborativeSignal,
    ContentSignal,
    Interaction,
    InteractionType,
)


@pytest.fixture
def engine():
    """Fixture providing an engine with default weightings."""
    return RecommendationEngine()


def interaction(product_id, kind, hours_ago=0.0, weight=None):
    return Interaction(
        user_id="U1",
        product_id=product_id,
        interaction_type=kind,
        occurred_at=NOW - timedelta(hours=hours_ago),
        weight=weight,
    )


def test_decay_half_life(engine):
    assert engine.decay(0) == 1.0
    assert engine.decay(72) == pytest.approx(0.5)
    assert engine.decay(144) == pytest.approx(0.25)


def test_decay_clamps_future_timestamps(engine):
    """Negative ages (clock skew) count as age zero."""
    assert engine.decay(-10) == 1.0


def test_score_interactions_uses_base_weights(engine):
    scores = engine.score_interactions(
        [
            interaction("P1", InteractionType.PURCHASE),
            interaction("P2", InteractionType.VIEW, hours_ago=72),
        ],
        now=NOW,
    )

    assert scores["P1"] == pytest.approx(1.2)
    assert scores["P2"] == pytest.approx(0.25)


def test_score_interactions_sums_per_product_without_cap(engine):
    scores = engine.score_interactions(
        [interaction("P1", InteractionType.PURCHASE) for _ in range(5)],
        now=NOW,
    )

    assert scores == {"P1": pytest.approx(6.0)}


def test_score_interactions_applies_weight_multiplier(engine):
    scores = engine.score_interactions(
        [interaction("P1", InteractionType.CART, weight=2.0)],
        now=NOW,
    )

    assert scores["P1"] == pytest.approx(1.8)


def test_score_interactions_future_event_gets_full_weight(engine):
    scores = engine.score_interactions(
        [interaction("P1", InteractionType.WISHLIST, hours_ago=-5)],
        now=NOW,
    )

    assert scores["P1"] == pytest.approx(1.0)


def test_score_interactions_removal_types_contribute_nothing(engine):
    scores = engine.score_interactions(
        [
            interaction("P1", InteractionType.REMOVE_CART),
            interaction("P2", InteractionType.REMOVE_WISHLIST),
        ],
        now=NOW,
    )

    assert scores == {"P1": 0.0, "P2": 0.0}


def test_score_interactions_empty(engine):
    assert engine.score_interactions([], now=NOW) == {}


def test_score_interactions_decreases_with_age(engine):
    """An older event of the same type always scores strictly lower than a newer one."""
    ages = [0, 1, 12, 48, 100, 500]
    scores = [
        engine.score_interactions([interaction("P1", InteractionType.VIEW, hours_ago=age)], now=NOW)["P1"]
        for age in ages
    ]

    assert all(newer > older for newer, older in zip(scores, scores[1:]))
    assert scores[-1] > 0


def test_merge_signals_blends_all_sources(engine):
    results = engine.merge_signals(
        personal_scores={"A": 1.0},
        collaborative=[CollaborativeSignal("B", 2.0)],
        content=[ContentSignal("C", 1.0)],
        trending=[CollaborativeSignal("D", 1.0)],
        limit=10,
    )

    # A: 1.0 * 0.6 + 1.0 * 0.5
    assert [(r.product_id, r.score) for r in results] == [
        ("B", 1.2),
        ("A", 1.1),
        ("C", 0.4),
        ("D", 0.25),
    ]


def test_merge_signals_sums_repeated_signals(engine):
    results = engine.merge_signals(
        personal_scores={},
        collaborative=[CollaborativeSignal("B", 1.0), CollaborativeSignal("B", 1.0)],
        content=[ContentSignal("B", 0.5)],
        limit=10,
    )

    assert results[0].product_id == "B"
    assert results[0].score == pytest.approx(1.4)


def test_merge_signals_never_returns_excluded_ids(engine):
    results = engine.merge_signals(
        personal_scores={"A": 3.0},
        collaborative=[CollaborativeSignal("B", 2.0), CollaborativeSignal("C", 1.0)],
        content=[ContentSignal("A", 1.0)],
        trending=[CollaborativeSignal("B", 5.0)],
        limit=10,
        exclude_product_ids={"A", "B"},
    )

    assert [r.product_id for r in results] == ["C"]


def test_merge_signals_respects_limit_and_order(engine):
    collaborative = [CollaborativeSignal(f"P{i}", float(i)) for i in range(1, 21)]

    results = engine.merge_signals(
        personal_scores={},
        collaborative=collaborative,
        content=[],
        limit=5,
    )

    assert len(results) == 5
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert results[0].product_id == "P20"


def test_merge_signals_keeps_discovery_order_on_ties(engine):
    results = engine.merge_signals(
        personal_scores={},
        collaborative=[CollaborativeSignal("X", 1.0), CollaborativeSignal("Y", 1.0)],
        content=[ContentSignal("Z", 1.5)],
        limit=10,
    )

    assert [r.product_id for r in results] == ["X", "Y", "Z"]


def test_merge_signals_rounds_to_four_decimals(engine):
    results = engine.merge_signals(
        personal_scores={},
        collaborative=[CollaborativeSignal("A", 1 / 3)],
        content=[],
        limit=1,
    )

    assert results[0].score == 0.2
    assert round(results[0].score, 4) == results[0].score


def test_merge_signals_drops_non_positive_totals(engine):
    results = engine.merge_signals(
        personal_scores={"A": 0.0},
        collaborative=[CollaborativeSignal("B", 0.0), CollaborativeSignal("C", 0.00001)],
        content=[],
        limit=10,
    )

    assert results == []


def test_merge_signals_zero_limit(engine):
    results = engine.merge_signals(
        personal_scores={},
        collaborative=[CollaborativeSignal("A", 1.0)],
        content=[],
        limit=0,
    )

    assert results == []


def test_custom_weightings_change_blend():
    config = EngineConfig.from_overrides(weightings={"trending": 0.0, "content": 1.0})
    engine = RecommendationEngine(config)

    results = engine.merge_signals(
        personal_scores={},
        collaborative=[],
        content=[ContentSignal("C", 2.0)],
        trending=[CollaborativeSignal("T", 10.0)],
        limit=10,
    )

    assert [(r.product_id, r.score) for r in results] == [("C", 2.0)]


def test_custom_half_life():
    engine = RecommendationEngine(EngineConfig.from_overrides(decay_half_life_hours=24))

    assert engine.decay(24) == pytest.approx(0.5)


def test_from_overrides_rejects_unknown_weighting():
    with pytest.raises(ConfigurationError) as exc_info:
        EngineConfig.from_overrides(weightings={"popularity": 1.0})

    assert "popularity" in exc_info.value.message


def test_config_rejects_invalid_values():
    with pytest.raises(ConfigurationError):
        EngineConfig.from_overrides(weightings={"view": -1.0})

    with pytest.raises(ConfigurationError):
        EngineConfig.from_overrides(decay_half_life_hours=0)

    with pytest.raises(ConfigurationError):
        RecommendationEngine(EngineConfig(weightings=Weightings(cart=float("nan"))))


def test_default_weightings():
    weightings = Weightings()

    assert weightings.base_weight(InteractionType.VIEW) == 0.5
    assert weightings.base_weight(InteractionType.CART) == 0.9
    assert weightings.base_weight(InteractionType.PURCHASE) == 1.2
    assert weightings.base_weight(InteractionType.WISHLIST) == 1.0
    assert weightings.base_weight("remove_cart") == 0.0
