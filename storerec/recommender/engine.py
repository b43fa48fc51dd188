"""Hybrid scoring engine.

Turns a user's interaction history into time-decayed personal affinity
scores and merges personal, collaborative, content and trending signals
into a single ranked list.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Set

import numpy as np

from storerec.recommender.exceptions import ConfigurationError
from storerec.recommender.types import (
    CollaborativeSignal,
    ContentSignal,
    Interaction,
    InteractionType,
    RecommendationCandidate,
    RecommendationResult,
)
from storerec.recommender.utils import ensure_utc, round_score, utcnow

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_DECAY_HALF_LIFE_HOURS = 72.0
SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class Weightings:
    """Per-interaction-type base weights and per-signal blend weights."""

    view: float = 0.5
    cart: float = 0.9
    purchase: float = 1.2
    wishlist: float = 1.0
    remove_wishlist: float = 0.0
    remove_cart: float = 0.0
    collaborative: float = 0.6
    content: float = 0.4
    trending: float = 0.25

    def base_weight(self, interaction_type: InteractionType) -> float:
        return getattr(self, InteractionType(interaction_type).value)


@dataclass(frozen=True)
class EngineConfig:
    """Immutable engine configuration."""

    weightings: Weightings = field(default_factory=Weightings)
    decay_half_life_hours: float = DEFAULT_DECAY_HALF_LIFE_HOURS

    @classmethod
    def from_overrides(
        cls,
        weightings: Optional[Mapping[str, float]] = None,
        decay_half_life_hours: Optional[float] = None,
    ) -> "EngineConfig":
        """Build a config where only the given fields differ from the defaults.

        Args:
            weightings: Partial mapping of weighting name to value, e.g.
                {"trending": 0.5}. Unknown names are rejected.
            decay_half_life_hours: Half-life of the recency decay.

        Raises:
            ConfigurationError: If a name is unknown or a value is invalid.
        """
        known = {f.name for f in fields(Weightings)}
        overrides = dict(weightings or {})
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError("weightings", f"unknown weightings {sorted(unknown)}")

        config = cls(
            weightings=replace(Weightings(), **{k: float(v) for k, v in overrides.items()}),
            decay_half_life_hours=(
                DEFAULT_DECAY_HALF_LIFE_HOURS
                if decay_half_life_hours is None
                else float(decay_half_life_hours)
            ),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if not self.decay_half_life_hours > 0:
            raise ConfigurationError(
                "decay_half_life_hours",
                f"must be positive, got {self.decay_half_life_hours}",
            )
        for f in fields(self.weightings):
            value = getattr(self.weightings, f.name)
            if value < 0 or np.isnan(value):
                raise ConfigurationError(f"weightings.{f.name}", f"must be non-negative, got {value}")


class RecommendationEngine:
    """Scores interactions and merges recommendation signals.

    The engine holds only its configuration; every call builds its own
    accumulators, so one instance can serve concurrent requests.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.config.validate()

        logger.info(
            f"Initialized RecommendationEngine: "
            f"half_life={self.config.decay_half_life_hours}h, "
            f"collaborative={self.config.weightings.collaborative}, "
            f"content={self.config.weightings.content}, "
            f"trending={self.config.weightings.trending}"
        )

    @property
    def weightings(self) -> Weightings:
        return self.config.weightings

    def decay(self, age_hours: float) -> float:
        """Exponential recency decay, 1.0 at age zero and 0.5 at one half-life."""
        return float(0.5 ** (max(age_hours, 0.0) / self.config.decay_half_life_hours))

    def score_interactions(
        self,
        interactions: Iterable[Interaction],
        now: Optional[datetime] = None,
    ) -> Dict[str, float]:
        """Compute time-decayed personal affinity per product.

        Each interaction contributes
        base_weight[type] * 0.5 ** (age_hours / half_life) * (weight or 1),
        and contributions for the same product are summed without a cap.

        Args:
            interactions: The user's interactions, in any order.
            now: Reference time for ages. Defaults to the current UTC time.

        Returns:
            Dictionary mapping product_id to personal score, in first-seen order.
        """
        interactions = list(interactions)
        if not interactions:
            return {}

        now = ensure_utc(now) if now is not None else utcnow()

        ages = np.array(
            [
                (now - ensure_utc(interaction.occurred_at)).total_seconds() / SECONDS_PER_HOUR
                for interaction in interactions
            ],
            dtype=np.float64,
        )
        base = np.array(
            [self.weightings.base_weight(interaction.interaction_type) for interaction in interactions],
            dtype=np.float64,
        )
        multipliers = np.array(
            [1.0 if interaction.weight is None else interaction.weight for interaction in interactions],
            dtype=np.float64,
        )
        decayed = base * np.power(0.5, np.clip(ages, 0.0, None) / self.config.decay_half_life_hours) * multipliers

        scores: Dict[str, float] = {}
        for interaction, value in zip(interactions, decayed):
            scores[interaction.product_id] = scores.get(interaction.product_id, 0.0) + float(value)

        logger.debug(f"Scored {len(interactions)} interactions across {len(scores)} products")
        return scores

    def merge_signals(
        self,
        personal_scores: Mapping[str, float],
        collaborative: Iterable[CollaborativeSignal],
        content: Iterable[ContentSignal],
        limit: int,
        trending: Optional[Iterable[CollaborativeSignal]] = None,
        exclude_product_ids: Optional[Set[str]] = None,
    ) -> List[RecommendationResult]:
        """Blend all signal sources into a ranked, size-bounded result list.

        Candidates are discovered from collaborative, content, trending and
        personal sources in that order. Repeated entries within a source are
        summed. Personal scores land in the collaborative bucket and are
        additionally weighted by the view weighting.

        Args:
            personal_scores: Output of score_interactions.
            collaborative: Collaborative signals.
            content: Content signals.
            limit: Maximum number of results.
            trending: Optional trending signals.
            exclude_product_ids: Ids that must never appear in the output.

        Returns:
            Results sorted by descending score, ties kept in discovery order.
        """
        excluded = exclude_product_ids or set()
        candidates: Dict[str, RecommendationCandidate] = {}

        def upsert(product_id: str) -> Optional[RecommendationCandidate]:
            if product_id in excluded:
                return None
            candidate = candidates.get(product_id)
            if candidate is None:
                candidate = RecommendationCandidate(product_id=product_id)
                candidates[product_id] = candidate
            return candidate

        for signal in collaborative:
            candidate = upsert(signal.product_id)
            if candidate:
                candidate.collaborative += signal.score

        for signal in content:
            candidate = upsert(signal.product_id)
            if candidate:
                candidate.content += signal.overlap

        for signal in trending or []:
            candidate = upsert(signal.product_id)
            if candidate:
                candidate.trending += signal.score

        for product_id, score in personal_scores.items():
            candidate = upsert(product_id)
            if candidate:
                candidate.collaborative += score

        w = self.weightings
        results: List[RecommendationResult] = []
        for candidate in candidates.values():
            total = (
                candidate.collaborative * w.collaborative
                + candidate.content * w.content
                + candidate.trending * w.trending
                + personal_scores.get(candidate.product_id, 0.0) * w.view
            )
            if total <= 0:
                continue
            score = round_score(total)
            # rounding can push tiny totals to zero
            if score <= 0:
                continue
            results.append(RecommendationResult(product_id=candidate.product_id, score=score))

        results.sort(key=lambda result: result.score, reverse=True)

        logger.debug(
            f"Merged {len(candidates)} candidates into {len(results)} scored results, limit={limit}"
        )
        return results[: max(limit, 0)]
