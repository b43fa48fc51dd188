"""Module for getting recommendations.

Composes the repository, the scoring engine and the content similarity
calculator into the three public operations: personalized recommendations,
similar products and trending products.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set

from storerec.recommender.content import (
    CATEGORY_MATCH_WEIGHT,
    compute_content_signals,
    to_content_signals,
)
from storerec.recommender.engine import RecommendationEngine
from storerec.recommender.exceptions import InvalidRequestError
from storerec.recommender.repository import RecommendationRepository
from storerec.recommender.types import (
    CollaborativeSignal,
    ProductMetadata,
    RecommendationResult,
)
from storerec.recommender.utils import round_score, utcnow

# Configure module logger
logger = logging.getLogger(__name__)

# Default parameters
DEFAULT_LIMIT = 12
DEFAULT_SIMILAR_LIMIT = 8
ANONYMOUS_TRENDING_HOURS = 24 * 7
PERSONAL_TRENDING_HOURS = 24 * 3
DEFAULT_TRENDING_HOURS = 24 * 7

# Cosmetic per-rank discount for the anonymous trending list
ANONYMOUS_RANK_DISCOUNT = 0.02


def validate_limit(limit: object) -> int:
    """Check that limit is a positive integer.

    Raises:
        InvalidRequestError: If limit is not an int or is below 1.
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidRequestError("limit", "must be an integer", limit)
    if limit < 1:
        raise InvalidRequestError("limit", "must be at least 1", limit)
    return limit


def validate_identifier(field: str, value: object) -> str:
    """Check that an id is a non-blank string.

    Raises:
        InvalidRequestError: If value is not a string or is blank.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(field, "must be a non-empty string", value)
    return value


class RecommendationService:
    """Request-scoped orchestration of recommendation signals.

    Every operation validates its input before touching storage, reads what
    it needs from the repository, and returns at most `limit` results.
    Storage errors are not caught here.
    """

    def __init__(
        self,
        repository: RecommendationRepository,
        engine: Optional[RecommendationEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.engine = engine or RecommendationEngine()
        self.clock = clock

    def recommend_for_user(
        self,
        user_id: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        exclude_product_ids: Optional[Iterable[str]] = None,
    ) -> List[RecommendationResult]:
        """Get personalized recommendations for a user.

        Anonymous requests (no user_id) get the 7-day trending list with a
        small per-rank discount. Known users get their history, collaborative,
        content and 3-day trending signals merged, padded with trending items
        when the merge comes up short.

        Args:
            user_id: Requesting user, or None for anonymous visitors.
            limit: Maximum number of results.
            exclude_product_ids: Extra ids the caller does not want returned.

        Returns:
            Ranked list of RecommendationResult, at most limit long.

        Raises:
            InvalidRequestError: If limit is invalid.
        """
        validate_limit(limit)
        if user_id is not None and not isinstance(user_id, str):
            raise InvalidRequestError("user_id", "must be a string", user_id)
        caller_excluded = set(exclude_product_ids or [])

        start_time = time.perf_counter()
        now = self.clock()

        if not user_id:
            results = self._recommend_anonymous(limit, caller_excluded, now)
            logger.info(
                "Anonymous recommendations generated",
                extra={
                    "strategy": "anonymous_trending",
                    "num_recommendations": len(results),
                    "total_time_ms": round((time.perf_counter() - start_time) * 1000, 2),
                },
            )
            return results

        interactions = self.repository.fetch_user_interactions(user_id, now=now)
        personal_scores = self.engine.score_interactions(interactions, now=now)
        seed_product_ids = list(personal_scores.keys())
        seed_set = set(seed_product_ids)

        collaborative = self.repository.fetch_collaborative_signals(
            seed_product_ids, exclude_user_id=user_id
        )
        trending = self.repository.fetch_trending_signals(PERSONAL_TRENDING_HOURS, now=now)

        candidate_ids = list(
            dict.fromkeys(
                seed_product_ids
                + [signal.product_id for signal in collaborative]
                + [signal.product_id for signal in trending]
            )
        )
        metadata_by_id = self._metadata_by_id(candidate_ids)
        content = compute_content_signals(seed_product_ids, candidate_ids, metadata_by_id)

        excluded = seed_set | caller_excluded
        merged = self.engine.merge_signals(
            personal_scores=personal_scores,
            collaborative=collaborative,
            content=to_content_signals(content),
            trending=trending,
            limit=limit,
            exclude_product_ids=excluded,
        )

        num_merged = len(merged)
        if num_merged < limit:
            merged = self._pad_with_trending(merged, trending, excluded, limit)

        logger.info(
            "Personalized recommendations generated",
            extra={
                "user_id": user_id,
                "num_interactions": len(interactions),
                "num_seeds": len(seed_product_ids),
                "num_collaborative": len(collaborative),
                "num_content": len(content),
                "num_trending": len(trending),
                "num_merged": num_merged,
                "num_recommendations": len(merged),
                "total_time_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return merged

    def similar_to_product(
        self,
        product_id: str,
        limit: int = DEFAULT_SIMILAR_LIMIT,
        user_id: Optional[str] = None,
    ) -> List[RecommendationResult]:
        """Get products similar to a single seed product.

        Collaborative signals come from users who interacted with the product
        (excluding the requesting user); content signals compare the product
        with those candidates. Short lists are padded with products from the
        same category.

        Raises:
            InvalidRequestError: If product_id or limit is invalid.
        """
        validate_identifier("product_id", product_id)
        validate_limit(limit)

        start_time = time.perf_counter()

        collaborative = self.repository.fetch_collaborative_signals(
            [product_id], exclude_user_id=user_id or None
        )
        metadata_by_id = self._metadata_by_id(
            [product_id] + [signal.product_id for signal in collaborative]
        )
        content = compute_content_signals([product_id], list(metadata_by_id.keys()), metadata_by_id)

        merged = self.engine.merge_signals(
            personal_scores={},
            collaborative=collaborative,
            content=to_content_signals(content),
            limit=limit,
            exclude_product_ids={product_id},
        )

        num_merged = len(merged)
        seed_meta = metadata_by_id.get(product_id)
        if num_merged < limit and seed_meta is not None and seed_meta.category_id:
            merged = self._pad_with_category(merged, product_id, seed_meta, limit)

        logger.info(
            "Similar products generated",
            extra={
                "product_id": product_id,
                "num_collaborative": len(collaborative),
                "num_content": len(content),
                "num_merged": num_merged,
                "num_recommendations": len(merged),
                "total_time_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return merged

    def trending(
        self, limit: int = DEFAULT_LIMIT, hours: float = DEFAULT_TRENDING_HOURS
    ) -> List[RecommendationResult]:
        """Get the trending list for a time window, no merging.

        Raises:
            InvalidRequestError: If limit or hours is invalid.
        """
        validate_limit(limit)
        if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours <= 0:
            raise InvalidRequestError("hours", "must be a positive number", hours)

        signals = self.repository.fetch_trending_signals(hours, now=self.clock())
        results = [
            RecommendationResult(product_id=signal.product_id, score=round_score(signal.score))
            for signal in signals[:limit]
        ]

        logger.info(f"Trending list generated: window={hours}h, {len(results)} products")
        return results

    def _recommend_anonymous(
        self, limit: int, excluded: Set[str], now: datetime
    ) -> List[RecommendationResult]:
        trending = self.repository.fetch_trending_signals(ANONYMOUS_TRENDING_HOURS, now=now)
        ranked = [signal for signal in trending if signal.product_id not in excluded][:limit]
        return [
            RecommendationResult(
                product_id=signal.product_id,
                score=round_score(signal.score * (1 - index * ANONYMOUS_RANK_DISCOUNT)),
            )
            for index, signal in enumerate(ranked)
        ]

    def _metadata_by_id(self, product_ids: List[str]) -> Dict[str, ProductMetadata]:
        if not product_ids:
            return {}
        return {meta.id: meta for meta in self.repository.fetch_product_metadata(product_ids)}

    @staticmethod
    def _pad_with_trending(
        merged: List[RecommendationResult],
        trending: List[CollaborativeSignal],
        excluded: Set[str],
        limit: int,
    ) -> List[RecommendationResult]:
        """Fill a short personalized list with raw trending items."""
        results = list(merged)
        present = {result.product_id for result in results}
        for signal in trending:
            if len(results) >= limit:
                break
            if signal.product_id in excluded or signal.product_id in present:
                continue
            score = round_score(signal.score)
            if score <= 0:
                continue
            results.append(RecommendationResult(product_id=signal.product_id, score=score))
            present.add(signal.product_id)

        logger.debug(f"Padded {len(results) - len(merged)} trending items")
        return results

    def _pad_with_category(
        self,
        merged: List[RecommendationResult],
        product_id: str,
        seed_meta: ProductMetadata,
        limit: int,
    ) -> List[RecommendationResult]:
        """Fill a short similar-products list with same-category products, re-ranked."""
        present = {result.product_id for result in merged}
        needed = limit - len(merged)
        fallback_ids = self.repository.fetch_category_products(
            seed_meta.category_id,
            exclude_product_ids=present | {product_id},
            limit=needed,
        )
        score = round_score(CATEGORY_MATCH_WEIGHT * self.engine.weightings.content)

        results = list(merged)
        if score <= 0:
            return results
        for fallback_id in fallback_ids[:needed]:
            results.append(RecommendationResult(product_id=fallback_id, score=score))
        # fallback score can beat weak merged candidates; ties keep merged first
        results.sort(key=lambda result: result.score, reverse=True)

        logger.debug(
            f"Category fallback added {len(results) - len(merged)} products "
            f"from category {seed_meta.category_id}"
        )
        return results
