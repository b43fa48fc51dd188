"""Data access for the recommendation core.

RecommendationRepository is the contract the service depends on. It returns
typed records only; FrameRecommendationRepository implements it over pandas
DataFrames and is the one place where storage rows are translated.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from storerec.recommender.exceptions import ConfigurationError
from storerec.recommender.types import (
    CollaborativeSignal,
    Interaction,
    InteractionType,
    ProductMetadata,
)
from storerec.recommender.utils import (
    build_interaction_matrix,
    empty_interactions_frame,
    empty_quantity_frame,
    ensure_utc,
    load_data_directory,
    normalize_interactions_frame,
    normalize_products_frame,
    normalize_quantity_frame,
    utcnow,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Storage default for interactions recorded without an explicit weight
DEFAULT_INTERACTION_WEIGHT = 1.0


@dataclass(frozen=True)
class RepositoryConfig:
    """Windows and caps applied by repository reads."""

    max_interaction_lookback_hours: float = 24 * 14
    max_seed_products: int = 50
    collaborative_limit: int = 100
    trending_limit: int = 50
    trending_min_products: int = 8

    def validate(self) -> None:
        if not self.max_interaction_lookback_hours > 0:
            raise ConfigurationError("max_interaction_lookback_hours", "must be positive")
        for name in ("max_seed_products", "collaborative_limit", "trending_limit"):
            if getattr(self, name) < 1:
                raise ConfigurationError(name, "must be at least 1")
        if self.trending_min_products < 0:
            raise ConfigurationError("trending_min_products", "must be non-negative")


class RecommendationRepository(ABC):
    """Read contract between the recommendation core and storage.

    Implementations must let storage failures propagate; an empty return
    value always means "no data", never "read failed".
    """

    def __init__(self, config: Optional[RepositoryConfig] = None):
        self.config = config or RepositoryConfig()
        self.config.validate()

    @abstractmethod
    def fetch_user_interactions(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[Interaction]:
        """Most recent interactions of a user inside the lookback window, newest first."""

    @abstractmethod
    def fetch_collaborative_signals(
        self,
        seed_product_ids: List[str],
        exclude_user_id: Optional[str] = None,
    ) -> List[CollaborativeSignal]:
        """Total interaction weight per product among users who touched any seed."""

    @abstractmethod
    def fetch_trending_signals(
        self, hours: float, now: Optional[datetime] = None
    ) -> List[CollaborativeSignal]:
        """Interaction weight per product in the window, with cart/order fallback."""

    @abstractmethod
    def fetch_product_metadata(self, product_ids: Iterable[str]) -> List[ProductMetadata]:
        """Metadata for the given products; unknown ids are omitted."""

    @abstractmethod
    def fetch_category_products(
        self,
        category_id: str,
        exclude_product_ids: Iterable[str],
        limit: int,
    ) -> List[str]:
        """Ids of products in a category, excluding the given ids."""

    @abstractmethod
    def record_interaction(self, interaction: Interaction, session_id: Optional[str] = None) -> None:
        """Append one interaction to the log."""


class FrameRecommendationRepository(RecommendationRepository):
    """Repository backed by in-memory pandas DataFrames.

    Tables:
        interactions: user_id, product_id, interaction_type, occurred_at, weight
        products: product_id, category_id, tags, price
        cart_items / order_items: product_id, quantity

    Reads work on the frame references held at call time; appends replace the
    interactions frame under a lock, so readers never see a partial write.
    """

    def __init__(
        self,
        interactions: Optional[pd.DataFrame] = None,
        products: Optional[pd.DataFrame] = None,
        cart_items: Optional[pd.DataFrame] = None,
        order_items: Optional[pd.DataFrame] = None,
        config: Optional[RepositoryConfig] = None,
    ):
        super().__init__(config)
        self._interactions = (
            normalize_interactions_frame(interactions)
            if interactions is not None
            else empty_interactions_frame()
        )
        self._products = normalize_products_frame(
            products if products is not None else pd.DataFrame(columns=["product_id"])
        )
        self._cart_items = (
            normalize_quantity_frame(cart_items) if cart_items is not None else empty_quantity_frame()
        )
        self._order_items = (
            normalize_quantity_frame(order_items) if order_items is not None else empty_quantity_frame()
        )
        self._write_lock = threading.Lock()

        logger.info(
            f"Initialized FrameRecommendationRepository: "
            f"{len(self._interactions)} interactions, {len(self._products)} products, "
            f"{len(self._cart_items)} cart rows, {len(self._order_items)} order rows"
        )

    @classmethod
    def from_directory(
        cls, data_dir: str, config: Optional[RepositoryConfig] = None
    ) -> "FrameRecommendationRepository":
        """Load all tables from CSV files in data_dir.

        Raises:
            FileNotFoundError: If the directory or a required file is missing.
            ValueError: If a file is missing required columns.
        """
        tables = load_data_directory(data_dir)
        return cls(config=config, **tables)

    def stats(self) -> Dict[str, int]:
        return {
            "num_interactions": len(self._interactions),
            "num_products": len(self._products),
            "num_users": int(self._interactions["user_id"].nunique()),
            "num_cart_items": len(self._cart_items),
            "num_order_items": len(self._order_items),
        }

    def fetch_user_interactions(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[Interaction]:
        now = ensure_utc(now) if now is not None else utcnow()
        cutoff = pd.Timestamp(now - timedelta(hours=self.config.max_interaction_lookback_hours))

        frame = self._interactions
        rows = frame[(frame["user_id"] == user_id) & (frame["occurred_at"] > cutoff)]
        rows = rows.sort_values("occurred_at", ascending=False, kind="stable").head(
            self.config.max_seed_products
        )

        interactions = [self._to_interaction(row) for row in rows.itertuples(index=False)]
        logger.debug(f"Fetched {len(interactions)} interactions for user {user_id}")
        return interactions

    def fetch_collaborative_signals(
        self,
        seed_product_ids: List[str],
        exclude_user_id: Optional[str] = None,
    ) -> List[CollaborativeSignal]:
        seeds = set(seed_product_ids)
        if not seeds:
            return []

        frame = self._interactions
        if frame.empty:
            return []

        presence, user_idx, product_idx = build_interaction_matrix(frame)
        weights, _, _ = build_interaction_matrix(
            frame, value_col="weight", default_value=DEFAULT_INTERACTION_WEIGHT
        )

        seed_columns = [product_idx[pid] for pid in seeds if pid in product_idx]
        if not seed_columns:
            return []

        # users with at least one interaction on any seed product
        touched = np.asarray(presence[:, seed_columns].sum(axis=1)).ravel() > 0
        if exclude_user_id is not None and exclude_user_id in user_idx:
            touched[user_idx[exclude_user_id]] = False

        seed_users = np.flatnonzero(touched)
        if seed_users.size == 0:
            return []

        totals = np.asarray(weights[seed_users].sum(axis=0)).ravel()
        engaged = np.asarray(presence[seed_users].sum(axis=0)).ravel() > 0

        idx_to_product_id = {idx: pid for pid, idx in product_idx.items()}
        scored = pd.DataFrame(
            {
                "product_id": [idx_to_product_id[idx] for idx in range(len(totals))],
                "score": totals,
            }
        )
        scored = scored[engaged & ~scored["product_id"].isin(seeds)]
        scored = scored.sort_values("score", ascending=False, kind="stable").head(
            self.config.collaborative_limit
        )

        logger.debug(
            f"Collaborative signals: {len(seeds)} seeds, {seed_users.size} similar users, "
            f"{len(scored)} products"
        )
        return self._to_signals(scored)

    def fetch_trending_signals(
        self, hours: float, now: Optional[datetime] = None
    ) -> List[CollaborativeSignal]:
        now = ensure_utc(now) if now is not None else utcnow()
        cutoff = pd.Timestamp(now - timedelta(hours=hours))
        limit = self.config.trending_limit

        frame = self._interactions
        window = frame[frame["occurred_at"] > cutoff]
        interaction_scores = self._sum_by_product(
            window["product_id"], window["weight"].fillna(DEFAULT_INTERACTION_WEIGHT)
        ).head(limit)

        if len(interaction_scores) >= self.config.trending_min_products:
            return self._to_signals(interaction_scores)

        logger.info(
            f"Only {len(interaction_scores)} trending products in the last {hours}h, "
            f"merging cart and order aggregates"
        )

        cart_scores = self._sum_by_product(
            self._cart_items["product_id"], self._cart_items["quantity"]
        ).head(limit)
        order_scores = self._sum_by_product(
            self._order_items["product_id"], self._order_items["quantity"]
        ).head(limit)

        combined = pd.concat([interaction_scores, cart_scores, order_scores], ignore_index=True)
        merged = self._sum_by_product(combined["product_id"], combined["score"]).head(limit)
        return self._to_signals(merged)

    def fetch_product_metadata(self, product_ids: Iterable[str]) -> List[ProductMetadata]:
        wanted = list(dict.fromkeys(product_ids))
        if not wanted:
            return []

        products = self._products
        rows = products[products["product_id"].isin(wanted)]
        return [self._to_metadata(row) for row in rows.itertuples(index=False)]

    def fetch_category_products(
        self,
        category_id: str,
        exclude_product_ids: Iterable[str],
        limit: int,
    ) -> List[str]:
        if not category_id or limit <= 0:
            return []

        excluded = set(exclude_product_ids)
        products = self._products
        rows = products[
            (products["category_id"] == category_id) & ~products["product_id"].isin(excluded)
        ]
        return rows["product_id"].head(limit).tolist()

    def record_interaction(self, interaction: Interaction, session_id: Optional[str] = None) -> None:
        row = pd.DataFrame(
            [
                {
                    "user_id": interaction.user_id,
                    "product_id": interaction.product_id,
                    "interaction_type": InteractionType(interaction.interaction_type).value,
                    "occurred_at": ensure_utc(interaction.occurred_at),
                    "weight": (
                        DEFAULT_INTERACTION_WEIGHT if interaction.weight is None else interaction.weight
                    ),
                    "session_id": session_id,
                }
            ]
        )
        row = normalize_interactions_frame(row)

        with self._write_lock:
            frames = [self._interactions, row] if len(self._interactions) else [row]
            self._interactions = pd.concat(frames, ignore_index=True)

        logger.debug(
            "Recorded interaction",
            extra={
                "user_id": interaction.user_id,
                "product_id": interaction.product_id,
                "interaction_type": row.loc[0, "interaction_type"],
            },
        )

    @staticmethod
    def _sum_by_product(product_ids: pd.Series, values: pd.Series) -> pd.DataFrame:
        """Sum values per product, descending; ties ordered by product id."""
        if len(product_ids) == 0:
            return pd.DataFrame({"product_id": pd.Series(dtype=str), "score": pd.Series(dtype=float)})

        grouped = (
            pd.DataFrame({"product_id": product_ids.to_numpy(), "score": values.to_numpy(dtype=float)})
            .groupby("product_id", sort=True)["score"]
            .sum()
            .reset_index()
        )
        return grouped.sort_values("score", ascending=False, kind="stable").reset_index(drop=True)

    @staticmethod
    def _to_signals(frame: pd.DataFrame) -> List[CollaborativeSignal]:
        return [
            CollaborativeSignal(product_id=str(row.product_id), score=float(row.score))
            for row in frame.itertuples(index=False)
        ]

    @staticmethod
    def _to_interaction(row) -> Interaction:
        weight = None if pd.isna(row.weight) else float(row.weight)
        return Interaction(
            user_id=str(row.user_id),
            product_id=str(row.product_id),
            interaction_type=InteractionType(row.interaction_type),
            occurred_at=row.occurred_at.to_pydatetime(),
            weight=weight,
        )

    @staticmethod
    def _to_metadata(row) -> ProductMetadata:
        try:
            price = Decimal(str(row.price))
        except InvalidOperation:
            price = Decimal("0")
        return ProductMetadata(
            id=str(row.product_id),
            category_id=None if pd.isna(row.category_id) else str(row.category_id),
            tag_vector=frozenset(row.tags),
            price=price,
        )
