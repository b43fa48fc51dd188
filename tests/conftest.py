"""Shared fixtures for StoreRec tests."""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import pandas as pd
import pytest

from storerec.recommender.repository import (
    FrameRecommendationRepository,
    RecommendationRepository,
)
from storerec.recommender.types import (
    CollaborativeSignal,
    Interaction,
    ProductMetadata,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_interactions(now: datetime) -> pd.DataFrame:
    """Small interaction log; ages are in hours before now."""
    rows = [
        ("U1", "P1", "purchase", 2),
        ("U1", "P2", "view", 5),
        ("U2", "P1", "view", 10),
        ("U2", "P3", "cart", 12),
        ("U2", "P4", "purchase", 20),
        ("U3", "P2", "view", 30),
        ("U3", "P3", "view", 31),
        ("U3", "P5", "wishlist", 40),
        ("U4", "P6", "view", 1),
        ("U4", "P7", "view", 2),
        ("U4", "P8", "view", 3),
    ]
    return pd.DataFrame(
        [
            {
                "user_id": user_id,
                "product_id": product_id,
                "interaction_type": interaction_type,
                "occurred_at": now - timedelta(hours=age),
                "weight": None,
            }
            for user_id, product_id, interaction_type, age in rows
        ]
    )


def make_products() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "product_id": ["P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8", "P9", "P10"],
            "category_id": ["C1", "C1", "C1", "C2", "C1", "C2", "C3", "C3", "C1", None],
            "tags": ["a|b", "a", "a|b", "z", "b", "z", "y", "y", "a", ""],
            "price": ["10.00", "12.50", "8", "30", "5", "7", "9", "11", "4", "1"],
        }
    )


def make_repository(now: datetime = NOW, **kwargs) -> FrameRecommendationRepository:
    return FrameRecommendationRepository(
        interactions=make_interactions(now),
        products=make_products(),
        cart_items=pd.DataFrame({"product_id": ["P9"], "quantity": [2]}),
        order_items=pd.DataFrame({"product_id": ["P10"], "quantity": [1]}),
        **kwargs,
    )


@pytest.fixture
def repository() -> FrameRecommendationRepository:
    """Frame repository over the small fixed-time dataset."""
    return make_repository()


class StubRepository(RecommendationRepository):
    """Repository returning canned data and recording every call."""

    def __init__(
        self,
        interactions: Optional[List[Interaction]] = None,
        collaborative: Optional[List[CollaborativeSignal]] = None,
        trending: Optional[Dict[float, List[CollaborativeSignal]]] = None,
        metadata: Optional[Dict[str, ProductMetadata]] = None,
        category_products: Optional[List[str]] = None,
        error: Optional[Exception] = None,
    ):
        super().__init__()
        self.interactions = interactions or []
        self.collaborative = collaborative or []
        self.trending = trending or {}
        self.metadata = metadata or {}
        self.category_products = category_products or []
        self.error = error
        self.calls: List[tuple] = []
        self.recorded: List[tuple] = []

    def _call(self, name: str, *args):
        self.calls.append((name,) + args)
        if self.error is not None:
            raise self.error

    def fetch_user_interactions(self, user_id, now=None):
        self._call("fetch_user_interactions", user_id)
        return list(self.interactions)

    def fetch_collaborative_signals(self, seed_product_ids, exclude_user_id=None):
        self._call("fetch_collaborative_signals", list(seed_product_ids), exclude_user_id)
        return list(self.collaborative)

    def fetch_trending_signals(self, hours, now=None):
        self._call("fetch_trending_signals", hours)
        return list(self.trending.get(hours, []))

    def fetch_product_metadata(self, product_ids: Iterable[str]):
        product_ids = list(product_ids)
        self._call("fetch_product_metadata", product_ids)
        return [self.metadata[pid] for pid in product_ids if pid in self.metadata]

    def fetch_category_products(self, category_id, exclude_product_ids, limit):
        excluded = set(exclude_product_ids)
        self._call("fetch_category_products", category_id, excluded, limit)
        return [pid for pid in self.category_products if pid not in excluded][:limit]

    def record_interaction(self, interaction, session_id=None):
        self._call("record_interaction", interaction, session_id)
        self.recorded.append((interaction, session_id))
