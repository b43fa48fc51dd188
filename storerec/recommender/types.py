"""Typed records exchanged between the storage adapter and the core.

Everything here is an immutable value object except
RecommendationCandidate, which is the per-request merge accumulator.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional


class InteractionType(str, Enum):
    """Kinds of user-product events recorded by the storefront."""

    VIEW = "view"
    CART = "cart"
    PURCHASE = "purchase"
    WISHLIST = "wishlist"
    REMOVE_WISHLIST = "remove_wishlist"
    REMOVE_CART = "remove_cart"


@dataclass(frozen=True)
class Interaction:
    """One observed user-product event."""

    user_id: str
    product_id: str
    interaction_type: InteractionType
    occurred_at: datetime
    weight: Optional[float] = None


@dataclass(frozen=True)
class ProductMetadata:
    """Read-only projection of a product used for similarity."""

    id: str
    category_id: Optional[str] = None
    tag_vector: FrozenSet[str] = frozenset()
    price: Decimal = Decimal("0")


@dataclass(frozen=True)
class CollaborativeSignal:
    product_id: str
    score: float


@dataclass(frozen=True)
class ContentSignal:
    product_id: str
    overlap: float


@dataclass
class RecommendationCandidate:
    """Signal buckets accumulated for one product during a merge."""

    product_id: str
    collaborative: float = 0.0
    content: float = 0.0
    trending: float = 0.0


@dataclass(frozen=True)
class RecommendationResult:
    product_id: str
    score: float

    def to_dict(self) -> dict:
        return {"product_id": self.product_id, "score": self.score}

