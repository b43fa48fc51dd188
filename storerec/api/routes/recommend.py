"""Recommendation endpoints for the StoreRec API.

This module provides API endpoints for personalized, similar-product and
trending recommendations, plus interaction tracking, backed by a service
built over the data directory.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from storerec.api.metrics import metrics_service
from storerec.recommender.exceptions import DataStoreUnavailableError
from storerec.recommender.repository import FrameRecommendationRepository
from storerec.recommender.service import RecommendationService
from storerec.recommender.tracking import InteractionTracker
from storerec.recommender.types import InteractionType, RecommendationResult

# Configure module logger
logger = logging.getLogger(__name__)

# Create API routers
router = APIRouter(
    prefix="/recommend",
    tags=["recommendations"],
)
interactions_router = APIRouter(
    prefix="/interactions",
    tags=["interactions"],
)

# Default data directory
DEFAULT_DATA_DIR = os.environ.get("STOREREC_DATA_DIR", "data")

TRENDING_WINDOWS = {"24h": 24, "7d": 24 * 7}

# Cache for the loaded repository and the objects built on it
_service_cache: Optional[Dict] = None


class RecommendationItem(BaseModel):
    """One ranked product."""

    product_id: str = Field(..., description="Recommended product ID")
    score: float = Field(..., description="Blended score, 4 decimal places")


class RecommendationResponse(BaseModel):
    """Response model for recommendation requests.

    Attributes:
        user_id: Requesting user, if any.
        product_id: Seed product for similar-product requests.
        strategy: Which operation produced the list.
        recommendations: Ranked products, best first.
    """

    user_id: Optional[str] = Field(default=None, description="Requesting user ID")
    product_id: Optional[str] = Field(default=None, description="Seed product ID")
    strategy: str = Field(..., description="personalized, anonymous_trending, similar or trending")
    recommendations: List[RecommendationItem] = Field(
        ..., description="Ranked recommendations"
    )


class TrackInteractionRequest(BaseModel):
    """Request body for interaction tracking."""

    product_id: str = Field(..., min_length=1)
    interaction_type: InteractionType
    user_id: Optional[str] = Field(default=None, description="Logged-in user")
    session_id: Optional[str] = Field(default=None, description="Anonymous session")
    weight: Optional[float] = Field(default=None, ge=0)


class TrackInteractionResponse(BaseModel):
    success: bool
    user_id: str
    product_id: str
    interaction_type: InteractionType
    occurred_at: datetime


def install_repository(repository: FrameRecommendationRepository, data_dir: str = "<memory>") -> Dict:
    """Build the service and tracker over a repository and cache them."""
    global _service_cache

    _service_cache = {
        "repository": repository,
        "service": RecommendationService(repository),
        "tracker": InteractionTracker(repository),
        "data_dir": data_dir,
        "loaded_at": datetime.now(timezone.utc).isoformat(),
    }
    return _service_cache


def load_service_if_needed(data_dir: Optional[str] = None) -> Dict:
    """Load the data directory if not already loaded.

    Uses a module-level cache so CSV files are read once per process.

    Args:
        data_dir: Directory containing the CSV tables. Defaults to
            DEFAULT_DATA_DIR.

    Returns:
        Dictionary containing:
            - repository: The FrameRecommendationRepository
            - service: RecommendationService built on it
            - tracker: InteractionTracker built on it
            - data_dir / loaded_at: Provenance

    Raises:
        DataStoreUnavailableError: If the tables cannot be loaded.
    """
    if _service_cache is not None:
        logger.debug("Using cached recommendation service")
        return _service_cache

    data_dir = data_dir or DEFAULT_DATA_DIR
    try:
        logger.info(f"Loading interaction store from {data_dir}")
        repository = FrameRecommendationRepository.from_directory(data_dir)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load interaction store: {e}")
        raise DataStoreUnavailableError(data_dir, e) from e

    cache = install_repository(repository, data_dir)
    logger.info("Interaction store loaded successfully")
    return cache


def reset_service_cache() -> None:
    """Drop the cached service so the next request reloads the data directory."""
    global _service_cache
    _service_cache = None


def get_store_status() -> Dict:
    """Load state of the data store, without triggering a load."""
    if _service_cache is None:
        return {
            "store_loaded": False,
            "data_dir": DEFAULT_DATA_DIR,
            "timestamp_last_loaded": None,
            "num_users": 0,
            "num_products": 0,
            "num_interactions": 0,
        }
    stats = _service_cache["repository"].stats()
    return {
        "store_loaded": True,
        "data_dir": _service_cache["data_dir"],
        "timestamp_last_loaded": _service_cache["loaded_at"],
        "num_users": stats["num_users"],
        "num_products": stats["num_products"],
        "num_interactions": stats["num_interactions"],
    }


def _items(results: List[RecommendationResult]) -> List[RecommendationItem]:
    return [RecommendationItem(product_id=r.product_id, score=r.score) for r in results]


@router.get("/for-you", response_model=RecommendationResponse)
def get_recommendations_for_user(
    user_id: Optional[str] = None,
    limit: int = Query(12, ge=1, le=50),
    exclude: Optional[List[str]] = Query(None),
) -> RecommendationResponse:
    """Get personalized recommendations, or trending for anonymous visitors.

    Example:
        GET /recommend/for-you?user_id=u1&limit=5&exclude=p9
    """
    start_time = time.perf_counter()
    service: RecommendationService = load_service_if_needed()["service"]

    results = service.recommend_for_user(user_id=user_id, limit=limit, exclude_product_ids=exclude)

    metrics_service.record_call("for_you", (time.perf_counter() - start_time) * 1000)
    return RecommendationResponse(
        user_id=user_id,
        strategy="personalized" if user_id else "anonymous_trending",
        recommendations=_items(results),
    )


@router.get("/similar/{product_id}", response_model=RecommendationResponse)
def get_similar_products(
    product_id: str,
    limit: int = Query(8, ge=1, le=20),
    user_id: Optional[str] = None,
) -> RecommendationResponse:
    """Get products similar to a product.

    Example:
        GET /recommend/similar/p1?limit=4
    """
    start_time = time.perf_counter()
    service: RecommendationService = load_service_if_needed()["service"]

    results = service.similar_to_product(product_id=product_id, limit=limit, user_id=user_id)

    metrics_service.record_call("similar", (time.perf_counter() - start_time) * 1000)
    return RecommendationResponse(
        user_id=user_id,
        product_id=product_id,
        strategy="similar",
        recommendations=_items(results),
    )


@router.get("/trending", response_model=RecommendationResponse)
def get_trending(
    limit: int = Query(12, ge=1, le=50),
    window: Literal["24h", "7d"] = "7d",
) -> RecommendationResponse:
    """Get trending products for a 24-hour or 7-day window."""
    start_time = time.perf_counter()
    service: RecommendationService = load_service_if_needed()["service"]

    results = service.trending(limit=limit, hours=TRENDING_WINDOWS[window])

    metrics_service.record_call("trending", (time.perf_counter() - start_time) * 1000)
    return RecommendationResponse(strategy="trending", recommendations=_items(results))


@interactions_router.post(
    "",
    response_model=TrackInteractionResponse,
    status_code=status.HTTP_201_CREATED,
)
def track_interaction(request: TrackInteractionRequest) -> TrackInteractionResponse:
    """Record a user or anonymous-session interaction with a product."""
    start_time = time.perf_counter()
    tracker: InteractionTracker = load_service_if_needed()["tracker"]

    interaction = tracker.track(
        product_id=request.product_id,
        interaction_type=request.interaction_type.value,
        user_id=request.user_id,
        session_id=request.session_id,
        weight=request.weight,
    )

    metrics_service.record_call("track", (time.perf_counter() - start_time) * 1000)
    return TrackInteractionResponse(
        success=True,
        user_id=interaction.user_id,
        product_id=interaction.product_id,
        interaction_type=interaction.interaction_type,
        occurred_at=interaction.occurred_at,
    )
