"""Interaction tracking.

Validates incoming interaction events and appends them to the interaction
log. Logged-in users are tracked by user id; anonymous visitors by their
session id, which then stands in for the user id.
"""

import logging
import math
from datetime import datetime
from typing import Callable, Optional

from storerec.recommender.exceptions import InvalidRequestError
from storerec.recommender.repository import RecommendationRepository
from storerec.recommender.service import validate_identifier
from storerec.recommender.types import Interaction, InteractionType
from storerec.recommender.utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class InteractionTracker:
    """Records user-product events through the repository."""

    def __init__(
        self,
        repository: RecommendationRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.clock = clock

    def track(
        self,
        product_id: str,
        interaction_type: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        weight: Optional[float] = None,
        occurred_at: Optional[datetime] = None,
    ) -> Interaction:
        """Validate and record one interaction.

        Args:
            product_id: Product the event refers to.
            interaction_type: One of the InteractionType values.
            user_id: Logged-in user. Takes precedence over session_id.
            session_id: Anonymous session, used as the user id when user_id
                is absent.
            weight: Optional multiplier, must be finite and non-negative.
            occurred_at: Event time. Defaults to now.

        Returns:
            The recorded Interaction.

        Raises:
            InvalidRequestError: If any field is invalid. Nothing is written.
        """
        validate_identifier("product_id", product_id)

        if user_id:
            actor = validate_identifier("user_id", user_id)
        elif session_id:
            actor = validate_identifier("session_id", session_id)
        else:
            raise InvalidRequestError("user_id", "either user_id or session_id is required")

        try:
            kind = InteractionType(interaction_type)
        except ValueError:
            raise InvalidRequestError(
                "interaction_type",
                f"must be one of {[t.value for t in InteractionType]}",
                interaction_type,
            ) from None

        if weight is not None:
            if isinstance(weight, bool) or not isinstance(weight, (int, float)):
                raise InvalidRequestError("weight", "must be a number", weight)
            if not math.isfinite(weight) or weight < 0:
                raise InvalidRequestError("weight", "must be finite and non-negative", weight)

        interaction = Interaction(
            user_id=actor,
            product_id=product_id,
            interaction_type=kind,
            occurred_at=ensure_utc(occurred_at) if occurred_at is not None else self.clock(),
            weight=None if weight is None else float(weight),
        )
        self.repository.record_interaction(
            interaction, session_id=None if user_id else session_id
        )

        logger.info(
            "Interaction tracked",
            extra={
                "user_id": actor,
                "product_id": product_id,
                "interaction_type": kind.value,
                "anonymous": not user_id,
            },
        )
        return interaction
