"""Content-based similarity from product tags and categories.

Scores candidates by how much of the seed set's tag and category profile
they share. Tag matches are weighted by how common the tag is among the
seeds; a shared category adds a discounted bonus.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Mapping

from storerec.recommender.types import ContentSignal, ProductMetadata
from storerec.recommender.utils import round_score

# Configure module logger
logger = logging.getLogger(__name__)

# Category overlap counts for less than a perfect single-tag match
CATEGORY_MATCH_WEIGHT = 0.75


def compute_content_signals(
    seed_product_ids: Iterable[str],
    candidates: Iterable[str],
    metadata_by_id: Mapping[str, ProductMetadata],
) -> Dict[str, float]:
    """Compute tag/category overlap between a seed set and candidates.

    Builds tag and category frequency tables over the seeds. Each candidate
    outside the seed set scores the sum of tag_freq / max_tag_freq over its
    tags, plus CATEGORY_MATCH_WEIGHT * cat_freq / max_cat_freq when its
    category appears among the seeds.

    Args:
        seed_product_ids: Products the request is anchored to.
        candidates: Products to score.
        metadata_by_id: Metadata for seeds and candidates. Products without
            metadata are skipped.

    Returns:
        Sparse dictionary of product_id to overlap, rounded to 4 decimals.
        Candidates with no overlap are absent rather than zero.

    Example:
        >>> signals = compute_content_signals(["P1", "P2"], ["P3"], metadata)
        >>> signals
        {'P3': 2.25}
    """
    seeds = list(dict.fromkeys(seed_product_ids))
    candidate_ids = list(dict.fromkeys(candidates))
    if not seeds or not candidate_ids:
        return {}

    tag_frequency: Counter = Counter()
    category_frequency: Counter = Counter()

    for product_id in seeds:
        meta = metadata_by_id.get(product_id)
        if meta is None:
            continue
        tag_frequency.update(meta.tag_vector)
        if meta.category_id:
            category_frequency[meta.category_id] += 1

    max_tag_frequency = max(tag_frequency.values(), default=0) or 1
    max_category_frequency = max(category_frequency.values(), default=0) or 1

    seed_set = set(seeds)
    signals: Dict[str, float] = {}

    for candidate_id in candidate_ids:
        if candidate_id in seed_set:
            continue
        meta = metadata_by_id.get(candidate_id)
        if meta is None:
            continue

        score = 0.0
        for tag in meta.tag_vector:
            frequency = tag_frequency.get(tag)
            if frequency:
                score += frequency / max_tag_frequency

        if meta.category_id:
            frequency = category_frequency.get(meta.category_id)
            if frequency:
                score += CATEGORY_MATCH_WEIGHT * (frequency / max_category_frequency)

        if score > 0:
            signals[candidate_id] = round_score(score)

    logger.debug(
        f"Content signals: {len(seeds)} seeds, {len(candidate_ids)} candidates, "
        f"{len(signals)} with overlap"
    )
    return signals


def to_content_signals(signals: Mapping[str, float]) -> List[ContentSignal]:
    """Convert a content signal mapping to the list form merge_signals takes."""
    return [ContentSignal(product_id=pid, overlap=overlap) for pid, overlap in signals.items()]
