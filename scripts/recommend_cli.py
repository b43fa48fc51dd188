"""CLI script for getting product recommendations.

Useful for testing and evaluation. Loads a data directory, runs one of the
recommendation operations and prints the ranked products to the console.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Literal, Optional

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from storerec.recommender.exceptions import StoreRecException
from storerec.recommender.repository import FrameRecommendationRepository
from storerec.recommender.service import RecommendationService
from storerec.recommender.types import RecommendationResult

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)

TRENDING_WINDOWS = {"24h": 24, "7d": 24 * 7}


def get_recommendations(
    mode: Literal["user", "similar", "trending"],
    target: Optional[str] = None,
    data_dir: str = "data",
    limit: int = 12,
    window: str = "7d",
) -> List[RecommendationResult]:
    """Run one recommendation operation against a data directory.

    Args:
        mode: "user" (target is a user id, or None for anonymous),
            "similar" (target is a product id) or "trending"
        target: User or product id, depending on mode
        data_dir: Directory with the CSV tables
        limit: Number of recommendations to return
        window: Trending window, "24h" or "7d"

    Returns:
        Ranked list of RecommendationResult
    """
    try:
        repository = FrameRecommendationRepository.from_directory(data_dir)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: Could not load data from {data_dir}", file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        sys.exit(1)

    service = RecommendationService(repository)
    try:
        if mode == "similar":
            if not target:
                print("Error: similar mode needs a product id", file=sys.stderr)
                sys.exit(2)
            return service.similar_to_product(target, limit=limit)
        if mode == "trending":
            return service.trending(limit=limit, hours=TRENDING_WINDOWS[window])
        return service.recommend_for_user(user_id=target, limit=limit)
    except StoreRecException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Get product recommendations from a data directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recommend_cli.py user U42
  python scripts/recommend_cli.py user --limit 5
  python scripts/recommend_cli.py similar P7 --limit 8
  python scripts/recommend_cli.py trending --window 24h
        """
    )

    parser.add_argument(
        "mode",
        choices=["user", "similar", "trending"],
        help="Recommendation operation to run"
    )

    parser.add_argument(
        "target",
        nargs="?",
        default=None,
        help="User id (user mode, omit for anonymous) or product id (similar mode)"
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=12,
        help="Number of recommendations to return (default: 12)"
    )

    parser.add_argument(
        "--window",
        choices=sorted(TRENDING_WINDOWS),
        default="7d",
        help="Trending window (default: 7d)"
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Directory containing the CSV tables (default: data)"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    results = get_recommendations(
        mode=args.mode,
        target=args.target,
        data_dir=args.data_dir,
        limit=args.limit,
        window=args.window,
    )

    label = {"user": f"user {args.target or '(anonymous)'}", "similar": f"product {args.target}"}
    print(f"\nRecommendations for {label.get(args.mode, 'trending ' + args.window)}:")
    if not results:
        print("  (none)")
    for rank, result in enumerate(results, start=1):
        print(f"  {rank:>3}. {result.product_id:<12} {result.score:.4f}")

    print()


if __name__ == "__main__":
    main()
