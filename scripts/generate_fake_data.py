"""Generate fake storefront data for testing and development.

This module provides functionality to create a synthetic product catalog,
user-product interaction log and cart/order item aggregates in the CSV
layout the recommendation service loads from its data directory.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_interactions
        df = generate_fake_interactions(num_users=100, num_products=200)
"""

import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from storerec.recommender.types import InteractionType
from storerec.recommender.utils import (
    CART_ITEMS_FILENAME,
    INTERACTION_COLUMNS,
    INTERACTIONS_FILENAME,
    ORDER_ITEMS_FILENAME,
    PRODUCT_COLUMNS,
    PRODUCTS_FILENAME,
    QUANTITY_COLUMNS,
    TAG_SEPARATOR,
)

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_PRODUCTS = 100
DEFAULT_NUM_CATEGORIES = 8
DEFAULT_NUM_INTERACTIONS = 2000
DEFAULT_NUM_CART_ITEMS = 150
DEFAULT_NUM_ORDER_ITEMS = 300
DEFAULT_DAYS_BACK = 21

TAG_POOL = [
    "boho", "minimal", "vintage", "linen", "cotton", "silk", "denim",
    "summer", "winter", "formal", "casual", "oversized", "midi", "cropped",
]

# Storefront traffic is mostly views with a long tail of stronger signals
INTERACTION_TYPE_WEIGHTS = {
    InteractionType.VIEW: 0.6,
    InteractionType.CART: 0.15,
    InteractionType.WISHLIST: 0.1,
    InteractionType.PURCHASE: 0.08,
    InteractionType.REMOVE_CART: 0.04,
    InteractionType.REMOVE_WISHLIST: 0.03,
}


def generate_fake_catalog(
    num_products: int = DEFAULT_NUM_PRODUCTS,
    num_categories: int = DEFAULT_NUM_CATEGORIES,
    max_tags: int = 4,
) -> pd.DataFrame:
    """Generate a product catalog with categories, tags and prices.

    Returns:
        DataFrame with columns product_id, category_id, tags (pipe-joined)
        and price. Product ids are "P1".."PN", categories "C1".."CK".

    Raises:
        ValueError: If any count is non-positive.
    """
    if num_products <= 0 or num_categories <= 0 or max_tags <= 0:
        raise ValueError("num_products, num_categories, and max_tags must be positive")

    products = []
    for index in range(1, num_products + 1):
        tags = random.sample(TAG_POOL, random.randint(1, min(max_tags, len(TAG_POOL))))
        products.append({
            'product_id': f"P{index}",
            'category_id': f"C{random.randint(1, num_categories)}",
            'tags': TAG_SEPARATOR.join(sorted(tags)),
            'price': f"{random.uniform(5, 250):.2f}",
        })

    return pd.DataFrame(products, columns=PRODUCT_COLUMNS)


def generate_fake_interactions(
    num_users: int = DEFAULT_NUM_USERS,
    num_products: int = DEFAULT_NUM_PRODUCTS,
    num_interactions: int = DEFAULT_NUM_INTERACTIONS,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> pd.DataFrame:
    """Generate a synthetic interaction log.

    Creates a DataFrame with simulated user-product events with random
    timestamps distributed across a specified date range.

    Args:
        num_users: Number of unique users to simulate. Must be positive.
        num_products: Number of unique products available. Must be positive.
        num_interactions: Total number of events to generate. Must be positive.
        start_date: Start of the timestamp range. If None, defaults to
            21 days before end_date.
        end_date: End of the timestamp range. If None, defaults to now (UTC).

    Returns:
        A pandas DataFrame with the following columns:
            - user_id: "U1".."UN"
            - product_id: "P1".."PN"
            - interaction_type: One of the InteractionType values
            - occurred_at: UTC timestamp of the event
            - weight: Empty, so the storage default applies

        The DataFrame is sorted by occurred_at in ascending order.

    Raises:
        ValueError: If any numeric parameter is non-positive or if
            start_date is not before end_date.
    """
    # Validate inputs
    if num_users <= 0 or num_products <= 0 or num_interactions <= 0:
        raise ValueError(
            "num_users, num_products, and num_interactions must be positive"
        )

    # Set default date range if not provided
    if end_date is None:
        end_date = datetime.now(timezone.utc)
    if start_date is None:
        start_date = end_date - timedelta(days=DEFAULT_DAYS_BACK)

    if start_date >= end_date:
        raise ValueError("start_date must be before end_date")

    types = list(INTERACTION_TYPE_WEIGHTS.keys())
    type_weights = list(INTERACTION_TYPE_WEIGHTS.values())
    total_seconds = int((end_date - start_date).total_seconds())

    interactions = []
    for _ in range(num_interactions):
        # Squared draw skews toward low ids so some products are popular
        product_index = int(random.random() ** 2 * num_products) + 1
        interactions.append({
            'user_id': f"U{random.randint(1, num_users)}",
            'product_id': f"P{product_index}",
            'interaction_type': random.choices(types, weights=type_weights)[0].value,
            'occurred_at': start_date + timedelta(seconds=random.randrange(max(total_seconds, 1))),
            'weight': None,
        })

    df = pd.DataFrame(interactions, columns=INTERACTION_COLUMNS)
    df = df.sort_values('occurred_at').reset_index(drop=True)

    return df


def generate_fake_quantities(
    num_rows: int,
    num_products: int = DEFAULT_NUM_PRODUCTS,
    max_quantity: int = 3,
) -> pd.DataFrame:
    """Generate cart or order item rows (product_id, quantity)."""
    if num_rows < 0 or num_products <= 0:
        raise ValueError("num_rows must be non-negative and num_products positive")

    rows = [
        {
            'product_id': f"P{random.randint(1, num_products)}",
            'quantity': random.randint(1, max_quantity),
        }
        for _ in range(num_rows)
    ]
    return pd.DataFrame(rows, columns=QUANTITY_COLUMNS)


def write_data_directory(data_dir: Path, tables: Dict[str, pd.DataFrame]) -> None:
    """Write generated tables to data_dir using the loader's file names."""
    data_dir.mkdir(parents=True, exist_ok=True)
    filenames = {
        'interactions': INTERACTIONS_FILENAME,
        'products': PRODUCTS_FILENAME,
        'cart_items': CART_ITEMS_FILENAME,
        'order_items': ORDER_ITEMS_FILENAME,
    }
    for name, filename in filenames.items():
        tables[name].to_csv(data_dir / filename, index=False)


def main() -> None:
    """Main entry point for the data generation script.

    Generates a catalog, interaction log and cart/order rows with default
    parameters and saves them to data/. Prints summary statistics upon
    completion.
    """
    print(f"Generating {DEFAULT_NUM_INTERACTIONS} fake interactions...")
    print(f"Users: {DEFAULT_NUM_USERS}, Products: {DEFAULT_NUM_PRODUCTS}")

    try:
        tables = {
            'products': generate_fake_catalog(DEFAULT_NUM_PRODUCTS, DEFAULT_NUM_CATEGORIES),
            'interactions': generate_fake_interactions(
                num_users=DEFAULT_NUM_USERS,
                num_products=DEFAULT_NUM_PRODUCTS,
                num_interactions=DEFAULT_NUM_INTERACTIONS,
            ),
            'cart_items': generate_fake_quantities(DEFAULT_NUM_CART_ITEMS),
            'order_items': generate_fake_quantities(DEFAULT_NUM_ORDER_ITEMS),
        }
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = Path(__file__).parent.parent / 'data'
    write_data_directory(data_dir, tables)

    interactions = tables['interactions']
    print(f"\nData generated successfully!")
    print(f"Saved to: {data_dir}")
    print(f"\nInteraction preview:")
    print(interactions.head(10))
    print(f"\nData summary:")
    print(f"  Total interactions: {len(interactions)}")
    print(f"  Unique users: {interactions['user_id'].nunique()}")
    print(f"  Unique products: {interactions['product_id'].nunique()}")
    print(f"  By type: {interactions['interaction_type'].value_counts().to_dict()}")
    print(
        f"  Date range: {interactions['occurred_at'].min()} to {interactions['occurred_at'].max()}"
    )


if __name__ == '__main__':
    main()
