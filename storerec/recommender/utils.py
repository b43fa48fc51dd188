"""Utility functions for the recommendation core.

This module provides helpers for loading storage rows from CSV files into
normalized pandas DataFrames, building sparse user-product matrices, and
the small time and rounding conventions shared by the engine, the content
similarity calculator and the service.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix

from storerec.recommender.types import InteractionType

# Configure module logger
logger = logging.getLogger(__name__)

# Data file names inside a data directory
INTERACTIONS_FILENAME = "interactions.csv"
PRODUCTS_FILENAME = "products.csv"
CART_ITEMS_FILENAME = "cart_items.csv"
ORDER_ITEMS_FILENAME = "order_items.csv"

INTERACTION_COLUMNS = ["user_id", "product_id", "interaction_type", "occurred_at", "weight"]
PRODUCT_COLUMNS = ["product_id", "category_id", "tags", "price"]
QUANTITY_COLUMNS = ["product_id", "quantity"]
INTERACTION_TYPES = [interaction_type.value for interaction_type in InteractionType]

TAG_SEPARATOR = "|"
SCORE_DECIMALS = 4


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_score(value: float) -> float:
    """Round a score to the precision used in all public outputs."""
    return round(float(value), SCORE_DECIMALS)


def parse_tags(raw: object) -> frozenset:
    """Parse a tag cell into a set of tags.

    Accepts a separator-joined string ("boho|midi"), any iterable of strings,
    or a missing value.
    """
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        return frozenset(tag.strip() for tag in raw.split(TAG_SEPARATOR) if tag.strip())
    if isinstance(raw, float) and np.isnan(raw):
        return frozenset()
    return frozenset(str(tag) for tag in raw)


def empty_interactions_frame() -> pd.DataFrame:
    """Interaction frame with the normalized schema and no rows."""
    return normalize_interactions_frame(pd.DataFrame(columns=INTERACTION_COLUMNS))


def empty_quantity_frame() -> pd.DataFrame:
    """Cart/order item frame with the normalized schema and no rows."""
    return normalize_quantity_frame(pd.DataFrame(columns=QUANTITY_COLUMNS))


def normalize_interactions_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce an interaction frame to the column types the adapter relies on.

    Ids become strings, timestamps become timezone-aware UTC, and weight
    becomes float with missing values kept as NaN.

    Raises:
        ValueError: If required columns are missing or a row carries an
            unknown interaction type.
    """
    _require_columns(df, INTERACTION_COLUMNS[:-1], "interactions")

    frame = df.copy()
    if "weight" not in frame.columns:
        frame["weight"] = np.nan

    frame["user_id"] = frame["user_id"].astype(str)
    frame["product_id"] = frame["product_id"].astype(str)
    frame["interaction_type"] = frame["interaction_type"].astype(str)
    unknown_types = set(frame["interaction_type"]) - set(INTERACTION_TYPES)
    if unknown_types:
        raise ValueError(f"interactions contain unknown interaction types: {sorted(unknown_types)}")
    frame["occurred_at"] = pd.to_datetime(frame["occurred_at"], utc=True)
    frame["weight"] = pd.to_numeric(frame["weight"], errors="coerce").astype(float)

    return frame.reset_index(drop=True)


def normalize_products_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce a product frame: string ids, parsed tag sets, optional category.

    Raises:
        ValueError: If the product_id column is missing.
    """
    _require_columns(df, ["product_id"], "products")

    frame = df.copy()
    for column in ("category_id", "tags", "price"):
        if column not in frame.columns:
            frame[column] = None

    frame["product_id"] = frame["product_id"].astype(str)
    # object dtype keeps None; a string dtype would turn it into NaN
    frame["category_id"] = pd.Series(
        [None if pd.isna(value) or value == "" else str(value) for value in frame["category_id"]],
        index=frame.index,
        dtype=object,
    )
    frame["tags"] = [parse_tags(value) for value in frame["tags"]]
    frame["price"] = [
        "0" if pd.isna(value) else str(value) for value in frame["price"]
    ]

    return frame.drop_duplicates("product_id", keep="last").reset_index(drop=True)


def normalize_quantity_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce a cart/order item frame to string ids and numeric quantities."""
    _require_columns(df, QUANTITY_COLUMNS, "quantity rows")

    frame = df[QUANTITY_COLUMNS].copy()
    frame["product_id"] = frame["product_id"].astype(str)
    frame["quantity"] = pd.to_numeric(frame["quantity"], errors="coerce").fillna(0).astype(float)

    return frame.reset_index(drop=True)


def load_csv_frame(
    csv_path: str,
    required_columns: Iterable[str],
) -> pd.DataFrame:
    """Load a CSV file and check it carries the required columns.

    Args:
        csv_path: Path to the CSV file.
        required_columns: Columns that must be present.

    Returns:
        The raw DataFrame. An empty file with a header is valid.

    Raises:
        FileNotFoundError: If CSV file does not exist.
        ValueError: If CSV is missing required columns.
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info(f"Loading CSV from {csv_path}")
    df = pd.read_csv(csv_path, dtype=str)

    _require_columns(df, required_columns, csv_file.name)

    logger.info(f"Loaded {len(df)} rows from {csv_file.name}")
    return df


def load_data_directory(data_dir: str) -> Dict[str, pd.DataFrame]:
    """Load every storage table from a data directory.

    interactions.csv and products.csv are required; cart_items.csv and
    order_items.csv are optional and default to empty tables.

    Returns:
        Dictionary with keys "interactions", "products", "cart_items" and
        "order_items", each holding a normalized DataFrame.

    Raises:
        FileNotFoundError: If the directory or a required file is missing.
        ValueError: If a file is missing required columns.

    Example:
        >>> tables = load_data_directory("data")
        >>> print(f"Interactions: {len(tables['interactions'])}")
    """
    data_path = Path(data_dir)
    if not data_path.exists():
        raise FileNotFoundError(f"Data directory does not exist: {data_dir}")

    interactions = normalize_interactions_frame(
        load_csv_frame(str(data_path / INTERACTIONS_FILENAME), INTERACTION_COLUMNS[:-1])
    )
    products = normalize_products_frame(
        load_csv_frame(str(data_path / PRODUCTS_FILENAME), ["product_id"])
    )

    optional_tables = {}
    for name, filename in (("cart_items", CART_ITEMS_FILENAME), ("order_items", ORDER_ITEMS_FILENAME)):
        path = data_path / filename
        if path.exists():
            optional_tables[name] = normalize_quantity_frame(load_csv_frame(str(path), QUANTITY_COLUMNS))
        else:
            logger.debug(f"{filename} not found in {data_dir}, using empty table")
            optional_tables[name] = empty_quantity_frame()

    logger.info(
        f"Loaded data directory {data_dir}: "
        f"{len(interactions)} interactions, {len(products)} products"
    )

    return {
        "interactions": interactions,
        "products": products,
        "cart_items": optional_tables["cart_items"],
        "order_items": optional_tables["order_items"],
    }


def build_interaction_matrix(
    interactions: pd.DataFrame,
    value_col: Optional[str] = None,
    default_value: float = 1.0,
) -> Tuple[csr_matrix, Dict[str, int], Dict[str, int]]:
    """Convert interaction rows to a sparse user-product matrix.

    Rows represent users and columns represent products. Duplicate
    (user, product) pairs are summed.

    Args:
        interactions: Normalized interaction frame.
        value_col: Column holding cell values. If None, every row counts as 1
            and the matrix records presence counts.
        default_value: Value substituted for missing entries of value_col.

    Returns:
        A tuple containing:
            - Sparse CSR matrix of shape (n_users, n_products)
            - Dictionary mapping user_id to matrix row index
            - Dictionary mapping product_id to matrix column index
    """
    unique_users = sorted(interactions["user_id"].unique())
    unique_products = sorted(interactions["product_id"].unique())

    user_id_to_idx = {user_id: idx for idx, user_id in enumerate(unique_users)}
    product_id_to_idx = {product_id: idx for idx, product_id in enumerate(unique_products)}

    if value_col is None:
        data = np.ones(len(interactions), dtype=np.float64)
    else:
        data = interactions[value_col].fillna(default_value).to_numpy(dtype=np.float64)

    row_indices = interactions["user_id"].map(user_id_to_idx).to_numpy(dtype=np.int64)
    col_indices = interactions["product_id"].map(product_id_to_idx).to_numpy(dtype=np.int64)

    matrix = csr_matrix(
        (data, (row_indices, col_indices)),
        shape=(len(unique_users), len(unique_products)),
        dtype=np.float64,
    )

    logger.debug(f"Interaction matrix shape: {matrix.shape}, non-zero entries: {matrix.nnz}")

    return matrix, user_id_to_idx, product_id_to_idx


def _require_columns(df: pd.DataFrame, required: Iterable[str], source: str) -> None:
    missing = set(required) - set(df.columns)
    if missing:
        raise ValueError(f"{source} missing required columns: {sorted(missing)}")
