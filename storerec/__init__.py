"""StoreRec: hybrid product recommendations for a commerce storefront.

This package provides a rules-based recommendation engine that blends a
user's interaction history, collaborative signals from similar users,
tag/category content similarity and trending popularity into ranked
product suggestions.

Modules:
    api: FastAPI application and REST API endpoints
    recommender: Scoring engine, content similarity, storage adapter and service
"""

__version__ = "0.1.0"
