"""FastAPI application module for StoreRec.

This module contains the FastAPI application, route handlers, and API
endpoints exposing personalized, similar-product and trending
recommendations, plus interaction tracking.
"""
