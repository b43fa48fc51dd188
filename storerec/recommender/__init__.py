"""Recommendation core for StoreRec.

This module contains the scoring engine, the content similarity calculator,
the repository contract with its DataFrame-backed adapter, and the service
that composes them into personalized, similar-product and trending
recommendations.
"""
