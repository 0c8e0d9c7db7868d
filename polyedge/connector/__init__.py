"""Polymarket REST connector module."""

from .rest_client import PolymarketRestClient, RateLimiter

__all__ = ["PolymarketRestClient", "RateLimiter"]
