"""Orderbook snapshot module."""

from .book import BookSide, TokenBook, parse_levels

__all__ = ["BookSide", "TokenBook", "parse_levels"]
