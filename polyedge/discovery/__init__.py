"""Market discovery: catalog fetching and pairing."""

from .catalog import CatalogMarket, CatalogResult, MarketCatalog, parse_market
from .pairing import (
    Leg,
    TrackedUnit,
    detect_asset,
    extract_anchor,
    extract_direction,
    pair_markets,
)

__all__ = [
    "CatalogMarket",
    "CatalogResult",
    "MarketCatalog",
    "parse_market",
    "Leg",
    "TrackedUnit",
    "detect_asset",
    "extract_anchor",
    "extract_direction",
    "pair_markets",
]
