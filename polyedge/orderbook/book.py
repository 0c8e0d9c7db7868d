"""
Order book snapshots for outcome tokens.
Levels are kept sorted so the best price is always first, whatever
order the endpoint returns them in.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from sortedcontainers import SortedDict


@dataclass
class BookSide:
    """One side of an orderbook (bids or asks)."""
    is_bid: bool
    levels: SortedDict = field(default_factory=SortedDict)

    def __post_init__(self):
        # Bids sorted descending (highest first), asks ascending (lowest first)
        if self.is_bid:
            self.levels = SortedDict(lambda x: -x)
        else:
            self.levels = SortedDict()

    def update(self, price: Decimal, size: Decimal) -> None:
        """Update a price level. Size of 0 removes the level."""
        if size <= 0:
            self.levels.pop(price, None)
        else:
            self.levels[price] = size

    def set_snapshot(self, levels: Iterable[tuple[Decimal, Decimal]]) -> None:
        """Replace all levels with a snapshot."""
        self.levels.clear()
        for price, size in levels:
            self.update(price, size)

    @property
    def best_price(self) -> Optional[Decimal]:
        if not self.levels:
            return None
        return self.levels.keys()[0]


def parse_levels(raw: Any) -> list[tuple[Decimal, Decimal]]:
    """
    Parse `[{"price": "0.41", "size": "120"}, ...]` into tuples.
    Malformed levels and prices outside [0, 1] are dropped.
    """
    levels = []
    if not isinstance(raw, list):
        return levels
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            price = Decimal(str(item["price"]))
            size = Decimal(str(item.get("size", "0")))
        except (KeyError, InvalidOperation, ValueError):
            continue
        if not price.is_finite() or not size.is_finite():
            continue
        if price < 0 or price > 1:
            continue
        levels.append((price, size))
    return levels


@dataclass
class TokenBook:
    """Orderbook for a single outcome token."""
    token_id: str
    bids: BookSide = field(default_factory=lambda: BookSide(is_bid=True))
    asks: BookSide = field(default_factory=lambda: BookSide(is_bid=False))
    last_update: float = 0
    hash: str = ""

    @classmethod
    def from_payload(cls, token_id: str, data: dict[str, Any]) -> "TokenBook":
        """Build a book from a CLOB `/book` response."""
        book = cls(token_id=str(data.get("asset_id") or token_id))
        book.set_snapshot(
            parse_levels(data.get("bids")),
            parse_levels(data.get("asks")),
            str(data.get("hash", "")),
        )
        return book

    def set_snapshot(
        self,
        bids: list[tuple[Decimal, Decimal]],
        asks: list[tuple[Decimal, Decimal]],
        book_hash: str = "",
    ) -> None:
        """Set full book snapshot."""
        self.bids.set_snapshot(bids)
        self.asks.set_snapshot(asks)
        self.hash = book_hash
        self.last_update = time.time()

    @property
    def best_bid(self) -> Optional[Decimal]:
        return self.bids.best_price

    @property
    def best_ask(self) -> Optional[Decimal]:
        return self.asks.best_price
