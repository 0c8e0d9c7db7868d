"""
Pairing engine.

Groups catalog markets into tracked units. Two markets form a
cross-pair when they settle together, reference the same asset and
anchor, and bet opposite directions. Anything left over is tracked as a
self-pair over its own two outcome tokens.

Pure functions only; no I/O.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .catalog import CatalogMarket


DEFAULT_PRICE = Decimal("0.5")

UP = "UP"
DOWN = "DOWN"

ASSET_KEYWORDS = {
    "BTC": ("btc", "bitcoin"),
    "ETH": ("eth", "ethereum", "ether"),
    "SOL": ("sol", "solana"),
    "XRP": ("xrp", "ripple"),
    "DOGE": ("doge", "dogecoin"),
}

DIRECTION_WORDS = {
    "above": UP,
    "higher": UP,
    "below": DOWN,
    "lower": DOWN,
}

_DIRECTIONAL_ANCHOR = re.compile(
    r"\b(above|below|higher|lower)[-\s]+(?:than[-\s]+)?\$?(\d[\d,]*(?:\.\d+)?)(k\b)?",
    re.IGNORECASE,
)
_DIRECTION = re.compile(r"\b(above|below|higher|lower)\b", re.IGNORECASE)
_NUMBER = re.compile(r"\d[\d,]*(?:\.\d+)?")
_WORD = re.compile(r"[a-z0-9]+")


@dataclass
class Leg:
    """One side of a tracked unit, backed by one outcome token's price feed."""
    market_id: str
    symbol: str
    token_id: str
    price: Decimal = DEFAULT_PRICE

    def to_dict(self) -> dict:
        return {
            "marketId": self.market_id,
            "symbol": self.symbol,
            "tokenId": self.token_id,
            "price": float(self.price),
        }


@dataclass
class TrackedUnit:
    """
    A monitored opportunity: exactly two legs.

    `leg_a` is always the upper/above/yes-like side.
    """
    unit_id: str
    symbol: str
    asset: str
    anchor: str
    end_timestamp: float
    leg_a: Leg
    leg_b: Leg
    is_self_pair: bool = False
    question: str = ""


@dataclass(frozen=True)
class PairKey:
    """Attributes that decide whether two markets are complementary."""
    asset: str
    anchor: Decimal
    direction: str
    end_timestamp: float

    def complements(self, other: "PairKey", tolerance_seconds: float) -> bool:
        return (
            self.asset == other.asset
            and self.anchor == other.anchor
            and self.direction != other.direction
            and abs(self.end_timestamp - other.end_timestamp) <= tolerance_seconds
        )


def _parse_number(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def format_anchor(anchor: Decimal) -> str:
    """70000 -> '70000', 0.50 -> '0.5'."""
    return format(anchor.normalize(), "f")


def detect_asset(text: str) -> Optional[str]:
    """Underlying asset tag from a slug or title, e.g. 'bitcoin-above-...' -> 'BTC'."""
    words = set(_WORD.findall(text.lower()))
    for asset, keywords in ASSET_KEYWORDS.items():
        if words.intersection(keywords):
            return asset
    return None


def extract_direction(text: str) -> Optional[str]:
    """UP for above/higher, DOWN for below/lower, by first occurrence."""
    match = _DIRECTION.search(text)
    if not match:
        return None
    return DIRECTION_WORDS[match.group(1).lower()]


def extract_anchor(text: str, floor: Decimal = Decimal("100")) -> Optional[Decimal]:
    """
    Numeric threshold a market bets on.

    Looks for `above-<number>` style phrases first. Otherwise takes the
    largest embedded number above `floor`, which skips most day/hour
    digits but can still pick up a year.
    """
    match = _DIRECTIONAL_ANCHOR.search(text)
    if match:
        value = _parse_number(match.group(2))
        if value is not None:
            if match.group(3):
                value *= 1000
            return value

    candidates = [
        value for value in (_parse_number(raw) for raw in _NUMBER.findall(text))
        if value is not None and value > floor
    ]
    if not candidates:
        return None
    return max(candidates)


def _is_well_formed(market: "CatalogMarket") -> bool:
    return (
        bool(market.market_id)
        and bool(market.end_timestamp)
        and len(market.token_ids) == 2
        and all(market.token_ids)
    )


def pair_key(market: "CatalogMarket", floor: Decimal = Decimal("100")) -> Optional[PairKey]:
    """Pairing attributes, or None if the market cannot be cross-paired."""
    text = f"{market.slug} {market.question}"
    asset = detect_asset(text)
    direction = extract_direction(text)
    anchor = extract_anchor(text, floor)
    if asset is None or direction is None or anchor is None:
        return None
    return PairKey(asset, anchor, direction, market.end_timestamp)


def _cross_pair(upper: "CatalogMarket", lower: "CatalogMarket", key: PairKey) -> TrackedUnit:
    anchor = format_anchor(key.anchor)
    return TrackedUnit(
        unit_id=f"{upper.market_id}:{lower.market_id}",
        symbol=f"{key.asset} {anchor}",
        asset=key.asset,
        anchor=anchor,
        end_timestamp=upper.end_timestamp,
        leg_a=Leg(upper.market_id, f"{key.asset} >{anchor}", upper.token_ids[0]),
        leg_b=Leg(lower.market_id, f"{key.asset} <{anchor}", lower.token_ids[0]),
        question=upper.question,
    )


def _self_pair(market: "CatalogMarket", key: Optional[PairKey]) -> TrackedUnit:
    label_a, label_b = market.outcomes
    asset = key.asset if key else (detect_asset(f"{market.slug} {market.question}") or market.symbol.split(" ")[0])
    return TrackedUnit(
        unit_id=market.market_id,
        symbol=market.symbol,
        asset=asset,
        anchor=format_anchor(key.anchor) if key else "",
        end_timestamp=market.end_timestamp,
        leg_a=Leg(market.market_id, label_a, market.token_ids[0]),
        leg_b=Leg(market.market_id, label_b, market.token_ids[1]),
        is_self_pair=True,
        question=market.question,
    )


def pair_markets(
    markets: list["CatalogMarket"],
    tolerance_seconds: float = 60,
    anchor_floor: Decimal = Decimal("100"),
) -> list[TrackedUnit]:
    """
    Build tracked units from a flat market list.

    Greedy, first match wins, in input order. Each market lands in at
    most one unit. Malformed markets are skipped.
    """
    eligible = []
    seen = set()
    for market in markets:
        if not _is_well_formed(market) or market.market_id in seen:
            continue
        seen.add(market.market_id)
        eligible.append(market)

    keys = [pair_key(market, anchor_floor) for market in eligible]
    consumed: set[int] = set()
    units = []

    for i, market in enumerate(eligible):
        if i in consumed:
            continue
        consumed.add(i)
        key = keys[i]

        partner = None
        if key is not None:
            for j in range(i + 1, len(eligible)):
                other = keys[j]
                if j in consumed or other is None:
                    continue
                if key.complements(other, tolerance_seconds):
                    partner = j
                    break

        if partner is None:
            units.append(_self_pair(market, key))
            continue

        consumed.add(partner)
        if key.direction == UP:
            units.append(_cross_pair(market, eligible[partner], key))
        else:
            units.append(_cross_pair(eligible[partner], market, keys[partner]))

    return units
