"""
Market catalog fetcher.
Pulls active markets from the Gamma API and validates each entry into a
CatalogMarket record at the ingestion boundary.
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, TYPE_CHECKING

import aiohttp

from ..config import to_decimal
from .pairing import detect_asset

if TYPE_CHECKING:
    from ..config import DiscoveryConfig, TradingConfig
    from ..connector import PolymarketRestClient
    from ..monitor import Logger


@dataclass
class CatalogMarket:
    """A validated active market with exactly two outcome tokens."""
    market_id: str
    slug: str
    question: str
    symbol: str
    end_timestamp: float
    token_ids: tuple[str, str]
    outcomes: tuple[str, str] = ("YES", "NO")
    volume_24h: Decimal = Decimal("0")
    liquidity: Decimal = Decimal("0")


@dataclass
class CatalogResult:
    """Outcome of one catalog refresh. `ok` is False on a recoverable failure."""
    markets: list[CatalogMarket] = field(default_factory=list)
    ok: bool = True
    error: str = ""
    skipped: int = 0

    @classmethod
    def failed(cls, error: str) -> "CatalogResult":
        return cls(ok=False, error=error)


def _json_list(value: Any) -> Optional[list]:
    """Gamma encodes some list fields as JSON strings."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, list) else None


def parse_end_date(value: Any) -> Optional[float]:
    """ISO-8601 `endDate` to epoch seconds. Naive timestamps are UTC."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def market_symbol(raw: dict[str, Any]) -> str:
    ticker = raw.get("ticker")
    if isinstance(ticker, str) and ticker:
        return ticker.upper()
    slug = raw.get("slug") or ""
    return " ".join(str(slug).split("-")[:2]).upper()


def parse_market(raw: Any) -> Optional[CatalogMarket]:
    """
    Validate one Gamma market entry.

    Returns None for closed/inactive entries, missing ids, token lists
    that are not exactly two ids, and missing or unparseable end dates.
    """
    if not isinstance(raw, dict):
        return None
    if raw.get("closed") is True or raw.get("active") is False:
        return None

    market_id = raw.get("id")
    if market_id in (None, ""):
        return None

    tokens = _json_list(raw.get("clobTokenIds"))
    if tokens is None or len(tokens) != 2 or not all(isinstance(t, str) and t for t in tokens):
        return None

    end_timestamp = parse_end_date(raw.get("endDate"))
    if end_timestamp is None:
        return None

    outcomes = _json_list(raw.get("outcomes"))
    if outcomes is None or len(outcomes) != 2:
        outcomes = ["YES", "NO"]

    return CatalogMarket(
        market_id=str(market_id),
        slug=str(raw.get("slug") or ""),
        question=str(raw.get("question") or ""),
        symbol=market_symbol(raw),
        end_timestamp=end_timestamp,
        token_ids=(tokens[0], tokens[1]),
        outcomes=(str(outcomes[0]).upper(), str(outcomes[1]).upper()),
        volume_24h=to_decimal(raw.get("volume24hr", 0)),
        liquidity=to_decimal(raw.get("liquidityNum", raw.get("liquidity", 0))),
    )


class MarketCatalog:
    """
    Fetches the active market list.

    Failures never raise: they come back as CatalogResult.failed so the
    caller can keep its previous unit set.
    """

    def __init__(
        self,
        rest_client: "PolymarketRestClient",
        discovery_config: "DiscoveryConfig",
        logger: Optional["Logger"] = None,
    ):
        self.client = rest_client
        self.config = discovery_config
        self.logger = logger

    def build_params(self, trading: "TradingConfig", now: float) -> dict[str, str]:
        """Gamma query parameters for one refresh."""
        soonest_first = self.config.order_by == "endDate"
        params = {
            "active": "true",
            "closed": "false",
            "limit": str(self.config.market_limit),
            "order": self.config.order_by,
            "ascending": "true" if soonest_first else "false",
            "end_date_min": _iso(now),
        }
        if trading.window_minutes > 0:
            params["end_date_max"] = _iso(now + trading.window_minutes * 60)
        return params

    def accepts(self, market: CatalogMarket, trading: "TradingConfig", now: float) -> bool:
        """Client-side filters: asset keywords, volume, liquidity, settlement window."""
        if market.end_timestamp <= now:
            return False
        if trading.window_minutes > 0 and market.end_timestamp - now > trading.window_minutes * 60:
            return False
        if market.volume_24h < self.config.min_volume_24h:
            return False
        if market.liquidity < trading.min_liquidity:
            return False
        if self.config.assets:
            asset = detect_asset(f"{market.slug} {market.question}")
            if asset not in self.config.assets:
                return False
        return True

    async def fetch(self, trading: "TradingConfig", now: Optional[float] = None) -> CatalogResult:
        """Retrieve and filter active markets."""
        now = time.time() if now is None else now

        try:
            raw_markets = await self.client.get_markets(self.build_params(trading, now))
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, RuntimeError) as e:
            if self.logger:
                self.logger.catalog_failed(str(e) or type(e).__name__)
            return CatalogResult.failed(str(e) or type(e).__name__)

        result = CatalogResult()
        for raw in raw_markets:
            market = parse_market(raw)
            if market is None:
                result.skipped += 1
                continue
            if self.accepts(market, trading, now):
                result.markets.append(market)

        if self.logger:
            self.logger.debug(
                "catalog_fetched",
                received=len(raw_markets),
                accepted=len(result.markets),
                skipped=result.skipped,
            )
        return result


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
