"""Tests for catalog entry validation and MarketCatalog.fetch."""

from decimal import Decimal

import aiohttp
import pytest

from polyedge.config import DiscoveryConfig, TradingConfig
from polyedge.discovery import MarketCatalog, parse_market

from conftest import END, NOW, FakeRestClient, raw_market


# ============================================================================
# parse_market
# ============================================================================

def test_parse_valid_entry():
    market = parse_market(raw_market("42", "bitcoin-above-70000-on-march-5"))

    assert market is not None
    assert market.market_id == "42"
    assert market.token_ids == ("42-yes", "42-no")
    assert market.outcomes == ("YES", "NO")
    assert market.end_timestamp == END
    assert market.symbol == "BITCOIN ABOVE"
    assert market.volume_24h == Decimal("1000")
    assert market.liquidity == Decimal("500")


def test_parse_accepts_token_list_and_ticker():
    raw = raw_market("7", "eth-below-3000", ticker="eth-3k")
    raw["clobTokenIds"] = ["t1", "t2"]

    market = parse_market(raw)

    assert market.token_ids == ("t1", "t2")
    assert market.symbol == "ETH-3K"


@pytest.mark.parametrize("override", [
    {"clobTokenIds": '["only-one"]'},
    {"clobTokenIds": '["a", "b", "c"]'},
    {"clobTokenIds": "not json"},
    {"clobTokenIds": None},
    {"endDate": None},
    {"endDate": "next tuesday"},
    {"id": None},
    {"closed": True},
    {"active": False},
])
def test_parse_rejects_malformed(override):
    raw = raw_market("1", "bitcoin-above-70000")
    raw.update(override)

    assert parse_market(raw) is None


def test_parse_rejects_non_dict():
    assert parse_market(["not", "a", "market"]) is None


def test_parse_defaults_bad_outcomes():
    raw = raw_market("1", "bitcoin-above-70000", outcomes='["Only"]')

    assert parse_market(raw).outcomes == ("YES", "NO")


# ============================================================================
# MarketCatalog
# ============================================================================

@pytest.mark.asyncio
async def test_fetch_filters_entries():
    client = FakeRestClient(markets=[
        raw_market("btc", "bitcoin-above-70000"),
        raw_market("politics", "will-the-senate-pass-the-bill"),
        raw_market("settled", "bitcoin-below-60000", end=NOW - 10),
        raw_market("far", "bitcoin-above-90000", end=NOW + 3 * 86400),
        raw_market("broken", "bitcoin-above-1", clobTokenIds="[]"),
    ])
    catalog = MarketCatalog(client, DiscoveryConfig())

    result = await catalog.fetch(TradingConfig(window_minutes=1440), now=NOW)

    assert result.ok
    assert [m.market_id for m in result.markets] == ["btc"]
    assert result.skipped == 1


@pytest.mark.asyncio
async def test_fetch_applies_volume_and_liquidity_floors():
    client = FakeRestClient(markets=[
        raw_market("thin", "bitcoin-above-70000", volume24hr=5, liquidityNum=5),
        raw_market("deep", "bitcoin-below-70000", volume24hr=5000, liquidityNum=5000),
    ])
    catalog = MarketCatalog(client, DiscoveryConfig(min_volume_24h=Decimal("100")))

    result = await catalog.fetch(TradingConfig(min_liquidity=Decimal("100")), now=NOW)

    assert [m.market_id for m in result.markets] == ["deep"]


@pytest.mark.asyncio
async def test_fetch_without_asset_filter_keeps_everything():
    client = FakeRestClient(markets=[raw_market("politics", "will-the-senate-pass-the-bill")])
    catalog = MarketCatalog(client, DiscoveryConfig(assets=()))

    result = await catalog.fetch(TradingConfig(), now=NOW)

    assert [m.market_id for m in result.markets] == ["politics"]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    aiohttp.ClientConnectionError("unreachable"),
    ValueError("unexpected markets payload: dict"),
])
async def test_fetch_failure_is_recoverable(error):
    client = FakeRestClient()
    client.market_error = error
    catalog = MarketCatalog(client, DiscoveryConfig())

    result = await catalog.fetch(TradingConfig(), now=NOW)

    assert not result.ok
    assert result.markets == []
    assert result.error


def test_build_params():
    catalog = MarketCatalog(FakeRestClient(), DiscoveryConfig(market_limit=150))

    params = catalog.build_params(TradingConfig(window_minutes=60), now=NOW)

    assert params["active"] == "true"
    assert params["closed"] == "false"
    assert params["limit"] == "150"
    assert params["order"] == "endDate"
    assert params["ascending"] == "true"
    assert "end_date_max" in params


def test_build_params_by_volume_unbounded_window():
    catalog = MarketCatalog(FakeRestClient(), DiscoveryConfig(order_by="volume24hr"))

    params = catalog.build_params(TradingConfig(window_minutes=0), now=NOW)

    assert params["ascending"] == "false"
    assert "end_date_max" not in params
