"""
Shared fixtures: canned catalog entries, an in-memory REST client and a
quiet engine. No test touches the network.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from polyedge.bot import ArbitrageEngine
from polyedge.config import Config
from polyedge.discovery import CatalogMarket, Leg, TrackedUnit
from polyedge.monitor import Logger
from polyedge.signals import MarketRound


NOW = 1_800_000_000.0
END = NOW + 3600


def iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def raw_market(market_id, slug, end=END, tokens=None, **extra):
    """A Gamma /markets entry as the API returns it (token ids JSON-encoded)."""
    tokens = tokens if tokens is not None else [f"{market_id}-yes", f"{market_id}-no"]
    data = {
        "id": market_id,
        "slug": slug,
        "question": slug.replace("-", " ").capitalize() + "?",
        "endDate": iso(end),
        "clobTokenIds": '["' + '", "'.join(tokens) + '"]',
        "outcomes": '["Yes", "No"]',
        "volume24hr": 1000,
        "liquidityNum": 500,
        "active": True,
        "closed": False,
    }
    data.update(extra)
    return data


class FakeRestClient:
    """Stands in for PolymarketRestClient."""

    def __init__(self, markets=None, prices=None):
        self.markets = markets or []
        self.prices = prices or {}
        self.market_error = None
        self.market_calls = 0
        self.closed = False

    async def get_markets(self, params):
        self.market_calls += 1
        self.last_params = params
        if self.market_error is not None:
            raise self.market_error
        return self.markets

    async def get_best_ask(self, token_id, fallback):
        price = self.prices.get(token_id)
        if price is None:
            return fallback
        return Decimal(str(price))

    async def close(self):
        self.closed = True


@pytest.fixture
def quiet_logger():
    return Logger(name="polyedge-test", level="CRITICAL")


@pytest.fixture
def config():
    cfg = Config()
    cfg.trading.drop_threshold = Decimal("5")
    cfg.trading.sum_target = Decimal("0.98")
    cfg.trading.bet_amount = Decimal("10")
    cfg.trading.cooldown_seconds = 30
    return cfg


@pytest.fixture
def make_market():
    def _make(market_id, slug, end=END, tokens=None, question="", outcomes=("YES", "NO")):
        return CatalogMarket(
            market_id=market_id,
            slug=slug,
            question=question,
            symbol=" ".join(slug.split("-")[:2]).upper(),
            end_timestamp=end,
            token_ids=tokens if tokens is not None else (f"{market_id}-yes", f"{market_id}-no"),
            outcomes=outcomes,
        )
    return _make


@pytest.fixture
def make_round():
    def _make(self_pair=False, history_size=10, countdown=3600):
        unit = TrackedUnit(
            unit_id="m1" if self_pair else "up:down",
            symbol="BTC 70000",
            asset="BTC",
            anchor="70000",
            end_timestamp=END,
            leg_a=Leg("up", "BTC >70000", "tok-a"),
            leg_b=Leg("down", "BTC <70000", "tok-b"),
            is_self_pair=self_pair,
        )
        return MarketRound.from_unit(unit, now=END - countdown, history_size=history_size)
    return _make


@pytest.fixture
def pair_catalog():
    return [
        raw_market("up", "bitcoin-above-70000-on-march-5"),
        raw_market("down", "bitcoin-below-70000-on-march-5"),
        raw_market("solo", "will-eth-flip-btc"),
    ]


@pytest.fixture
def fake_client(pair_catalog):
    return FakeRestClient(markets=pair_catalog)


@pytest.fixture
def engine(config, fake_client, quiet_logger):
    return ArbitrageEngine(config, rest_client=fake_client, logger=quiet_logger, clock=lambda: NOW)
