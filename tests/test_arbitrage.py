"""Tests for the drop/hedge state machine."""

from decimal import Decimal

import pytest

from polyedge.signals import (
    ArbitrageDetector,
    EventKind,
    MarketRound,
    RoundStatus,
    drop_percent,
    hedge_profit,
)


D = Decimal


def feed(detector, round_, ticks, elapsed=2):
    """Run (price_a, price_b) ticks through the detector and collect events."""
    events = []
    for price_a, price_b in ticks:
        events.extend(detector.process(round_, D(price_a), D(price_b), elapsed))
    return events


@pytest.fixture
def detector(config):
    return ArbitrageDetector(config.trading)


# ============================================================================
# Helpers
# ============================================================================

def test_drop_percent():
    assert drop_percent(D("0.50"), D("0.40")) == D("20")
    assert drop_percent(D("0.50"), D("0.60")) == D("-20")
    assert drop_percent(D("0"), D("0.40")) is None


def test_hedge_profit():
    assert hedge_profit(D("0.95"), D("10")) == D("0.50")
    assert hedge_profit(D("1.02"), D("10")) == D("-0.20")


# ============================================================================
# Leg 1
# ============================================================================

def test_sharp_drop_fills_leg_one(detector, make_round):
    round_ = make_round()

    events = feed(detector, round_, [("0.50", "0.50"), ("0.50", "0.50"), ("0.40", "0.50")])

    assert len(events) == 1
    event = events[0]
    assert event.kind == EventKind.LEG1_FILLED
    assert event.side == "UP"
    assert event.leg == 1
    assert event.price == D("0.40")
    assert event.drop_pct == D("20")
    assert round_.status == RoundStatus.HEDGING
    assert round_.leg1_side == "UP"
    assert round_.leg1_price == D("0.40")


def test_drop_on_lower_leg(detector, make_round):
    round_ = make_round()

    events = feed(detector, round_, [("0.50", "0.50"), ("0.50", "0.40")])

    assert [e.side for e in events] == ["DOWN"]
    assert round_.leg1_side == "DOWN"


@pytest.mark.parametrize("current, fires", [
    ("0.475", True),  # exactly 5%
    ("0.48", False),  # 4%
])
def test_drop_threshold_is_inclusive(detector, make_round, current, fires):
    round_ = make_round()

    events = feed(detector, round_, [("0.50", "0.50"), (current, "0.50")])

    assert bool(events) is fires


@pytest.mark.parametrize("current", ["0.01", "0.02"])
def test_drop_to_pinned_price_is_ignored(detector, make_round, current):
    round_ = make_round()

    events = feed(detector, round_, [("0.50", "0.50"), (current, "0.50")])

    assert events == []
    assert round_.status == RoundStatus.SCANNING


def test_single_sample_never_fires(detector, make_round):
    round_ = make_round()

    assert feed(detector, round_, [("0.10", "0.90")]) == []


def test_self_pair_never_trades(detector, make_round):
    round_ = make_round(self_pair=True)

    events = feed(detector, round_, [("0.50", "0.50"), ("0.30", "0.70"), ("0.30", "0.40")])

    assert events == []
    assert round_.status == RoundStatus.SCANNING


# ============================================================================
# Hedge and cool-down
# ============================================================================

def test_hedge_locks_profit(detector, make_round):
    round_ = make_round()
    feed(detector, round_, [("0.50", "0.50"), ("0.40", "0.50")])

    events = feed(detector, round_, [("0.45", "0.55")])

    assert len(events) == 1
    event = events[0]
    assert event.kind == EventKind.HEDGE_LOCKED
    assert event.side == "DOWN"
    assert event.leg == 2
    assert event.price == D("0.55")
    assert event.total_cost == D("0.95")
    assert event.profit == D("0.50")
    assert round_.status == RoundStatus.LOCKED
    assert round_.cooldown_remaining == 30


def test_hedge_waits_for_later_tick(detector, make_round):
    round_ = make_round()

    # Leg 1 at 0.40 with the opposite ask already cheap enough
    events = feed(detector, round_, [("0.50", "0.30"), ("0.40", "0.30")])

    assert [e.kind for e in events] == [EventKind.LEG1_FILLED]
    assert round_.status == RoundStatus.HEDGING


def test_hedge_above_ceiling_keeps_waiting(detector, make_round):
    round_ = make_round()
    feed(detector, round_, [("0.50", "0.50"), ("0.40", "0.60")])

    events = feed(detector, round_, [("0.40", "0.59"), ("0.30", "0.60")])

    assert events == []
    assert round_.status == RoundStatus.HEDGING
    assert round_.leg1_price == D("0.40")


def test_hedge_from_lower_leg(detector, make_round):
    round_ = make_round()
    feed(detector, round_, [("0.50", "0.50"), ("0.50", "0.40")])

    events = feed(detector, round_, [("0.55", "0.45")])

    assert events[0].side == "UP"
    assert events[0].total_cost == D("0.95")


def test_cooldown_returns_to_scanning(detector, make_round):
    round_ = make_round()
    feed(detector, round_, [("0.50", "0.50"), ("0.40", "0.50"), ("0.45", "0.55")])
    history_len = len(round_.history_a)

    assert feed(detector, round_, [("0.45", "0.55")], elapsed=10) == []
    assert round_.status == RoundStatus.LOCKED
    assert round_.cooldown_remaining == 20

    events = feed(detector, round_, [("0.45", "0.55")], elapsed=20)

    assert [e.kind for e in events] == [EventKind.COOLDOWN_RESET]
    assert round_.status == RoundStatus.SCANNING
    assert round_.leg1_side is None
    assert round_.leg1_price is None
    assert len(round_.history_a) == history_len + 2


def test_locked_round_ignores_drops(detector, make_round):
    round_ = make_round()
    feed(detector, round_, [("0.50", "0.50"), ("0.40", "0.50"), ("0.45", "0.55")])

    events = feed(detector, round_, [("0.20", "0.55")])

    assert events == []
    assert round_.status == RoundStatus.LOCKED


def test_config_change_applies_next_tick(config, detector, make_round):
    round_ = make_round()
    feed(detector, round_, [("0.50", "0.50"), ("0.40", "0.50")])

    assert feed(detector, round_, [("0.40", "0.59")]) == []
    config.trading.sum_target = D("0.99")

    events = feed(detector, round_, [("0.40", "0.59")])

    assert [e.kind for e in events] == [EventKind.HEDGE_LOCKED]


# ============================================================================
# MarketRound
# ============================================================================

def test_history_is_bounded(detector, make_round):
    round_ = make_round(history_size=3)

    feed(detector, round_, [("0.51", "0.49"), ("0.52", "0.48"), ("0.53", "0.47"), ("0.54", "0.46")])

    assert list(round_.history_a) == [D("0.52"), D("0.53"), D("0.54")]
    assert list(round_.history_b) == [D("0.48"), D("0.47"), D("0.46")]


def test_countdown_decrements(detector, make_round):
    round_ = make_round(countdown=10)

    feed(detector, round_, [("0.50", "0.50")], elapsed=4)
    assert round_.countdown == 6
    assert not round_.expired

    feed(detector, round_, [("0.50", "0.50")], elapsed=8)
    assert round_.countdown == 0
    assert round_.expired


def test_from_unit_carries_state(detector, make_round):
    previous = make_round()
    feed(detector, previous, [("0.50", "0.50"), ("0.40", "0.50")])

    refreshed = MarketRound.from_unit(previous, now=0, previous=previous)

    assert refreshed.status == RoundStatus.HEDGING
    assert refreshed.leg1_price == D("0.40")
    assert refreshed.leg_a.price == D("0.40")
    assert list(refreshed.history_a) == list(previous.history_a)
    assert refreshed.history_a is not previous.history_a
    assert refreshed.leg_a is not previous.leg_a


def test_from_unit_without_match_starts_fresh(detector, make_round):
    previous = make_round()
    feed(detector, previous, [("0.50", "0.50"), ("0.40", "0.50")])
    other = make_round(self_pair=True)

    fresh = MarketRound.from_unit(other, now=0, previous=previous)

    assert fresh.status == RoundStatus.SCANNING
    assert len(fresh.history_a) == 0
    assert fresh.leg_a.price == D("0.5")


def test_round_to_dict(detector, make_round):
    round_ = make_round()
    feed(detector, round_, [("0.50", "0.50"), ("0.40", "0.50")])

    data = round_.to_dict()

    assert data["id"] == "up:down"
    assert data["status"] == "HEDGING"
    assert data["leg1Side"] == "UP"
    assert data["leg1Price"] == 0.40
    assert data["askUp"] == 0.40
    assert data["combinedCost"] == 0.90
    assert data["historyUp"] == [0.50, 0.40]
    assert data["selfPair"] is False
