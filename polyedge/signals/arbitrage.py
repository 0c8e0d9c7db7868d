"""
Drop/hedge arbitrage state machine.

Per tracked unit: SCANNING -> HEDGING -> LOCKED -> (cool-down) -> SCANNING.
Leg 1 is bought when one side's ask drops sharply between ticks; leg 2
is bought on the opposite side once both legs together cost no more
than the hedge ceiling. Both legs together pay out 1 at settlement.
"""

from collections import deque
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from enum import Enum
from typing import Optional, TYPE_CHECKING

from ..discovery.pairing import TrackedUnit, UP, DOWN

if TYPE_CHECKING:
    from ..config import TradingConfig


class RoundStatus(Enum):
    """State of a tracked unit."""
    SCANNING = "SCANNING"
    HEDGING = "HEDGING"
    LOCKED = "LOCKED"


class EventKind(Enum):
    LEG1_FILLED = "leg1_filled"
    HEDGE_LOCKED = "hedge_locked"
    COOLDOWN_RESET = "cooldown_reset"


@dataclass
class RoundEvent:
    """Transition emitted by the state machine for the engine to record."""
    kind: EventKind
    unit_id: str
    symbol: str
    side: Optional[str] = None
    leg: int = 0
    price: Decimal = Decimal("0")
    drop_pct: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")


def drop_percent(previous: Decimal, current: Decimal) -> Optional[Decimal]:
    """(previous - current) / previous * 100. None when previous <= 0."""
    if previous <= 0:
        return None
    return (previous - current) / previous * 100


def hedge_profit(total_cost: Decimal, bet_amount: Decimal) -> Decimal:
    """Profit locked by holding both legs to settlement."""
    return (Decimal("1") - total_cost) * bet_amount


@dataclass
class MarketRound(TrackedUnit):
    """
    A tracked unit plus its drop/hedge state.

    Histories are bounded; the oldest sample is evicted first.
    """
    history_a: deque = field(default_factory=lambda: deque(maxlen=10))
    history_b: deque = field(default_factory=lambda: deque(maxlen=10))
    status: RoundStatus = RoundStatus.SCANNING
    leg1_side: Optional[str] = None
    leg1_price: Optional[Decimal] = None
    countdown: float = 0
    cooldown_remaining: float = 0

    @classmethod
    def from_unit(
        cls,
        unit: TrackedUnit,
        now: float,
        history_size: int = 10,
        previous: Optional["MarketRound"] = None,
    ) -> "MarketRound":
        """
        Wrap a freshly discovered unit.

        When `previous` tracked the same unit, its price history, last
        prices and in-flight trade state carry over.
        """
        base = {f.name: getattr(unit, f.name) for f in fields(TrackedUnit)}
        base["leg_a"] = replace(unit.leg_a)
        base["leg_b"] = replace(unit.leg_b)
        size = max(2, history_size)
        round_ = cls(
            **base,
            history_a=deque(maxlen=size),
            history_b=deque(maxlen=size),
            countdown=max(0.0, unit.end_timestamp - now),
        )
        if previous is None or previous.unit_id != unit.unit_id:
            return round_

        round_.history_a.extend(previous.history_a)
        round_.history_b.extend(previous.history_b)
        if previous.leg_a.token_id == unit.leg_a.token_id:
            round_.leg_a.price = previous.leg_a.price
        if previous.leg_b.token_id == unit.leg_b.token_id:
            round_.leg_b.price = previous.leg_b.price
        round_.status = previous.status
        round_.leg1_side = previous.leg1_side
        round_.leg1_price = previous.leg1_price
        round_.cooldown_remaining = previous.cooldown_remaining
        return round_

    @property
    def combined_cost(self) -> Decimal:
        return self.leg_a.price + self.leg_b.price

    @property
    def expired(self) -> bool:
        return self.countdown <= 0

    def leg_for(self, side: str):
        return self.leg_a if side == UP else self.leg_b

    def reset(self) -> None:
        """Back to SCANNING. Price history is kept for trend continuity."""
        self.status = RoundStatus.SCANNING
        self.leg1_side = None
        self.leg1_price = None
        self.cooldown_remaining = 0

    def to_dict(self) -> dict:
        return {
            "id": self.unit_id,
            "symbol": self.symbol,
            "question": self.question,
            "asset": self.asset,
            "anchor": self.anchor,
            "selfPair": self.is_self_pair,
            "legA": self.leg_a.to_dict(),
            "legB": self.leg_b.to_dict(),
            "askUp": float(self.leg_a.price),
            "askDown": float(self.leg_b.price),
            "combinedCost": float(self.combined_cost),
            "historyUp": [float(p) for p in self.history_a],
            "historyDown": [float(p) for p in self.history_b],
            "status": self.status.value,
            "leg1Side": self.leg1_side,
            "leg1Price": float(self.leg1_price) if self.leg1_price is not None else None,
            "countdown": int(self.countdown),
            "resetTimer": int(self.cooldown_remaining),
            "endTimestamp": self.end_timestamp,
        }


class ArbitrageDetector:
    """
    Runs the drop/hedge state machine over new prices.

    Reads the live TradingConfig on every call, so config changes apply
    from the next tick. Does not touch the ledger: it returns events for
    the engine to record.
    """

    def __init__(self, trading_config: "TradingConfig"):
        self.trading = trading_config

    def check_drop(self, history: deque) -> Optional[Decimal]:
        """
        Drop percentage of the newest sample against the one before it,
        or None when it does not qualify as a leg-1 signal.
        """
        if len(history) < 2:
            return None
        previous, current = history[-2], history[-1]

        pct = drop_percent(previous, current)
        if pct is None or pct < self.trading.drop_threshold:
            return None

        # Reject reads already pinned near 0 or 1
        if not self.trading.min_entry_price < current < self.trading.max_entry_price:
            return None
        return pct

    def check_hedge(self, leg1_price: Decimal, opposite_price: Decimal) -> Optional[Decimal]:
        """Total cost when it is at or under the hedge ceiling, else None."""
        total_cost = leg1_price + opposite_price
        if total_cost <= self.trading.sum_target:
            return total_cost
        return None

    def process(
        self,
        round_: MarketRound,
        price_a: Decimal,
        price_b: Decimal,
        elapsed: float,
    ) -> list[RoundEvent]:
        """Apply one tick of prices to a round and advance its state."""
        round_.leg_a.price = price_a
        round_.leg_b.price = price_b
        round_.history_a.append(price_a)
        round_.history_b.append(price_b)
        round_.countdown = max(0.0, round_.countdown - elapsed)

        if round_.status == RoundStatus.LOCKED:
            round_.cooldown_remaining -= elapsed
            if round_.cooldown_remaining <= 0:
                round_.reset()
                return [RoundEvent(EventKind.COOLDOWN_RESET, round_.unit_id, round_.symbol)]
            return []

        # A self-pair's legs sum to ~1 by construction; it never trades
        if round_.is_self_pair:
            if round_.status != RoundStatus.SCANNING:
                round_.reset()
            return []

        if round_.status == RoundStatus.SCANNING:
            return self._scan(round_)
        return self._hedge(round_)

    def _scan(self, round_: MarketRound) -> list[RoundEvent]:
        for side, history in ((UP, round_.history_a), (DOWN, round_.history_b)):
            pct = self.check_drop(history)
            if pct is None:
                continue

            price = history[-1]
            round_.status = RoundStatus.HEDGING
            round_.leg1_side = side
            round_.leg1_price = price
            return [RoundEvent(
                EventKind.LEG1_FILLED,
                round_.unit_id,
                round_.symbol,
                side=side,
                leg=1,
                price=price,
                drop_pct=pct,
            )]
        return []

    def _hedge(self, round_: MarketRound) -> list[RoundEvent]:
        opposite_side = DOWN if round_.leg1_side == UP else UP
        opposite_price = round_.leg_for(opposite_side).price

        total_cost = self.check_hedge(round_.leg1_price, opposite_price)
        if total_cost is None:
            return []

        round_.status = RoundStatus.LOCKED
        round_.cooldown_remaining = self.trading.cooldown_seconds
        return [RoundEvent(
            EventKind.HEDGE_LOCKED,
            round_.unit_id,
            round_.symbol,
            side=opposite_side,
            leg=2,
            price=opposite_price,
            total_cost=total_cost,
            profit=hedge_profit(total_cost, self.trading.bet_amount),
        )]
