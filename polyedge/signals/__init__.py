"""Signals module: the drop/hedge state machine."""

from .arbitrage import (
    ArbitrageDetector,
    EventKind,
    MarketRound,
    RoundEvent,
    RoundStatus,
    drop_percent,
    hedge_profit,
)

__all__ = [
    "ArbitrageDetector",
    "EventKind",
    "MarketRound",
    "RoundEvent",
    "RoundStatus",
    "drop_percent",
    "hedge_profit",
]
