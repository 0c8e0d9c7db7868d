"""
In-memory ledger of simulated orders, operator log entries and
aggregate trading statistics.
"""

import itertools
import secrets
import time
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class LogEntryLevel(Enum):
    """Severity of an operator-facing log entry."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


def _clock(ts: float) -> str:
    return time.strftime("%H:%M:%S", time.localtime(ts))


@dataclass(frozen=True)
class Order:
    """A simulated fill. Always FILLED; partial or rejected fills are not modeled."""
    order_id: str
    unit_id: str
    symbol: str
    side: str
    leg: int
    price: Decimal
    amount: Decimal
    timestamp: float
    tx_hash: str
    status: str = "FILLED"

    def to_dict(self) -> dict:
        return {
            "id": self.order_id,
            "roundId": self.unit_id,
            "symbol": self.symbol,
            "side": self.side,
            "leg": self.leg,
            "price": float(self.price),
            "amount": float(self.amount),
            "status": self.status,
            "timestamp": _clock(self.timestamp),
            "txHash": self.tx_hash,
        }


@dataclass(frozen=True)
class LogEntry:
    """Single operator log line."""
    entry_id: str
    timestamp: float
    level: LogEntryLevel
    message: str

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "timestamp": _clock(self.timestamp),
            "level": self.level.value,
            "message": self.message,
        }


@dataclass
class Stats:
    """Aggregate counters, updated on every completed hedge."""
    total_trades: int = 0
    won_trades: int = 0
    total_volume: Decimal = Decimal("0")
    net_profit: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")

    @property
    def win_rate(self) -> Decimal:
        if self.total_trades == 0:
            return Decimal("0")
        return Decimal(self.won_trades) / Decimal(self.total_trades) * 100

    def to_dict(self) -> dict:
        return {
            "totalTrades": self.total_trades,
            "wonTrades": self.won_trades,
            "totalVolume": float(self.total_volume),
            "netProfit": float(self.net_profit),
            "balance": float(self.balance),
            "winRate": float(self.win_rate),
        }


class Ledger:
    """
    Accumulates simulated orders, operator logs and statistics.

    Orders are kept most-recent-first, logs oldest-first. Both are
    bounded; the oldest entry is evicted once capacity is reached.
    There is no rollback: a recorded hedge is final.
    """

    def __init__(
        self,
        starting_balance: Decimal = Decimal("5000"),
        order_capacity: int = 50,
        log_capacity: int = 50,
    ):
        self.stats = Stats(balance=starting_balance)
        self._orders: deque[Order] = deque(maxlen=order_capacity)
        self._logs: deque[LogEntry] = deque(maxlen=log_capacity)
        self._order_seq = itertools.count(1)
        self._log_seq = itertools.count(1)

    @property
    def orders(self) -> list[Order]:
        """Orders, most recent first."""
        return list(reversed(self._orders))

    @property
    def logs(self) -> list[LogEntry]:
        """Log entries, oldest first."""
        return list(self._logs)

    def add_log(
        self,
        message: str,
        level: LogEntryLevel = LogEntryLevel.INFO,
        timestamp: Optional[float] = None,
    ) -> LogEntry:
        entry = LogEntry(
            entry_id=f"log-{next(self._log_seq)}",
            timestamp=timestamp if timestamp is not None else time.time(),
            level=level,
            message=message,
        )
        self._logs.append(entry)
        return entry

    def record_order(
        self,
        unit_id: str,
        symbol: str,
        side: str,
        leg: int,
        price: Decimal,
        amount: Decimal,
        timestamp: Optional[float] = None,
    ) -> Order:
        """Record a simulated fill."""
        now = timestamp if timestamp is not None else time.time()
        order = Order(
            order_id=f"tx-{int(now * 1000)}-{next(self._order_seq)}",
            unit_id=unit_id,
            symbol=symbol,
            side=side,
            leg=leg,
            price=price,
            amount=amount,
            timestamp=now,
            tx_hash="0x" + secrets.token_hex(16),
        )
        self._orders.append(order)
        return order

    def record_hedge(self, profit: Decimal, volume: Decimal) -> Stats:
        """Apply a completed hedge to the aggregate statistics."""
        self.stats.total_trades += 1
        if profit > 0:
            self.stats.won_trades += 1
        self.stats.total_volume += volume
        self.stats.net_profit += profit
        self.stats.balance += profit
        return self.stats

    def snapshot(self) -> dict:
        """Plain-data copy of the ledger."""
        return {
            "stats": self.stats.to_dict(),
            "logs": [entry.to_dict() for entry in self._logs],
            "orders": [order.to_dict() for order in reversed(self._orders)],
        }
