"""Ledger module for simulated orders, operator logs and statistics."""

from .store import Ledger, LogEntry, LogEntryLevel, Order, Stats

__all__ = ["Ledger", "LogEntry", "LogEntryLevel", "Order", "Stats"]
