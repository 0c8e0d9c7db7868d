"""Scheduler module for concurrent price polling."""

from .poller import PollingScheduler

__all__ = ["PollingScheduler"]
