"""
Structured JSON logging for the drop/hedge engine.
All process logs are JSON for easy parsing and analysis.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "event": record.msg,
            "logger": record.name,
        }

        # Add extra fields
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class Logger:
    """
    Structured JSON logger for the engine.

    All log entries are JSON objects with:
    - timestamp: ISO 8601 UTC timestamp
    - level: Log level
    - event: Event name/type
    - Additional context fields
    """

    def __init__(
        self,
        name: str = "polyedge",
        level: str = "INFO",
        log_file: Optional[str] = None,
    ):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self.logger.handlers = []  # Clear existing handlers
        self.logger.propagate = False

        formatter = JSONFormatter()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def _log(self, level: int, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Internal log method."""
        if not self.logger.isEnabledFor(level):
            return
        record = self.logger.makeRecord(
            self.logger.name,
            level,
            "",
            0,
            event,
            (),
            sys.exc_info() if exc_info else None,
        )
        record.extra_fields = kwargs
        self.logger.handle(record)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._log(logging.INFO, event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, event, **kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        """Log error with the active exception's traceback."""
        self._log(logging.ERROR, event, exc_info=True, **kwargs)

    def critical(self, event: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, event, **kwargs)

    # === Convenience methods for common events ===

    def discovery_complete(self, units: int, cross_pairs: int, markets: int) -> None:
        """Log a discovery pass."""
        self.info(
            "discovery_complete",
            units=units,
            cross_pairs=cross_pairs,
            markets=markets,
        )

    def catalog_failed(self, error: str) -> None:
        """Log a recoverable catalog failure."""
        self.warning("catalog_failed", error=error)

    def leg_filled(self, unit_id: str, symbol: str, side: str, price: str, drop_pct: str) -> None:
        """Log a simulated leg-1 fill."""
        self.info(
            "leg_filled",
            unit_id=unit_id,
            symbol=symbol,
            side=side,
            price=price,
            drop_pct=drop_pct,
        )

    def hedge_locked(self, unit_id: str, symbol: str, total_cost: str, profit: str) -> None:
        """Log a completed hedge."""
        self.info(
            "hedge_locked",
            unit_id=unit_id,
            symbol=symbol,
            total_cost=total_cost,
            profit=profit,
        )

    def config_updated(self, changed: list[str], warnings: list[str]) -> None:
        """Log a live config change."""
        if warnings:
            self.warning("config_updated", changed=changed, warnings=warnings)
        else:
            self.info("config_updated", changed=changed)

    def engine_toggled(self, enabled: bool) -> None:
        self.info("engine_toggled", enabled=enabled)

    def tick_failed(self, tick: int, error: str) -> None:
        """Log an exception that escaped a tick."""
        self.exception("tick_failed", tick=tick, error=error)

    def startup(self, config: dict) -> None:
        """Log engine startup."""
        self.info("engine_startup", config=config)

    def shutdown(self, reason: str = "normal") -> None:
        """Log engine shutdown."""
        self.info("engine_shutdown", reason=reason)
