"""
Configuration management for the PolyEdge drop/hedge engine.
All tunable parameters externalized; live trading parameters can be
changed at runtime from the status surface.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any


def to_decimal(value: Any) -> Decimal:
    """Coerce operator input to Decimal. Invalid input becomes 0."""
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


def to_int(value: Any) -> int:
    """Coerce operator input to int. Invalid input becomes 0."""
    return int(to_decimal(value))


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class TradingConfig:
    """Live trading parameters. Mutated by the status surface."""
    scan_interval_ms: int = 2000
    drop_threshold: Decimal = Decimal("3")  # Percent drop that fires leg 1
    sum_target: Decimal = Decimal("0.985")  # Max combined cost of both legs
    bet_amount: Decimal = Decimal("10")
    auto_bet: bool = True  # Engine enabled flag
    window_minutes: int = 1440  # Max minutes to settlement, 0 = unlimited
    min_liquidity: Decimal = Decimal("0")
    cooldown_seconds: int = 30
    min_entry_price: Decimal = Decimal("0.02")
    max_entry_price: Decimal = Decimal("0.98")
    history_size: int = 10

    # attribute -> wire name used by the display client
    ALIASES = {
        "scan_interval_ms": "scanIntervalMs",
        "drop_threshold": "dropThreshold",
        "sum_target": "sumTarget",
        "bet_amount": "betAmount",
        "auto_bet": "autoBet",
        "window_minutes": "windowMinutes",
        "min_liquidity": "minLiquidity",
        "cooldown_seconds": "cooldownSeconds",
        "min_entry_price": "minEntryPrice",
        "max_entry_price": "maxEntryPrice",
        "history_size": "historySize",
    }

    @property
    def scan_interval_seconds(self) -> float:
        return self.scan_interval_ms / 1000.0

    def _coerce(self, name: str, value: Any) -> Any:
        current = getattr(self, name)
        if isinstance(current, bool):
            return to_bool(value)
        if isinstance(current, int):
            return to_int(value)
        return to_decimal(value)

    def merge(self, partial: dict[str, Any]) -> list[str]:
        """
        Merge a partial update into this config.

        Accepts wire names or attribute names. Unknown keys are ignored.
        Returns the wire names of fields whose value changed.
        """
        by_wire = {wire: attr for attr, wire in self.ALIASES.items()}
        changed = []

        for key, value in partial.items():
            attr = by_wire.get(key, key)
            if attr not in self.ALIASES:
                continue
            new_value = self._coerce(attr, value)
            if new_value != getattr(self, attr):
                setattr(self, attr, new_value)
                changed.append(self.ALIASES[attr])

        return changed

    def warnings(self) -> list[str]:
        """Inconsistencies that are accepted but can never trade well."""
        issues = []
        if self.sum_target >= 1:
            issues.append(f"sumTarget {self.sum_target} >= 1 can never lock a profit")
        if self.scan_interval_ms <= 0:
            issues.append("scanIntervalMs must be positive")
        if self.bet_amount <= 0:
            issues.append("betAmount must be positive")
        if self.drop_threshold <= 0:
            issues.append("dropThreshold <= 0 fires on every tick")
        if self.min_entry_price >= self.max_entry_price:
            issues.append("minEntryPrice must be below maxEntryPrice")
        return issues

    def to_dict(self) -> dict[str, Any]:
        result = {}
        for attr, wire in self.ALIASES.items():
            value = getattr(self, attr)
            result[wire] = float(value) if isinstance(value, Decimal) else value
        return result


@dataclass
class DiscoveryConfig:
    """Market catalog and pairing parameters."""
    market_limit: int = 200
    order_by: str = "endDate"  # endDate (soonest first) or volume24hr (highest first)
    assets: tuple[str, ...] = ("BTC", "ETH", "SOL", "XRP")
    min_volume_24h: Decimal = Decimal("0")
    refresh_every_ticks: int = 15
    pair_tolerance_seconds: int = 60
    anchor_floor: Decimal = Decimal("100")


@dataclass
class ConnectionConfig:
    """API connection configuration."""
    clob_rest_url: str = "https://clob.polymarket.com"
    gamma_api_url: str = "https://gamma-api.polymarket.com"
    rest_timeout_seconds: int = 10
    price_timeout_seconds: float = 3.0
    max_retries: int = 3
    retry_backoff_base: float = 1.5


@dataclass
class ServerConfig:
    """Status surface configuration."""
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origin: str = "*"


@dataclass
class Config:
    """Main configuration container."""
    trading: TradingConfig = field(default_factory=TradingConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    # Ledger
    starting_balance: Decimal = Decimal("5000")
    order_capacity: int = 50
    log_capacity: int = 50

    # Logging
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.environ.get("LOG_FILE", ""))

    def validate(self) -> list[str]:
        """Validate configuration. Returns list of errors that block startup."""
        errors = []

        if self.discovery.market_limit <= 0:
            errors.append("market_limit must be positive")
        if self.discovery.order_by not in ("endDate", "volume24hr"):
            errors.append(f"order_by must be endDate or volume24hr, got {self.discovery.order_by}")
        if self.discovery.refresh_every_ticks <= 0:
            errors.append("refresh_every_ticks must be positive")
        if self.connection.price_timeout_seconds <= 0:
            errors.append("price_timeout_seconds must be positive")
        if self.order_capacity <= 0 or self.log_capacity <= 0:
            errors.append("ledger capacities must be positive")
        if not 0 < self.server.port < 65536:
            errors.append(f"invalid status port {self.server.port}")

        return errors


def load_config_from_env() -> Config:
    """Load configuration from environment variables."""
    config = Config()

    # Live trading params; TradingConfig.merge applies the same coercion as the API
    trading_env = {
        "scan_interval_ms": "SCAN_INTERVAL_MS",
        "drop_threshold": "DROP_THRESHOLD",
        "sum_target": "SUM_TARGET",
        "bet_amount": "BET_AMOUNT",
        "auto_bet": "AUTO_BET",
        "window_minutes": "WINDOW_MINUTES",
        "min_liquidity": "MIN_LIQUIDITY",
        "cooldown_seconds": "COOLDOWN_SECONDS",
    }
    config.trading.merge({
        attr: os.environ[env]
        for attr, env in trading_env.items()
        if os.environ.get(env)
    })

    # Discovery params
    if os.environ.get("MARKET_LIMIT"):
        config.discovery.market_limit = int(os.environ["MARKET_LIMIT"])
    if os.environ.get("MARKET_ORDER"):
        config.discovery.order_by = os.environ["MARKET_ORDER"]
    if "MARKET_ASSETS" in os.environ:
        config.discovery.assets = tuple(
            a.strip().upper() for a in os.environ["MARKET_ASSETS"].split(",") if a.strip()
        )
    if os.environ.get("MIN_VOLUME_24H"):
        config.discovery.min_volume_24h = Decimal(os.environ["MIN_VOLUME_24H"])
    if os.environ.get("REFRESH_EVERY_TICKS"):
        config.discovery.refresh_every_ticks = int(os.environ["REFRESH_EVERY_TICKS"])

    # Connection params
    if os.environ.get("PRICE_TIMEOUT_SECONDS"):
        config.connection.price_timeout_seconds = float(os.environ["PRICE_TIMEOUT_SECONDS"])

    # Status surface
    if os.environ.get("STATUS_HOST"):
        config.server.host = os.environ["STATUS_HOST"]
    if os.environ.get("STATUS_PORT"):
        config.server.port = int(os.environ["STATUS_PORT"])

    if os.environ.get("STARTING_BALANCE"):
        config.starting_balance = Decimal(os.environ["STARTING_BALANCE"])

    return config
