"""
Main engine orchestration.
Owns all mutable state and coordinates discovery, price polling, the
drop/hedge state machine, the ledger and the status surface.
"""

import asyncio
import signal
import time
from decimal import Decimal
from typing import Any, Callable, Optional

from .config import Config, load_config_from_env
from .connector import PolymarketRestClient
from .discovery import MarketCatalog, TrackedUnit, pair_markets
from .ledger import Ledger, LogEntryLevel
from .monitor import Logger
from .scheduler import PollingScheduler
from .server import StatusServer
from .signals import ArbitrageDetector, EventKind, MarketRound, RoundEvent


class ArbitrageEngine:
    """
    Drop/hedge engine for binary prediction markets.

    Strategy:
    1. Discover active markets and pair complementary ones
    2. Poll best asks for both legs of every unit concurrently
    3. Buy leg 1 (simulated) on a sharp drop
    4. Buy leg 2 once both legs cost no more than the hedge ceiling
    5. Cool down, then scan again

    All state lives on this object and is only mutated synchronously
    after a tick's price batch has settled, so a snapshot taken at any
    await point reflects exactly one tick.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        rest_client: Optional[PolymarketRestClient] = None,
        logger: Optional[Logger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or load_config_from_env()
        self.logger = logger or Logger(
            name="polyedge",
            level=self.config.log_level,
            log_file=self.config.log_file or None,
        )
        self._clock = clock

        self.rest_client = rest_client or PolymarketRestClient(
            base_url=self.config.connection.clob_rest_url,
            gamma_url=self.config.connection.gamma_api_url,
            timeout_seconds=self.config.connection.rest_timeout_seconds,
            price_timeout_seconds=self.config.connection.price_timeout_seconds,
            max_retries=self.config.connection.max_retries,
            retry_backoff_base=self.config.connection.retry_backoff_base,
        )
        self.catalog = MarketCatalog(
            rest_client=self.rest_client,
            discovery_config=self.config.discovery,
            logger=self.logger,
        )
        self.scheduler = PollingScheduler(
            rest_client=self.rest_client,
            price_timeout_seconds=self.config.connection.price_timeout_seconds,
            logger=self.logger,
        )
        self.detector = ArbitrageDetector(self.config.trading)
        self.ledger = Ledger(
            starting_balance=self.config.starting_balance,
            order_capacity=self.config.order_capacity,
            log_capacity=self.config.log_capacity,
        )

        # State
        self.rounds: list[MarketRound] = []
        self.tick_count = 0
        self._ticks_since_discovery = 0
        self._needs_discovery = True
        self._reset_requested = False
        self._discovery_task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.config.trading.auto_bet

    def _log(self, message: str, level: LogEntryLevel = LogEntryLevel.INFO) -> None:
        self.ledger.add_log(message, level, timestamp=self._clock())

    # === Control ===

    def set_enabled(self, enabled: bool) -> None:
        """
        Turn the engine on or off. Takes effect from the next tick.
        Re-enabling restarts discovery from an empty unit set.
        """
        was_enabled = self.enabled
        self.config.trading.auto_bet = enabled
        if enabled and not was_enabled:
            self._reset_requested = True
        if enabled != was_enabled:
            self.logger.engine_toggled(enabled)
            self._log("Engine started" if enabled else "Engine stopped", LogEntryLevel.WARN)

    def update_config(self, partial: dict[str, Any]) -> list[str]:
        """Merge a partial config update. Returns the changed keys."""
        was_enabled = self.enabled
        changed = self.config.trading.merge(partial)
        if "autoBet" in changed:
            # Route the flag through set_enabled so re-enabling resets state
            now_enabled = self.enabled
            self.config.trading.auto_bet = was_enabled
            self.set_enabled(now_enabled)

        warnings = self.config.trading.warnings()
        self.logger.config_updated(changed, warnings)
        if changed:
            self._log(f"Config updated: {', '.join(changed)}", LogEntryLevel.WARN)
        for warning in warnings:
            self._log(f"Config warning: {warning}", LogEntryLevel.WARN)
        return changed

    # === Discovery ===

    async def _fetch_units(self) -> Optional[tuple[list[TrackedUnit], int]]:
        """Catalog fetch plus pairing. None when the catalog is unavailable."""
        result = await self.catalog.fetch(self.config.trading, now=self._clock())
        if not result.ok:
            self._log(f"Market catalog unavailable: {result.error}", LogEntryLevel.WARN)
            return None

        units = pair_markets(
            result.markets,
            tolerance_seconds=self.config.discovery.pair_tolerance_seconds,
            anchor_floor=self.config.discovery.anchor_floor,
        )
        return units, len(result.markets)

    def _apply_units(self, units: list[TrackedUnit], market_count: int) -> None:
        """Replace the round set. Surviving units keep history and trade state."""
        now = self._clock()
        previous = {round_.unit_id: round_ for round_ in self.rounds}
        self.rounds = [
            MarketRound.from_unit(
                unit,
                now=now,
                history_size=self.config.trading.history_size,
                previous=previous.get(unit.unit_id),
            )
            for unit in units
            if unit.end_timestamp > now
        ]
        self._needs_discovery = False

        cross_pairs = sum(1 for round_ in self.rounds if not round_.is_self_pair)
        self.logger.discovery_complete(
            units=len(self.rounds),
            cross_pairs=cross_pairs,
            markets=market_count,
        )
        self._log(
            f"Discovery: tracking {len(self.rounds)} units ({cross_pairs} cross-pairs)",
            LogEntryLevel.SUCCESS,
        )

    async def discover(self) -> bool:
        """
        Rebuild the unit set from a fresh catalog.

        On a catalog failure the current units stay in place and the next
        attempt waits for the regular refresh cadence.
        """
        self._ticks_since_discovery = 0
        self._needs_discovery = False
        fetched = await self._fetch_units()
        if fetched is None:
            return False
        self._apply_units(*fetched)
        return True

    def _discovery_due(self) -> bool:
        return (
            self._needs_discovery
            or not self.rounds
            or self._ticks_since_discovery >= self.config.discovery.refresh_every_ticks
        )

    def _start_discovery(self) -> None:
        """Refresh the catalog in the background while prices keep flowing."""
        self._ticks_since_discovery = 0
        self._needs_discovery = False
        self._discovery_task = asyncio.create_task(self._fetch_units())

    def _collect_discovery(self) -> None:
        """Apply a finished background refresh. Runs at the start of a tick only."""
        task = self._discovery_task
        if task is None or not task.done():
            return
        self._discovery_task = None
        if task.cancelled():
            return
        fetched = task.result()
        if fetched is not None:
            self._apply_units(*fetched)

    def _cancel_discovery(self) -> None:
        if self._discovery_task is not None:
            self._discovery_task.cancel()
            self._discovery_task = None

    # === Tick ===

    async def tick(self, elapsed: Optional[float] = None) -> None:
        """
        One poll cycle: apply a finished refresh, price fan-out, state machine.

        With no units to poll the catalog is fetched inline. Otherwise a
        due refresh runs as a background task and is applied on a later
        tick, so catalog latency never delays the price batch.
        """
        if elapsed is None:
            elapsed = self.config.trading.scan_interval_seconds

        if self._reset_requested:
            self._reset_requested = False
            self._cancel_discovery()
            self.rounds = []
            self._needs_discovery = True

        self.tick_count += 1
        self._ticks_since_discovery += 1

        self._collect_discovery()
        if self._discovery_task is None and self._discovery_due():
            if self.rounds:
                self._start_discovery()
            else:
                await self.discover()

        rounds = list(self.rounds)
        if not rounds:
            return

        prices = await self.scheduler.fetch_prices(rounds)

        # Everything below runs without awaiting
        if self._reset_requested:
            return
        self.apply_prices(rounds, prices, elapsed)

    def apply_prices(
        self,
        rounds: list[MarketRound],
        prices: dict[str, tuple[Decimal, Decimal]],
        elapsed: float,
    ) -> None:
        """Feed one tick of prices through the state machine."""
        for round_ in rounds:
            price_a, price_b = prices.get(
                round_.unit_id, (round_.leg_a.price, round_.leg_b.price)
            )
            for event in self.detector.process(round_, price_a, price_b, elapsed):
                self._record_event(round_, event)

        expired = [round_ for round_ in self.rounds if round_.expired]
        if expired:
            self.rounds = [round_ for round_ in self.rounds if not round_.expired]
            self._needs_discovery = True
            for round_ in expired:
                self.logger.info("round_expired", unit_id=round_.unit_id, status=round_.status.value)
            self._log(f"{len(expired)} unit(s) reached settlement, refreshing catalog")

    def _record_event(self, round_: MarketRound, event: RoundEvent) -> None:
        bet = self.config.trading.bet_amount

        if event.kind == EventKind.LEG1_FILLED:
            leg = round_.leg_for(event.side)
            self.ledger.record_order(
                round_.unit_id, round_.symbol, event.side, 1, event.price, bet, timestamp=self._clock()
            )
            self.logger.leg_filled(
                unit_id=round_.unit_id,
                symbol=round_.symbol,
                side=event.side,
                price=str(event.price),
                drop_pct=f"{event.drop_pct:.2f}",
            )
            self._log(
                f"Leg 1: {round_.symbol} {leg.symbol} dropped {event.drop_pct:.1f}%, bought at {event.price}",
                LogEntryLevel.WARN,
            )

        elif event.kind == EventKind.HEDGE_LOCKED:
            leg = round_.leg_for(event.side)
            self.ledger.record_order(
                round_.unit_id, round_.symbol, event.side, 2, event.price, bet, timestamp=self._clock()
            )
            self.ledger.record_hedge(event.profit, event.total_cost * bet)
            self.logger.hedge_locked(
                unit_id=round_.unit_id,
                symbol=round_.symbol,
                total_cost=str(event.total_cost),
                profit=f"{event.profit:.4f}",
            )
            self._log(
                f"Hedge locked: {round_.symbol} {leg.symbol} at {event.price}, "
                f"cost {event.total_cost}, profit ${event.profit:.2f}",
                LogEntryLevel.SUCCESS,
            )

        elif event.kind == EventKind.COOLDOWN_RESET:
            self.logger.debug("cooldown_reset", unit_id=round_.unit_id)

    def record_tick_failure(self, error: Exception) -> None:
        """Called by the scheduler when an exception escapes a tick."""
        self.logger.tick_failed(self.tick_count, str(error) or type(error).__name__)
        self._log(f"Engine error: {error}", LogEntryLevel.ERROR)

    # === Status ===

    def snapshot(self) -> dict:
        """Plain-data copy of all state. Never returns live references."""
        ledger = self.ledger.snapshot()
        return {
            "config": self.config.trading.to_dict(),
            "stats": ledger["stats"],
            "rounds": [round_.to_dict() for round_ in self.rounds],
            "logs": ledger["logs"],
            "orders": ledger["orders"],
            "enabled": self.enabled,
            "tick": self.tick_count,
        }

    async def close(self) -> None:
        self._cancel_discovery()
        await self.rest_client.close()


async def run_bot(config: Optional[Config] = None) -> None:
    """Run the engine and its status surface with signal handling."""
    engine = ArbitrageEngine(config)
    stop_event = asyncio.Event()
    server = StatusServer(
        engine,
        host=engine.config.server.host,
        port=engine.config.server.port,
        cors_origin=engine.config.server.cors_origin,
        logger=engine.logger,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: Ctrl-C surfaces as KeyboardInterrupt instead
            pass

    engine.logger.startup(engine.config.trading.to_dict())
    for warning in engine.config.trading.warnings():
        engine.logger.warning("config_warning", warning=warning)
        engine.ledger.add_log(f"Config warning: {warning}", LogEntryLevel.WARN)

    try:
        await server.start()
        await engine.scheduler.run(engine, stop_event)
    finally:
        await server.stop()
        await engine.close()
        engine.logger.shutdown()
