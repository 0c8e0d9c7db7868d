"""
Polling scheduler.
Fans out best-ask requests for every tracked round on a fixed interval
and drives the engine's tick loop.
"""

import asyncio
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..bot import ArbitrageEngine
    from ..connector import PolymarketRestClient
    from ..discovery import Leg
    from ..monitor import Logger
    from ..signals import MarketRound


MIN_SLEEP_SECONDS = 0.1


class PollingScheduler:
    """
    Concurrent price fan-out with per-request timeouts.

    Every leg of every round is requested at once. Each request has its
    own timeout and falls back to the leg's last known price, so one
    slow or failing quote never holds up the others by more than that
    timeout.
    """

    def __init__(
        self,
        rest_client: "PolymarketRestClient",
        price_timeout_seconds: float = 3.0,
        logger: Optional["Logger"] = None,
    ):
        self.client = rest_client
        self.price_timeout = price_timeout_seconds
        self.logger = logger

    async def _fetch_leg(self, leg: "Leg") -> Decimal:
        try:
            return await asyncio.wait_for(
                self.client.get_best_ask(leg.token_id, leg.price),
                timeout=self.price_timeout,
            )
        except asyncio.TimeoutError:
            if self.logger:
                self.logger.debug("price_timeout", token_id=leg.token_id)
            return leg.price

    async def _fetch_round(self, round_: "MarketRound") -> tuple[Decimal, Decimal]:
        price_a, price_b = await asyncio.gather(
            self._fetch_leg(round_.leg_a),
            self._fetch_leg(round_.leg_b),
        )
        return price_a, price_b

    async def fetch_prices(
        self,
        rounds: list["MarketRound"],
    ) -> dict[str, tuple[Decimal, Decimal]]:
        """
        Best asks for both legs of every round, keyed by unit id.
        Waits for the whole batch; failures fall back to last known prices.
        """
        results = await asyncio.gather(
            *(self._fetch_round(round_) for round_ in rounds),
            return_exceptions=True,
        )

        prices = {}
        for round_, result in zip(rounds, results):
            if isinstance(result, Exception):
                if self.logger:
                    self.logger.warning(
                        "price_fetch_failed",
                        unit_id=round_.unit_id,
                        error=str(result),
                    )
                result = (round_.leg_a.price, round_.leg_b.price)
            elif isinstance(result, BaseException):
                raise result
            prices[round_.unit_id] = result
        return prices

    async def run(self, engine: "ArbitrageEngine", stop_event: asyncio.Event) -> None:
        """
        Tick loop. Reads the live interval every iteration and skips work
        while the engine is disabled. Exceptions escaping a tick are
        logged and the loop carries on.
        """
        loop = asyncio.get_running_loop()
        last_tick: Optional[float] = None

        while not stop_event.is_set():
            started = loop.time()
            interval = engine.config.trading.scan_interval_seconds

            if engine.enabled:
                elapsed = interval if last_tick is None else started - last_tick
                last_tick = started
                try:
                    await engine.tick(elapsed)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    engine.record_tick_failure(e)
            else:
                last_tick = None

            sleep_for = max(MIN_SLEEP_SECONDS, interval - (loop.time() - started))
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_for)
            except asyncio.TimeoutError:
                pass
