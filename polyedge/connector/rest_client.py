"""
REST client for the Polymarket CLOB and Gamma APIs.
Handles order book queries (price source) and market catalog queries.
Read-only: no authenticated endpoints are used.
"""

import asyncio
import time
from decimal import Decimal
from typing import Any, Optional

import aiohttp

from ..orderbook import TokenBook


class RateLimiter:
    """Simple sliding-window rate limiter."""

    def __init__(self, max_requests: int, window_seconds: float):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: list[float] = []
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request can be made."""
        async with self._lock:
            now = time.time()
            # Remove old requests outside window
            self.requests = [t for t in self.requests if now - t < self.window_seconds]

            if len(self.requests) >= self.max_requests:
                # Wait until oldest request expires
                sleep_time = self.window_seconds - (now - self.requests[0])
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)
                self.requests = self.requests[1:]

            self.requests.append(time.time())


class PolymarketRestClient:
    """REST client for Polymarket public endpoints."""

    def __init__(
        self,
        base_url: str = "https://clob.polymarket.com",
        gamma_url: str = "https://gamma-api.polymarket.com",
        timeout_seconds: float = 10,
        price_timeout_seconds: float = 3,
        max_retries: int = 3,
        retry_backoff_base: float = 1.5,
    ):
        self.base_url = base_url.rstrip("/")
        self.gamma_url = gamma_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.price_timeout = aiohttp.ClientTimeout(total=price_timeout_seconds)
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._session: Optional[aiohttp.ClientSession] = None

        # Rate limiters per endpoint category
        self._book_limiter = RateLimiter(1500, 10)  # 1500/10s = 150/s
        self._gamma_limiter = RateLimiter(30, 10)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        limiter: Optional[RateLimiter] = None,
        max_retries: Optional[int] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
    ) -> Any:
        """Make HTTP request with retry logic."""
        session = await self._get_session()
        attempts = max_retries or self.max_retries

        for attempt in range(attempts):
            if limiter:
                await limiter.acquire()

            try:
                async with session.request(
                    method,
                    url,
                    params=params,
                    timeout=timeout or self.timeout,
                ) as response:
                    if response.status == 429 and attempt < attempts - 1:
                        # Rate limited - exponential backoff
                        await asyncio.sleep(self.retry_backoff_base ** attempt)
                        continue

                    response.raise_for_status()
                    return await response.json(content_type=None)

            except (aiohttp.ClientError, asyncio.TimeoutError):
                if attempt == attempts - 1:
                    raise
                await asyncio.sleep(self.retry_backoff_base ** attempt)

        raise RuntimeError(f"Request failed after {attempts} attempts")

    # === CLOB (price source) ===

    async def get_orderbook(self, token_id: str) -> TokenBook:
        """Get orderbook for a token. Single attempt with the short price timeout."""
        url = f"{self.base_url}/book"
        data = await self._request(
            "GET",
            url,
            params={"token_id": token_id},
            limiter=self._book_limiter,
            max_retries=1,
            timeout=self.price_timeout,
        )
        if not isinstance(data, dict):
            raise ValueError(f"unexpected book payload for {token_id}")
        return TokenBook.from_payload(token_id, data)

    async def get_best_ask(self, token_id: str, fallback: Decimal) -> Decimal:
        """
        Best ask for an outcome token, in [0, 1].

        Network errors, timeouts, malformed payloads and empty books all
        return `fallback` unchanged. Never raises.
        """
        try:
            book = await self.get_orderbook(token_id)
        except Exception:
            return fallback

        best_ask = book.best_ask
        if best_ask is None:
            return fallback
        return best_ask

    # === Gamma API (Market Discovery) ===

    async def get_markets(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """List markets from Gamma API."""
        url = f"{self.gamma_url}/markets"
        data = await self._request("GET", url, params=params, limiter=self._gamma_limiter)
        if not isinstance(data, list):
            raise ValueError(f"unexpected markets payload: {type(data).__name__}")
        return data
