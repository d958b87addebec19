"""
Rate limiter for catalog API requests.

Token bucket sized to IGDB's documented ceiling of four
requests per second. Independent of the fixed delay that
paginated reads insert between pages.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from checkpoint_catalog.ingestion.utils.clock import Clock, SystemClock
from checkpoint_catalog.logger import get_logger


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    requests_per_second: float = 4.0
    burst_size: int = 4


@dataclass
class RateLimiter:
    """
    Token bucket rate limiter for API requests.

    Allows burst traffic up to burst_size, then throttles
    to requests_per_second sustained rate.

    Example:
        >>> limiter = RateLimiter(RateLimiterConfig(requests_per_second=4))
        >>> async with limiter:
        ...     await post_query()
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    clock: Clock = field(default_factory=SystemClock)
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)
    _logger: Any = field(init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.burst_size)
        self._last_update = self.clock.monotonic()
        self._logger = get_logger(__name__, component="rate_limiter")

    def _refill_tokens(self) -> None:
        now = self.clock.monotonic()
        elapsed = max(0.0, now - self._last_update)
        self._tokens = min(
            float(self.config.burst_size),
            self._tokens + elapsed * self.config.requests_per_second,
        )
        self._last_update = now

    async def acquire(self) -> None:
        """Take one token, sleeping until the bucket has refilled enough."""
        async with self._lock:
            self._refill_tokens()

            if self._tokens < 1:
                wait_time = (1 - self._tokens) / self.config.requests_per_second
                self._logger.debug(
                    "Rate limit reached, waiting",
                    wait_seconds=round(wait_time, 3),
                )
                await self.sleep(wait_time)
                self._refill_tokens()
                # a stubbed sleep does not advance the clock
                self._tokens = max(self._tokens, 1.0)

            self._tokens -= 1

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass

    @property
    def available_tokens(self) -> float:
        """Get current available tokens (for monitoring)."""
        self._refill_tokens()
        return self._tokens
