"""Shared ingestion utilities."""

from checkpoint_catalog.ingestion.utils.clock import Clock, SystemClock
from checkpoint_catalog.ingestion.utils.rate_limiter import RateLimiter, RateLimiterConfig

__all__ = [
    "Clock",
    "RateLimiter",
    "RateLimiterConfig",
    "SystemClock",
]
