"""
Time sources.

Token expiry, rate limiting and slug fallback suffixes read time
through a ``Clock`` so tests can control it.
"""

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Wall-clock and monotonic time source."""

    def now(self) -> datetime:
        """Current UTC time."""
        ...

    def monotonic(self) -> float:
        """Seconds from an arbitrary fixed point, never going backwards."""
        ...


class SystemClock:
    """Clock backed by the operating system."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()
