"""Token-bucket budget for the rate-limited OHLCV provider. Refuse locally instead of hitting a 429."""

from __future__ import annotations

import time
from typing import Callable

from predcharts.errors import RateLimited


class TokenBucket:
    """Simple token bucket: refill rate per second, max burst.

    Single-threaded (one event loop), so no locking.
    """

    def __init__(
        self,
        rate: float = 0.5,
        capacity: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate = rate
        self.capacity = capacity or max(1, int(rate * 60))
        self.tokens = float(self.capacity)
        self._clock = clock
        self.last = clock()

    @classmethod
    def per_minute(cls, requests_per_minute: float, **kwargs) -> TokenBucket:
        return cls(rate=requests_per_minute / 60.0, capacity=max(1, int(requests_per_minute)), **kwargs)

    def _refill(self) -> None:
        now = self._clock()
        self.tokens = min(self.capacity, self.tokens + (now - self.last) * self.rate)
        self.last = now

    def consume(self, n: int = 1) -> bool:
        """Consume n tokens. Return True if allowed, False if not enough."""
        self._refill()
        if self.tokens >= n:
            self.tokens -= n
            return True
        return False

    def acquire(self, source: str = "", n: int = 1) -> None:
        """Consume n tokens or raise RateLimited."""
        if not self.consume(n):
            raise RateLimited(f"Local request budget exhausted for {source or 'provider'}", source=source)
