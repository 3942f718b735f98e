"""Rate limiting for outbound classification calls."""

import logging
import threading
import time
from typing import Callable, Optional

from .exceptions import PipelineCancelled


class RateLimiter:
    """Token bucket that hands out permits at a fixed rate.

    Permits refill continuously at ``permits / period`` per second and at most
    ``burst`` of them can accumulate while the limiter is idle. Each caller
    reserves the next free slot under a lock and then sleeps outside it, so
    slots are granted in call order and no caller waits behind a later one.
    """

    def __init__(
        self,
        permits: int,
        period: float = 60.0,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the rate limiter.

        Args:
            permits: Number of permits granted per period.
            period: Length of the period in seconds.
            burst: Maximum number of permits granted back to back.
            clock: Monotonic clock, injectable for tests.
        """
        if permits <= 0:
            raise ValueError(f"permits must be positive, got {permits}")
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")

        self.permits = permits
        self.period = period
        self.burst = burst
        self.interval = period / permits
        self._clock = clock
        self._lock = threading.Lock()
        self._closed = threading.Event()
        # Theoretical arrival time of the next permit
        self._next_free: Optional[float] = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def reserve(self) -> float:
        """Reserve the next permit and return how long to wait for it."""
        with self._lock:
            now = self._clock()
            if self._next_free is None:
                self._next_free = now
            tolerance = (self.burst - 1) * self.interval
            grant_at = max(now, self._next_free - tolerance)
            self._next_free = max(self._next_free, grant_at) + self.interval
            return grant_at - now

    def acquire(self) -> float:
        """Block until a permit is available.

        Returns:
            Seconds spent waiting.

        Raises:
            PipelineCancelled: If the limiter is closed before or while waiting.
        """
        if self._closed.is_set():
            raise PipelineCancelled("Rate limiter closed")

        delay = self.reserve()
        if delay > 0:
            logging.debug(f"Waiting {delay:.2f}s for classification permit")
            if self._closed.wait(delay):
                raise PipelineCancelled("Rate limiter closed while waiting")
        return delay

    def close(self):
        """Wake every waiting caller and refuse further permits."""
        self._closed.set()
        logging.debug("Rate limiter closed")
