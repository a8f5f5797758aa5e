"""
Per-caller rate limiting for grading requests.

Grading is billed per upstream call, so each caller gets a fixed number
of requests per window. The limiter is an injected object; the in-memory
implementation suits a single process, and another store can be plugged
in behind the same ``check_and_consume`` method.
"""

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple, Protocol


class RateLimitDecision(NamedTuple):
    """Outcome of one rate-limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_after_seconds: float
    retry_after_seconds: int | None = None


class RateLimiter(Protocol):
    def check_and_consume(self, key: str) -> RateLimitDecision: ...


@dataclass
class _Window:
    started_at: float
    count: int


class InMemoryRateLimiter:
    """
    Fixed-window counter per key.

    A window opens on a key's first request and is reset lazily by the
    first request after it elapses. Read-check-increment happens under
    one lock so concurrent requests from the same caller cannot undercount.
    Every ``purge_interval`` checks, elapsed windows of all keys are
    dropped so the map stays bounded by the number of active callers.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        purge_interval: int = 1000,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if purge_interval < 1:
            raise ValueError("purge_interval must be at least 1")

        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._purge_interval = purge_interval
        self._checks_since_purge = 0
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @property
    def tracked_keys(self) -> int:
        """Number of keys with a tracked window."""
        with self._lock:
            return len(self._windows)

    def check_and_consume(self, key: str) -> RateLimitDecision:
        """
        Count one request for ``key`` if it is within the limit.

        Args:
            key: Caller identifier.

        Returns:
            The decision; denied requests are not counted.
        """
        with self._lock:
            now = self._clock()

            self._checks_since_purge += 1
            if self._checks_since_purge >= self._purge_interval:
                self._purge_locked(now)

            window = self._windows.get(key)

            if window is None or now - window.started_at >= self._window_seconds:
                window = _Window(started_at=now, count=0)
                self._windows[key] = window

            reset_after = window.started_at + self._window_seconds - now

            if window.count >= self._max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    reset_after_seconds=reset_after,
                    retry_after_seconds=max(1, math.ceil(reset_after)),
                )

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=self._max_requests,
                remaining=self._max_requests - window.count,
                reset_after_seconds=reset_after,
            )

    def purge_expired(self) -> int:
        """Drop windows that have elapsed; returns how many were removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        # Caller holds self._lock
        self._checks_since_purge = 0
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self._window_seconds
        ]
        for key in expired:
            del self._windows[key]
        return len(expired)
