"""
auth/limiter.py -- In-memory fixed-window attempt limiter for login throttling.

Each key gets a window that opens on its first attempt and closes
window_seconds later. Within a window at most max_attempts checks are allowed;
the window is not extended by further attempts.

Known limitations:
  - Process-local state. Running several instances behind a load balancer
    gives each instance its own counters.
  - Keys are per username ("login:<username>"), not per client IP. This stops
    brute force against one account but not a spray across many usernames.

The limiter is constructed explicitly and handed to AuthService (see
api/main.py lifespan) so tests can inject a clock and get isolated state.

Layer rule: no imports from api/, core/, or market/.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from auth.models import RateLimitResult

logger = logging.getLogger("marketboard.auth")


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window attempt counter keyed by identity.

    Usage:
        limiter = RateLimiter(max_attempts=5, window_seconds=900)
        result = limiter.check("login:admin")
        if not result.allowed:
            ...  # surface result.reset_in to the caller
        limiter.reset("login:admin")  # after a successful login
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.time,
        sweep_probability: float = 0.01,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._sweep_probability = sweep_probability
        self._windows: dict[str, _Window] = {}
        # One lock for the whole map: check() is a read-modify-write and two
        # concurrent attempts on the same key must not both see the same count.
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitResult:
        """Record one attempt for key and report whether it is allowed."""
        with self._lock:
            now = self._clock()
            if self._sweep_probability and random.random() < self._sweep_probability:
                self._sweep_locked(now)

            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return RateLimitResult(
                    allowed=True,
                    remaining=self.max_attempts - 1,
                    reset_in=float(self.window_seconds),
                )

            if window.count >= self.max_attempts:
                return RateLimitResult(allowed=False, remaining=0, reset_in=window.reset_at - now)

            window.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=self.max_attempts - window.count,
                reset_in=window.reset_at - now,
            )

    def reset(self, key: str) -> None:
        """Forget every attempt recorded for key."""
        with self._lock:
            self._windows.pop(key, None)

    def sweep(self) -> int:
        """Drop expired windows. Returns the number of keys removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if now > w.reset_at]
        for k in expired:
            del self._windows[k]
        if expired:
            logger.debug("Rate limiter swept %d expired key(s)", len(expired))
        return len(expired)
