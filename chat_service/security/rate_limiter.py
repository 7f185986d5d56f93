"""In-memory sliding window rate limiter implementation."""

from __future__ import annotations

import math
import time
from collections import deque
from threading import Lock
from typing import Callable


class SlidingWindowRateLimiter:
    """Thread-safe per-key sliding window limiter for a single process.

    Keys whose attempts have all left the window are swept at most once per
    window, so the table only holds keys seen within the last window.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialise limiter parameters and per-key storage."""
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._events: dict[str, deque[float]] = {}
        self._next_sweep = clock() + window_seconds
        self._lock = Lock()

    def acquire(self, key: str) -> int:
        """Record an attempt for ``key``.

        Returns ``0`` when the attempt is allowed, otherwise the number of whole
        seconds until the oldest attempt leaves the window.
        """
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            attempts = self._events.setdefault(key, deque())
            while attempts and now - attempts[0] >= self._window:
                attempts.popleft()
            if len(attempts) >= self._max_requests:
                return max(1, math.ceil(self._window - (now - attempts[0])))
            attempts.append(now)
            return 0

    def _sweep(self, now: float) -> None:
        # caller holds the lock; the newest attempt is last in each deque
        expired = [
            key
            for key, attempts in self._events.items()
            if not attempts or now - attempts[-1] >= self._window
        ]
        for key in expired:
            del self._events[key]
        self._next_sweep = now + self._window
