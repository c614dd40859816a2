"""
Sliding-window request counting.

Counters live behind ``CounterStore`` so that an external cache can replace
the in-process store when the API runs on several workers.
"""

import threading
import time
from collections import deque
from typing import Callable, Protocol

from storefront.errors import RateLimited


class CounterStore(Protocol):
    def hit(self, key: str, window_seconds: float, now: float) -> int:
        """Record one event for ``key`` and return the count inside the window."""
        ...

    def count(self, key: str, window_seconds: float, now: float) -> int:
        """Events for ``key`` inside the window, without recording one."""
        ...


class InMemoryCounterStore:
    """Per-process counter store keyed by string."""

    def __init__(self):
        self._events: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def _prune(self, key: str, window_seconds: float, now: float) -> int:
        """Drop expired events; keys left without events are forgotten."""
        events = self._events.get(key)
        if events is None:
            return 0
        cutoff = now - window_seconds
        while events and events[0] <= cutoff:
            events.popleft()
        if not events:
            del self._events[key]
        return len(events)

    def hit(self, key: str, window_seconds: float, now: float) -> int:
        with self._lock:
            self._prune(key, window_seconds, now)
            events = self._events.setdefault(key, deque())
            events.append(now)
            return len(events)

    def count(self, key: str, window_seconds: float, now: float) -> int:
        with self._lock:
            return self._prune(key, window_seconds, now)

    def tracked_keys(self) -> int:
        """Number of keys currently holding events."""
        with self._lock:
            return len(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class SlidingWindowLimiter:
    """
    Reject a key once it exceeds ``limit`` events within ``window_seconds``.

    Keys are namespaced by ``name`` so several limiters can share one store.
    """

    def __init__(
        self,
        store: CounterStore,
        window_seconds: float,
        name: str = "requests",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.window_seconds = window_seconds
        self.name = name
        self.clock = clock

    def check(self, key: str, limit: int) -> int:
        """
        Count one event for ``key``.

        Returns:
            Events remaining in the current window

        Raises:
            RateLimited: the key is over its limit
        """
        count = self.store.hit(f"{self.name}:{key}", self.window_seconds, self.clock())
        if count > limit:
            raise RateLimited(
                "Too many requests. Please try again later.",
                retryAfter=int(self.window_seconds),
            )
        return limit - count
