"""Bounded TTL cache and per-client request limiter.

Both structures are shared mutable state across request threads, so each
guards its map with a single lock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    value: Any
    timestamp: float


class TTLCache:
    """Map of string keys to values that expire after ``ttl_seconds``.

    When a new key arrives and the map is at capacity, the ``eviction_batch``
    entries with the oldest timestamps are dropped first.
    """

    def __init__(
        self,
        ttl_seconds: float,
        capacity: int = 100,
        eviction_batch: int = 10,
        clock: Clock = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.capacity = capacity
        self.eviction_batch = max(1, eviction_batch)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp > self.ttl_seconds:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.capacity:
                self._evict_oldest()
            self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def _evict_oldest(self) -> None:
        excess = len(self._entries) - self.capacity + 1
        batch = max(self.eviction_batch, excess)
        oldest = sorted(self._entries.items(), key=lambda item: item[1].timestamp)[:batch]
        for key, _ in oldest:
            del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


@dataclass
class RateLimitBucket:
    count: int
    reset_time: float


class RateLimiter:
    """Fixed-window request counter keyed by client identifier (IP or session)."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60 * 60,
        clock: Clock = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._sweeper: threading.Thread | None = None

    def check(self, client_id: str) -> bool:
        """Count one request for ``client_id``; return False once over the cap."""
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(client_id)
            if bucket is None or bucket.reset_time < now:
                self._buckets[client_id] = RateLimitBucket(count=1, reset_time=now + self.window_seconds)
                return True
            bucket.count += 1
            return bucket.count <= self.max_requests

    def sweep(self) -> int:
        """Drop buckets whose window has passed; return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, bucket in self._buckets.items() if bucket.reset_time < now]
            for key in expired:
                del self._buckets[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def start_sweeper(self, interval_seconds: float = 15 * 60) -> None:
        """Run :meth:`sweep` every ``interval_seconds`` on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        stop_event = threading.Event()

        def _run() -> None:
            while not stop_event.wait(interval_seconds):
                removed = self.sweep()
                if removed:
                    logger.debug("rate limiter swept %d expired buckets", removed)

        self._stop_event = stop_event
        self._sweeper = threading.Thread(target=_run, name="rate-limit-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
        self._stop_event = None
        self._sweeper = None
