"""Thread-safe in-memory TTL cache.

Backs the sandbox backend's idempotency records: a key seen within its
time-to-live returns the value stored the first time.

- get_or_compute holds the lock while computing, so two concurrent
  callers with the same key cannot both compute
- Optional TTL (time-to-live) per cache or per entry
- Least recently used eviction when max_size is set
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

_MISSING = object()


@dataclass
class InMemoryCache(Generic[T]):
    """Thread-safe in-memory cache with optional TTL.

    This cache implements the CachePort protocol.

    Attributes:
        default_ttl_seconds: Default time-to-live for entries (None = no expiry)
        max_size: Maximum number of entries (None = unlimited)
        name: Cache name for logging
        clock: Monotonic time source, injectable for tests

    Example:
        cache = InMemoryCache[str](name="idempotency", default_ttl_seconds=86400)
        booking = cache.get_or_compute(key, lambda: create(offer, travelers))
    """

    default_ttl_seconds: Optional[float] = None
    max_size: Optional[int] = None
    name: str = "cache"
    clock: Callable[[], float] = time.monotonic

    _store: "OrderedDict[str, Tuple[Any, float]]" = field(
        default_factory=OrderedDict, repr=False
    )
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    def get(self, key: str) -> Optional[T]:
        value = self._lookup(key)
        return None if value is _MISSING else value

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Set a value, optionally overriding the default TTL for this entry."""
        with self._lock:
            effective_ttl = ttl if ttl is not None else self.default_ttl_seconds
            expiry = (
                self.clock() + effective_ttl if effective_ttl is not None else float("inf")
            )
            self._store[key] = (value, expiry)
            self._store.move_to_end(key)

            if self.max_size is not None:
                while len(self._store) > self.max_size:
                    evicted, _ = self._store.popitem(last=False)
                    self._logger.debug(
                        "Cache evicted entry",
                        extra={"key": evicted, "reason": "max_size"},
                    )

    def get_or_compute(self, key: str, compute_fn: Callable[[], T]) -> T:
        """Return the cached value, or compute and store it atomically.

        A compute_fn that raises stores nothing, so the next call retries.
        """
        with self._lock:
            value = self._lookup(key)
            if value is not _MISSING:
                return value

            self._logger.debug("Cache miss, computing", extra={"key": key})
            computed = compute_fn()
            self.set(key, computed)
            return computed

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def _lookup(self, key: str) -> Any:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return _MISSING

            value, expiry = entry
            if self.clock() > expiry:
                del self._store[key]
                self._logger.debug("Cache entry expired", extra={"key": key})
                return _MISSING

            self._store.move_to_end(key)
            return value
