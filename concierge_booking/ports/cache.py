"""Cache port - what the sandbox backend needs from its idempotency store."""

from __future__ import annotations

from typing import Callable, Protocol, TypeVar

T = TypeVar("T")


class CachePort(Protocol[T]):
    """Port for caching.

    Implementations:
    - adapters/cache/memory_cache.py (InMemoryCache)
    """

    def get_or_compute(self, key: str, compute_fn: Callable[[], T]) -> T:
        """Return the value stored under key, or compute and store it.

        Two callers with the same key must not both compute. A
        compute_fn that raises stores nothing.
        """
        ...
