"""Cache adapters - Implementations of CachePort.

Available implementations:
- InMemoryCache: Thread-safe in-memory TTL cache
"""

from .memory_cache import InMemoryCache

__all__ = ["InMemoryCache"]
