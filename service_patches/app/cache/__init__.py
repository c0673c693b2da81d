"""
Cache package for the Patch Service.

Memoizes lookup results per exact client version. The cache is derived
state: it is dropped wholesale on every publish and can be lost at any time
without affecting correctness.
"""

from .base import LookupCache, cache_key
from .memory_cache import InMemoryLookupCache
from .redis_cache import RedisLookupCache


def create_cache(config) -> LookupCache:
    """Build the cache backend selected by ``config.cache_backend``."""
    if config.cache_backend == "redis":
        return RedisLookupCache(config.redis_url)
    return InMemoryLookupCache()


__all__ = ["InMemoryLookupCache", "LookupCache", "RedisLookupCache", "cache_key", "create_cache"]
