"""
In-process lookup cache.
"""

from typing import Dict, Optional, Sequence

from shared.logging import get_logger

from ..catalog.models import PatchEntry
from ..versioning import Platform, VersionIdentifier
from .base import CacheKey, CachedResult, LookupCache, cache_key


class InMemoryLookupCache(LookupCache):
    """Process-local cache map.

    All methods run on the event loop without awaiting in between reads and
    writes, so each operation is atomic and different keys never contend.
    """

    backend = "memory"

    def __init__(self):
        super().__init__()
        self.logger = get_logger("patches.cache.memory")
        self._entries: Dict[CacheKey, CachedResult] = {}
        self._generation = 0

    async def stop(self):
        self._entries.clear()

    async def current_generation(self) -> int:
        return self._generation

    async def get(self, platform: Platform, version: VersionIdentifier) -> Optional[CachedResult]:
        result = self._entries.get(cache_key(platform, version))
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    async def put(self, platform: Platform, version: VersionIdentifier,
                  entries: Sequence[PatchEntry], generation: int) -> bool:
        if generation != self._generation:
            self.discarded_puts += 1
            self.logger.debug("Discarded stale lookup result", platform=platform.value,
                              version=version.name, generation=generation,
                              current_generation=self._generation)
            return False

        self._entries[cache_key(platform, version)] = tuple(entries)
        return True

    async def invalidate_all(self) -> int:
        dropped = len(self._entries)
        self._entries = {}
        self._generation += 1
        self.invalidations += 1
        return dropped

    async def size(self) -> int:
        return len(self._entries)
