"""
Lookup cache interface.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Tuple

from ..catalog.models import PatchEntry
from ..versioning import Platform, VersionIdentifier


CacheKey = Tuple[Platform, int, int, int]
CachedResult = Tuple[PatchEntry, ...]


def cache_key(platform: Platform, version: VersionIdentifier) -> CacheKey:
    return (platform, *version.version)


class LookupCache(ABC):
    """Memoized lookup results keyed by the exact (platform, version) tuple.

    Entries never expire; the whole cache is dropped whenever the catalog
    changes. Every invalidation advances ``generation`` and a ``put`` that was
    computed under an older generation is discarded.
    """

    backend = "abstract"

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.invalidations = 0
        self.discarded_puts = 0

    async def start(self):
        """Prepare the cache for use."""

    async def stop(self):
        """Release cache resources."""

    @abstractmethod
    async def current_generation(self) -> int:
        """Generation to capture before querying the catalog."""

    @abstractmethod
    async def get(self, platform: Platform, version: VersionIdentifier) -> Optional[CachedResult]:
        """Cached result for the exact key, or None on a miss."""

    @abstractmethod
    async def put(self, platform: Platform, version: VersionIdentifier,
                  entries: Sequence[PatchEntry], generation: int) -> bool:
        """Store a computed result; returns False if it was discarded as stale."""

    @abstractmethod
    async def invalidate_all(self) -> int:
        """Drop every entry; returns the number of entries dropped."""

    @abstractmethod
    async def size(self) -> int:
        """Number of live entries."""

    async def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "backend": self.backend,
            "entries": await self.size(),
            "generation": await self.current_generation(),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
            "invalidations": self.invalidations,
            "discarded_puts": self.discarded_puts,
        }

    async def health_check(self) -> bool:
        return True

