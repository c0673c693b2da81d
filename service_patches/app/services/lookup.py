"""
Patch lookup orchestration.
"""

import time
from typing import List, Optional

from shared.logging import get_logger
from shared.errors import StorageError
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, retry_on_exception

from ..cache import LookupCache
from ..catalog import PatchCatalog, PatchEntry
from ..versioning import VersionIdentifier, parse


class LookupService:
    """Answers "which patches are newer than my version" for a client.

    Results are served from the lookup cache when present. On a miss the
    catalog is queried and the transformed result is cached under the cache
    generation observed *before* the query, so a publish that lands while the
    query is in flight causes the result to be discarded rather than cached.
    """

    def __init__(self, catalog: PatchCatalog, cache: LookupCache,
                 metrics: Optional[MetricsCollector] = None,
                 retry_config: Optional[RetryConfig] = None):
        self.catalog = catalog
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger("patches.lookup")
        self._retry = retry_on_exception(
            (StorageError,),
            retry_config or RetryConfig(max_attempts=3, base_delay=0.2, max_delay=2.0),
            reraise=True,
        )

    async def lookup(self, version_string: Optional[str]) -> List[PatchEntry]:
        """Parse a client version string and return every newer patch, ascending."""
        identifier = parse(version_string)
        return await self.lookup_identifier(identifier)

    async def lookup_identifier(self, identifier: VersionIdentifier) -> List[PatchEntry]:
        start_time = time.perf_counter()

        cached = await self._cached(identifier)
        if cached is not None:
            self.logger.debug("Cache hit", platform=identifier.platform.value, version=identifier.name)
            self._count("hit")
            self._observe("hit", start_time)
            return list(cached)

        self.logger.debug("Cache miss", platform=identifier.platform.value, version=identifier.name)
        self._count("miss")

        generation = await self._generation()
        records = await self._query_catalog(identifier)

        entries = [record.to_entry() for record in records]

        if generation is not None:
            await self._populate(identifier, entries, generation)

        self._observe("miss", start_time)
        return entries

    async def _query_catalog(self, identifier: VersionIdentifier):
        return await self._retry(self.catalog.query_newer)(identifier.platform, identifier)

    async def _cached(self, identifier: VersionIdentifier):
        try:
            return await self.cache.get(identifier.platform, identifier)
        except StorageError as e:
            self.logger.warning("Cache read failed, treating as miss", error=e.message)
            return None

    async def _generation(self) -> Optional[int]:
        try:
            return await self.cache.current_generation()
        except StorageError as e:
            self.logger.warning("Cache generation unavailable, result will not be cached", error=e.message)
            return None

    async def _populate(self, identifier: VersionIdentifier, entries: List[PatchEntry], generation: int):
        try:
            stored = await self.cache.put(identifier.platform, identifier, entries, generation)
        except StorageError as e:
            self.logger.warning("Failed to cache lookup result", platform=identifier.platform.value,
                                version=identifier.name, error=e.message)
            return

        if not stored:
            self.logger.debug("Lookup result superseded by a publish, not cached",
                              platform=identifier.platform.value, version=identifier.name)

    def _count(self, result: str):
        if self.metrics:
            self.metrics.increment_counter("patch_lookup_cache_total", result=result)

    def _observe(self, result: str, start_time: float):
        if self.metrics:
            self.metrics.observe_histogram("patch_lookup_duration_seconds",
                                           time.perf_counter() - start_time, result=result)
