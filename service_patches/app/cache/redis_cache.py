"""
Redis caching layer for patch lookups.
"""

import json
from typing import List, Optional, Sequence

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from shared.logging import get_logger
from shared.errors import StorageError

from ..catalog.models import PatchEntry
from ..versioning import Platform, VersionIdentifier
from .base import CachedResult, LookupCache


class RedisLookupCache(LookupCache):
    """Lookup cache shared by every service replica through Redis.

    Keys embed the invalidation generation, so a result written under an old
    generation is unreachable once the generation counter has moved on.
    """

    backend = "redis"

    KEY_PREFIX = "patches:lookup:"
    GENERATION_KEY = "patches:lookup-generation"

    def __init__(self, redis_url: str):
        super().__init__()
        self.redis_url = redis_url
        self.logger = get_logger("patches.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Start the Redis cache."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis lookup cache started")

        except (RedisError, OSError) as e:
            self.logger.error("Failed to start Redis lookup cache", error=str(e))
            raise StorageError("Failed to start lookup cache", details={"error": str(e)})

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis lookup cache stopped")

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise StorageError("Lookup cache is not started")
        return self.redis

    def _key(self, generation: int, platform: Platform, version: VersionIdentifier) -> str:
        return f"{self.KEY_PREFIX}{generation}:{platform.value}:{version.name}"

    async def current_generation(self) -> int:
        try:
            value = await self._client().get(self.GENERATION_KEY)
        except RedisError as e:
            raise StorageError("Failed to read cache generation", details={"error": str(e)})
        return int(value) if value else 0

    async def get(self, platform: Platform, version: VersionIdentifier) -> Optional[CachedResult]:
        generation = await self.current_generation()
        cache_key = self._key(generation, platform, version)

        try:
            cached_data = await self._client().get(cache_key)
        except RedisError as e:
            self.logger.error("Error getting cached lookup", cache_key=cache_key, error=str(e))
            raise StorageError("Failed to read lookup cache", details={"error": str(e)})

        if cached_data is None:
            self.misses += 1
            return None

        self.hits += 1
        self.logger.debug("Cache hit for lookup", cache_key=cache_key)
        return tuple(PatchEntry.from_dict(item) for item in json.loads(cached_data))

    async def put(self, platform: Platform, version: VersionIdentifier,
                  entries: Sequence[PatchEntry], generation: int) -> bool:
        cache_key = self._key(generation, platform, version)
        payload = json.dumps([entry.to_dict() for entry in entries])

        try:
            async with self._client().pipeline(transaction=True) as pipe:
                # EXEC aborts if an invalidation bumps the generation after this check
                await pipe.watch(self.GENERATION_KEY)
                current = await pipe.get(self.GENERATION_KEY)
                if (int(current) if current else 0) != generation:
                    self.discarded_puts += 1
                    return False

                pipe.multi()
                pipe.set(cache_key, payload)
                await pipe.execute()

        except WatchError:
            self.discarded_puts += 1
            self.logger.debug("Lookup result superseded during write", cache_key=cache_key)
            return False
        except RedisError as e:
            self.logger.error("Error caching lookup", cache_key=cache_key, error=str(e))
            raise StorageError("Failed to write lookup cache", details={"error": str(e)})

        self.logger.debug("Cached lookup result", cache_key=cache_key)
        return True

    async def invalidate_all(self) -> int:
        client = self._client()
        try:
            # Advancing the generation makes every existing key unreachable at once
            generation = await client.incr(self.GENERATION_KEY)
            self.invalidations += 1

            current_prefix = f"{self.KEY_PREFIX}{generation}:"
            stale_keys: List[str] = [
                key async for key in client.scan_iter(match=f"{self.KEY_PREFIX}*")
                if not key.startswith(current_prefix)
            ]
            if stale_keys:
                await client.delete(*stale_keys)

        except RedisError as e:
            self.logger.error("Error invalidating lookup cache", error=str(e))
            raise StorageError("Failed to invalidate lookup cache", details={"error": str(e)})

        self.logger.info("Lookup cache invalidated", generation=generation, count=len(stale_keys))
        return len(stale_keys)

    async def size(self) -> int:
        generation = await self.current_generation()
        count = 0
        try:
            async for _ in self._client().scan_iter(match=f"{self.KEY_PREFIX}{generation}:*"):
                count += 1
        except RedisError as e:
            raise StorageError("Failed to count lookup cache entries", details={"error": str(e)})
        return count

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._client().ping()
            return True
        except (RedisError, StorageError):
            return False
