"""
PostgreSQL persistence layer for the patch catalog.
"""

from typing import Any, List, Optional, Tuple

import asyncpg

from shared.logging import get_logger
from shared.errors import DuplicatePatchError, StorageError

from ..versioning import Platform, VersionIdentifier
from ..versioning.identifier import MAX_COMPONENT
from .base import PatchCatalog
from .models import PatchRecord


_SELECT_COLUMNS = "platform, major, minor, patch, url, hash, published_at"

_STORAGE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresPatchCatalog(PatchCatalog):
    """PostgreSQL-backed patch catalog."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("patches.catalog.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL patch catalog started")

        except _STORAGE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL patch catalog", error=str(e))
            raise StorageError("Failed to start patch catalog", details={"error": str(e)})

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL patch catalog stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS patches (
                    id BIGSERIAL PRIMARY KEY,
                    platform VARCHAR(16) NOT NULL,
                    major BIGINT NOT NULL CHECK (major >= 0),
                    minor BIGINT NOT NULL CHECK (minor >= 0),
                    patch BIGINT NOT NULL CHECK (patch >= 0),
                    url TEXT NOT NULL,
                    hash TEXT NOT NULL,
                    published_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

            await conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_patches_platform_version
                ON patches(platform, major, minor, patch);
            """)

    def _pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StorageError("Patch catalog is not started")
        return self.pool

    @staticmethod
    def _newer_than(version: VersionIdentifier) -> Optional[Tuple[str, List[Any]]]:
        """Build the ``newer than`` predicate on integer columns.

        Components beyond the BIGINT range are larger than anything stored, so
        the predicate narrows to the leading components that still fit.
        Returns None when nothing stored can be newer.
        """
        major, minor, patch = version.version
        if major > MAX_COMPONENT:
            return None
        if minor > MAX_COMPONENT:
            return "major > $2", [major]
        if patch > MAX_COMPONENT:
            return "(major, minor) > ($2, $3)", [major, minor]
        return "(major, minor, patch) > ($2, $3, $4)", [major, minor, patch]

    async def query_newer(self, platform: Platform, version: VersionIdentifier) -> List[PatchRecord]:
        predicate = self._newer_than(version)
        if predicate is None:
            return []
        condition, args = predicate

        try:
            async with self._pool().acquire() as conn:
                rows = await conn.fetch(f"""
                    SELECT {_SELECT_COLUMNS} FROM patches
                    WHERE platform = $1 AND {condition}
                    ORDER BY major ASC, minor ASC, patch ASC
                """, platform.value, *args)

                return [self._row_to_record(row) for row in rows]

        except _STORAGE_ERRORS as e:
            self.logger.error("Error querying newer patches", platform=platform.value,
                              version=version.name, error=str(e))
            raise StorageError("Failed to query patch catalog", details={"error": str(e)})

    async def append(self, record: PatchRecord) -> None:
        try:
            async with self._pool().acquire() as conn:
                async with conn.transaction():
                    await conn.execute("""
                        INSERT INTO patches (platform, major, minor, patch, url, hash, published_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                        record.platform.value, record.major, record.minor, record.patch,
                        record.url, record.integrity_hash, record.published_at
                    )

        except asyncpg.UniqueViolationError:
            raise DuplicatePatchError(details={"platform": record.platform.value, "version": record.name})
        except _STORAGE_ERRORS as e:
            self.logger.error("Error appending patch", platform=record.platform.value,
                              version=record.name, error=str(e))
            raise StorageError("Failed to append patch", details={"error": str(e)})

        self.logger.info("Patch appended", platform=record.platform.value, version=record.name)

    async def count(self) -> int:
        try:
            async with self._pool().acquire() as conn:
                return await conn.fetchval("SELECT COUNT(*) FROM patches")
        except _STORAGE_ERRORS as e:
            self.logger.error("Error counting patches", error=str(e))
            raise StorageError("Failed to count patches", details={"error": str(e)})

    async def health_check(self) -> bool:
        """Check PostgreSQL health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except _STORAGE_ERRORS:
            return False

    def _row_to_record(self, row) -> PatchRecord:
        """Convert database row to PatchRecord."""
        return PatchRecord(
            platform=Platform(row["platform"]),
            major=row["major"],
            minor=row["minor"],
            patch=row["patch"],
            url=row["url"],
            integrity_hash=row["hash"],
            published_at=row["published_at"],
        )
