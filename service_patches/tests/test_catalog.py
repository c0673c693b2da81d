"""
Unit tests for the patch catalog backends.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg

from service_patches.app.catalog import InMemoryPatchCatalog, PostgresPatchCatalog, PatchRecord
from service_patches.app.catalog.models import PatchSubmission
from service_patches.app.versioning import Platform, parse
from service_patches.app.versioning.identifier import MAX_COMPONENT
from shared.errors import DuplicatePatchError, StorageError


def make_record(platform: Platform, major: int, minor: int, patch: int) -> PatchRecord:
    name = f"{major}.{minor}.{patch}"
    return PatchRecord(
        platform=platform,
        major=major,
        minor=minor,
        patch=patch,
        url=f"https://cdn.example.com/{platform.value.lower()}/{name}.zip",
        integrity_hash=f"hash-{name}",
    )


def make_pool(conn):
    """Build an asyncpg pool double whose acquire() yields ``conn``."""
    acquire_cm = MagicMock()
    acquire_cm.__aenter__ = AsyncMock(return_value=conn)
    acquire_cm.__aexit__ = AsyncMock(return_value=False)

    pool = MagicMock()
    pool.acquire.return_value = acquire_cm
    pool.close = AsyncMock()
    return pool


def make_connection():
    transaction_cm = MagicMock()
    transaction_cm.__aenter__ = AsyncMock(return_value=None)
    transaction_cm.__aexit__ = AsyncMock(return_value=False)

    conn = MagicMock()
    conn.transaction.return_value = transaction_cm
    conn.execute = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock()
    return conn


class TestInMemoryPatchCatalog:
    """Test cases for InMemoryPatchCatalog."""

    @pytest.fixture
    def catalog(self):
        """Create InMemoryPatchCatalog instance."""
        return InMemoryPatchCatalog()

    @pytest.mark.asyncio
    async def test_query_newer_numeric_ordering(self, catalog):
        """Test minor 10 sorts after minor 9."""
        for minor in (10, 9, 2):
            await catalog.append(make_record(Platform.WINDOWS, 1, minor, 0))

        records = await catalog.query_newer(Platform.WINDOWS, parse("EDOPRO-WINDOWS-1.0.0"))

        assert [record.name for record in records] == ["1.2.0", "1.9.0", "1.10.0"]

    @pytest.mark.asyncio
    async def test_query_newer_is_strict(self, catalog):
        """Test the client's own version is not returned."""
        await catalog.append(make_record(Platform.LINUX, 1, 2, 3))
        await catalog.append(make_record(Platform.LINUX, 1, 2, 4))

        records = await catalog.query_newer(Platform.LINUX, parse("EDOPRO-LINUX-1.2.3"))

        assert [record.name for record in records] == ["1.2.4"]

    @pytest.mark.asyncio
    async def test_query_newer_partitions_by_platform(self, catalog):
        """Test other platforms' records are never returned."""
        await catalog.append(make_record(Platform.MAC, 2, 0, 0))
        await catalog.append(make_record(Platform.LINUX, 2, 0, 0))

        records = await catalog.query_newer(Platform.MAC, parse("EDOPRO-MAC-1.0.0"))

        assert len(records) == 1
        assert records[0].platform is Platform.MAC

    @pytest.mark.asyncio
    async def test_query_newer_empty(self, catalog):
        """Test empty result when nothing is newer."""
        await catalog.append(make_record(Platform.LINUX, 1, 0, 0))

        assert await catalog.query_newer(Platform.LINUX, parse("EDOPRO-LINUX-9.0.0")) == []

    @pytest.mark.asyncio
    async def test_query_newer_does_not_expose_internal_state(self, catalog):
        """Test mutating a result does not change the catalog."""
        await catalog.append(make_record(Platform.LINUX, 1, 0, 0))

        records = await catalog.query_newer(Platform.LINUX, parse("EDOPRO-LINUX-0.0.0"))
        records.clear()

        assert await catalog.count() == 1
        assert len(await catalog.query_newer(Platform.LINUX, parse("EDOPRO-LINUX-0.0.0"))) == 1

    @pytest.mark.asyncio
    async def test_append_rejects_duplicate_version(self, catalog):
        """Test duplicate version tuples are rejected."""
        await catalog.append(make_record(Platform.LINUX, 1, 2, 3))

        with pytest.raises(DuplicatePatchError):
            await catalog.append(make_record(Platform.LINUX, 1, 2, 3))

        assert await catalog.count() == 1

    @pytest.mark.asyncio
    async def test_same_version_on_different_platforms(self, catalog):
        """Test the same version may exist once per platform."""
        await catalog.append(make_record(Platform.LINUX, 1, 2, 3))
        await catalog.append(make_record(Platform.WINDOWS, 1, 2, 3))

        assert await catalog.count() == 2


class TestPostgresPatchCatalog:
    """Test cases for PostgresPatchCatalog."""

    @pytest.fixture
    def conn(self):
        return make_connection()

    @pytest.fixture
    def catalog(self, conn):
        """Create PostgresPatchCatalog with a mocked pool."""
        catalog = PostgresPatchCatalog("postgres://localhost:5432/test")
        catalog.pool = make_pool(conn)
        return catalog

    @pytest.mark.asyncio
    async def test_query_newer_uses_numeric_row_comparison(self, catalog, conn):
        """Test the query compares integer columns, not formatted names."""
        published_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        conn.fetch.return_value = [
            {"platform": "LINUX", "major": 1, "minor": 9, "patch": 0, "url": "u9",
             "hash": "h9", "published_at": published_at},
            {"platform": "LINUX", "major": 1, "minor": 10, "patch": 0, "url": "u10",
             "hash": "h10", "published_at": published_at},
        ]

        records = await catalog.query_newer(Platform.LINUX, parse("EDOPRO-LINUX-1.2.3"))

        query, *args = conn.fetch.call_args.args
        assert "(major, minor, patch) > ($2, $3, $4)" in query
        assert "ORDER BY major ASC, minor ASC, patch ASC" in query
        assert "||" not in query
        assert args == ["LINUX", 1, 2, 3]
        assert [record.name for record in records] == ["1.9.0", "1.10.0"]
        assert records[1].integrity_hash == "h10"

    @pytest.mark.asyncio
    async def test_query_newer_beyond_bigint_range(self, catalog, conn):
        """Test oversized components narrow the predicate instead of overflowing."""
        huge = MAX_COMPONENT + 1

        await catalog.query_newer(Platform.LINUX, parse(f"EDOPRO-LINUX-1.2.{huge}"))
        query, *args = conn.fetch.call_args.args
        assert "(major, minor) > ($2, $3)" in query
        assert args == ["LINUX", 1, 2]

        conn.fetch.reset_mock()
        assert await catalog.query_newer(Platform.LINUX, parse(f"EDOPRO-LINUX-{huge}.0.0")) == []
        conn.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_newer_storage_failure(self, catalog, conn):
        """Test engine failures surface as StorageError."""
        conn.fetch.side_effect = OSError("connection reset")

        with pytest.raises(StorageError):
            await catalog.query_newer(Platform.LINUX, parse("EDOPRO-LINUX-1.2.3"))

    @pytest.mark.asyncio
    async def test_append_runs_in_transaction(self, catalog, conn):
        """Test append inserts inside a transaction."""
        record = make_record(Platform.MAC, 3, 1, 4)

        await catalog.append(record)

        conn.transaction.assert_called_once()
        query, *args = conn.execute.call_args.args
        assert "INSERT INTO patches" in query
        assert args[:6] == ["MAC", 3, 1, 4, record.url, record.integrity_hash]

    @pytest.mark.asyncio
    async def test_append_duplicate(self, catalog, conn):
        """Test unique violations become DuplicatePatchError."""
        conn.execute.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(DuplicatePatchError) as exc_info:
            await catalog.append(make_record(Platform.MAC, 3, 1, 4))
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_append_storage_failure(self, catalog, conn):
        """Test engine failures during append surface as StorageError."""
        conn.execute.side_effect = OSError("disk full")

        with pytest.raises(StorageError):
            await catalog.append(make_record(Platform.MAC, 3, 1, 4))

    @pytest.mark.asyncio
    async def test_not_started(self):
        """Test using the catalog before start raises StorageError."""
        catalog = PostgresPatchCatalog("postgres://localhost:5432/test")

        with pytest.raises(StorageError):
            await catalog.query_newer(Platform.LINUX, parse("EDOPRO-LINUX-1.2.3"))
        assert await catalog.health_check() is False

    @pytest.mark.asyncio
    async def test_count(self, catalog, conn):
        """Test counting records."""
        conn.fetchval.return_value = 7

        assert await catalog.count() == 7

    @pytest.mark.asyncio
    async def test_stop_closes_pool(self, catalog):
        """Test stop closes the pool."""
        pool = catalog.pool

        await catalog.stop()

        pool.close.assert_awaited_once()
        assert catalog.pool is None


class TestPatchSubmission:
    """Test cases for publish payload validation."""

    def test_valid_submission(self):
        """Test a valid payload builds a record."""
        submission = PatchSubmission(os="linux", major=1, minor="2", patch=3, url="u1", hash="h1")
        record = submission.to_record()

        assert record.platform is Platform.LINUX
        assert record.version == (1, 2, 3)
        assert record.integrity_hash == "h1"
        assert record.published_at.tzinfo is not None

    @pytest.mark.parametrize("field,value", [
        ("major", -1),
        ("major", "1.5"),
        ("minor", 1.0),
        ("minor", True),
        ("patch", None),
        ("patch", "abc"),
        ("patch", " 3"),
        ("major", MAX_COMPONENT + 1),
        ("os", "solaris"),
        ("os", None),
        ("url", ""),
        ("hash", None),
    ])
    def test_invalid_submission(self, field, value):
        """Test invalid fields are rejected without defaults."""
        payload = {"os": "LINUX", "major": 1, "minor": 2, "patch": 3, "url": "u1", "hash": "h1"}
        payload[field] = value

        with pytest.raises(ValueError):
            PatchSubmission(**payload)
