"""
In-process patch catalog for local development and tests.
"""

import asyncio
import bisect
from typing import Dict, List, Tuple

from shared.logging import get_logger
from shared.errors import DuplicatePatchError

from ..versioning import Platform, VersionIdentifier
from .base import PatchCatalog
from .models import PatchRecord


class InMemoryPatchCatalog(PatchCatalog):
    """Patch catalog held in process memory; contents are lost on restart."""

    def __init__(self):
        self.logger = get_logger("patches.catalog.memory")
        self._records: Dict[Platform, List[PatchRecord]] = {platform: [] for platform in Platform}
        self._keys: set[Tuple[Platform, int, int, int]] = set()
        self._write_lock = asyncio.Lock()

    async def start(self):
        self.logger.info("In-memory patch catalog started")

    async def query_newer(self, platform: Platform, version: VersionIdentifier) -> List[PatchRecord]:
        records = self._records[platform]
        # Records are kept sorted by their integer version tuple
        start = bisect.bisect_right(records, version.version, key=lambda record: record.version)
        return list(records[start:])

    async def append(self, record: PatchRecord) -> None:
        async with self._write_lock:
            key = (record.platform, *record.version)
            if key in self._keys:
                raise DuplicatePatchError(details={"platform": record.platform.value, "version": record.name})

            bisect.insort_right(self._records[record.platform], record, key=lambda r: r.version)
            self._keys.add(key)

        self.logger.debug("Patch appended", platform=record.platform.value, version=record.name)

    async def count(self) -> int:
        return len(self._keys)
