"""
Patch catalog interface.
"""

from abc import ABC, abstractmethod
from typing import List

from ..versioning import Platform, VersionIdentifier
from .models import PatchRecord


class PatchCatalog(ABC):
    """Append-only store of published patch records."""

    async def start(self):
        """Prepare the catalog for use."""

    async def stop(self):
        """Release catalog resources."""

    @abstractmethod
    async def query_newer(self, platform: Platform, version: VersionIdentifier) -> List[PatchRecord]:
        """Records for ``platform`` strictly newer than ``version``, ascending."""

    @abstractmethod
    async def append(self, record: PatchRecord) -> None:
        """Atomically add a record; raises StorageError on engine failure."""

    @abstractmethod
    async def count(self) -> int:
        """Number of published records."""

    async def health_check(self) -> bool:
        return True
