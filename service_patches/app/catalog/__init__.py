"""
Patch catalog package for the Patch Service.

The catalog is the source of truth for published patches. It is append-only:
records are never updated or deleted. PostgreSQL is the production backend;
an in-memory backend exists for local development and tests.
"""

from .base import PatchCatalog
from .memory import InMemoryPatchCatalog
from .models import PatchEntry, PatchRecord
from .postgres import PostgresPatchCatalog


def create_catalog(config) -> PatchCatalog:
    """Build the catalog backend selected by ``config.catalog_backend``."""
    if config.catalog_backend == "memory":
        return InMemoryPatchCatalog()
    return PostgresPatchCatalog(config.postgres_dsn)


__all__ = [
    "InMemoryPatchCatalog",
    "PatchCatalog",
    "PatchEntry",
    "PatchRecord",
    "PostgresPatchCatalog",
    "create_catalog",
]
