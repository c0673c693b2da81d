"""
Patch distribution service.

``GET /`` tells a client which patches are newer than its installed version;
``POST /version`` lets the release publisher register a new patch.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Header, Query, Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import StorageError, ValidationError
from shared.retry import RetryConfig

from .cache import LookupCache, create_cache
from .catalog import PatchCatalog, create_catalog
from .catalog.models import CatalogStats, PatchEntryResponse
from .services import LookupService, PublishService


class PatchService(BaseService):
    """Patch service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 catalog: Optional[PatchCatalog] = None,
                 cache: Optional[LookupCache] = None):
        super().__init__("patches", 3000, config=config)

        # The catalog and cache are shared by both services and live as long as the app
        self.catalog = catalog or create_catalog(self.config)
        self.cache = cache or create_cache(self.config)

        retry_config = RetryConfig(
            max_attempts=self.config.catalog_retry_attempts,
            base_delay=self.config.catalog_retry_delay,
            max_delay=max(self.config.catalog_retry_delay, 2.0),
        )
        self.lookup_service = LookupService(
            self.catalog,
            self.cache,
            metrics=self.metrics,
            retry_config=retry_config,
        )
        self.publish_service = PublishService(
            self.catalog,
            self.cache,
            self.config.secret,
            metrics=self.metrics,
            retry_config=retry_config,
        )

        self._setup_patch_routes()

    def _setup_patch_routes(self):
        """Set up patch-specific routes."""

        @self.app.get("/", response_model=List[PatchEntryResponse])
        async def lookup_patches(
            version: Optional[str] = Query(None, description="Client version, e.g. EDOPRO-WINDOWS-1.2.3"),
            user_agent: Optional[str] = Header(None),
        ):
            """List patches newer than the client's version, oldest first."""
            source = "query string" if version else "header"
            version_string = version or user_agent
            self.logger.debug("Detected client version", version=version_string, source=source)

            entries = await self.lookup_service.lookup(version_string)
            return [entry.to_dict() for entry in entries]

        @self.app.post("/version", status_code=204)
        async def publish_patch(request: Request):
            """Register a new patch release."""
            try:
                payload = await request.json()
            except (json.JSONDecodeError, UnicodeDecodeError):
                raise ValidationError("Request body must be a JSON object")
            if not isinstance(payload, dict):
                raise ValidationError("Request body must be a JSON object")

            try:
                await self.publish_service.publish(
                    payload.get("authToken"),
                    payload.get("os"),
                    payload.get("major"),
                    payload.get("minor"),
                    payload.get("patch"),
                    payload.get("url"),
                    payload.get("hash"),
                )
            except StorageError as e:
                raise StorageError(e.message, details=e.details, status_code=400) from e

            return Response(status_code=204)

        @self.app.get("/patches/stats", response_model=CatalogStats)
        async def get_stats():
            """Get catalog and cache statistics."""
            return CatalogStats(
                catalog_records=await self.catalog.count(),
                cache=await self.cache.stats(),
                timestamp=datetime.now(timezone.utc),
            )

    async def _check_dependencies(self):
        """Check patch service dependencies."""
        return {
            "catalog": "ok" if await self.catalog.health_check() else "error",
            "cache": "ok" if await self.cache.health_check() else "error",
        }

    async def start(self):
        """Start patch service components."""
        await self.catalog.start()
        await self.cache.start()

        self.logger.info("Patch service started",
                         catalog_backend=type(self.catalog).__name__,
                         cache_backend=self.cache.backend)

    async def stop(self):
        """Stop patch service components."""
        await self.cache.stop()
        await self.catalog.stop()

        self.logger.info("Patch service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create patch service application."""
    service = PatchService(config=config)
    return service.app


def main():
    PatchService().run()


if __name__ == "__main__":
    main()
