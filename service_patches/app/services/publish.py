"""
Patch publishing.
"""

import hmac
from typing import Any, Optional

import pydantic

from shared.logging import get_logger
from shared.errors import (
    DuplicatePatchError, PatchServiceException, StorageError, UnauthorizedError, ValidationError
)
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, retry_on_exception

from ..cache import LookupCache
from ..catalog import PatchCatalog, PatchRecord
from ..catalog.models import PatchSubmission


class PublishService:
    """Registers new patch releases on behalf of the shared-secret holder."""

    def __init__(self, catalog: PatchCatalog, cache: LookupCache, secret: Optional[str],
                 metrics: Optional[MetricsCollector] = None,
                 retry_config: Optional[RetryConfig] = None):
        self.catalog = catalog
        self.cache = cache
        self._secret = secret
        self.metrics = metrics
        self.logger = get_logger("patches.publish")
        self._retry = retry_on_exception(
            (StorageError,),
            retry_config or RetryConfig(max_attempts=3, base_delay=0.2, max_delay=2.0),
            reraise=True,
        )

        if not secret:
            self.logger.warning("No publish secret configured, every publish will be rejected")

    def authorize(self, credential: Any):
        """Raise UnauthorizedError unless ``credential`` matches the shared secret."""
        if not self._secret or not isinstance(credential, str):
            raise UnauthorizedError()
        if not hmac.compare_digest(credential.encode("utf-8"), self._secret.encode("utf-8")):
            raise UnauthorizedError()

    @staticmethod
    def validate(platform: Any, major: Any, minor: Any, patch: Any, url: Any, hash: Any) -> PatchRecord:
        """Build a PatchRecord from raw fields, raising ValidationError on bad input."""
        try:
            submission = PatchSubmission(
                os=platform, major=major, minor=minor, patch=patch, url=url, hash=hash
            )
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid patch submission",
                details={
                    "errors": [
                        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                        for err in e.errors()
                    ]
                }
            )
        return submission.to_record()

    async def publish(self, credential: Any, platform: Any, major: Any, minor: Any,
                      patch: Any, url: Any, hash: Any) -> PatchRecord:
        """Authorize, validate and append a patch, then invalidate the lookup cache.

        Nothing is written unless authorization and validation both pass. The
        cache is invalidated only after the append has committed and before
        this coroutine returns. A duplicate still invalidates, so republishing
        after a failed invalidation clears whatever the first attempt left.
        """
        try:
            self.authorize(credential)
            record = self.validate(platform, major, minor, patch, url, hash)

            await self.catalog.append(record)
        except DuplicatePatchError as e:
            self._count(e.code.lower())
            await self._invalidate(record)
            raise
        except PatchServiceException as e:
            self._count(e.code.lower())
            raise

        self.logger.info("Added new entry", platform=record.platform.value, version=record.name,
                         url=record.url, published_at=record.published_at.isoformat())

        await self._invalidate(record)

        self._count("published")
        return record

    async def _invalidate(self, record: PatchRecord) -> int:
        try:
            dropped = await self._retry(self.cache.invalidate_all)()
        except StorageError:
            self.logger.error("Patch stored but lookup cache not cleared",
                              platform=record.platform.value, version=record.name)
            self._count("invalidation_failed")
            raise

        if self.metrics:
            self.metrics.increment_counter("patch_cache_invalidations_total")
        self.logger.info("Cleared lookup cache", count=dropped)
        return dropped

    def _count(self, outcome: str):
        if self.metrics:
            self.metrics.increment_counter("patch_publish_total", outcome=outcome)
