"""
Service layer for the Patch Service: lookup and publish orchestration over
the shared catalog and lookup cache.
"""

from .lookup import LookupService
from .publish import PublishService

__all__ = ["LookupService", "PublishService"]
