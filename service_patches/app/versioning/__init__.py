"""
Versioning package for the Patch Service.

Parses client identification strings and defines the per-platform version
order used when matching clients against the patch catalog.
"""

from .identifier import Ordering, Platform, VersionIdentifier, compare, parse

__all__ = ["Ordering", "Platform", "VersionIdentifier", "compare", "parse"]
