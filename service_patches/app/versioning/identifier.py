"""
Client version identifiers.

Clients identify themselves with strings such as ``EDOPRO-LINUX-1.2.3``,
either in the ``version`` query parameter or in the ``User-Agent`` header.
The platform partitions the version space; within a platform versions are
ordered numerically on (major, minor, patch).
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from shared.errors import MalformedVersionError


VERSION_PATTERN = re.compile(
    r"EDOPRO-(WINDOWS|MAC|LINUX)-([0-9]+)\.([0-9]+)\.([0-9]+)",
    re.IGNORECASE | re.ASCII,
)

# Largest version component the catalog can store (BIGINT)
MAX_COMPONENT = 2 ** 63 - 1


class Platform(str, Enum):
    """Client operating system families."""
    WINDOWS = "WINDOWS"
    MAC = "MAC"
    LINUX = "LINUX"

    @classmethod
    def parse(cls, token: str) -> "Platform":
        """Case-insensitive lookup; raises ValueError for unknown tokens."""
        if not isinstance(token, str):
            raise ValueError(f"Unknown platform: {token!r}")
        return cls(token.strip().upper())


class Ordering(int, Enum):
    """Result of comparing two version identifiers."""
    LESS = -1
    EQUAL = 0
    GREATER = 1


@dataclass(frozen=True)
class VersionIdentifier:
    """A platform plus a (major, minor, patch) version."""
    platform: Platform
    major: int
    minor: int
    patch: int

    def __post_init__(self):
        for component in ("major", "minor", "patch"):
            value = getattr(self, component)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{component} must be a non-negative integer, got {value!r}")

    @property
    def version(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def name(self) -> str:
        """The ``major.minor.patch`` form used in lookup responses."""
        return f"{self.major}.{self.minor}.{self.patch}"

    def __str__(self) -> str:
        return f"EDOPRO-{self.platform.value}-{self.name}"


def parse(text: Optional[str]) -> VersionIdentifier:
    """Parse a client version string into a :class:`VersionIdentifier`."""
    if not text:
        raise MalformedVersionError()

    match = VERSION_PATTERN.fullmatch(text)
    if match is None:
        raise MalformedVersionError(details={"version": text})

    platform, major, minor, patch = match.groups()
    return VersionIdentifier(
        platform=Platform.parse(platform),
        major=int(major),
        minor=int(minor),
        patch=int(patch),
    )


def compare(a: VersionIdentifier, b: VersionIdentifier) -> Ordering:
    """Order two identifiers of the same platform."""
    if a.platform != b.platform:
        raise ValueError(f"Cannot compare {a.platform.value} version with {b.platform.value} version")

    if a.version < b.version:
        return Ordering.LESS
    if a.version > b.version:
        return Ordering.GREATER
    return Ordering.EQUAL
