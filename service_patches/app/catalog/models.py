"""
Patch catalog data models.
"""

from typing import Any, Dict, Tuple
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..versioning import Platform, VersionIdentifier
from ..versioning.identifier import MAX_COMPONENT


@dataclass(frozen=True)
class PatchRecord:
    """A published build for one platform."""
    platform: Platform
    major: int
    minor: int
    patch: int
    url: str
    integrity_hash: str
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def version(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def identifier(self) -> VersionIdentifier:
        return VersionIdentifier(self.platform, self.major, self.minor, self.patch)

    @property
    def name(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def to_entry(self) -> "PatchEntry":
        return PatchEntry(name=self.name, md5=self.integrity_hash, url=self.url)


@dataclass(frozen=True)
class PatchEntry:
    """A single item of a lookup response, as served and cached."""
    name: str
    md5: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "md5": self.md5, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatchEntry":
        return cls(name=data["name"], md5=data["md5"], url=data["url"])


def _strict_component(value: Any) -> int:
    """Accept ints or strings of ASCII digits; reject bools, floats and anything else."""
    if isinstance(value, bool):
        raise ValueError("must be a non-negative integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.isascii() and value.isdigit():
        number = int(value)
    else:
        raise ValueError("must be a non-negative integer")

    if number < 0 or number > MAX_COMPONENT:
        raise ValueError(f"must be between 0 and {MAX_COMPONENT}")
    return number


class PatchSubmission(BaseModel):
    """Validated publish payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    platform: Platform = Field(..., alias="os", description="WINDOWS, MAC or LINUX")
    major: int = Field(..., description="Major version")
    minor: int = Field(..., description="Minor version")
    patch: int = Field(..., description="Patch version")
    url: str = Field(..., min_length=1, description="Download URL")
    hash: str = Field(..., min_length=1, description="Integrity hash")

    @field_validator("platform", mode="before")
    @classmethod
    def _parse_platform(cls, value: Any) -> Platform:
        return Platform.parse(value)

    @field_validator("major", "minor", "patch", mode="before")
    @classmethod
    def _parse_component(cls, value: Any) -> int:
        return _strict_component(value)

    def to_record(self) -> PatchRecord:
        return PatchRecord(
            platform=self.platform,
            major=self.major,
            minor=self.minor,
            patch=self.patch,
            url=self.url,
            integrity_hash=self.hash,
        )


class PatchEntryResponse(BaseModel):
    """Response model for a lookup item."""
    name: str = Field(..., description="Version as major.minor.patch")
    md5: str = Field(..., description="Integrity hash of the patch archive")
    url: str = Field(..., description="Download URL")


class CatalogStats(BaseModel):
    """Catalog and cache statistics."""
    catalog_records: int
    cache: Dict[str, Any]
    timestamp: datetime
