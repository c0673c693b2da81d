"""
Shared configuration management for the Hercules patch service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="HERCULES_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Publishing
    secret: Optional[str] = Field(default=None, description="Shared secret required to publish patches")

    # Patch catalog
    catalog_backend: str = Field(default="postgres", pattern="^(postgres|memory)$")
    postgres_dsn: str = Field(default="postgres://localhost:5432/hercules")
    catalog_retry_attempts: int = Field(default=3, ge=1)
    catalog_retry_delay: float = Field(default=0.2, ge=0.0)

    # Lookup cache
    cache_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    redis_url: str = Field(default="redis://localhost:6379/0")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int = 3000
    host: str = "0.0.0.0"


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
