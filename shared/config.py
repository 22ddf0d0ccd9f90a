"""
Shared configuration management for the Elections Access Layer.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ELECTIONS_",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4000)

    # CORS
    frontend_url: str = Field(default="http://localhost:5173")

    # Backing store
    store_backend: str = Field(default="postgres")
    postgres_dsn: str = Field(default="postgres://localhost:5432/elections")
    postgres_min_pool: int = Field(default=2, ge=1)
    postgres_max_pool: int = Field(default=10, ge=1)
    postgres_command_timeout: float = Field(default=10.0, gt=0)

    @field_validator("store_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("postgres", "memory"):
            raise ValueError("store_backend must be 'postgres' or 'memory'")
        return value


class ElectionsConfig(BaseConfig):
    """Configuration for the elections submission gate."""

    # Submission quotas
    max_per_name: int = Field(default=1, ge=1)
    max_per_ip: int = Field(default=3, ge=1)
    max_per_device: int = Field(default=2, ge=1)
    window_hours: int = Field(default=24, ge=1)

    # Guidance shown to callers that are not whitelisted
    guidance_url: str = Field(default="")

    # Admin endpoints are disabled while this is unset
    admin_api_key: Optional[str] = Field(default=None)

    # Comma-separated names added to the whitelist on startup
    whitelist_seed: str = Field(default="")

    @field_validator("max_per_name")
    @classmethod
    def _check_max_per_name(cls, value: int) -> int:
        # Submissions are unique per identity at the storage layer.
        if value != 1:
            raise ValueError("max_per_name must be 1")
        return value

    @property
    def whitelist_seed_names(self) -> List[str]:
        return [name.strip() for name in self.whitelist_seed.split(",") if name.strip()]


def get_config(**overrides) -> ElectionsConfig:
    """Get configuration for the elections service."""
    return ElectionsConfig(**overrides)
