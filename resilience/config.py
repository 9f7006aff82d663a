"""
Runtime settings.

Values come from environment variables or a ``.env`` file; names are
case-insensitive (``CORRELATION_WINDOW_MINUTES=30``). Engine components
never read settings themselves: ``resilience.operations`` passes the
relevant values in as constructor arguments.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the HTTP surface, logging and incident defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # HTTP
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_reload: bool = Field(default=False)
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed origins",
    )

    # Logging
    log_level: str = Field(default="info")
    log_format: Literal["json", "console"] = Field(default="json")
    dev_mode: bool = Field(default=True, description="Console logs regardless of log_format")

    # Incident correlation defaults, overridable per call
    correlation_window_minutes: float = Field(default=15.0, ge=0.0)
    correlation_max_hops: int = Field(default=2, ge=0, le=10)
    correlation_min_group_size: int = Field(default=2, ge=1)

    # Incident summary
    top_resources_limit: int = Field(default=10, ge=1)

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        if v.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{v}'")
        return v.lower()

    @field_validator("log_format", mode="before")
    @classmethod
    def lower_log_format(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Settings singleton; call ``get_settings.cache_clear()`` to reload."""
    return Settings()
