"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables and a local .env
file with validation, type coercion, and sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class IGDBConfig(BaseSettings):
    """IGDB catalog API configuration (Twitch developer credentials)."""

    model_config = SettingsConfigDict(
        env_prefix="IGDB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    client_id: str = Field(
        default=...,
        description="Twitch application client ID used for IGDB access",
    )
    client_secret: SecretStr = Field(
        default=...,
        description="Twitch application client secret",
    )
    base_url: str = Field(
        default="https://api.igdb.com/v4",
        description="Base URL for the IGDB API",
    )
    token_url: str = Field(
        default="https://id.twitch.tv/oauth2/token",
        description="OAuth client-credentials endpoint",
    )
    token_ttl_seconds: int = Field(
        default=3600,
        ge=60,
        le=86400,
        description="How long an access token is reused before refreshing",
    )
    requests_per_second: int = Field(
        default=4,
        ge=1,
        le=8,
        description="Rate limit for API requests per second",
    )
    timeout_seconds: int = Field(
        default=30,
        ge=5,
        le=120,
        description="HTTP request timeout in seconds",
    )
    page_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Records requested per page",
    )
    page_delay_seconds: float = Field(
        default=0.25,
        ge=0.0,
        le=10.0,
        description="Fixed pause between consecutive page requests",
    )

    @field_validator("base_url", "token_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize URLs so endpoint paths can be joined with '/'."""
        return v.rstrip("/")


class SyncConfig(BaseSettings):
    """Catalog synchronization configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    slug_probe_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Numeric suffixes probed before the time-based fallback",
    )
    min_votes: int = Field(
        default=80,
        ge=0,
        description="Minimum rating count for quality imports",
    )
    min_rating: float = Field(
        default=75.0,
        ge=0.0,
        le=100.0,
        description="Minimum aggregate rating for quality imports",
    )
    recency_days: int = Field(
        default=365,
        ge=1,
        description="Window used by 'top of the year' imports and lists",
    )
    purge_threshold: int = Field(
        default=50,
        ge=0,
        description="Rating count below which games are purged",
    )
    max_search_results: int = Field(
        default=100,
        ge=1,
        le=5000,
        description="Upper bound on records collected by a search import",
    )
    storage_path: Path = Field(
        default=Path("data/catalog/games.json"),
        description="Location of the JSON catalog store",
    )
    safety_net_titles: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "Astro Bot",
            "Split Fiction",
            "Clair Obscur: Expedition 33",
        ],
        description="Titles that must always be present in the catalog",
    )

    @field_validator("safety_net_titles", mode="before")
    @classmethod
    def split_titles(cls, v: object) -> object:
        """Accept a comma-separated string from the environment."""
        if isinstance(v, str):
            return [title.strip() for title in v.split(",") if title.strip()]
        return v


class RetryConfig(BaseSettings):
    """Retry behavior for recoverable persistence conflicts."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum slug allocation attempts per record",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    include_timestamp: bool = Field(
        default=True,
        description="Include timestamp in log entries",
    )


class Settings(BaseSettings):
    """
    Main application settings.

    Aggregates all configuration sections and provides
    a single entry point for configuration access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    # Sub-configurations
    igdb: IGDBConfig = Field(default_factory=IGDBConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once
    and reused across the application.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
