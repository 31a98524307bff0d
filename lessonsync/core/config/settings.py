# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for lessonsync.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A cached instance is provided via get_settings(); components never read it
implicitly, it is passed to them by the engine factory.

Example:
    >>> from lessonsync.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.cache.max_entries)
    100
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CacheStrategy = Literal["aggressive", "conservative", "balanced"]
PreloadStrategy = Literal["all", "frequent", "none"]


class CacheSettings(BaseSettings):
    """In-process content cache configuration.

    Attributes:
        max_entries: Capacity before an entry is evicted on insert.
        default_ttl: Default time-to-live in seconds.
        long_ttl: Time-to-live in seconds for high priority preloads.
    """

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        extra="ignore",
    )

    max_entries: int = Field(default=100, ge=1)
    default_ttl: float = Field(default=300.0, gt=0)
    long_ttl: float = Field(default=3600.0, gt=0)


class VersioningSettings(BaseSettings):
    """Content version tracking configuration.

    Attributes:
        check_interval: Seconds between update checks.
        history_limit: Number of versions kept in history.
        version_key: Key holding the current version record.
        history_key: Key holding the version history record.
        last_sync_key: Key holding the last sync wall-clock time.
    """

    model_config = SettingsConfigDict(
        env_prefix="VERSIONING_",
        extra="ignore",
    )

    check_interval: float = 300.0
    history_limit: int = Field(default=10, ge=1)
    version_key: str = "lessonsync-content-version"
    history_key: str = "lessonsync-version-history"
    last_sync_key: str = "lessonsync-last-sync"


class ManifestSettings(BaseSettings):
    """Remote lesson manifest configuration.

    Both manifests are plain JSON arrays of lessons. The preferred manifest
    is tried first, the fallback one when it fails.

    Attributes:
        base_url: Base URL of the content host.
        preferred_path: Path of the preferred (curated) manifest.
        fallback_path: Path of the fallback manifest.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="MANIFEST_",
        extra="ignore",
    )

    base_url: str = "http://localhost:8080"
    preferred_path: str = "/lesson_content/real_lessons.json"
    fallback_path: str = "/lesson_content/lessons.json"
    timeout: float = 10.0


class SyncSettings(BaseSettings):
    """Synchronization workflow configuration.

    Attributes:
        retry_attempts: Attempts per sync call.
        retry_delays: Progressive backoff delays in seconds.
        interval: Seconds between background sync ticks.
        jitter: Maximum random seconds added to the next sync time.
        retry_all_failures: Retry structural failures as well as network ones.
        merge_fallback: Gap-fill the preferred manifest from the fallback one.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        extra="ignore",
    )

    retry_attempts: int = Field(default=3, ge=1)
    retry_delays: list[float] = Field(default_factory=lambda: [1.0, 2.0, 5.0, 10.0])
    interval: float = 300.0
    jitter: float = 60.0
    retry_all_failures: bool = False
    merge_fallback: bool = True

    @field_validator("retry_delays")
    @classmethod
    def validate_retry_delays(cls, value: list[float]) -> list[float]:
        """Require at least one non-negative delay."""
        if not value:
            raise ValueError("retry_delays must contain at least one delay")
        if any(delay < 0 for delay in value):
            raise ValueError("retry_delays must be non-negative")
        return value


class AccessSettings(BaseSettings):
    """Lesson access layer configuration.

    Attributes:
        enable_caching: Serve reads through the content cache.
        enable_versioning: Run change detection on the catalog.
        cache_strategy: TTL profile used for query results.
        preload_strategy: Which keys are warmed on initialization.
        sync_interval: Seconds between periodic update checks.
        preload_languages: Languages warmed by the "all" preload strategy.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        extra="ignore",
    )

    enable_caching: bool = True
    enable_versioning: bool = True
    cache_strategy: CacheStrategy = "balanced"
    preload_strategy: PreloadStrategy = "frequent"
    sync_interval: float = Field(default=300.0, gt=0)
    preload_languages: list[str] = Field(default_factory=lambda: ["en", "hi"])


class MergerSettings(BaseSettings):
    """Catalog merge configuration.

    Attributes:
        ensure_equal_content: Gap-fill from the fallback catalog.
        balance_languages: Pad smaller language groups with placeholders.
    """

    model_config = SettingsConfigDict(
        env_prefix="MERGER_",
        extra="ignore",
    )

    ensure_equal_content: bool = True
    balance_languages: bool = True


class DatabaseSettings(BaseSettings):
    """Persistent lesson store configuration.

    Attributes:
        backend: Store implementation, SQL or in-memory.
        url: SQLAlchemy async database URL.
        echo: Echo SQL statements.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    backend: Literal["sql", "memory"] = "sql"
    url: str = "sqlite+aiosqlite:///lessonsync.db"
    echo: bool = False


class ImportSettings(BaseSettings):
    """External content source configuration.

    Attributes:
        source_urls: Mapping of content source name to a JSON endpoint.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="IMPORT_",
        extra="ignore",
    )

    source_urls: dict[str, str] = Field(default_factory=dict)
    timeout: float = 30.0


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        cache: Content cache settings.
        versioning: Version tracking settings.
        manifest: Remote manifest settings.
        sync: Synchronization settings.
        access: Access layer settings.
        merger: Catalog merge settings.
        database: Persistent store settings.
        importer: External content source settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Subsettings - loaded with their own env prefixes
    cache: CacheSettings = Field(default_factory=CacheSettings)
    versioning: VersioningSettings = Field(default_factory=VersioningSettings)
    manifest: ManifestSettings = Field(default_factory=ManifestSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)
    merger: MergerSettings = Field(default_factory=MergerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    importer: ImportSettings = Field(default_factory=ImportSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with an in-memory store.
        """
        if self.environment == "production" and self.database.backend == "memory":
            raise ValueError(
                "The in-memory lesson store is not durable. "
                "Set DATABASE_BACKEND=sql in production."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
