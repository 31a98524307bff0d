# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for lessonsync.

Pydantic-based settings loaded from environment variables, one subsettings
class per concern.

Example:
    >>> from lessonsync.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.sync.retry_attempts)
    3
"""

from lessonsync.core.config.settings import (
    AccessSettings,
    CacheSettings,
    CacheStrategy,
    DatabaseSettings,
    ImportSettings,
    ManifestSettings,
    MergerSettings,
    PreloadStrategy,
    Settings,
    SyncSettings,
    VersioningSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "CacheSettings",
    "VersioningSettings",
    "ManifestSettings",
    "SyncSettings",
    "AccessSettings",
    "MergerSettings",
    "DatabaseSettings",
    "ImportSettings",
    # Literals
    "CacheStrategy",
    "PreloadStrategy",
]
