# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content cache infrastructure.

Example:
    from lessonsync.infrastructure.cache import CacheStore

    cache = CacheStore(max_entries=100, default_ttl=300)
"""

from lessonsync.infrastructure.cache.content_cache import (
    CacheEntry,
    CacheStats,
    CacheStore,
    PreloadEntry,
    PreloadPriority,
)

__all__ = [
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    "PreloadEntry",
    "PreloadPriority",
]
