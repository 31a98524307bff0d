# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Process-local content cache with TTL expiry and LRU eviction.

This module provides the in-memory cache that sits in front of the lesson
store. Entries expire after their time-to-live and, once the cache is at
capacity, the entry with the oldest write timestamp is evicted before a new
one is inserted. Hit/miss statistics are kept for monitoring.

Example:
    from lessonsync.infrastructure.cache import CacheStore

    cache = CacheStore(max_entries=100)

    lessons = await cache.get(
        "all-lessons",
        max_age=600,
        fallback=store.get_all,
    )
    cache.invalidate("lessons-by-language-")
"""

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, replace
from typing import Any, Literal, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

PreloadPriority = Literal["high", "medium", "low"]

DEFAULT_MAX_ENTRIES = 100
DEFAULT_TTL = 5 * 60.0
LONG_TTL = 60 * 60.0
DEFAULT_ENTRY_VERSION = "1.0.0"


@dataclass
class CacheEntry:
    """A cached value with its metadata.

    Attributes:
        data: The cached value.
        timestamp: Clock reading when the entry was written.
        ttl: Time-to-live in seconds.
        version: Content version the value belongs to.
        etag: Optional entity tag of the value.
        last_modified: Optional last-modified marker of the value.
    """

    data: Any
    timestamp: float
    ttl: float
    version: str = DEFAULT_ENTRY_VERSION
    etag: str | None = None
    last_modified: str | None = None

    def is_valid(self, now: float) -> bool:
        """Check whether the entry is still within its time-to-live."""
        return now - self.timestamp <= self.ttl


@dataclass
class CacheStats:
    """Cache statistics for monitoring.

    Attributes:
        hits: Reads served from a valid entry.
        misses: Reads that found no valid entry.
        evictions: Entries removed by capacity eviction or invalidation.
        size: Current number of entries.
        hit_rate: hits / (hits + misses), 0 when no reads happened.
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    hit_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "hit_rate": round(self.hit_rate, 4),
        }


@dataclass
class PreloadEntry:
    """A key to populate ahead of demand.

    Attributes:
        key: Cache key.
        loader: Coroutine function producing the value.
        priority: "high" entries are kept for the long TTL.
    """

    key: str
    loader: Callable[[], Awaitable[Any]]
    priority: PreloadPriority = "medium"


class CacheStore:
    """Time-bounded key/value cache with LRU eviction and statistics.

    Eviction removes the entry with the smallest write timestamp, which
    approximates least-recently-used by oldest write (reads do not refresh
    an entry). On equal timestamps the first entry in insertion order goes.

    Attributes:
        max_entries: Capacity of the cache.
        default_ttl: TTL in seconds used when none is given.
        long_ttl: TTL in seconds for high priority preloads.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_ttl: float = DEFAULT_TTL,
        long_ttl: float = LONG_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_entries: Capacity before an entry is evicted on insert.
            default_ttl: Default time-to-live in seconds.
            long_ttl: Time-to-live in seconds for high priority preloads.
            clock: Monotonic clock returning seconds.
        """
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self.long_ttl = long_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Check for a stored entry without touching statistics or expiry."""
        return key in self._entries

    def keys(self) -> list[str]:
        """Return the stored keys in insertion order."""
        return list(self._entries)

    # ========== Reads ==========

    async def get(
        self,
        key: str,
        *,
        max_age: float | None = None,
        fallback: Callable[[], Awaitable[T]] | None = None,
        force_refresh: bool = False,
    ) -> T | None:
        """Get a cached value, loading it through the fallback on a miss.

        Every call counts exactly one hit or one miss. An expired entry is
        removed and counts as a miss.

        Args:
            key: The cache key.
            max_age: TTL in seconds for a value loaded through the fallback.
            fallback: Coroutine function producing the value on a miss.
            force_refresh: Treat the entry as missing even if it is valid.

        Returns:
            The cached or freshly loaded value, or None on a miss without
            a fallback.

        Raises:
            Exception: Whatever the fallback raises; nothing is cached then.
        """
        entry = self._entries.get(key)

        if entry is not None and not force_refresh:
            if entry.is_valid(self._clock()):
                self._stats.hits += 1
                self._update_hit_rate()
                return entry.data
            del self._entries[key]
            self._stats.size = len(self._entries)

        self._stats.misses += 1
        self._update_hit_rate()

        if fallback is None:
            return None

        data = await fallback()
        self.set(key, data, ttl=max_age if max_age is not None else self.default_ttl)
        return data

    def needs_refresh(
        self,
        key: str,
        current_version: str | None = None,
        current_etag: str | None = None,
    ) -> bool:
        """Check if a key must be reloaded for the given version or etag.

        Args:
            key: The cache key.
            current_version: Version the caller expects.
            current_etag: Entity tag the caller expects.

        Returns:
            True if the key is absent or its metadata differs.
        """
        entry = self._entries.get(key)
        if entry is None:
            return True
        if current_version and entry.version != current_version:
            return True
        if current_etag and entry.etag != current_etag:
            return True
        return False

    # ========== Writes ==========

    def set(
        self,
        key: str,
        value: Any,
        *,
        ttl: float | None = None,
        version: str | None = None,
        etag: str | None = None,
        last_modified: str | None = None,
    ) -> None:
        """Insert or overwrite a value.

        If the cache is at capacity one entry is evicted first.

        Args:
            key: The cache key.
            value: The value to cache.
            ttl: Time-to-live in seconds (default_ttl if not given).
            version: Content version of the value.
            etag: Entity tag of the value.
            last_modified: Last-modified marker of the value.
        """
        if len(self._entries) >= self.max_entries:
            self._evict_lru()

        self._entries[key] = CacheEntry(
            data=value,
            timestamp=self._clock(),
            ttl=ttl if ttl is not None else self.default_ttl,
            version=version or DEFAULT_ENTRY_VERSION,
            etag=etag,
            last_modified=last_modified,
        )
        self._stats.size = len(self._entries)

    def invalidate(self, pattern: str | re.Pattern[str]) -> int:
        """Remove all entries whose key matches.

        Args:
            pattern: Literal substring or compiled regular expression.

        Returns:
            Number of removed entries.
        """
        if isinstance(pattern, str):
            matched = [key for key in self._entries if pattern in key]
        else:
            matched = [key for key in self._entries if pattern.search(key)]

        for key in matched:
            del self._entries[key]
            self._stats.evictions += 1

        self._stats.size = len(self._entries)
        if matched:
            logger.debug("Invalidated %d cache entries for %r", len(matched), pattern)
        return len(matched)

    def clear(self) -> None:
        """Remove every entry and reset statistics."""
        self._entries.clear()
        self._stats = CacheStats()

    # ========== Preloading ==========

    async def preload(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        priority: PreloadPriority = "medium",
    ) -> None:
        """Populate a key ahead of demand.

        Failures are logged and never raised.

        Args:
            key: The cache key.
            loader: Coroutine function producing the value.
            priority: "high" keeps the value for the long TTL.
        """
        try:
            data = await loader()
        except Exception as e:
            logger.warning("Failed to preload %s: %s", key, e)
            return

        ttl = self.long_ttl if priority == "high" else self.default_ttl
        self.set(key, data, ttl=ttl)

    async def warmup(self, entries: Iterable[PreloadEntry]) -> None:
        """Preload a set of keys concurrently.

        One entry failing never prevents the others from loading.

        Args:
            entries: Keys and loaders to populate.
        """
        await asyncio.gather(
            *(self.preload(entry.key, entry.loader, entry.priority) for entry in entries),
            return_exceptions=True,
        )

    # ========== Statistics ==========

    def get_stats(self) -> CacheStats:
        """Get a snapshot of the cache statistics."""
        return replace(self._stats)

    def _evict_lru(self) -> None:
        """Evict the entry with the oldest write timestamp."""
        oldest_key: str | None = None
        oldest_time = 0.0

        for key, entry in self._entries.items():
            if oldest_key is None or entry.timestamp < oldest_time:
                oldest_key = key
                oldest_time = entry.timestamp

        if oldest_key is not None:
            del self._entries[oldest_key]
            self._stats.evictions += 1
            logger.debug("Evicted cache entry %s", oldest_key)

    def _update_hit_rate(self) -> None:
        total = self._stats.hits + self._stats.misses
        self._stats.hit_rate = self._stats.hits / total if total > 0 else 0.0
