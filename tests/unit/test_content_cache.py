# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the content cache.

Tests cover:
- Read-through with fallback and hit/miss accounting
- TTL expiry
- Capacity eviction by oldest write
- Pattern invalidation
- Preloading and warmup
"""

import re
from unittest.mock import AsyncMock

import pytest

from lessonsync.infrastructure.cache import CacheStore, PreloadEntry


@pytest.fixture
def cache(monotonic) -> CacheStore:
    """Create a cache on the fake clock."""
    return CacheStore(max_entries=100, default_ttl=300.0, long_ttl=3600.0, clock=monotonic)


@pytest.mark.unit
class TestCacheGet:
    """Tests for CacheStore.get."""

    @pytest.mark.asyncio
    async def test_miss_without_fallback_returns_none(self, cache: CacheStore) -> None:
        """A miss without fallback returns None and counts one miss."""
        assert await cache.get("missing") is None

        stats = cache.get_stats()
        assert stats.misses == 1
        assert stats.hits == 0
        assert stats.hit_rate == 0.0

    @pytest.mark.asyncio
    async def test_fallback_result_is_cached(self, cache: CacheStore) -> None:
        """The fallback runs once; the second read is a hit."""
        loader = AsyncMock(return_value=["a", "b"])

        first = await cache.get("k", fallback=loader)
        second = await cache.get("k", fallback=loader)

        assert first == ["a", "b"]
        assert second == ["a", "b"]
        loader.assert_awaited_once()
        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
        assert stats.size == 1

    @pytest.mark.asyncio
    async def test_fallback_error_propagates_and_nothing_is_cached(self, cache: CacheStore) -> None:
        """A failing fallback raises and leaves the key absent."""
        loader = AsyncMock(side_effect=RuntimeError("store down"))

        with pytest.raises(RuntimeError, match="store down"):
            await cache.get("k", fallback=loader)

        assert "k" not in cache
        assert cache.get_stats().misses == 1

    @pytest.mark.asyncio
    async def test_force_refresh_reloads(self, cache: CacheStore) -> None:
        """force_refresh ignores a valid entry."""
        cache.set("k", "old")
        loader = AsyncMock(return_value="new")

        value = await cache.get("k", fallback=loader, force_refresh=True)

        assert value == "new"
        assert cache.get_stats().misses == 1

    @pytest.mark.asyncio
    async def test_hit_rate_recomputed_on_every_read(self, cache: CacheStore) -> None:
        """Three hits and one miss give a hit rate of 0.75."""
        cache.set("k", 1)
        for _ in range(3):
            await cache.get("k")
        await cache.get("other")

        assert cache.get_stats().hit_rate == 0.75


@pytest.mark.unit
class TestCacheExpiry:
    """Tests for TTL handling."""

    @pytest.mark.asyncio
    async def test_entry_valid_at_exact_ttl(self, cache: CacheStore, monotonic) -> None:
        """An entry is still valid when exactly ttl seconds have passed."""
        cache.set("k", "v", ttl=60)
        monotonic.advance(60)

        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_expired_entry_is_removed_and_reloaded(self, cache: CacheStore, monotonic) -> None:
        """After the TTL the entry is a miss and the fallback runs."""
        cache.set("k", "v", ttl=60)
        monotonic.advance(61)
        loader = AsyncMock(return_value="fresh")

        value = await cache.get("k", fallback=loader)

        assert value == "fresh"
        loader.assert_awaited_once()
        assert cache.get_stats().misses == 1

    @pytest.mark.asyncio
    async def test_expired_entry_without_fallback(self, cache: CacheStore, monotonic) -> None:
        """An expired entry is dropped from the cache."""
        cache.set("k", "v", ttl=10)
        monotonic.advance(11)

        assert await cache.get("k") is None
        assert "k" not in cache
        assert cache.get_stats().size == 0

    @pytest.mark.asyncio
    async def test_max_age_sets_ttl_of_loaded_value(self, cache: CacheStore, monotonic) -> None:
        """max_age becomes the TTL of a value stored through the fallback."""
        await cache.get("k", max_age=30, fallback=AsyncMock(return_value="v"))
        monotonic.advance(31)

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_zero_ttl_is_honored(self, cache: CacheStore, monotonic) -> None:
        """A zero TTL keeps the entry only for the instant it was written."""
        cache.set("k", "v", ttl=0)
        await cache.get("m", max_age=0, fallback=AsyncMock(return_value="w"))

        assert await cache.get("k") == "v"

        monotonic.advance(0.5)

        assert await cache.get("k") is None
        assert await cache.get("m") is None


@pytest.mark.unit
class TestCacheEviction:
    """Tests for capacity eviction."""

    def test_oldest_write_is_evicted(self, monotonic) -> None:
        """Inserting key 101 into a full cache evicts key 1."""
        cache = CacheStore(max_entries=100, clock=monotonic)
        for i in range(1, 101):
            cache.set(f"key-{i}", i)
            monotonic.advance(1)

        cache.set("key-101", 101)

        assert len(cache) == 100
        assert "key-1" not in cache
        assert "key-2" in cache
        assert "key-101" in cache
        assert cache.get_stats().evictions == 1

    def test_tie_evicts_first_inserted(self, monotonic) -> None:
        """With equal timestamps the first entry in insertion order goes."""
        cache = CacheStore(max_entries=3, clock=monotonic)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        cache.set("d", 4)

        assert cache.keys() == ["b", "c", "d"]

    def test_reads_do_not_protect_from_eviction(self, monotonic) -> None:
        """Eviction looks at write time, not read time."""
        cache = CacheStore(max_entries=2, clock=monotonic)
        cache.set("a", 1)
        monotonic.advance(1)
        cache.set("b", 2)
        monotonic.advance(1)

        cache.set("c", 3)

        assert "a" not in cache

    def test_overwrite_at_capacity_still_evicts(self, monotonic) -> None:
        """The capacity check is on size only, also for an existing key."""
        cache = CacheStore(max_entries=2, clock=monotonic)
        cache.set("a", 1)
        monotonic.advance(1)
        cache.set("b", 2)
        monotonic.advance(1)

        cache.set("b", 3)

        assert cache.keys() == ["b"]
        assert cache.get_stats().evictions == 1


@pytest.mark.unit
class TestCacheInvalidation:
    """Tests for invalidate, clear and needs_refresh."""

    def test_substring_invalidation(self, cache: CacheStore) -> None:
        """A string pattern removes every key containing it."""
        cache.set("lessons-by-language-en", 1)
        cache.set("lessons-by-language-hi", 2)
        cache.set("all-lessons", 3)

        removed = cache.invalidate("by-language")

        assert removed == 2
        assert cache.keys() == ["all-lessons"]
        assert cache.get_stats().evictions == 2

    def test_regex_invalidation(self, cache: CacheStore) -> None:
        """A compiled pattern is matched with search."""
        cache.set("lesson-1", 1)
        cache.set("lesson-10", 2)

        removed = cache.invalidate(re.compile(r"^lesson-1$"))

        assert removed == 1
        assert cache.keys() == ["lesson-10"]

    @pytest.mark.asyncio
    async def test_clear_resets_stats(self, cache: CacheStore) -> None:
        """clear empties the cache and zeroes the counters."""
        cache.set("k", 1)
        await cache.get("k")

        cache.clear()

        stats = cache.get_stats()
        assert len(cache) == 0
        assert (stats.hits, stats.misses, stats.evictions, stats.size) == (0, 0, 0, 0)

    def test_needs_refresh(self, cache: CacheStore) -> None:
        """needs_refresh compares the stored version and etag."""
        cache.set("k", 1, version="2024.01.01.0000", etag='"abc"')

        assert cache.needs_refresh("missing") is True
        assert cache.needs_refresh("k") is False
        assert cache.needs_refresh("k", current_version="2024.01.01.0000") is False
        assert cache.needs_refresh("k", current_version="2024.02.01.0000") is True
        assert cache.needs_refresh("k", current_etag='"xyz"') is True

    def test_stats_are_a_snapshot(self, cache: CacheStore) -> None:
        """Mutating returned stats does not affect the cache."""
        stats = cache.get_stats()
        stats.hits = 99

        assert cache.get_stats().hits == 0


@pytest.mark.unit
class TestCachePreload:
    """Tests for preload and warmup."""

    @pytest.mark.asyncio
    async def test_high_priority_uses_long_ttl(self, cache: CacheStore, monotonic) -> None:
        """High priority preloads survive past the default TTL."""
        await cache.preload("static", AsyncMock(return_value="v"), priority="high")
        monotonic.advance(301)

        assert await cache.get("static") == "v"

    @pytest.mark.asyncio
    async def test_medium_priority_uses_default_ttl(self, cache: CacheStore, monotonic) -> None:
        """Other priorities expire after the default TTL."""
        await cache.preload("k", AsyncMock(return_value="v"))
        monotonic.advance(301)

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_preload_failure_is_swallowed(self, cache: CacheStore) -> None:
        """A failing loader is logged and leaves the key absent."""
        await cache.preload("k", AsyncMock(side_effect=ValueError("boom")))

        assert "k" not in cache

    @pytest.mark.asyncio
    async def test_warmup_tolerates_individual_failures(self, cache: CacheStore) -> None:
        """One failing entry does not stop the others."""
        entries = [
            PreloadEntry("a", AsyncMock(return_value=1), "high"),
            PreloadEntry("b", AsyncMock(side_effect=RuntimeError("down"))),
            PreloadEntry("c", AsyncMock(return_value=3)),
        ]

        await cache.warmup(entries)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
