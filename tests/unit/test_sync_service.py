# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the content sync orchestrator.

Tests cover:
- Successful syncs and their change counts
- The in-progress gate and forced syncs
- Retry with progressive backoff and fail-fast on malformed manifests
- Fallback manifests
- Per-lesson persistence errors
- Background sync and status reporting
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from lessonsync.core.config.settings import AccessSettings, SyncSettings
from lessonsync.domains.content.access import LessonAccessLayer
from lessonsync.domains.content.exceptions import (
    SyncAlreadyInProgressError,
    SyncFailedError,
)
from lessonsync.domains.content.merger import CatalogMerger
from lessonsync.domains.content.sync_service import SyncOrchestrator, SyncState
from lessonsync.domains.content.versioning import VersionTracker
from lessonsync.infrastructure.cache import CacheStore
from lessonsync.infrastructure.database.memory import InMemoryLessonStore
from lessonsync.services.manifest.exceptions import ManifestFetchError, ManifestFormatError

PREFERRED_PATH = "/lesson_content/real_lessons.json"
FALLBACK_PATH = "/lesson_content/lessons.json"


class FlakyLessonStore(InMemoryLessonStore):
    """Store whose batch writes fail and which rejects selected ids."""

    def __init__(self, bad_ids: set[str]) -> None:
        super().__init__()
        self.bad_ids = bad_ids

    async def put(self, lesson) -> None:
        if lesson.id in self.bad_ids:
            raise OSError("constraint failed")
        await super().put(lesson)

    async def put_many(self, lessons) -> None:
        raise OSError("transaction aborted")


@pytest.fixture
def manifest_client(sample_lessons) -> MagicMock:
    """Fake manifest client with a preferred catalog and an empty fallback."""
    client = MagicMock()
    client.preferred_path = PREFERRED_PATH
    client.fallback_path = FALLBACK_PATH
    client.fetch_preferred = AsyncMock(return_value=list(sample_lessons))
    client.fetch_fallback = AsyncMock(return_value=[])
    return client


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def make_service(kv_store, manifest_client, sleep, utc_clock, monotonic):
    """Factory building an orchestrator over in-memory collaborators."""

    def factory(store=None, scheduler=None, **sync_config) -> SyncOrchestrator:
        cache = CacheStore(clock=monotonic)
        tracker = VersionTracker(kv_store, clock=utc_clock)
        access = LessonAccessLayer(
            store if store is not None else InMemoryLessonStore(),
            cache,
            tracker,
            AccessSettings(),
            clock=utc_clock,
        )
        return SyncOrchestrator(
            access,
            tracker,
            cache,
            manifest_client,
            kv_store,
            CatalogMerger(balance_languages=False),
            SyncSettings(**sync_config),
            scheduler=scheduler,
            sleep=sleep,
            clock=utc_clock,
            rng=lambda: 0.5,
        )

    return factory


@pytest.mark.unit
class TestSync:
    """Tests for successful syncs."""

    @pytest.mark.asyncio
    async def test_first_sync_adds_catalog(self, make_service, utc_clock, kv_store) -> None:
        service = make_service()

        result = await service.sync()

        assert result.success is True
        assert (result.changes.added, result.changes.updated, result.changes.removed) == (3, 0, 0)
        assert result.version == "2024.03.05.1407"
        assert result.source == PREFERRED_PATH
        assert result.errors == []

        status = service.get_sync_status()
        assert status.status == SyncState.SUCCESS
        assert status.is_running is False
        assert status.last_sync == utc_clock.now
        assert status.next_sync == utc_clock.now + timedelta(seconds=330)
        assert await service.get_last_sync_time() == utc_clock.now

    @pytest.mark.asyncio
    async def test_second_sync_reports_delta(
        self, make_service, manifest_client, make_lesson
    ) -> None:
        store = InMemoryLessonStore()
        service = make_service(store)
        await service.sync()
        manifest_client.fetch_preferred.return_value = [
            make_lesson("sci_en_1", title="Revised"),
            make_lesson("math_en_1", subject="Mathematics", grade=7),
            make_lesson("new_en_1"),
        ]

        result = await service.sync()

        assert (result.changes.added, result.changes.updated, result.changes.removed) == (1, 1, 1)
        # Removals are reported, not deleted
        assert len(store) == 4
        assert (await store.get("sci_en_1")).title == "Revised"

    @pytest.mark.asyncio
    async def test_unchanged_catalog_writes_nothing(self, make_service, utc_clock) -> None:
        """An empty delta saves no lessons but still records a version."""
        store = InMemoryLessonStore()
        service = make_service(store)
        await service.sync()
        store.put_many = AsyncMock(wraps=store.put_many)
        store.put = AsyncMock(wraps=store.put)
        utc_clock.advance(600)

        result = await service.sync()

        assert (result.changes.added, result.changes.updated, result.changes.removed) == (0, 0, 0)
        assert result.version == "2024.03.05.1417"
        store.put_many.assert_not_awaited()
        store.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_fills_gaps(self, make_service, manifest_client, make_lesson) -> None:
        manifest_client.fetch_fallback.return_value = [make_lesson("fb_1", grade=10)]
        service = make_service()

        result = await service.sync()

        assert result.changes.added == 4

    @pytest.mark.asyncio
    async def test_merge_fallback_disabled(self, make_service, manifest_client) -> None:
        service = make_service(merge_fallback=False)

        await service.sync()

        manifest_client.fetch_fallback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unavailable_fallback_is_ignored(self, make_service, manifest_client) -> None:
        manifest_client.fetch_fallback.side_effect = ManifestFetchError("offline")
        service = make_service()

        result = await service.sync()

        assert result.changes.added == 3

    @pytest.mark.asyncio
    async def test_preferred_failure_uses_fallback(
        self, make_service, manifest_client, make_lesson
    ) -> None:
        manifest_client.fetch_preferred.side_effect = ManifestFetchError("HTTP 404", status_code=404)
        manifest_client.fetch_fallback.return_value = [make_lesson("fb_1"), make_lesson("fb_2")]
        service = make_service()

        result = await service.sync()

        assert result.source == FALLBACK_PATH
        assert result.changes.added == 2

    @pytest.mark.asyncio
    async def test_per_lesson_errors_do_not_fail_sync(self, make_service) -> None:
        store = FlakyLessonStore(bad_ids={"math_en_1"})
        service = make_service(store)

        result = await service.sync()

        assert result.success is True
        assert result.errors == ["math_en_1: Failed to save lesson math_en_1"]
        assert await store.get("sci_en_1") is not None
        assert await store.get("math_en_1") is None


@pytest.mark.unit
class TestSyncGate:
    """Tests for the in-progress gate."""

    @pytest.mark.asyncio
    async def test_concurrent_sync_is_rejected(
        self, make_service, manifest_client, sample_lessons
    ) -> None:
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return list(sample_lessons)

        manifest_client.fetch_preferred.side_effect = slow_fetch
        service = make_service()

        first = asyncio.create_task(service.sync())
        await asyncio.sleep(0)
        assert service.get_sync_status().is_running is True

        with pytest.raises(SyncAlreadyInProgressError):
            await service.sync()

        release.set()
        result = await first
        assert result.success is True
        assert service.get_sync_status().is_running is False

    @pytest.mark.asyncio
    async def test_force_runs_alongside(
        self, make_service, manifest_client, sample_lessons
    ) -> None:
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return list(sample_lessons)

        manifest_client.fetch_preferred.side_effect = slow_fetch
        service = make_service()

        first = asyncio.create_task(service.sync())
        await asyncio.sleep(0)
        forced = asyncio.create_task(service.force_sync())
        await asyncio.sleep(0)

        release.set()
        results = await asyncio.gather(first, forced)

        assert all(result.success for result in results)
        assert service.get_sync_status().is_running is False


@pytest.mark.unit
class TestSyncRetry:
    """Tests for retries and failures."""

    @pytest.mark.asyncio
    async def test_network_failures_are_retried_with_backoff(
        self, make_service, manifest_client, sleep
    ) -> None:
        manifest_client.fetch_preferred.side_effect = ManifestFetchError("offline")
        manifest_client.fetch_fallback.side_effect = ManifestFetchError("offline")
        service = make_service(retry_attempts=3)

        with pytest.raises(SyncFailedError) as exc_info:
            await service.sync()

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ManifestFetchError)
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]
        status = service.get_sync_status()
        assert status.status == SyncState.ERROR
        assert "after 3 attempt(s)" in status.error
        assert status.is_running is False

    @pytest.mark.asyncio
    async def test_last_delay_is_reused(self, make_service, manifest_client, sleep) -> None:
        manifest_client.fetch_preferred.side_effect = ManifestFetchError("offline")
        manifest_client.fetch_fallback.side_effect = ManifestFetchError("offline")
        service = make_service(retry_delays=[0.5, 1.5])

        with pytest.raises(SyncFailedError):
            await service.sync(retry_attempts=4)

        assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.5, 1.5]

    @pytest.mark.asyncio
    async def test_recovers_on_later_attempt(
        self, make_service, manifest_client, sample_lessons, sleep
    ) -> None:
        manifest_client.fetch_preferred.side_effect = [
            ManifestFetchError("timeout"),
            list(sample_lessons),
        ]
        manifest_client.fetch_fallback.side_effect = [ManifestFetchError("timeout"), []]
        service = make_service()

        result = await service.sync()

        assert result.success is True
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_manifest_fails_fast(self, make_service, manifest_client, sleep) -> None:
        manifest_client.fetch_preferred.side_effect = ManifestFormatError("not an array")
        manifest_client.fetch_fallback.side_effect = ManifestFormatError("not an array")
        service = make_service()

        with pytest.raises(SyncFailedError) as exc_info:
            await service.sync()

        assert exc_info.value.attempts == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_all_failures(self, make_service, manifest_client, sleep) -> None:
        manifest_client.fetch_preferred.side_effect = ManifestFormatError("not an array")
        manifest_client.fetch_fallback.side_effect = ManifestFormatError("not an array")
        service = make_service(retry_all_failures=True, retry_attempts=2)

        with pytest.raises(SyncFailedError) as exc_info:
            await service.sync()

        assert exc_info.value.attempts == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(
        self, make_service, manifest_client, sample_lessons
    ) -> None:
        manifest_client.fetch_preferred.side_effect = ManifestFormatError("bad")
        manifest_client.fetch_fallback.side_effect = ManifestFormatError("bad")
        service = make_service()
        with pytest.raises(SyncFailedError):
            await service.sync()

        manifest_client.fetch_preferred.side_effect = None
        manifest_client.fetch_preferred.return_value = list(sample_lessons)
        manifest_client.fetch_fallback.side_effect = None
        await service.sync()

        status = service.get_sync_status()
        assert status.status == SyncState.SUCCESS
        assert status.error is None


@pytest.mark.unit
class TestBackgroundSync:
    """Tests for needs_sync and the background task."""

    @pytest.mark.asyncio
    async def test_needs_sync(self, make_service, utc_clock) -> None:
        service = make_service()
        assert await service.needs_sync() is True

        await service.sync()
        assert await service.needs_sync() is False

        utc_clock.advance(331)
        # Stored catalog matches the recorded version
        assert await service.needs_sync() is False

    @pytest.mark.asyncio
    async def test_needs_sync_on_store_failure(self, make_service) -> None:
        store = AsyncMock()
        store.get_all.side_effect = OSError("locked")
        service = make_service(store)

        assert await service.needs_sync() is True

    def test_background_sync_requires_scheduler(self, make_service) -> None:
        with pytest.raises(ValueError, match="scheduler"):
            make_service().start_background_sync()

    @pytest.mark.asyncio
    async def test_background_tick_runs_sync(self, make_service, manifest_client) -> None:
        scheduler = MagicMock()
        service = make_service(scheduler=scheduler)

        service.start_background_sync(interval=60)
        kwargs = scheduler.add_interval_task.call_args.kwargs
        assert kwargs["name"] == "Background Content Sync"
        assert kwargs["seconds"] == 60

        await kwargs["func"]()

        manifest_client.fetch_preferred.assert_awaited_once()
        assert service.get_sync_status().status == SyncState.SUCCESS

    @pytest.mark.asyncio
    async def test_background_tick_swallows_failures(self, make_service, manifest_client) -> None:
        manifest_client.fetch_preferred.side_effect = ManifestFormatError("bad")
        manifest_client.fetch_fallback.side_effect = ManifestFormatError("bad")
        scheduler = MagicMock()
        service = make_service(scheduler=scheduler)
        service.start_background_sync()

        await scheduler.add_interval_task.call_args.kwargs["func"]()

        assert service.get_sync_status().status == SyncState.ERROR

    @pytest.mark.asyncio
    async def test_quiet_tick_settles_to_idle(self, make_service, manifest_client) -> None:
        scheduler = MagicMock()
        service = make_service(scheduler=scheduler)
        service.start_background_sync()
        tick = scheduler.add_interval_task.call_args.kwargs["func"]

        await service.sync()
        await tick()

        status = service.get_sync_status()
        assert status.status == SyncState.IDLE
        assert status.last_sync is not None
        manifest_client.fetch_preferred.assert_awaited_once()

        manifest_client.fetch_preferred.side_effect = ManifestFormatError("bad")
        manifest_client.fetch_fallback.side_effect = ManifestFormatError("bad")
        with pytest.raises(SyncFailedError):
            await service.force_sync()
        assert service.get_sync_status().status == SyncState.ERROR

        await tick()

        status = service.get_sync_status()
        assert status.status == SyncState.IDLE
        assert status.error is not None


@pytest.mark.unit
class TestSyncStatus:
    """Tests for status reporting."""

    def test_initial_status(self, make_service) -> None:
        status = make_service().get_sync_status()

        assert status.to_dict() == {
            "is_running": False,
            "last_sync": None,
            "next_sync": None,
            "status": "idle",
            "error": None,
        }

    def test_status_is_a_copy(self, make_service) -> None:
        service = make_service()
        service.get_sync_status().is_running = True

        assert service.get_sync_status().is_running is False

    @pytest.mark.asyncio
    async def test_sync_stats(self, make_service) -> None:
        service = make_service()
        await service.sync()

        stats = service.get_sync_stats()

        assert set(stats) == {"status", "access_stats", "cache_stats"}
        assert stats["status"].status == SyncState.SUCCESS
        assert stats["access_stats"].db_queries >= 2
        # Cache is cleared at the end of every sync
        assert stats["cache_stats"].size == 0

    @pytest.mark.asyncio
    async def test_no_last_sync_time(self, make_service) -> None:
        assert await make_service().get_last_sync_time() is None
