# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content synchronization service.

This module drives the end-to-end sync of the local lesson catalog with the
remote manifests.

The sync process:
1. Fetch the preferred manifest, falling back to the secondary one
2. Merge both into one catalog
3. Diff the catalog against the stored lessons
4. Persist added and updated lessons (removals are only reported)
5. Record a new content version and the sync time
6. Clear the content cache

Only one sync runs at a time: a second call while one is running is
rejected with SyncAlreadyInProgressError unless it passes ``force=True``.
Network failures are retried with progressive backoff; malformed manifests
fail immediately.

Example:
    >>> service = SyncOrchestrator(access, tracker, cache, client, kv, merger, settings.sync)
    >>> result = await service.sync()
    >>> result.changes.added
    3
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from lessonsync.domains.content.exceptions import (
    PersistenceError,
    SyncAlreadyInProgressError,
    SyncFailedError,
)
from lessonsync.domains.content.models import ContentDelta, Lesson
from lessonsync.services.manifest.exceptions import ManifestError, ManifestFetchError
from lessonsync.utils.datetime import format_iso, parse_iso, utc_now
from lessonsync.utils.logging import log_context

if TYPE_CHECKING:
    from lessonsync.core.config.settings import SyncSettings
    from lessonsync.domains.content.access import LessonAccessLayer
    from lessonsync.domains.content.merger import CatalogMerger
    from lessonsync.domains.content.versioning import VersionTracker
    from lessonsync.infrastructure.background.scheduler import ScheduledTask, TaskScheduler
    from lessonsync.infrastructure.cache.content_cache import CacheStore
    from lessonsync.infrastructure.database.base import KeyValueStore
    from lessonsync.services.manifest.client import ManifestClient

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Sync state machine states.

    A sync moves IDLE to SYNCING and ends in SUCCESS or ERROR. The next
    background tick that finds nothing to sync settles a finished state
    back to IDLE; the error message stays until a sync succeeds.
    """

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    SUCCESS = "success"


class SyncPriority(str, Enum):
    """Priority of a sync request."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class SyncStatus:
    """Current sync state, readable by any observer.

    Attributes:
        is_running: Whether a sync is in progress.
        last_sync: When the last successful sync finished.
        next_sync: Earliest time the background sync runs again.
        status: State machine state.
        error: Message of the last failure, cleared on success.
    """

    is_running: bool = False
    last_sync: datetime | None = None
    next_sync: datetime | None = None
    status: SyncState = SyncState.IDLE
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "is_running": self.is_running,
            "last_sync": format_iso(self.last_sync),
            "next_sync": format_iso(self.next_sync),
            "status": self.status.value,
            "error": self.error,
        }


@dataclass
class SyncChanges:
    """Lesson counts of one sync."""

    added: int = 0
    updated: int = 0
    removed: int = 0


@dataclass
class SyncResult:
    """Result of a sync operation.

    Attributes:
        success: Whether sync completed.
        changes: Counts of added, updated and removed lessons.
        version: Version id recorded for the synced catalog.
        timestamp: When sync completed.
        errors: Per-lesson persistence failures that did not stop the sync.
        source: Manifest the catalog came from.
    """

    success: bool
    changes: SyncChanges = field(default_factory=SyncChanges)
    version: str = ""
    timestamp: datetime | None = None
    errors: list[str] = field(default_factory=list)
    source: str | None = None


class SyncOrchestrator:
    """Synchronizes the local catalog with the remote manifests.

    Attributes:
        settings: Sync settings in effect.
    """

    def __init__(
        self,
        access_layer: "LessonAccessLayer",
        version_tracker: "VersionTracker",
        cache: "CacheStore",
        manifest_client: "ManifestClient",
        kv_store: "KeyValueStore",
        merger: "CatalogMerger",
        settings: "SyncSettings",
        scheduler: "TaskScheduler | None" = None,
        last_sync_key: str = "lessonsync-last-sync",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        rng: Callable[[], float] = random.random,
    ):
        """Initialize the sync service.

        Args:
            access_layer: Lesson reads and writes.
            version_tracker: Fingerprints, deltas and version records.
            cache: Content cache cleared after every sync.
            manifest_client: Remote manifest source.
            kv_store: Store for the last sync time.
            merger: Catalog merger.
            settings: Sync settings.
            scheduler: Scheduler for background sync.
            last_sync_key: Key holding the last sync time.
            sleep: Awaitable delay used between retries.
            clock: Source of the current UTC time.
            rng: Source of uniform random numbers in [0, 1).
        """
        self._access = access_layer
        self._tracker = version_tracker
        self._cache = cache
        self._client = manifest_client
        self._kv = kv_store
        self._merger = merger
        self.settings = settings
        self._scheduler = scheduler
        self._last_sync_key = last_sync_key
        self._sleep = sleep
        self._clock = clock
        self._rng = rng

        self._status = SyncStatus()
        self._active_syncs = 0

    # =========================================================================
    # Sync
    # =========================================================================

    async def sync(
        self,
        *,
        force: bool = False,
        background: bool = False,
        priority: SyncPriority = SyncPriority.MEDIUM,
        retry_attempts: int | None = None,
    ) -> SyncResult:
        """Synchronize the local catalog with the remote manifests.

        Args:
            force: Run even if another sync is in progress.
            background: The call comes from the background sync.
            priority: Priority of the request, for logging.
            retry_attempts: Attempts for this call (settings default if None).

        Returns:
            SyncResult with change counts and the recorded version.

        Raises:
            SyncAlreadyInProgressError: If a sync runs and force is not set.
            SyncFailedError: If every attempt failed.
        """
        if self._status.is_running and not force:
            raise SyncAlreadyInProgressError()

        attempts = retry_attempts if retry_attempts is not None else self.settings.retry_attempts
        sync_id = uuid4().hex[:8]

        self._active_syncs += 1
        self._status.is_running = True
        self._status.status = SyncState.SYNCING

        with log_context(sync_id=sync_id):
            logger.info(
                "Starting sync %s (priority=%s, background=%s, force=%s)",
                sync_id,
                SyncPriority(priority).value,
                background,
                force,
            )
            try:
                result = await self._perform_sync(max(1, attempts))
            except Exception as e:
                self._status.status = SyncState.ERROR
                self._status.error = str(e)
                logger.error("Sync %s failed: %s", sync_id, e)
                raise
            else:
                self._status.status = SyncState.SUCCESS
                self._status.last_sync = self._clock()
                self._status.next_sync = self._calculate_next_sync()
                self._status.error = None
                return result
            finally:
                self._active_syncs -= 1
                self._status.is_running = self._active_syncs > 0

    async def force_sync(self) -> SyncResult:
        """Run a high priority sync, bypassing the in-progress gate."""
        return await self.sync(force=True, priority=SyncPriority.HIGH)

    async def _perform_sync(self, attempts: int) -> SyncResult:
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                return await self._attempt_sync()
            except Exception as e:
                last_error = e
                if not self._is_retryable(e):
                    logger.warning("Sync attempt %d failed permanently: %s", attempt + 1, e)
                    raise SyncFailedError(
                        "Sync failed", attempts=attempt + 1, last_error=e
                    ) from e

                if attempt < attempts - 1:
                    delays = self.settings.retry_delays
                    delay = delays[min(attempt, len(delays) - 1)]
                    logger.warning(
                        "Sync attempt %d failed, retrying in %ss: %s", attempt + 1, delay, e
                    )
                    await self._sleep(delay)

        raise SyncFailedError(
            "Sync failed", attempts=attempts, last_error=last_error
        ) from last_error

    def _is_retryable(self, error: Exception) -> bool:
        return self.settings.retry_all_failures or isinstance(error, ManifestFetchError)

    async def _attempt_sync(self) -> SyncResult:
        preferred, fallback, source = await self._fetch_manifests()
        catalog = self._merger.build_catalog(preferred, fallback)

        current = await self._access.get_all_lessons()
        delta = self._tracker.generate_delta(current, catalog)

        errors = await self._apply_delta(delta)

        version = self._tracker.create_version(catalog)
        await self._tracker.store_version(version)
        await self._record_last_sync()

        self._cache.clear()

        changes = SyncChanges(
            added=len(delta.added),
            updated=len(delta.updated),
            removed=len(delta.removed),
        )
        logger.info(
            "Sync completed from %s: added=%d updated=%d removed=%d",
            source,
            changes.added,
            changes.updated,
            changes.removed,
        )
        return SyncResult(
            success=True,
            changes=changes,
            version=version.version,
            timestamp=self._clock(),
            errors=errors,
            source=source,
        )

    async def _fetch_manifests(self) -> tuple[list[Lesson], list[Lesson], str]:
        try:
            preferred = await self._client.fetch_preferred()
        except ManifestError as e:
            logger.warning("Failed to load preferred manifest, trying fallback: %s", e)
            return [], await self._client.fetch_fallback(), self._client.fallback_path

        fallback = []
        if self.settings.merge_fallback:
            try:
                fallback = await self._client.fetch_fallback()
            except ManifestError as e:
                logger.info("Fallback manifest unavailable for gap-filling: %s", e)
        return preferred, fallback, self._client.preferred_path

    async def _apply_delta(self, delta: ContentDelta) -> list[str]:
        if delta.is_empty:
            logger.info("Catalog unchanged, nothing to save")
            return []

        errors: list[str] = []
        changed = delta.added + delta.updated

        if changed:
            try:
                await self._access.save_lessons(changed)
            except PersistenceError as e:
                logger.warning("Batch save failed, saving %d lessons one by one: %s", len(changed), e)
                for lesson in changed:
                    try:
                        await self._access.save_lesson(lesson)
                    except PersistenceError as lesson_error:
                        errors.append(f"{lesson.id}: {lesson_error}")

        if delta.removed:
            # The store has no delete; removals are reported only
            logger.info("Lessons removed upstream but kept locally: %s", delta.removed)

        if errors:
            logger.warning("%d lessons could not be saved", len(errors))
        return errors

    async def _record_last_sync(self) -> None:
        try:
            await self._kv.set(self._last_sync_key, format_iso(self._clock()))
        except Exception as e:
            logger.warning("Failed to record last sync time: %s", e)

    def _calculate_next_sync(self) -> datetime:
        jitter = self._rng() * self.settings.jitter
        return self._clock() + timedelta(seconds=self.settings.interval + jitter)

    # =========================================================================
    # Background sync
    # =========================================================================

    async def needs_sync(self) -> bool:
        """Check whether a background sync should run now.

        Returns:
            False before the scheduled next sync time; otherwise whether
            the stored catalog differs from the stored version. True if
            this cannot be determined.
        """
        try:
            next_sync = self._status.next_sync
            if next_sync is not None and self._clock() < next_sync:
                return False

            current = await self._access.get_all_lessons()
            return await self._tracker.has_content_changed(current)
        except Exception as e:
            logger.warning("Failed to check if sync is needed: %s", e)
            return True

    def start_background_sync(self, interval: float | None = None) -> "ScheduledTask":
        """Run needs_sync() and, if needed, a low priority sync periodically.

        Args:
            interval: Seconds between ticks (settings default if None).

        Returns:
            Handle of the periodic task; stop() cancels it.

        Raises:
            ValueError: If no scheduler is configured.
        """
        if self._scheduler is None:
            raise ValueError("Background sync requires a scheduler")

        seconds = interval if interval is not None else self.settings.interval
        return self._scheduler.add_interval_task(
            name="Background Content Sync",
            func=self._background_tick,
            seconds=seconds,
        )

    async def _background_tick(self) -> None:
        try:
            if await self.needs_sync():
                await self.sync(background=True, priority=SyncPriority.LOW)
            elif not self._status.is_running:
                self._status.status = SyncState.IDLE
        except Exception as e:
            logger.warning("Background sync failed: %s", e)

    # =========================================================================
    # Status
    # =========================================================================

    def get_sync_status(self) -> SyncStatus:
        """Get a copy of the current sync status."""
        return replace(self._status)

    async def get_last_sync_time(self) -> datetime | None:
        """Get the persisted time of the last successful sync."""
        return parse_iso(await self._kv.get(self._last_sync_key))

    def get_sync_stats(self) -> dict[str, Any]:
        """Get sync status with access layer and cache statistics.

        Returns:
            Statistics dictionary.
        """
        return {
            "status": self.get_sync_status(),
            "access_stats": self._access.get_stats(),
            "cache_stats": self._cache.get_stats(),
        }
