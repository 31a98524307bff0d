# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lesson access layer.

Single entry point for lesson reads and writes. Reads go through the
content cache under one key per query shape; writes go to the store and
invalidate every key that could hold the written lessons.

Cache keys:
- ``all-lessons``
- ``lessons-by-language-{language}``
- ``lessons-by-subject-{subject}``
- ``lesson-{id}``

Example:
    layer = LessonAccessLayer(store, cache, tracker, settings.access)
    await layer.initialize()

    lessons = await layer.get_lessons_by_language("hi")
    await layer.save_lesson(lesson)

    await layer.close()
"""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

from lessonsync.domains.content.exceptions import (
    ContentError,
    LessonNotFoundError,
    PersistenceError,
)
from lessonsync.domains.content.models import Lesson
from lessonsync.infrastructure.cache.content_cache import CacheStats, PreloadEntry
from lessonsync.utils.datetime import format_iso, utc_now

if TYPE_CHECKING:
    from lessonsync.core.config.settings import AccessSettings
    from lessonsync.domains.content.merger import CatalogMerger
    from lessonsync.domains.content.versioning import VersionTracker
    from lessonsync.infrastructure.background.scheduler import ScheduledTask, TaskScheduler
    from lessonsync.infrastructure.cache.content_cache import CacheStore
    from lessonsync.infrastructure.database.base import LessonStore
    from lessonsync.services.manifest.client import ManifestClient

logger = logging.getLogger(__name__)

ALL_LESSONS_KEY = "all-lessons"

QueryShape = Literal["all", "language", "subject", "single"]

# (all lessons, any narrower query) in seconds
CACHE_TTLS: dict[str, tuple[float, float]] = {
    "aggressive": (30 * 60.0, 15 * 60.0),
    "conservative": (2 * 60.0, 1 * 60.0),
    "balanced": (10 * 60.0, 5 * 60.0),
}


def language_key(language: str) -> str:
    return f"lessons-by-language-{language}"


def subject_key(subject: str) -> str:
    return f"lessons-by-subject-{subject}"


def lesson_key(lesson_id: str) -> str:
    return f"lesson-{lesson_id}"


def _exact(key: str) -> re.Pattern[str]:
    return re.compile(f"^{re.escape(key)}$")


@dataclass
class AccessLayerStats:
    """Counters of the access layer.

    Attributes:
        cache_hits: Reads answered from the cache.
        cache_misses: Reads that went to the store.
        db_queries: Store reads and writes issued.
        version_checks: Catalog replacements after a detected change.
        last_sync: When the catalog was last reloaded, None if never.
        total_lessons: Lesson count seen on the last full read.
        cache_stats: Snapshot of the cache statistics.
    """

    cache_hits: int = 0
    cache_misses: int = 0
    db_queries: int = 0
    version_checks: int = 0
    last_sync: datetime | None = None
    total_lessons: int = 0
    cache_stats: CacheStats = field(default_factory=CacheStats)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "db_queries": self.db_queries,
            "version_checks": self.version_checks,
            "last_sync": format_iso(self.last_sync),
            "total_lessons": self.total_lessons,
            "cache_stats": self.cache_stats.to_dict(),
        }


class LessonAccessLayer:
    """Query façade over the lesson store and the content cache.

    Attributes:
        config: Access settings in effect.
    """

    def __init__(
        self,
        store: "LessonStore",
        cache: "CacheStore",
        version_tracker: "VersionTracker",
        config: "AccessSettings",
        merger: "CatalogMerger | None" = None,
        manifest_client: "ManifestClient | None" = None,
        scheduler: "TaskScheduler | None" = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the access layer.

        Args:
            store: Persistent lesson store.
            cache: Content cache placed in front of the store.
            version_tracker: Change detection for catalog reloads.
            config: Access settings.
            merger: Catalog merger used by reloads.
            manifest_client: Remote manifest source used by reloads.
            scheduler: Scheduler for the periodic update check.
            clock: Source of the current UTC time.
        """
        self._store = store
        self._cache = cache
        self._tracker = version_tracker
        self.config = config
        self._merger = merger
        self._manifest_client = manifest_client
        self._scheduler = scheduler
        self._clock = clock

        self._stats = AccessLayerStats()
        self._update_task: "ScheduledTask | None" = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Prepare the store, check for updates, warm the cache and start
        the periodic update check. Calling it again does nothing.
        """
        if self._initialized:
            return

        await self._store.init()

        if self.config.enable_versioning:
            await self.check_for_content_updates()

        if self.config.enable_caching:
            await self._warmup_cache()

        self._start_periodic_check()
        self._initialized = True
        logger.info(
            "Lesson access layer initialized (cache=%s, strategy=%s, preload=%s)",
            self.config.enable_caching,
            self.config.cache_strategy,
            self.config.preload_strategy,
        )

    async def close(self) -> None:
        """Stop the periodic update check and clear the cache."""
        if self._update_task is not None:
            self._update_task.stop()
            self._update_task = None
        self._cache.clear()
        self._initialized = False

    def update_config(self, **changes: Any) -> None:
        """Change access settings at runtime.

        A changed ``sync_interval`` reschedules the periodic update check.

        Args:
            **changes: AccessSettings fields to change.

        Raises:
            ValueError: If a field name is unknown.
        """
        unknown = set(changes) - set(type(self.config).model_fields)
        if unknown:
            raise ValueError(f"Unknown access settings: {', '.join(sorted(unknown))}")

        self.config = self.config.model_copy(update=changes)

        if "sync_interval" in changes and self._update_task is not None:
            self._update_task.reschedule(self.config.sync_interval)

        logger.info("Access layer settings updated: %s", sorted(changes))

    def _start_periodic_check(self) -> None:
        if self._scheduler is None:
            return
        if self._update_task is not None:
            self._update_task.stop()
        self._update_task = self._scheduler.add_interval_task(
            name="Content Update Check",
            func=self.check_for_content_updates,
            seconds=self.config.sync_interval,
        )

    async def _warmup_cache(self) -> None:
        strategy = self.config.preload_strategy
        if strategy == "none":
            return

        entries = [PreloadEntry(ALL_LESSONS_KEY, self._load_all_from_store, "high")]
        if strategy == "all":
            for language in self.config.preload_languages:
                entries.append(
                    PreloadEntry(
                        language_key(language),
                        lambda language=language: self._load_by_index("language", language),
                        "high",
                    )
                )

        await self._cache.warmup(entries)
        logger.debug("Warmed %d cache keys", len(entries))

    # =========================================================================
    # Reads
    # =========================================================================

    def _cache_ttl(self, shape: QueryShape) -> float:
        all_ttl, narrow_ttl = CACHE_TTLS.get(self.config.cache_strategy, CACHE_TTLS["balanced"])
        return all_ttl if shape == "all" else narrow_ttl

    async def _read_through(
        self,
        key: str,
        shape: QueryShape,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        if not self.config.enable_caching:
            self._stats.cache_misses += 1
            return await loader()

        loaded = False

        async def fallback() -> Any:
            nonlocal loaded
            loaded = True
            return await loader()

        result = await self._cache.get(key, max_age=self._cache_ttl(shape), fallback=fallback)
        if loaded:
            self._stats.cache_misses += 1
        else:
            self._stats.cache_hits += 1
        return result

    async def get_all_lessons(self) -> list[Lesson]:
        """Get the whole catalog."""
        return await self._read_through(ALL_LESSONS_KEY, "all", self._load_all_from_store)

    async def get_lessons_by_language(self, language: str) -> list[Lesson]:
        """Get every lesson in a language."""
        return await self._read_through(
            language_key(language),
            "language",
            lambda: self._load_by_index("language", language),
        )

    async def get_lessons_by_subject(self, subject: str) -> list[Lesson]:
        """Get every lesson of a subject."""
        return await self._read_through(
            subject_key(subject),
            "subject",
            lambda: self._load_by_index("subject", subject),
        )

    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        """Get one lesson, None if the id is unknown.

        Unknown ids are never cached, so a lesson saved later is found.
        """

        async def load() -> Lesson:
            lesson = await self._load_one_from_store(lesson_id)
            if lesson is None:
                raise LessonNotFoundError(lesson_id)
            return lesson

        try:
            return await self._read_through(lesson_key(lesson_id), "single", load)
        except LessonNotFoundError:
            return None

    async def _load_all_from_store(self) -> list[Lesson]:
        self._stats.db_queries += 1
        lessons = await self._store.get_all()
        self._stats.total_lessons = len(lessons)
        return lessons

    async def _load_by_index(self, dimension: Literal["language", "subject"], value: str) -> list[Lesson]:
        self._stats.db_queries += 1
        lessons = await self._store.get_all_by_index(dimension, value)
        logger.debug("Store query %s=%s: %d lessons", dimension, value, len(lessons))
        return lessons

    async def _load_one_from_store(self, lesson_id: str) -> Lesson | None:
        self._stats.db_queries += 1
        return await self._store.get(lesson_id)

    # =========================================================================
    # Writes
    # =========================================================================

    async def save_lesson(self, lesson: Lesson) -> None:
        """Write one lesson and invalidate the keys that may contain it.

        Raises:
            PersistenceError: If the store write fails.
        """
        try:
            await self._store.put(lesson)
        except Exception as e:
            raise PersistenceError(
                f"Failed to save lesson {lesson.id}", lesson_ids=[lesson.id]
            ) from e
        finally:
            self._stats.db_queries += 1

        self._invalidate_for([lesson])

    async def save_lessons(self, lessons: list[Lesson]) -> None:
        """Write several lessons in one batch and invalidate affected keys.

        Raises:
            PersistenceError: If the batch write fails; nothing is invalidated.
        """
        if not lessons:
            return

        try:
            await self._store.put_many(lessons)
        except Exception as e:
            raise PersistenceError(
                f"Failed to save {len(lessons)} lessons",
                lesson_ids=[lesson.id for lesson in lessons],
            ) from e
        finally:
            self._stats.db_queries += 1

        self._invalidate_for(lessons)

    def _invalidate_for(self, lessons: list[Lesson]) -> None:
        keys = {ALL_LESSONS_KEY}
        for lesson in lessons:
            keys.add(lesson_key(lesson.id))
            keys.add(language_key(lesson.language))
            keys.add(subject_key(lesson.subject))
        for key in keys:
            self._cache.invalidate(_exact(key))

    def clear_cache(self) -> None:
        """Drop every cached query result."""
        self._cache.clear()

    # =========================================================================
    # Catalog reloads
    # =========================================================================

    async def refresh_content(self) -> bool:
        """Reload the catalog from the manifests and repopulate the cache.

        The store is replaced only when the catalog changed (always when
        versioning is off). The cache is cleared either way and the full
        catalog is cached again straight from the store.

        Returns:
            True if the store contents were replaced.

        Raises:
            ContentError: If no manifest source is configured.
        """
        replaced = await self._load_and_store_catalog()
        self._cache.clear()

        if self.config.enable_caching:
            lessons = await self._load_all_from_store()
            self._cache.set(ALL_LESSONS_KEY, lessons, ttl=self._cache_ttl("all"))

        self._stats.last_sync = self._clock()
        return replaced

    async def check_for_content_updates(self) -> None:
        """Reload the catalog if the version check interval has passed.

        Failures are logged, never raised.
        """
        try:
            if not await self._tracker.should_check_for_updates():
                return

            logger.debug("Checking for content updates")
            if await self._load_and_store_catalog():
                self._cache.clear()
            self._stats.last_sync = self._clock()
        except Exception as e:
            logger.error("Failed to check for content updates: %s", e)

    async def _load_and_store_catalog(self) -> bool:
        if self._manifest_client is None or self._merger is None:
            raise ContentError("No manifest source configured for catalog reloads")

        preferred, fallback, failures = await self._manifest_client.fetch_all_sources()
        if failures == 2:
            logger.warning("No manifest could be loaded, keeping the stored catalog")
            return False

        catalog = self._merger.build_catalog(preferred, fallback)

        if self.config.enable_versioning:
            if not await self._tracker.has_content_changed(catalog):
                logger.debug("Catalog unchanged (%d lessons)", len(catalog))
                return False
            logger.info("Content has changed, replacing %d stored lessons", len(catalog))

        try:
            await self._store.clear()
            await self._store.put_many(catalog)
        except Exception as e:
            raise PersistenceError(
                "Failed to replace stored catalog",
                lesson_ids=[lesson.id for lesson in catalog],
            ) from e
        finally:
            self._stats.db_queries += 1

        self._stats.total_lessons = len(catalog)
        if self.config.enable_versioning:
            await self._tracker.store_version(self._tracker.create_version(catalog))
            self._stats.version_checks += 1
        return True

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> AccessLayerStats:
        """Get a snapshot of the access layer counters."""
        return AccessLayerStats(
            cache_hits=self._stats.cache_hits,
            cache_misses=self._stats.cache_misses,
            db_queries=self._stats.db_queries,
            version_checks=self._stats.version_checks,
            last_sync=self._stats.last_sync,
            total_lessons=self._stats.total_lessons,
            cache_stats=self._cache.get_stats(),
        )
