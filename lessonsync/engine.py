# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Wiring of the content engine.

Builds every component from Settings and injects the collaborators
explicitly; nothing in lessonsync is a module-level singleton.

Example:
    from lessonsync.engine import open_content_engine

    async with open_content_engine() as engine:
        lessons = await engine.access.get_lessons_by_language("en")
        result = await engine.sync.force_sync()
"""

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from lessonsync.core.config.settings import Settings, get_settings
from lessonsync.domains.content.access import LessonAccessLayer
from lessonsync.domains.content.importer import ContentImporter, SourceFetcher
from lessonsync.domains.content.merger import CatalogMerger
from lessonsync.domains.content.models import ContentSource
from lessonsync.domains.content.sync_service import SyncOrchestrator
from lessonsync.domains.content.versioning import VersionTracker
from lessonsync.infrastructure.background.scheduler import ScheduledTask, TaskScheduler
from lessonsync.infrastructure.cache.content_cache import CacheStore
from lessonsync.infrastructure.database import (
    Database,
    InMemoryKeyValueStore,
    InMemoryLessonStore,
    KeyValueStore,
    LessonStore,
    SQLKeyValueStore,
    SQLLessonStore,
)
from lessonsync.services.manifest.client import ManifestClient
from lessonsync.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class ContentEngine:
    """All components of one content engine instance."""

    settings: Settings
    store: LessonStore
    kv_store: KeyValueStore
    cache: CacheStore
    version_tracker: VersionTracker
    merger: CatalogMerger
    manifest_client: ManifestClient
    scheduler: TaskScheduler
    access: LessonAccessLayer
    sync: SyncOrchestrator
    importer: ContentImporter
    import_client: ManifestClient
    background_task: ScheduledTask | None = None

    async def start(self, background_sync: bool = False) -> None:
        """Start the scheduler and initialize the access layer.

        Args:
            background_sync: Also start the periodic background sync.
        """
        # Version records are read while the access layer initializes
        await self.kv_store.init()
        await self.scheduler.start()
        await self.access.initialize()
        if background_sync and self.background_task is None:
            self.background_task = self.sync.start_background_sync()
        logger.info(
            "content_engine_started",
            environment=self.settings.environment,
            background_sync=self.background_task is not None,
        )

    async def close(self) -> None:
        """Stop periodic work and release every resource."""
        if self.background_task is not None:
            self.background_task.stop()
            self.background_task = None
        await self.access.close()
        await self.scheduler.stop()
        await self.manifest_client.close()
        await self.import_client.close()
        await self.store.close()
        await self.kv_store.close()
        logger.info("content_engine_closed")


def _build_stores(
    settings: Settings,
    store: LessonStore | None,
    kv_store: KeyValueStore | None,
) -> tuple[LessonStore, KeyValueStore]:
    """Build the configured stores that were not passed in."""
    if settings.database.backend == "memory":
        if store is None:
            store = InMemoryLessonStore()
        if kv_store is None:
            kv_store = InMemoryKeyValueStore()
        return store, kv_store

    database = Database(settings.database)
    if store is None:
        store = SQLLessonStore(database)
    if kv_store is None:
        kv_store = SQLKeyValueStore(database)
    return store, kv_store


def build_content_engine(
    settings: Settings | None = None,
    *,
    store: LessonStore | None = None,
    kv_store: KeyValueStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    fetchers: Mapping[ContentSource, SourceFetcher] | None = None,
) -> ContentEngine:
    """Build a content engine from settings.

    Args:
        settings: Settings to use (cached settings if None).
        store: Lesson store overriding the configured backend.
        kv_store: Key/value store overriding the configured backend.
        transport: HTTP transport for manifest and import requests.
        fetchers: Content importer fetchers per source.

    Returns:
        A ContentEngine, not yet started.
    """
    settings = settings or get_settings()

    store, kv_store = _build_stores(settings, store, kv_store)

    cache = CacheStore(
        max_entries=settings.cache.max_entries,
        default_ttl=settings.cache.default_ttl,
        long_ttl=settings.cache.long_ttl,
    )
    tracker = VersionTracker(
        kv_store,
        check_interval=settings.versioning.check_interval,
        history_limit=settings.versioning.history_limit,
        version_key=settings.versioning.version_key,
        history_key=settings.versioning.history_key,
    )
    merger = CatalogMerger(
        ensure_equal_content=settings.merger.ensure_equal_content,
        balance_languages=settings.merger.balance_languages,
    )
    manifest_client = ManifestClient(settings.manifest, transport=transport)
    import_client = ManifestClient(
        settings.manifest.model_copy(update={"timeout": settings.importer.timeout}),
        transport=transport,
    )
    scheduler = TaskScheduler()

    access = LessonAccessLayer(
        store,
        cache,
        tracker,
        settings.access,
        merger=merger,
        manifest_client=manifest_client,
        scheduler=scheduler,
    )
    sync = SyncOrchestrator(
        access,
        tracker,
        cache,
        manifest_client,
        kv_store,
        merger,
        settings.sync,
        scheduler=scheduler,
        last_sync_key=settings.versioning.last_sync_key,
    )
    importer = ContentImporter(
        access,
        fetchers=fetchers,
        source_urls=settings.importer.source_urls,
        http_client=import_client,
    )

    return ContentEngine(
        settings=settings,
        store=store,
        kv_store=kv_store,
        cache=cache,
        version_tracker=tracker,
        merger=merger,
        manifest_client=manifest_client,
        scheduler=scheduler,
        access=access,
        sync=sync,
        importer=importer,
        import_client=import_client,
    )


@asynccontextmanager
async def open_content_engine(
    settings: Settings | None = None,
    *,
    background_sync: bool = False,
    **overrides,
) -> AsyncIterator[ContentEngine]:
    """Build, start and finally close a content engine.

    Configures logging from the settings before anything else runs.

    Args:
        settings: Settings to use (cached settings if None).
        background_sync: Start the periodic background sync.
        **overrides: Passed to build_content_engine().

    Yields:
        The started ContentEngine.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    engine = build_content_engine(settings, **overrides)
    try:
        await engine.start(background_sync=background_sync)
        yield engine
    finally:
        await engine.close()
