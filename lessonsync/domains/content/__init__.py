# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content domain services.

This package provides the lesson catalog services:
- VersionTracker: Catalog fingerprints, deltas and version history
- CatalogMerger: Merge of the preferred and fallback catalogs
- LessonAccessLayer: Cached lesson reads and invalidating writes
- SyncOrchestrator: End-to-end sync with the remote manifests
- ContentImporter: Import from NCERT, DIKSHA and ePathshala content

Lessons are pulled from remote manifests and kept in a local store, so the
catalog stays readable while the content host is unreachable.
"""

from lessonsync.domains.content.access import AccessLayerStats, LessonAccessLayer
from lessonsync.domains.content.exceptions import (
    ContentError,
    LessonNotFoundError,
    LessonValidationError,
    PersistenceError,
    SyncAlreadyInProgressError,
    SyncFailedError,
    UnsupportedSourceError,
)
from lessonsync.domains.content.importer import ContentImporter
from lessonsync.domains.content.merger import CatalogMerger
from lessonsync.domains.content.models import (
    ContentDelta,
    ContentFilters,
    ContentSource,
    ContentSyncStatus,
    ContentVersion,
    Lesson,
    LessonStats,
    VersionHistory,
)
from lessonsync.domains.content.sync_service import (
    SyncChanges,
    SyncOrchestrator,
    SyncPriority,
    SyncResult,
    SyncState,
    SyncStatus,
)
from lessonsync.domains.content.validation import validate_content, validate_lessons
from lessonsync.domains.content.versioning import VersionTracker

__all__ = [
    # Services
    "CatalogMerger",
    "ContentImporter",
    "LessonAccessLayer",
    "SyncOrchestrator",
    "VersionTracker",
    # Records
    "AccessLayerStats",
    "ContentDelta",
    "ContentFilters",
    "ContentSource",
    "ContentSyncStatus",
    "ContentVersion",
    "Lesson",
    "LessonStats",
    "SyncChanges",
    "SyncPriority",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "VersionHistory",
    # Validation
    "validate_content",
    "validate_lessons",
    # Errors
    "ContentError",
    "LessonNotFoundError",
    "LessonValidationError",
    "PersistenceError",
    "SyncAlreadyInProgressError",
    "SyncFailedError",
    "UnsupportedSourceError",
]
