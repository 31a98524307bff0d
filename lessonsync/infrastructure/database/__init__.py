# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lesson and key/value stores.

Provides:
- LessonStore, KeyValueStore: Store protocols used by the content engine
- InMemoryLessonStore, InMemoryKeyValueStore: Dictionary-backed stores
- SQLLessonStore, SQLKeyValueStore: SQLAlchemy async stores
- Database, DatabaseError: Engine and session management
"""

from lessonsync.infrastructure.database.base import (
    IndexDimension,
    KeyValueStore,
    LessonStore,
)
from lessonsync.infrastructure.database.connection import Database, DatabaseError
from lessonsync.infrastructure.database.memory import (
    InMemoryKeyValueStore,
    InMemoryLessonStore,
)
from lessonsync.infrastructure.database.sql_store import SQLKeyValueStore, SQLLessonStore

__all__ = [
    "Database",
    "DatabaseError",
    "IndexDimension",
    "InMemoryKeyValueStore",
    "InMemoryLessonStore",
    "KeyValueStore",
    "LessonStore",
    "SQLKeyValueStore",
    "SQLLessonStore",
]
