# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Store interfaces used by the content engine.

The engine treats the durable store as an opaque collaborator: a lesson
store with id lookups and language/subject indexes, and a string key/value
store for version records. There is no delete-by-id; catalog
removals are only reported.
"""

from typing import Literal, Protocol, runtime_checkable

from lessonsync.domains.content.models import Lesson

IndexDimension = Literal["language", "subject"]


@runtime_checkable
class LessonStore(Protocol):
    """Persistent lesson store."""

    async def init(self) -> None:
        """Prepare the store for use (create schema, open connections)."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...

    async def get(self, lesson_id: str) -> Lesson | None:
        """Get one lesson by id."""
        ...

    async def get_all(self) -> list[Lesson]:
        """Get every lesson, ordered by id."""
        ...

    async def get_all_by_index(self, dimension: IndexDimension, value: str) -> list[Lesson]:
        """Get every lesson whose language or subject equals value."""
        ...

    async def put(self, lesson: Lesson) -> None:
        """Insert or replace one lesson."""
        ...

    async def put_many(self, lessons: list[Lesson]) -> None:
        """Insert or replace several lessons in one transaction."""
        ...

    async def clear(self) -> None:
        """Remove every lesson."""
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """String key to string value store."""

    async def init(self) -> None:
        """Prepare the store for use."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...

    async def get(self, key: str) -> str | None:
        """Get the value of a key, None if absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Set the value of a key."""
        ...
