# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory store implementations.

Lessons are kept as serialized records so callers never share mutable
objects with the store, matching the copy semantics of a real database.
"""

from lessonsync.domains.content.models import Lesson
from lessonsync.infrastructure.database.base import IndexDimension


class InMemoryLessonStore:
    """Lesson store backed by a dictionary."""

    def __init__(self) -> None:
        self._records: dict[str, dict] = {}

    async def init(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get(self, lesson_id: str) -> Lesson | None:
        record = self._records.get(lesson_id)
        return Lesson.model_validate(record) if record is not None else None

    async def get_all(self) -> list[Lesson]:
        return [Lesson.model_validate(self._records[key]) for key in sorted(self._records)]

    async def get_all_by_index(self, dimension: IndexDimension, value: str) -> list[Lesson]:
        if dimension not in ("language", "subject"):
            raise ValueError(f"Unknown index: {dimension}")
        return [
            Lesson.model_validate(self._records[key])
            for key in sorted(self._records)
            if self._records[key].get(dimension) == value
        ]

    async def put(self, lesson: Lesson) -> None:
        self._records[lesson.id] = lesson.to_record()

    async def put_many(self, lessons: list[Lesson]) -> None:
        records = {lesson.id: lesson.to_record() for lesson in lessons}
        self._records.update(records)

    async def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


class InMemoryKeyValueStore:
    """Key/value store backed by a dictionary."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def init(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value
