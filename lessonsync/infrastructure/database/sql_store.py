# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQL implementations of the lesson and key/value stores.

Both stores share one Database. Writes are upserts through
``session.merge`` so a put never fails on an existing id.
"""

import logging

from sqlalchemy import delete, select

from lessonsync.domains.content.models import Lesson
from lessonsync.infrastructure.database.base import IndexDimension
from lessonsync.infrastructure.database.connection import Database
from lessonsync.infrastructure.database.models import KeyValueRecord, LessonRecord

logger = logging.getLogger(__name__)


def _to_row(lesson: Lesson) -> LessonRecord:
    return LessonRecord(
        id=lesson.id,
        language=lesson.language,
        subject=lesson.subject,
        grade=lesson.grade,
        payload=lesson.to_record(),
    )


class SQLLessonStore:
    """Lesson store on an SQLAlchemy async database.

    Example:
        database = Database(settings.database)
        store = SQLLessonStore(database)
        await store.init()
        await store.put_many(lessons)
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def init(self) -> None:
        """Connect and create the schema if needed."""
        await self._db.connect()
        logger.info("SQL lesson store ready: %s", self._db.url)

    async def close(self) -> None:
        await self._db.close()

    async def get(self, lesson_id: str) -> Lesson | None:
        async with self._db.session() as session:
            row = await session.get(LessonRecord, lesson_id)
            return Lesson.model_validate(row.payload) if row is not None else None

    async def get_all(self) -> list[Lesson]:
        async with self._db.session() as session:
            result = await session.execute(select(LessonRecord).order_by(LessonRecord.id))
            return [Lesson.model_validate(row.payload) for row in result.scalars().all()]

    async def get_all_by_index(self, dimension: IndexDimension, value: str) -> list[Lesson]:
        if dimension == "language":
            column = LessonRecord.language
        elif dimension == "subject":
            column = LessonRecord.subject
        else:
            raise ValueError(f"Unknown index: {dimension}")

        async with self._db.session() as session:
            result = await session.execute(
                select(LessonRecord).where(column == value).order_by(LessonRecord.id)
            )
            return [Lesson.model_validate(row.payload) for row in result.scalars().all()]

    async def put(self, lesson: Lesson) -> None:
        async with self._db.session() as session:
            await session.merge(_to_row(lesson))

    async def put_many(self, lessons: list[Lesson]) -> None:
        """Upsert all lessons in a single transaction."""
        async with self._db.session() as session:
            for lesson in lessons:
                await session.merge(_to_row(lesson))

    async def clear(self) -> None:
        async with self._db.session() as session:
            await session.execute(delete(LessonRecord))


class SQLKeyValueStore:
    """Key/value store on the ``key_values`` table.

    May share its Database with a SQLLessonStore; connect and close are
    idempotent, so either store can be opened or closed first.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def init(self) -> None:
        """Connect and create the schema if needed."""
        await self._db.connect()

    async def close(self) -> None:
        await self._db.close()

    async def get(self, key: str) -> str | None:
        async with self._db.session() as session:
            row = await session.get(KeyValueRecord, key)
            return row.value if row is not None else None

    async def set(self, key: str, value: str) -> None:
        async with self._db.session() as session:
            await session.merge(KeyValueRecord(key=key, value=value))
