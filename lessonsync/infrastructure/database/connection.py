# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

This module provides the async engine and session handling for the SQL
lesson store. Uses SQLAlchemy 2.0 async API; SQLite via aiosqlite is the
default driver.

Example:
    from lessonsync.infrastructure.database.connection import Database

    database = Database(settings.database)
    await database.connect()

    async with database.session() as session:
        result = await session.execute(select(LessonRecord))
        records = result.scalars().all()

    await database.close()
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from lessonsync.infrastructure.database.models import Base

if TYPE_CHECKING:
    from lessonsync.core.config.settings import DatabaseSettings


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or database error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize the database error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class Database:
    """Async engine and sessionmaker for one database.

    Attributes:
        url: SQLAlchemy database URL.
        echo: Whether SQL statements are echoed.
    """

    def __init__(self, settings: "DatabaseSettings") -> None:
        """Initialize without connecting.

        Args:
            settings: Database settings containing the URL.
        """
        self.url = settings.url
        self.echo = settings.echo
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_connected(self) -> bool:
        """Check whether the engine has been created."""
        return self._engine is not None

    async def connect(self) -> None:
        """Create the engine and sessionmaker and ensure the schema exists.

        Raises:
            DatabaseError: If engine creation or schema creation fails.
        """
        if self._engine is not None:
            return

        engine_kwargs: dict = {"echo": self.echo}
        if ":memory:" in self.url:
            # One shared connection, otherwise every checkout is a new database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        try:
            self._engine = create_async_engine(self.url, **engine_kwargs)
            self._sessionmaker = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to initialize database connection", e) from e

    async def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    def get_sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        """Get the sessionmaker.

        Raises:
            DatabaseError: If the database has not been connected.
        """
        if self._sessionmaker is None:
            raise DatabaseError("Database not initialized. Call connect() first.")
        return self._sessionmaker

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Get an async session, committed on success and rolled back on error.

        Yields:
            AsyncSession for database operations.

        Raises:
            DatabaseError: If the database has not been initialized or
                if a database operation fails.
        """
        sessionmaker = self.get_sessionmaker()

        async with sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError("Database operation failed", e) from e
            except Exception:
                await session.rollback()
                raise
