# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from lessonsync.core.config.settings import (
    DatabaseSettings,
    ManifestSettings,
    Settings,
)
from lessonsync.domains.content.models import Lesson
from lessonsync.infrastructure.database.memory import (
    InMemoryKeyValueStore,
    InMemoryLessonStore,
)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (in-process stack)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Clocks
# =============================================================================


class FakeMonotonic:
    """Manually advanced monotonic clock in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUtcClock:
    """Manually advanced UTC wall clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 5, 14, 7, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def monotonic() -> FakeMonotonic:
    """Provide a fake monotonic clock for cache tests."""
    return FakeMonotonic()


@pytest.fixture
def utc_clock() -> FakeUtcClock:
    """Provide a fake UTC clock."""
    return FakeUtcClock()


# =============================================================================
# Lesson Fixtures
# =============================================================================


def build_lesson(lesson_id: str = "lesson_1", **overrides: Any) -> Lesson:
    """Build a valid lesson with sensible defaults."""
    data: dict[str, Any] = {
        "id": lesson_id,
        "title": f"Title of {lesson_id}",
        "language": "en",
        "subject": "Science",
        "grade": 6,
        "text_content": f"Text of {lesson_id}",
        "content": [{"id": "content_1", "type": "text", "content": f"Text of {lesson_id}"}],
        "quiz": [],
    }
    data.update(overrides)
    return Lesson.model_validate(data)


def lesson_record(lesson_id: str = "lesson_1", **overrides: Any) -> dict[str, Any]:
    """Build a raw manifest record."""
    return build_lesson(lesson_id, **overrides).to_record()


@pytest.fixture
def make_lesson() -> Callable[..., Lesson]:
    """Provide the lesson factory."""
    return build_lesson


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    """Provide the raw manifest record factory."""
    return lesson_record


@pytest.fixture
def sample_lessons() -> list[Lesson]:
    """Provide a small bilingual catalog."""
    return [
        build_lesson("sci_en_1", language="en", subject="Science", grade=6),
        build_lesson("math_en_1", language="en", subject="Mathematics", grade=7),
        build_lesson("sci_hi_1", language="hi", subject="Science", grade=6, title="विज्ञान"),
    ]


# =============================================================================
# Store and Settings Fixtures
# =============================================================================


@pytest.fixture
def lesson_store() -> InMemoryLessonStore:
    """Provide an empty in-memory lesson store."""
    return InMemoryLessonStore()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    """Provide an empty in-memory key/value store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def test_settings() -> Settings:
    """Provide settings for an in-memory engine against a test host."""
    return Settings(
        environment="development",
        database=DatabaseSettings(backend="memory"),
        manifest=ManifestSettings(base_url="http://content.test"),
    )
