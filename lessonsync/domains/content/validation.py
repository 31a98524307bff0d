# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Validation of raw lesson records.

Manifests are validated record by record: a malformed record is logged and
skipped, it never fails the whole manifest.
"""

import logging
from typing import Any

from pydantic import ValidationError

from lessonsync.domains.content.exceptions import LessonValidationError
from lessonsync.domains.content.models import Lesson

logger = logging.getLogger(__name__)


def parse_lesson(raw: Any, index: int | None = None) -> Lesson:
    """Parse one raw record into a Lesson.

    Args:
        raw: Decoded JSON value.
        index: Position of the record in its manifest.

    Returns:
        The parsed lesson.

    Raises:
        LessonValidationError: If the record is not a valid lesson.
    """
    if not isinstance(raw, dict):
        raise LessonValidationError("Record is not an object", index=index)

    try:
        return Lesson.model_validate(raw)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise LessonValidationError(
            "Invalid lesson record",
            index=index,
            validation_errors=errors,
            details={"id": raw.get("id")},
        ) from e


def validate_lessons(data: Any) -> list[Lesson]:
    """Validate a decoded manifest and keep only the valid lessons.

    Args:
        data: Decoded JSON manifest, expected to be a list of records.

    Returns:
        Valid lessons in manifest order; empty if data is not a list.
    """
    if not isinstance(data, list):
        logger.error("Lesson validation failed: data is not an array")
        return []

    lessons: list[Lesson] = []
    for index, item in enumerate(data):
        try:
            lessons.append(parse_lesson(item, index))
        except LessonValidationError as e:
            logger.warning("Skipping invalid lesson: %s", e)

    if len(lessons) != len(data):
        logger.info("Validated %d of %d lesson records", len(lessons), len(data))
    return lessons


def validate_content(lesson: Lesson) -> bool:
    """Check that a lesson is complete enough to be served.

    A lesson needs an id, a title and at least one content block; every
    content block needs an id, a type and content, and every quiz question
    needs an id, a question and an answer.

    Args:
        lesson: The lesson to check.

    Returns:
        True if the lesson is complete.
    """
    if not lesson.id or not lesson.title or not lesson.content:
        return False

    for block in lesson.content:
        if not block.id or not block.type or not block.content:
            return False

    for question in lesson.quiz:
        if not question.id or not question.question or not question.answer:
            return False

    return True
