# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the content domain.

This module defines the exception hierarchy for catalog operations:
- ContentError: Base exception for all content-related errors
- SyncAlreadyInProgressError: A sync call hit the re-entrancy gate
- SyncFailedError: A sync call failed after exhausting its attempts
- PersistenceError: Writing lessons to the store failed
- LessonValidationError: A lesson record is malformed
- LessonNotFoundError: No lesson with the requested id
- UnsupportedSourceError: Import requested from an unknown content source
"""


class ContentError(Exception):
    """Base exception for all content-related errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        """Initialize content error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class SyncAlreadyInProgressError(ContentError):
    """A sync was requested while another one is running.

    Raised immediately and never retried; callers that must run anyway
    pass ``force=True``.
    """

    def __init__(self, message: str = "Sync already in progress", details: dict | None = None):
        """Initialize the error with a default message."""
        super().__init__(message, details)


class SyncFailedError(ContentError):
    """A sync call failed after all of its attempts.

    Attributes:
        attempts: Number of attempts made.
        last_error: The error of the final attempt.
    """

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        last_error: Exception | None = None,
        details: dict | None = None,
    ):
        """Initialize sync failure.

        Args:
            message: Human-readable error description.
            attempts: Number of attempts made.
            last_error: The error of the final attempt.
            details: Optional dictionary with additional error context.
        """
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return string representation with the attempt count."""
        base = self.message
        if self.attempts:
            base = f"{base} after {self.attempts} attempt(s)"
        if self.last_error is not None:
            base = f"{base}: {self.last_error}"
        return base


class PersistenceError(ContentError):
    """Writing to the lesson store failed.

    Attributes:
        lesson_ids: Ids of the lessons that were being written.
    """

    def __init__(
        self,
        message: str,
        lesson_ids: list[str] | None = None,
        details: dict | None = None,
    ):
        """Initialize persistence error.

        Args:
            message: Human-readable error description.
            lesson_ids: Ids of the lessons that were being written.
            details: Optional dictionary with additional error context.
        """
        self.lesson_ids = lesson_ids or []
        super().__init__(message, details)


class LessonValidationError(ContentError):
    """A lesson record does not match the lesson schema.

    Attributes:
        index: Position of the record in its manifest, if known.
        validation_errors: Individual field errors.
    """

    def __init__(
        self,
        message: str,
        index: int | None = None,
        validation_errors: list[str] | None = None,
        details: dict | None = None,
    ):
        """Initialize validation error.

        Args:
            message: Human-readable error description.
            index: Position of the record in its manifest.
            validation_errors: Individual field errors.
            details: Optional dictionary with additional error context.
        """
        self.index = index
        self.validation_errors = validation_errors or []
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return string representation with validation errors."""
        base = self.message
        if self.index is not None:
            base = f"[item {self.index}] {base}"
        if self.validation_errors:
            base = f"{base} - Errors: {'; '.join(self.validation_errors)}"
        return base


class LessonNotFoundError(ContentError):
    """No lesson exists with the requested id.

    Attributes:
        lesson_id: The id that was looked up.
    """

    def __init__(self, lesson_id: str):
        """Initialize not found error.

        Args:
            lesson_id: The id that was looked up.
        """
        self.lesson_id = lesson_id
        super().__init__(f"Lesson {lesson_id} not found", {"lesson_id": lesson_id})


class UnsupportedSourceError(ContentError):
    """Import was requested from a source without a fetcher."""

    pass
