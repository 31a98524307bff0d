# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content versioning and change detection.

A catalog snapshot is identified by a fingerprint over the fields that
matter for change detection. The fingerprint is independent of lesson
order, so reordering a manifest never counts as a change.

Version records and the version history are kept as JSON strings in a
key/value store.

Example:
    tracker = VersionTracker(kv_store)

    if await tracker.has_content_changed(lessons):
        await tracker.store_version(tracker.create_version(lessons))
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from lessonsync.domains.content.models import (
    ContentDelta,
    ContentVersion,
    Lesson,
    VersionHistory,
)
from lessonsync.utils.datetime import format_iso, format_version_number, utc_now

if TYPE_CHECKING:
    from lessonsync.infrastructure.database.base import KeyValueStore

logger = logging.getLogger(__name__)

_HASH_MODULUS = 2147483647
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def hash_string(text: str) -> str:
    """Rolling hash of a string, rendered in base 36.

    Hashes UTF-16 code units so the same text gives the same value on every
    platform that publishes fingerprints.

    Args:
        text: Text to hash.

    Returns:
        Lowercase base-36 hash, "0" for the empty string.
    """
    encoded = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + unit) % _HASH_MODULUS
    return _to_base36(abs(h))


def _utf16_key(text: str) -> bytes:
    # Code-unit order, not code-point order
    return text.encode("utf-16-be")


def _distinct(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class VersionTracker:
    """Fingerprints catalogs and tracks stored content versions.

    Attributes:
        check_interval: Seconds between update checks.
        history_limit: Number of versions kept in history.
    """

    def __init__(
        self,
        kv_store: "KeyValueStore",
        check_interval: float = 300.0,
        history_limit: int = 10,
        version_key: str = "lessonsync-content-version",
        history_key: str = "lessonsync-version-history",
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the tracker.

        Args:
            kv_store: Store for version records.
            check_interval: Seconds between update checks.
            history_limit: Number of versions kept in history.
            version_key: Key of the current version record.
            history_key: Key of the version history record.
            clock: Source of the current UTC time.
        """
        self._kv = kv_store
        self.check_interval = check_interval
        self.history_limit = history_limit
        self._version_key = version_key
        self._history_key = history_key
        self._clock = clock

    # =========================================================================
    # Fingerprints and versions
    # =========================================================================

    def fingerprint(self, lessons: list[Lesson]) -> str:
        """Compute the order-independent fingerprint of a catalog.

        Args:
            lessons: The catalog.

        Returns:
            Base-36 fingerprint.
        """
        parts = sorted(
            (
                f"{lesson.id}:{lesson.title}:{lesson.language}:"
                f"{lesson.subject}:{lesson.text_content}"
                for lesson in lessons
            ),
            key=_utf16_key,
        )
        return hash_string("|".join(parts))

    def create_version(self, lessons: list[Lesson]) -> ContentVersion:
        """Create version metadata for a catalog.

        Args:
            lessons: The catalog.

        Returns:
            A new ContentVersion stamped with the current time.
        """
        created = self._clock()
        checksum = self.fingerprint(lessons)
        return ContentVersion(
            version=format_version_number(created),
            timestamp=created,
            checksum=checksum,
            etag=f'"{checksum}"',
            last_modified=format_iso(created),
            total_lessons=len(lessons),
            languages=_distinct([lesson.language for lesson in lessons]),
            subjects=_distinct([lesson.subject for lesson in lessons]),
            metadata={
                "generated_at": format_iso(created),
                "source": "lessons.json",
                "compression": "gzip",
            },
        )

    async def has_content_changed(self, lessons: list[Lesson]) -> bool:
        """Check whether a catalog differs from the stored version.

        Returns:
            True if nothing is stored or the fingerprints differ.
        """
        stored = await self.get_stored_version()
        if stored is None:
            return True
        return self.fingerprint(lessons) != stored.checksum

    # =========================================================================
    # Stored records
    # =========================================================================

    async def get_stored_version(self) -> ContentVersion | None:
        """Get the current stored version, None if absent or unreadable."""
        try:
            raw = await self._kv.get(self._version_key)
            if not raw:
                return None
            return ContentVersion.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Stored content version is unreadable: %s", e)
        except Exception as e:
            logger.warning("Failed to read content version: %s", e)
        return None

    async def store_version(self, version: ContentVersion) -> None:
        """Record a version as current and prepend it to the history.

        Store failures are logged and not raised.
        """
        try:
            await self._kv.set(self._version_key, version.model_dump_json())

            history = await self.get_version_history()
            history.versions.insert(0, version)
            del history.versions[self.history_limit:]
            history.current = version.version
            history.last_check = self._clock()

            await self._kv.set(self._history_key, history.model_dump_json())
        except Exception as e:
            logger.warning("Failed to store content version %s: %s", version.version, e)
            return

        logger.info(
            "Stored content version %s (%d lessons, checksum %s)",
            version.version,
            version.total_lessons,
            version.checksum,
        )

    async def get_version_history(self) -> VersionHistory:
        """Get the version history, or an empty one if absent or unreadable."""
        try:
            raw = await self._kv.get(self._history_key)
            if raw:
                return VersionHistory.model_validate_json(raw)
        except Exception as e:
            logger.warning("Failed to read version history: %s", e)
        return VersionHistory()

    async def should_check_for_updates(self) -> bool:
        """Check whether the check interval has passed since the last check."""
        history = await self.get_version_history()
        if history.last_check is None:
            return True
        elapsed = (self._clock() - history.last_check).total_seconds()
        return elapsed > self.check_interval

    # =========================================================================
    # Deltas
    # =========================================================================

    def generate_delta(self, old: list[Lesson], new: list[Lesson]) -> ContentDelta:
        """Partition the difference between two catalogs.

        Ids are unique within each catalog; on duplicates the last one wins.

        Args:
            old: The catalog currently stored.
            new: The incoming catalog.

        Returns:
            ContentDelta with added and updated in new-catalog order and
            removed in old-catalog order.
        """
        old_by_id = {lesson.id: lesson for lesson in old}
        new_by_id = {lesson.id: lesson for lesson in new}

        added: list[Lesson] = []
        updated: list[Lesson] = []
        for lesson_id, lesson in new_by_id.items():
            previous = old_by_id.get(lesson_id)
            if previous is None:
                added.append(lesson)
            elif self.lesson_changed(previous, lesson):
                updated.append(lesson)

        removed = [lesson_id for lesson_id in old_by_id if lesson_id not in new_by_id]

        created = self._clock()
        return ContentDelta(
            added=added,
            updated=updated,
            removed=removed,
            version=format_version_number(created),
            timestamp=created,
        )

    @staticmethod
    def lesson_changed(old: Lesson, new: Lesson) -> bool:
        """Compare two versions of a lesson on the change-relevant fields."""
        return (
            old.title != new.title
            or old.text_content != new.text_content
            or old.language != new.language
            or old.subject != new.subject
            or _quiz_json(old) != _quiz_json(new)
        )


def _quiz_json(lesson: Lesson) -> str:
    return json.dumps(
        [question.model_dump(mode="json", by_alias=True, exclude_none=True) for question in lesson.quiz]
    )
