# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Catalog merging across lesson sources.

The preferred manifest is the base catalog. Lessons from the fallback
manifest fill the gaps: a fallback lesson is added when no preferred lesson
covers the same subject, grade and language.

Balancing then pads every language to the size of the largest one by
cloning existing lessons. The clones are placeholders, not translations;
their ids carry a ``_dup_N`` suffix and their titles a ``(N)`` suffix so
they can be told apart, and every padding run is logged at WARNING.
"""

import logging
from collections import Counter

from lessonsync.domains.content.models import Lesson, LessonStats

logger = logging.getLogger(__name__)


class CatalogMerger:
    """Merges the preferred and fallback catalogs into one.

    Attributes:
        ensure_equal_content: Fill gaps in the preferred catalog from the fallback.
        balance_languages: Pad languages to equal lesson counts in build_catalog().
    """

    def __init__(
        self,
        ensure_equal_content: bool = True,
        balance_languages: bool = True,
    ):
        self.ensure_equal_content = ensure_equal_content
        self.balance_languages = balance_languages

    def merge_lessons(self, preferred: list[Lesson], fallback: list[Lesson]) -> list[Lesson]:
        """Merge two catalogs, preferred first.

        Args:
            preferred: Lessons of the preferred manifest.
            fallback: Lessons of the fallback manifest.

        Returns:
            The preferred lessons followed by the gap-filling fallback
            lessons, or the fallback catalog verbatim if preferred is empty.
        """
        if not preferred:
            logger.info("No preferred lessons, using %d fallback lessons", len(fallback))
            return list(fallback)

        merged = list(preferred)
        if self.ensure_equal_content:
            missing = self._find_missing_lessons(preferred, fallback)
            merged.extend(missing)
            logger.debug("Added %d gap-filling lessons from fallback", len(missing))

        logger.info(
            "Merged %d preferred and %d fallback lessons into %d",
            len(preferred),
            len(fallback),
            len(merged),
        )
        return merged

    @staticmethod
    def _find_missing_lessons(preferred: list[Lesson], fallback: list[Lesson]) -> list[Lesson]:
        covered = {(lesson.subject, lesson.grade, lesson.language) for lesson in preferred}
        return [
            lesson
            for lesson in fallback
            if (lesson.subject, lesson.grade, lesson.language) not in covered
        ]

    def ensure_equal_lesson_count(self, lessons: list[Lesson]) -> list[Lesson]:
        """Pad every language to the lesson count of the largest language.

        Lessons come back grouped by language, languages in first-seen
        order, each group in its original order followed by its clones.

        Args:
            lessons: The catalog to balance.

        Returns:
            The balanced catalog.
        """
        by_language: dict[str, list[Lesson]] = {}
        for lesson in lessons:
            by_language.setdefault(lesson.language, []).append(lesson)

        if not by_language:
            return list(lessons)

        target = max(len(group) for group in by_language.values())
        balanced: list[Lesson] = []
        for language, group in by_language.items():
            balanced.extend(group)
            needed = target - len(group)
            if needed > 0:
                balanced.extend(self._duplicate_lessons(group, needed))
                logger.warning(
                    "Padded language %s with %d placeholder lessons (%d -> %d)",
                    language,
                    needed,
                    len(group),
                    target,
                )
        return balanced

    @staticmethod
    def _duplicate_lessons(lessons: list[Lesson], count: int) -> list[Lesson]:
        clones = []
        for i in range(count):
            source = lessons[i % len(lessons)]
            n = i + 1
            clones.append(
                source.model_copy(
                    update={"id": f"{source.id}_dup_{n}", "title": f"{source.title} ({n})"},
                    deep=True,
                )
            )
        return clones

    def build_catalog(self, preferred: list[Lesson], fallback: list[Lesson]) -> list[Lesson]:
        """Merge and, if enabled, balance the two catalogs."""
        catalog = self.merge_lessons(preferred, fallback)
        if self.balance_languages:
            catalog = self.ensure_equal_lesson_count(catalog)

        stats = self.get_lesson_stats(catalog)
        logger.info(
            "Built catalog of %d lessons (by language: %s)", stats.total, stats.by_language
        )
        return catalog

    @staticmethod
    def get_lesson_stats(lessons: list[Lesson]) -> LessonStats:
        """Count lessons per language, subject and grade."""
        return LessonStats(
            total=len(lessons),
            by_language=dict(Counter(lesson.language for lesson in lessons)),
            by_subject=dict(Counter(lesson.subject for lesson in lessons)),
            by_grade=dict(Counter(lesson.grade for lesson in lessons)),
        )
