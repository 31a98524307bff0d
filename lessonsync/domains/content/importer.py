# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Import of lessons from external content sources.

Chapters published by NCERT, DIKSHA and ePathshala are converted into
lessons: the chapter text becomes a text block, images become image blocks
and exercises become quiz questions. Duration, difficulty, tags, learning
objectives and keywords are derived from the text.

A chapter that fails to convert or save is counted and skipped; the import
carries on with the next one.

Example:
    importer = ContentImporter(access_layer, fetchers={ContentSource.NCERT: fetch_ncert})
    status = await importer.sync_from_source(ContentSource.NCERT)
    print(status.synced_lessons, status.failed_syncs)
"""

import logging
import math
import re
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from lessonsync.domains.content.exceptions import (
    ContentError,
    LessonNotFoundError,
    UnsupportedSourceError,
)
from lessonsync.domains.content.models import (
    Accessibility,
    ContentFilters,
    ContentSource,
    ContentSyncStatus,
    ContentType,
    DifficultyLevel,
    Lesson,
    LessonContent,
    QuestionType,
    QuizQuestion,
    SourceContent,
    SourceExercise,
)
from lessonsync.domains.content.validation import validate_content
from lessonsync.utils.datetime import format_iso, utc_now
from lessonsync.utils.logging import log_context

if TYPE_CHECKING:
    from lessonsync.domains.content.access import LessonAccessLayer
    from lessonsync.services.manifest.client import ManifestClient

logger = logging.getLogger(__name__)

SourceFetcher = Callable[[], Awaitable[list[Any]]]

SUPPORTED_SOURCES = (ContentSource.NCERT, ContentSource.DIKSHA, ContentSource.EPATHSHALA)

WORDS_PER_MINUTE = 200
MINUTES_PER_QUESTION = 2
MAX_LEARNING_OBJECTIVES = 3
MAX_KEYWORDS = 10

KNOWN_SUBJECTS = frozenset(
    {
        "Science",
        "Mathematics",
        "Civics",
        "History",
        "Geography",
        "Language",
        "Physics",
        "Chemistry",
        "Biology",
        "Economics",
        "Computer Science",
        "Environmental Studies",
    }
)
DEFAULT_SUBJECT = "Science"

EXERCISE_TYPES = {
    "multiple_choice": QuestionType.MULTIPLE_CHOICE,
    "short_answer": QuestionType.SHORT_ANSWER,
    "long_answer": QuestionType.ESSAY,
    "fill_blank": QuestionType.FILL_BLANK,
}

DIFFICULTY_SCORES = {
    DifficultyLevel.BEGINNER.value: 1,
    DifficultyLevel.INTERMEDIATE.value: 2,
    DifficultyLevel.ADVANCED.value: 3,
}

OBJECTIVE_MARKERS = ("learn", "understand", "know")
DISTRACTORS = ["Option A", "Option B", "Option C"]


class ContentImporter:
    """Imports external source content into the lesson catalog.

    Sources are fetched through an injected coroutine function per source,
    or from a JSON endpoint configured per source name.
    """

    def __init__(
        self,
        access_layer: "LessonAccessLayer",
        fetchers: Mapping[ContentSource, SourceFetcher] | None = None,
        source_urls: Mapping[str, str] | None = None,
        http_client: "ManifestClient | None" = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the importer.

        Args:
            access_layer: Lesson reads and writes.
            fetchers: Coroutine function per source returning raw chapters.
            source_urls: JSON endpoint per source name, used without a fetcher.
            http_client: Client for the JSON endpoints.
            clock: Source of the current UTC time.
        """
        self._access = access_layer
        self._fetchers = dict(fetchers or {})
        self._source_urls = dict(source_urls or {})
        self._http = http_client
        self._clock = clock

    # =========================================================================
    # Import
    # =========================================================================

    async def sync_from_source(self, source: ContentSource | str) -> ContentSyncStatus:
        """Fetch, convert and save all chapters of a source.

        Args:
            source: The content source.

        Returns:
            Counts of fetched, saved and failed chapters.

        Raises:
            UnsupportedSourceError: If the source cannot be imported from.
            ManifestError: If the source endpoint cannot be read.
        """
        try:
            source = ContentSource(source)
        except ValueError as e:
            raise UnsupportedSourceError(f"Unsupported content source: {source}") from e
        if source not in SUPPORTED_SOURCES:
            raise UnsupportedSourceError(f"Unsupported content source: {source.value}")

        with log_context(import_source=source.value):
            return await self._import_items(source)

    async def _import_items(self, source: ContentSource) -> ContentSyncStatus:
        status = ContentSyncStatus(source=source)
        items = await self._fetch(source)
        status.total_lessons = len(items)

        for index, item in enumerate(items):
            item_id = item.get("id", index) if isinstance(item, dict) else getattr(item, "id", index)
            try:
                chapter = item if isinstance(item, SourceContent) else SourceContent.model_validate(item)
                lesson = self.convert_source_content(chapter, source)
                await self._access.save_lesson(lesson)
            except (ValueError, ContentError) as e:
                logger.error("Failed to import lesson %s from %s: %s", item_id, source.value, e)
                status.failed_syncs += 1
            else:
                status.synced_lessons += 1

        status.last_sync_date = format_iso(self._clock())
        logger.info(
            "Imported %d of %d lessons from %s (%d failed)",
            status.synced_lessons,
            status.total_lessons,
            source.value,
            status.failed_syncs,
        )
        return status

    async def _fetch(self, source: ContentSource) -> list[Any]:
        fetcher = self._fetchers.get(source)
        if fetcher is not None:
            return list(await fetcher())

        url = self._source_urls.get(source.value)
        if url and self._http is not None:
            return await self._http.fetch_json_array(url)

        logger.warning("No fetcher or endpoint configured for %s", source.value)
        return []

    # =========================================================================
    # Conversion
    # =========================================================================

    def convert_source_content(
        self,
        chapter: SourceContent,
        source: ContentSource = ContentSource.NCERT,
    ) -> Lesson:
        """Convert one source chapter into a lesson.

        Args:
            chapter: The chapter as published by the source.
            source: The source it was published by.

        Returns:
            The converted lesson, in English.
        """
        blocks = [
            LessonContent(
                id="content_1",
                type=ContentType.TEXT.value,
                content=chapter.content,
                duration=estimate_reading_time(chapter.content),
            )
        ]
        for i, image_url in enumerate(chapter.images or []):
            blocks.append(
                LessonContent(
                    id=f"image_{i + 1}",
                    type=ContentType.IMAGE.value,
                    content=f"Educational diagram {i + 1}",
                    media_url=image_url,
                )
            )

        quiz = [self._convert_exercise(exercise, chapter.title) for exercise in chapter.exercises or []]

        return Lesson(
            id=chapter.id,
            title=chapter.title,
            description=f"{source.value} {chapter.subject} - {chapter.chapter}",
            language="en",
            subject=chapter.subject if chapter.subject in KNOWN_SUBJECTS else DEFAULT_SUBJECT,
            grade=chapter.grade,
            order=1,
            content=blocks,
            text_content=chapter.content,
            quiz=quiz,
            duration=estimate_lesson_duration(chapter.content, len(quiz)),
            difficulty=assess_difficulty(chapter.content, quiz).value,
            source=source.value,
            source_url=chapter.source_url,
            last_updated=chapter.last_updated,
            version="1.0.0",
            tags=generate_tags(chapter, source),
            learning_objectives=extract_learning_objectives(chapter.content),
            keywords=extract_keywords(chapter.content),
            accessibility=Accessibility(
                has_audio=False,
                has_video=False,
                has_transcript=True,
                has_sign_language=False,
                has_braille=False,
            ),
        )

    @staticmethod
    def _convert_exercise(exercise: SourceExercise, title: str) -> QuizQuestion:
        answer = exercise.answer or ""
        is_multiple_choice = exercise.type == QuestionType.MULTIPLE_CHOICE.value
        return QuizQuestion(
            id=f"quiz_{exercise.id}",
            question=exercise.question,
            question_type=EXERCISE_TYPES.get(exercise.type, QuestionType.MULTIPLE_CHOICE).value,
            options=([answer] + DISTRACTORS)[:4] if is_multiple_choice else None,
            answer=answer,
            explanation=f"This question tests your understanding of {title}",
            difficulty=exercise.difficulty.value,
            points=DIFFICULTY_SCORES[exercise.difficulty.value],
            hints=exercise.hints,
        )

    # =========================================================================
    # Catalog maintenance
    # =========================================================================

    @staticmethod
    def validate_content(lesson: Lesson) -> bool:
        """Check that a lesson is complete enough to be served."""
        return validate_content(lesson)

    async def search_content(self, query: str, filters: ContentFilters | None = None) -> list[Lesson]:
        """Search the catalog by text and filters.

        The query matches title, text content and tags, case-insensitively.
        An empty query matches everything.

        Args:
            query: Search text.
            filters: Optional filters; unset filters match everything.

        Returns:
            Matching lessons in catalog order.
        """
        filters = filters or ContentFilters()
        needle = query.lower()
        lessons = await self._access.get_all_lessons()
        return [
            lesson
            for lesson in lessons
            if _matches_query(lesson, needle) and _matches_filters(lesson, filters)
        ]

    async def update_content_metadata(self, lesson_id: str, **fields: Any) -> Lesson:
        """Change fields of a stored lesson and save it.

        Args:
            lesson_id: Id of the lesson.
            **fields: Lesson fields to change.

        Returns:
            The saved lesson.

        Raises:
            LessonNotFoundError: If no lesson has this id.
            ValueError: If the changed lesson is not valid.
        """
        lesson = await self._access.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(lesson_id)

        updated = Lesson.model_validate({**lesson.model_dump(), **fields})
        await self._access.save_lesson(updated)
        return updated


def _matches_query(lesson: Lesson, needle: str) -> bool:
    if not needle:
        return True
    return (
        needle in lesson.title.lower()
        or needle in lesson.text_content.lower()
        or any(needle in tag.lower() for tag in lesson.tags)
    )


def _matches_filters(lesson: Lesson, filters: ContentFilters) -> bool:
    if filters.language and lesson.language != filters.language:
        return False
    if filters.subject and lesson.subject != filters.subject:
        return False
    if filters.grade and lesson.grade != filters.grade:
        return False
    if filters.difficulty and lesson.difficulty != filters.difficulty:
        return False
    if filters.source and lesson.source != filters.source:
        return False
    if filters.tags and not set(filters.tags) & set(lesson.tags):
        return False
    if filters.has_audio is not None and lesson.accessibility.has_audio != filters.has_audio:
        return False
    if filters.has_video is not None and lesson.accessibility.has_video != filters.has_video:
        return False
    return True


# =============================================================================
# Text heuristics
# =============================================================================


def estimate_reading_time(text: str) -> int:
    """Minutes needed to read a text at 200 words per minute."""
    return math.ceil(len(text.split()) / WORDS_PER_MINUTE)


def estimate_lesson_duration(text: str, question_count: int) -> int:
    """Reading time plus two minutes per quiz question."""
    return estimate_reading_time(text) + question_count * MINUTES_PER_QUESTION


def assess_difficulty(text: str, questions: list[QuizQuestion]) -> DifficultyLevel:
    """Rate a lesson by text length and average question difficulty."""
    scores = [DIFFICULTY_SCORES.get(q.difficulty, 3) for q in questions]
    average = sum(scores) / len(scores) if scores else 0.0

    if len(text) > 2000 or average > 2.5:
        return DifficultyLevel.ADVANCED
    if len(text) > 1000 or average > 1.5:
        return DifficultyLevel.INTERMEDIATE
    return DifficultyLevel.BEGINNER


def generate_tags(chapter: SourceContent, source: ContentSource) -> list[str]:
    return [
        chapter.subject.lower(),
        f"class-{chapter.grade}",
        re.sub(r"\s+", "-", chapter.chapter.lower()),
        source.value.lower(),
        "government-approved",
    ]


def extract_learning_objectives(text: str) -> list[str]:
    """Up to three sentences that talk about learning, understanding or knowing."""
    objectives = []
    for sentence in re.split(r"[.!?]+", text):
        lowered = sentence.lower()
        if any(marker in lowered for marker in OBJECTIVE_MARKERS):
            objectives.append(sentence.strip())
    return objectives[:MAX_LEARNING_OBJECTIVES]


def extract_keywords(text: str) -> list[str]:
    """The ten most frequent words longer than four characters."""
    words = re.sub(r"[^\w\s]", "", text.lower()).split()
    counts = Counter(word for word in words if len(word) > 4)
    return [word for word, _ in counts.most_common(MAX_KEYWORDS)]
