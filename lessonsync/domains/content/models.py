# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the content domain.

This module defines Pydantic models and enums for:
- Lessons and their content blocks and quiz questions
- Content versions and version history
- External source content (NCERT, DIKSHA, ePathshala) before conversion

and plain dataclasses for in-process records (deltas, statistics, filters).

Lesson manifests use a mix of snake_case and camelCase keys, so camelCase
fields are declared with aliases and models accept either spelling.
Unknown lesson fields are kept as extras and written back unchanged.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ContentSource(str, Enum):
    """Origin of lesson content."""

    NCERT = "NCERT"
    DIKSHA = "DIKSHA"
    EPATHSHALA = "ePathshala"
    SWAYAM = "SWAYAM"
    CUSTOM = "Custom"


class DifficultyLevel(str, Enum):
    """Lesson and question difficulty."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class QuestionType(str, Enum):
    """Quiz question types."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"


class ContentType(str, Enum):
    """Lesson content block types."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    INTERACTIVE = "interactive"


# =============================================================================
# Lesson
# =============================================================================


class QuizQuestion(BaseModel):
    """A quiz question attached to a lesson."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    question: str
    question_type: str = Field(default=QuestionType.MULTIPLE_CHOICE.value, alias="questionType")
    options: list[str] | None = None
    answer: str | list[str]
    explanation: str = ""
    difficulty: str = DifficultyLevel.BEGINNER.value
    points: int = 1
    time_limit: int | None = Field(default=None, alias="timeLimit")
    hints: list[str] | None = None
    media_url: str | None = Field(default=None, alias="mediaUrl")


class LessonContent(BaseModel):
    """One content block of a lesson (text, image, video, ...)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    type: str
    content: str
    media_url: str | None = Field(default=None, alias="mediaUrl")
    duration: int | None = None
    transcript: str | None = None


class Accessibility(BaseModel):
    """Accessibility features available for a lesson."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    has_audio: bool = Field(default=False, alias="hasAudio")
    has_video: bool = Field(default=False, alias="hasVideo")
    has_transcript: bool = Field(default=False, alias="hasTranscript")
    has_sign_language: bool | None = Field(default=None, alias="hasSignLanguage")
    has_braille: bool | None = Field(default=None, alias="hasBraille")


class Lesson(BaseModel):
    """A lesson record of the catalog.

    Identity is by ``id``. Change detection only looks at title, text
    content, language, subject and quiz.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    title: str
    description: str = ""
    language: str
    subject: str
    grade: int
    chapter_id: str | None = Field(default=None, alias="chapterId")
    order: int = 0
    content: list[LessonContent] = Field(default_factory=list)
    audio_file: str | None = None
    text_content: str
    quiz: list[QuizQuestion] = Field(default_factory=list)
    duration: int = 0
    difficulty: str = DifficultyLevel.BEGINNER.value
    source: str = ContentSource.CUSTOM.value
    source_url: str | None = Field(default=None, alias="sourceUrl")
    last_updated: str = Field(default="", alias="lastUpdated")
    version: str = "1.0.0"
    tags: list[str] = Field(default_factory=list)
    learning_objectives: list[str] = Field(default_factory=list, alias="learningObjectives")
    prerequisites: list[str] | None = None
    keywords: list[str] = Field(default_factory=list)
    accessibility: Accessibility = Field(default_factory=Accessibility)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible manifest shape (camelCase aliases)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Versioning
# =============================================================================


class ContentVersion(BaseModel):
    """Version metadata for one catalog snapshot.

    Attributes:
        version: Sortable version id, YYYY.MM.DD.HHmm.
        timestamp: Creation time.
        checksum: Fingerprint of the catalog.
        etag: The checksum, quoted.
        last_modified: Creation time in ISO 8601.
        total_lessons: Number of lessons in the snapshot.
        languages: Distinct languages present.
        subjects: Distinct subjects present.
        metadata: Free-form generation details.
    """

    version: str
    timestamp: datetime
    checksum: str
    etag: str
    last_modified: str
    total_lessons: int
    languages: list[str] = Field(default_factory=list)
    subjects: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class VersionHistory(BaseModel):
    """The most recent content versions, newest first.

    Attributes:
        versions: Stored versions, newest first.
        current: Version id of the current snapshot.
        last_check: When a version was last stored.
    """

    versions: list[ContentVersion] = Field(default_factory=list)
    current: str = "1.0.0"
    last_check: datetime | None = None


@dataclass
class ContentDelta:
    """Partition of the difference between two catalogs.

    Every lesson id appears in at most one of added, updated and removed;
    ids present on both sides and unchanged appear in none.

    Attributes:
        added: Lessons only in the new catalog.
        updated: Lessons in both catalogs whose content changed.
        removed: Ids only in the old catalog.
        version: Version id minted when the delta was computed.
        timestamp: When the delta was computed.
    """

    added: list[Lesson]
    updated: list[Lesson]
    removed: list[str]
    version: str
    timestamp: datetime

    @property
    def is_empty(self) -> bool:
        """Check whether the delta carries no change."""
        return not (self.added or self.updated or self.removed)


@dataclass
class LessonStats:
    """Aggregate counts over a lesson set."""

    total: int = 0
    by_language: dict[str, int] = field(default_factory=dict)
    by_subject: dict[str, int] = field(default_factory=dict)
    by_grade: dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "total": self.total,
            "by_language": dict(self.by_language),
            "by_subject": dict(self.by_subject),
            "by_grade": dict(self.by_grade),
        }


# =============================================================================
# External source content
# =============================================================================


class SourceExercise(BaseModel):
    """An exercise as published by an external content source."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    type: str
    question: str
    answer: str | None = None
    hints: list[str] | None = None
    difficulty: DifficultyLevel


class SourceContent(BaseModel):
    """A chapter as published by an external content source.

    ``class`` in the source payload is the grade.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    grade: int = Field(alias="class")
    subject: str
    chapter: str
    content: str
    images: list[str] | None = None
    exercises: list[SourceExercise] | None = None
    source_url: str = Field(alias="sourceUrl")
    last_updated: str = Field(alias="lastUpdated")


@dataclass
class ContentSyncStatus:
    """Outcome of importing one external content source.

    Attributes:
        source: The content source.
        last_sync_date: ISO time the import finished, None if it never did.
        total_lessons: Items fetched from the source.
        synced_lessons: Items converted and saved.
        failed_syncs: Items that failed conversion or saving.
    """

    source: ContentSource
    last_sync_date: str | None = None
    total_lessons: int = 0
    synced_lessons: int = 0
    failed_syncs: int = 0


@dataclass
class ContentFilters:
    """Filters for catalog search. Unset filters match everything."""

    language: str | None = None
    subject: str | None = None
    grade: int | None = None
    difficulty: str | None = None
    source: str | None = None
    tags: list[str] | None = None
    has_audio: bool | None = None
    has_video: bool | None = None
