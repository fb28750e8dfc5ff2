"""In-memory course and question metadata consumed by the tag sync.

The legacy driver works on ``CourseInfo`` plus a flat ``{qid: QuestionInfo}``
map. The current driver works on ``CourseData``, where the course file and
every question file carry their own load errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

PLACEHOLDER_TAG_COLOR = "gray1"
PLACEHOLDER_TAG_DESCRIPTION = (
    "Auto-generated from use in a question; add this tag to your infoCourse.json file to customize"
)

# -----------------------------------------------------------------------------
# Course and question metadata
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Tag:
    """A tag as declared in infoCourse.json (or synthesized for a question)."""

    name: str
    color: str
    description: str | None = None

    @classmethod
    def placeholder(cls, name: str) -> "Tag":
        """Build the tag used for a name a question references but the course never declares."""
        return cls(name=name, color=PLACEHOLDER_TAG_COLOR, description=PLACEHOLDER_TAG_DESCRIPTION)


@dataclass
class QuestionInfo:
    """Question metadata relevant to tag syncing.

    ``id`` is the database id. The legacy driver reads it directly; the
    current driver looks ids up by working id instead and leaves it unset.
    """

    tags: list[str] | None = None
    id: int | None = None


@dataclass
class CourseInfo:
    """Course-level metadata relevant to tag syncing."""

    course_id: int | None = None
    tags: list[Tag] | None = None


# -----------------------------------------------------------------------------
# Per-item load results
# -----------------------------------------------------------------------------


@dataclass
class Loaded(Generic[T]):
    """Result of loading one info file.

    ``data`` is None when the file could not be read or parsed at all.
    """

    data: T | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class CourseData:
    """Everything loaded from a course directory, valid or not."""

    course: Loaded[CourseInfo]
    questions: dict[str, Loaded[QuestionInfo]] = field(default_factory=dict)
