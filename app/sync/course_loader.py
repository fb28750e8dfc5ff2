"""Load course and question info files from a course directory.

Reads ``infoCourse.json`` and every ``questions/**/info.json``. Each file is
loaded on its own: a missing file, bad JSON or a schema violation is recorded
as an error on that item and never raised, so one broken question does not
stop the rest of the course from syncing.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import infofile
from .models import CourseData, CourseInfo, Loaded, QuestionInfo, Tag
from .tags import get_duplicates, get_duplicates_by_key

logger = logging.getLogger(__name__)

COURSE_INFO_FILE = "infoCourse.json"
QUESTION_INFO_FILE = "info.json"
QUESTIONS_DIR = "questions"

# -----------------------------------------------------------------------------
# File schemas
# -----------------------------------------------------------------------------


class TagSchema(BaseModel):
    """A tag entry in infoCourse.json."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    color: str = Field(min_length=1)
    description: str | None = None


class CourseInfoSchema(BaseModel):
    """The parts of infoCourse.json the tag sync reads."""

    model_config = ConfigDict(extra="ignore")

    tags: list[TagSchema] = Field(default_factory=list)


class QuestionInfoSchema(BaseModel):
    """The parts of a question's info.json the tag sync reads."""

    model_config = ConfigDict(extra="ignore")

    tags: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _read_json(path: Path) -> tuple[Any, str | None]:
    """Read a JSON file. Returns (content, error)."""
    if not path.exists():
        return None, f"Missing JSON file: {path}"
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f), None
    except json.JSONDecodeError as e:
        return None, f"Error parsing JSON in {path}: {e}"
    except UnicodeDecodeError as e:
        return None, f"Error decoding {path}: {e}"
    except OSError as e:
        return None, f"Error reading {path}: {e}"


def _format_validation_error(path: Path, error: ValidationError) -> str:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in error.errors()
    )
    return f"Invalid {path.name} ({path}): {details}"


# -----------------------------------------------------------------------------
# Loaders
# -----------------------------------------------------------------------------


def load_course_info(course_dir: Path, course_id: int | None = None) -> Loaded[CourseInfo]:
    """Load infoCourse.json. Duplicate tag names are an error."""
    path = course_dir / COURSE_INFO_FILE
    content, error = _read_json(path)
    if error:
        return infofile.make_error(error)

    try:
        schema = CourseInfoSchema.model_validate(content)
    except ValidationError as e:
        return infofile.make_error(_format_validation_error(path, e))

    tags = [Tag(name=t.name, color=t.color, description=t.description) for t in schema.tags]
    loaded: Loaded[CourseInfo] = Loaded(data=CourseInfo(course_id=course_id, tags=tags))

    duplicate_names = get_duplicates_by_key(tags, "name")
    if duplicate_names:
        infofile.add_error(loaded, f"Duplicate tag names found: {', '.join(duplicate_names)}")
    return loaded


def load_question_info(path: Path) -> Loaded[QuestionInfo]:
    """Load one question's info.json. Duplicate tags are a warning."""
    content, error = _read_json(path)
    if error:
        return infofile.make_error(error)

    try:
        schema = QuestionInfoSchema.model_validate(content)
    except ValidationError as e:
        return infofile.make_error(_format_validation_error(path, e))

    loaded: Loaded[QuestionInfo] = Loaded(data=QuestionInfo(tags=schema.tags))
    duplicate_tags = get_duplicates(schema.tags)
    if duplicate_tags:
        infofile.add_warning(loaded, f"Duplicate tags: {', '.join(duplicate_tags)}")
    return loaded


def load_questions(course_dir: Path) -> dict[str, Loaded[QuestionInfo]]:
    """Load every question under ``questions/``, keyed by qid.

    The qid is the question directory's path relative to ``questions/``, so
    questions may be nested in subdirectories. A directory holding info.json
    is a question; nothing below it is searched.
    """
    questions_dir = course_dir / QUESTIONS_DIR
    if not questions_dir.is_dir():
        return {}

    questions: dict[str, Loaded[QuestionInfo]] = {}
    for dirpath, dirnames, filenames in os.walk(questions_dir):
        if QUESTION_INFO_FILE in filenames:
            dirnames.clear()
            question_dir = Path(dirpath)
            qid = question_dir.relative_to(questions_dir).as_posix()
            questions[qid] = load_question_info(question_dir / QUESTION_INFO_FILE)
        else:
            dirnames.sort()
    return dict(sorted(questions.items()))


def load_course_data(course_dir: Path | str, course_id: int | None = None) -> CourseData:
    """Load infoCourse.json and all question info files for a course."""
    course_dir = Path(course_dir)
    course_data = CourseData(
        course=load_course_info(course_dir, course_id),
        questions=load_questions(course_dir),
    )

    for message in course_data.course.errors:
        logger.warning("%s: %s", COURSE_INFO_FILE, message)
    for qid, question in course_data.questions.items():
        for message in question.errors:
            logger.warning("Question %s: %s", qid, message)
        for message in question.warnings:
            logger.info("Question %s: %s", qid, message)

    invalid = sum(1 for q in course_data.questions.values() if infofile.has_errors(q))
    logger.info("Loaded %d question(s) from %s (%d with errors)", len(course_data.questions), course_dir, invalid)
    return course_data
