"""Sync module for reconciling course tags with the database.

Tags declared in infoCourse.json, and the tags each question lists in its
info.json, are pushed to Postgres through the ``sync_course_tags*`` and
``sync_question_tags*`` stored procedures.

Usage:
    python -m app.sync.scripts.sync_tags --help
"""

from __future__ import annotations

from .course_loader import load_course_data
from .exceptions import ConfigurationError, RowCountError
from .models import CourseData, CourseInfo, Loaded, QuestionInfo, Tag
from .tags import get_duplicates, get_duplicates_by_key, sync, sync_new, sync_with_callback

__all__ = [
    "ConfigurationError",
    "CourseData",
    "CourseInfo",
    "Loaded",
    "QuestionInfo",
    "RowCountError",
    "Tag",
    "get_duplicates",
    "get_duplicates_by_key",
    "load_course_data",
    "sync",
    "sync_new",
    "sync_with_callback",
]
