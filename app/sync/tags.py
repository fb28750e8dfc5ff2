"""Sync course tags and question-tag links to the database.

There are two drivers:

- ``sync`` takes a ``CourseInfo`` and a flat question map. It only ever adds
  or updates tags and rejects any question that lists a tag twice.
- ``sync_new`` takes ``CourseData``, where the course file and each question
  may have failed to load on their own. Questions that failed are skipped,
  duplicate tags within a question are collapsed, and stale tags are deleted
  by ``sync_course_tags_new`` only when infoCourse.json loaded cleanly.

Both send tags and links to the database as positional arrays
(``[name, color, description]``, ``[question_id, [tag_id, ...]]``) rather than
objects, to keep the payload small.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Collection, Hashable, Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, TypeVar

from psycopg.types.json import Jsonb

from . import infofile
from .db_client import ProcedureCaller
from .exceptions import ConfigurationError, RowCountError
from .models import CourseData, CourseInfo, QuestionInfo, Tag

logger = logging.getLogger(__name__)

H = TypeVar("H", bound=Hashable)

TagParam = tuple[str, str, str | None]
QuestionTagsParam = tuple[Any, list[Any]]

# Tasks started by sync_with_callback, held until done
_pending_syncs: set[asyncio.Task[None]] = set()

# -----------------------------------------------------------------------------
# Duplicate detection
# -----------------------------------------------------------------------------


def get_duplicates(values: Iterable[H]) -> list[H]:
    """Return every repeat occurrence in ``values``, in input order.

    The first occurrence of a value is never included; each later one is.
    """
    seen: set[H] = set()
    duplicates: list[H] = []
    for value in values:
        if value in seen:
            duplicates.append(value)
        else:
            seen.add(value)
    return duplicates


def _field_getter(name: str) -> Callable[[Any], Any]:
    def get(item: Any) -> Any:
        if isinstance(item, Mapping):
            return item[name]
        return getattr(item, name)

    return get


def get_duplicates_by_key(items: Iterable[Any], key: str | Callable[[Any], H]) -> list[Any]:
    """Like ``get_duplicates`` over ``key(item)``.

    ``key`` may be a callable or the name of an attribute / mapping key.
    """
    getter = _field_getter(key) if isinstance(key, str) else key
    return get_duplicates(getter(item) for item in items)


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


def check_course_tag_names(tags: Sequence[Tag]) -> None:
    """Reject duplicate tag names in the course tag list.

    The sync procedures match tags by name, so two tags sharing a name would
    leave question links ambiguous.
    """
    duplicate_names = get_duplicates_by_key(tags, "name")
    if duplicate_names:
        joined = ", ".join(duplicate_names)
        raise ConfigurationError(
            f"Duplicate tag names found: {joined}. Tag names must be unique within the course.",
            names=duplicate_names,
        )


def check_unknown_tags(qid: str, tag_names: Sequence[str], known_names: Collection[str]) -> None:
    """Reject a question that references tags outside ``known_names``."""
    unknown = [name for name in tag_names if name not in known_names]
    if unknown:
        raise ConfigurationError(
            f"Question {qid} has unknown tags: {', '.join(unknown)}",
            names=unknown,
            question=qid,
        )


def check_duplicate_tags(qid: str, tag_names: Sequence[str]) -> None:
    """Reject a question that lists the same tag more than once."""
    duplicates = get_duplicates(tag_names)
    if duplicates:
        raise ConfigurationError(
            f"Question {qid} has duplicate tags: {', '.join(duplicates)}",
            names=duplicates,
            question=qid,
        )


def check_question_tags(qid: str, tag_names: Sequence[str], known_names: Collection[str]) -> None:
    """Reject a question that references unknown tags or lists a tag twice."""
    check_unknown_tags(qid, tag_names, known_names)
    check_duplicate_tags(qid, tag_names)


def validate_tags(tags: Sequence[Tag], question_db: Mapping[str, QuestionInfo]) -> None:
    """Validate course tags and every question's tag references.

    Known names are the declared tags plus the placeholders that
    ``add_placeholder_tags`` will create.

    Raises:
        ConfigurationError: On the first problem found
    """
    check_course_tag_names(tags)
    known_names = {tag.name for tag in tags}
    known_names.update(referenced_tag_names(question_db.values()))
    for qid, question in question_db.items():
        check_question_tags(qid, question.tags or [], known_names)


# -----------------------------------------------------------------------------
# Placeholder tags
# -----------------------------------------------------------------------------


def referenced_tag_names(questions: Iterable[QuestionInfo | None]) -> list[str]:
    """Tag names referenced by ``questions``, deduplicated, in order of first reference."""
    names: dict[str, None] = {}
    for question in questions:
        if question is None:
            continue
        for name in question.tags or []:
            names.setdefault(name, None)
    return list(names)


def add_placeholder_tags(tags: Sequence[Tag], question_db: Mapping[str, QuestionInfo]) -> list[Tag]:
    """Return ``tags`` plus a placeholder for each name only questions use.

    ``tags`` itself is left untouched.
    """
    declared = {tag.name for tag in tags}
    missing = [name for name in referenced_tag_names(question_db.values()) if name not in declared]
    if missing:
        logger.info("Adding %d placeholder tag(s) used by questions: %s", len(missing), ", ".join(missing))
    return [*tags, *(Tag.placeholder(name) for name in missing)]


# -----------------------------------------------------------------------------
# Parameter encoding
# -----------------------------------------------------------------------------


def encode_tags(tags: Iterable[Tag]) -> list[TagParam]:
    """Encode tags as ``(name, color, description)`` for ``sync_course_tags``."""
    return [(tag.name, tag.color, tag.description) for tag in tags]


def encode_tags_new(tags: Iterable[Tag]) -> list[tuple[str, str | None, str]]:
    """Encode tags as ``(name, description, color)`` for ``sync_course_tags_new``."""
    return [(tag.name, tag.description, tag.color) for tag in tags]


def encode_question_tags(
    question_id: Any,
    tag_names: Iterable[str],
    tag_ids_by_name: Mapping[str, Any],
) -> QuestionTagsParam:
    return (question_id, [tag_ids_by_name[name] for name in tag_names])


def build_tag_ids_by_name(pairs: Iterable[Sequence[Any]]) -> Mapping[str, Any]:
    """Build a read-only name -> id mapping from ``(name, id)`` pairs."""
    return MappingProxyType({name: tag_id for name, tag_id in pairs})


def pair_tag_ids(param_tags: Sequence[TagParam], tag_ids: Sequence[Any]) -> Mapping[str, Any]:
    """Pair ids returned by ``sync_course_tags`` with the tags sent, by position.

    Raises:
        RowCountError: If the procedure returned a different number of ids
    """
    if len(tag_ids) != len(param_tags):
        msg = f"sync_course_tags returned {len(tag_ids)} ids for {len(param_tags)} tags"
        raise RowCountError(msg)
    return build_tag_ids_by_name(zip((param[0] for param in param_tags), tag_ids))


# -----------------------------------------------------------------------------
# Sync drivers
# -----------------------------------------------------------------------------


async def sync(db: ProcedureCaller, course_info: CourseInfo, question_db: Mapping[str, QuestionInfo]) -> None:
    """Upsert course tags and question-tag links. Never deletes tags.

    Args:
        db: Stored procedure caller
        course_info: Course metadata; ``tags`` may be None
        question_db: Questions keyed by qid; each needs a database ``id``

    Raises:
        ConfigurationError: Duplicate course tags, or a question with unknown
            or duplicate tags
        RowCountError: The database returned the wrong number of tag ids
    """
    tags = list(course_info.tags or [])
    validate_tags(tags, question_db)
    tags = add_placeholder_tags(tags, question_db)

    param_tags = encode_tags(tags)
    logger.debug("Syncing %d tags for course %s", len(param_tags), course_info.course_id)
    row = await db.call_one_row("sync_course_tags", [Jsonb(param_tags), course_info.course_id])
    tag_ids_by_name = pair_tag_ids(param_tags, row["new_tag_ids"])

    # Check again against what the database actually returned
    param_question_tags: list[QuestionTagsParam] = []
    for qid, question in question_db.items():
        tag_names = question.tags or []
        check_question_tags(qid, tag_names, tag_ids_by_name)
        param_question_tags.append(encode_question_tags(question.id, tag_names, tag_ids_by_name))

    logger.debug("Syncing tags for %d questions", len(param_question_tags))
    await db.call("sync_question_tags", [Jsonb(param_question_tags)])


def sync_with_callback(
    db: ProcedureCaller,
    course_info: CourseInfo,
    question_db: Mapping[str, QuestionInfo],
    callback: Callable[[BaseException | None], None],
) -> asyncio.Task[None] | None:
    """Run ``sync`` and report the outcome to ``callback``.

    ``callback`` gets None on success or the raised exception on failure.
    Inside a running event loop the sync is scheduled as a task on that loop
    and the task is returned; ``callback`` fires when it finishes. Otherwise
    the sync runs to completion on a new loop before this returns.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is not None:
        task = loop.create_task(sync(db, course_info, question_db))
        _pending_syncs.add(task)

        def report(done: asyncio.Task[None]) -> None:
            _pending_syncs.discard(done)
            error = asyncio.CancelledError() if done.cancelled() else done.exception()
            if error is not None:
                logger.debug("Tag sync failed: %s", error)
            callback(error)

        task.add_done_callback(report)
        return task

    try:
        asyncio.run(sync(db, course_info, question_db))
    except Exception as e:
        logger.debug("Tag sync failed: %s", e)
        callback(e)
        return None
    callback(None)
    return None


async def sync_new(
    db: ProcedureCaller,
    course_id: Any,
    course_data: CourseData,
    question_ids: Mapping[str, Any],
) -> None:
    """Sync tags for a course whose files may have partially failed to load.

    If infoCourse.json loaded cleanly, its tags are sent along with
    ``course_valid=True`` and the procedure may delete tags that are neither
    declared nor used. Otherwise no course tags are sent and the procedure
    only adds tags that questions use.

    Args:
        db: Stored procedure caller
        course_id: Database id of the course
        course_data: Loaded course and question info files
        question_ids: Database question id keyed by qid

    Raises:
        ConfigurationError: A valid question has no database id, or uses a
            tag the procedure did not return
    """
    course_valid = not infofile.has_errors(course_data.course)
    course_tags: list[Jsonb] = []
    if course_valid:
        course_tags = [Jsonb(param) for param in encode_tags_new(course_data.course.data.tags or [])]

    valid_questions = {
        qid: question.data for qid, question in course_data.questions.items() if not infofile.has_errors(question)
    }
    skipped = len(course_data.questions) - len(valid_questions)
    if skipped:
        logger.info("Skipping %d question(s) with load errors", skipped)
    question_tag_names = referenced_tag_names(valid_questions.values())

    params = [course_valid, course_tags, question_tag_names, course_id]
    logger.debug(
        "Syncing %d course tags and %d question tags for course %s (course valid: %s)",
        len(course_tags),
        len(question_tag_names),
        course_id,
        course_valid,
    )
    row = await db.call_one_row("sync_course_tags_new", params)
    tag_ids_by_name = build_tag_ids_by_name(row["new_tags_json"])

    question_tags_param: list[Jsonb] = []
    for qid, question in valid_questions.items():
        tag_names = list(dict.fromkeys(question.tags or []))
        check_unknown_tags(qid, tag_names, tag_ids_by_name)
        if qid not in question_ids:
            raise ConfigurationError(f"Question {qid} has no database id", names=[qid], question=qid)
        question_tags_param.append(Jsonb(encode_question_tags(question_ids[qid], tag_names, tag_ids_by_name)))

    await db.call("sync_question_tags_new", [question_tags_param])
