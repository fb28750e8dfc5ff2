#!/usr/bin/env python3
"""CLI script for syncing a course's tags to the database.

Usage:
    # Sync tags using the current driver (deletes stale tags if infoCourse.json is valid)
    python -m app.sync.scripts.sync_tags path/to/course --course-id 1

    # Additive-only legacy sync (fails on any invalid question)
    python -m app.sync.scripts.sync_tags path/to/course --course-id 1 --legacy

    # Against staging, with debug output
    python -m app.sync.scripts.sync_tags path/to/course --course-id 1 --env staging -v
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import psycopg
from dotenv import load_dotenv

from app.sync import infofile
from app.sync.config import DBConfig
from app.sync.course_loader import load_course_data
from app.sync.db_client import DBClient, fetch_question_ids
from app.sync.exceptions import ConfigurationError
from app.sync.models import CourseData, CourseInfo, QuestionInfo
from app.sync.tags import sync, sync_new
from app.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Sync a course's tags and question tags to the database.",
    )

    parser.add_argument(
        "course_dir",
        type=Path,
        help="Course directory containing infoCourse.json and questions/",
    )

    parser.add_argument(
        "--course-id",
        type=int,
        required=True,
        help="Database id of the course",
    )

    parser.add_argument(
        "--legacy",
        action="store_true",
        help="Use the additive-only sync, which rejects invalid questions instead of skipping them",
    )

    parser.add_argument(
        "--env",
        choices=["local", "staging", "prod"],
        default="local",
        help="Target database environment (default: local)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Print detailed progress information",
    )

    return parser.parse_args(argv)


def legacy_inputs(
    course_data: CourseData,
    course_id: int,
    question_ids: dict[str, int],
) -> tuple[CourseInfo, dict[str, QuestionInfo]]:
    """Flatten loaded course data into the legacy driver's inputs.

    The legacy driver has no notion of per-file errors, so any load error
    aborts the run.
    """
    if infofile.has_errors(course_data.course):
        msg = f"infoCourse.json has errors: {'; '.join(course_data.course.errors)}"
        raise ConfigurationError(msg)

    question_db: dict[str, QuestionInfo] = {}
    for qid, question in course_data.questions.items():
        if infofile.has_errors(question):
            msg = f"Question {qid} has errors: {'; '.join(question.errors)}"
            raise ConfigurationError(msg, question=qid)
        if qid not in question_ids:
            raise ConfigurationError(f"Question {qid} has no database id", names=[qid], question=qid)
        question_db[qid] = QuestionInfo(tags=question.data.tags, id=question_ids[qid])

    course_info = CourseInfo(course_id=course_id, tags=course_data.course.data.tags)
    return course_info, question_db


async def run(args: argparse.Namespace) -> None:
    """Load the course from disk and sync its tags."""
    course_data = load_course_data(args.course_dir, args.course_id)

    db_client = DBClient(DBConfig.for_environment(args.env))
    logger.debug("Connecting to %s:%s/%s", db_client.config.host, db_client.config.port, db_client.config.database)

    async with db_client.procedures() as procedures:
        question_ids = await fetch_question_ids(procedures.conn, args.course_id)
        if args.legacy:
            course_info, question_db = legacy_inputs(course_data, args.course_id, question_ids)
            await sync(procedures, course_info, question_db)
        else:
            await sync_new(procedures, args.course_id, course_data, question_ids)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    load_dotenv()
    setup_logging(verbose=args.verbose)

    try:
        asyncio.run(run(args))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except ValueError as e:
        logger.error("Invalid settings: %s", e)
        return 1
    except psycopg.Error as e:
        logger.error("Database error: %s", e)
        if args.verbose:
            logger.exception("Traceback")
        return 1

    logger.info("Tag sync complete for course %s", args.course_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
