"""Database client for calling the tag sync stored procedures.

Uses psycopg3's async connection. Every procedure runs in autocommit mode, so
each call is its own transaction and atomicity is up to the procedure.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, Protocol

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from .config import DBConfig, SyncEnvironment
from .exceptions import RowCountError

__all__ = [
    "DBClient",
    "DBConfig",
    "ProcedureCaller",
    "StoredProcedures",
    "SyncEnvironment",
    "fetch_question_ids",
]

logger = logging.getLogger(__name__)


class ProcedureCaller(Protocol):
    """Anything that can run a named stored procedure with positional params."""

    async def call(self, procedure: str, params: Sequence[Any]) -> list[dict[str, Any]]: ...

    async def call_one_row(self, procedure: str, params: Sequence[Any]) -> dict[str, Any]: ...


# -----------------------------------------------------------------------------
# Stored procedures
# -----------------------------------------------------------------------------


def _procedure_query(procedure: str, param_count: int) -> sql.Composed:
    """Build ``SELECT * FROM procedure(%s, ...)`` with the name quoted."""
    return sql.SQL("SELECT * FROM {}({})").format(
        sql.Identifier(procedure),
        sql.SQL(", ").join(sql.Placeholder() * param_count),
    )


class StoredProcedures:
    """Calls stored procedures on an open async connection."""

    def __init__(self, conn: psycopg.AsyncConnection):
        self.conn = conn

    async def call(self, procedure: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        """Run a procedure and return all of its rows as dicts.

        Database errors are not caught here.
        """
        logger.debug("Calling %s with %d param(s)", procedure, len(params))
        async with self.conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(_procedure_query(procedure, len(params)), list(params))
            return await cur.fetchall()

    async def call_one_row(self, procedure: str, params: Sequence[Any]) -> dict[str, Any]:
        """Run a procedure that must return exactly one row.

        Raises:
            RowCountError: If the procedure returned zero or several rows
        """
        rows = await self.call(procedure, params)
        if len(rows) != 1:
            msg = f"{procedure} returned {len(rows)} rows, expected exactly one"
            raise RowCountError(msg)
        return rows[0]


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


async def fetch_question_ids(conn: psycopg.AsyncConnection, course_id: int) -> dict[str, int]:
    """Fetch live question ids for a course.

    Returns dict mapping qid (the question's directory path) -> question id.
    """
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(
            "SELECT id, qid FROM questions "
            "WHERE course_id = %s "
            "AND deleted_at IS NULL",
            (course_id,),
        )
        return {row["qid"]: row["id"] for row in await cur.fetchall()}


# -----------------------------------------------------------------------------
# Database Client
# -----------------------------------------------------------------------------


class DBClient:
    """Opens connections for a tag sync run."""

    def __init__(self, config: DBConfig):
        self.config = config

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        """Get an autocommit connection, closed on exit.

        Timeout is configured in the connection string (see config.py).
        """
        conn = await psycopg.AsyncConnection.connect(self.config.connection_string, autocommit=True)
        try:
            yield conn
        finally:
            await conn.close()

    @asynccontextmanager
    async def procedures(self) -> AsyncIterator[StoredProcedures]:
        """Get a ``StoredProcedures`` bound to a fresh connection."""
        async with self.connection() as conn:
            yield StoredProcedures(conn)
