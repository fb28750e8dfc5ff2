"""Exceptions raised by the tag sync.

Database errors raised by psycopg are not wrapped; they reach the caller
unchanged.
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """Course or question configuration that cannot be synced.

    Attributes:
        names: The offending tag names (or question ids), in input order
        question: Working id of the offending question, if any
    """

    def __init__(self, message: str, names: list[str] | None = None, question: str | None = None) -> None:
        self.names = list(names or [])
        self.question = question
        super().__init__(message)


class RowCountError(RuntimeError):
    """A stored procedure returned a different number of rows or ids than expected."""
