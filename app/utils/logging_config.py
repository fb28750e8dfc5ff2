"""Logging setup for the tag sync command line.

Every run logs as ``time [LEVEL] logger: message`` to stderr.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Kept at INFO or above even under -v
QUIET_LOGGERS = ("psycopg", "asyncio")


def setup_logging(verbose: bool = False, level: int | None = None) -> None:
    """Install the root handler for a sync run.

    ``verbose`` means DEBUG and wins over ``level``; with neither the run logs
    at INFO. Driver and connection libraries never drop below INFO.
    """
    root_level = logging.DEBUG if verbose else (level if level is not None else logging.INFO)
    logging.basicConfig(level=root_level, format=LOG_FORMAT)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.INFO))
