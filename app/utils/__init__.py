"""Shared utilities package for the course tag sync."""

from app.utils.logging_config import setup_logging

__all__ = [
    "setup_logging",
]
