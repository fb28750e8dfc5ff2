"""Helpers for per-item load results (``Loaded``)."""

from __future__ import annotations

from typing import Any

from .models import Loaded


def has_errors(item: Loaded[Any]) -> bool:
    """Return True if the item failed to load or validate."""
    return item.data is None or bool(item.errors)


def has_warnings(item: Loaded[Any]) -> bool:
    return bool(item.warnings)


def add_error(item: Loaded[Any], message: str) -> None:
    item.errors.append(message)


def add_warning(item: Loaded[Any], message: str) -> None:
    item.warnings.append(message)


def make_error(message: str) -> Loaded[Any]:
    """Build a result for a file that could not be loaded at all."""
    return Loaded(data=None, errors=[message])
