"""Shared fixtures for tag sync tests."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest


class FakeProcedures:
    """Records stored procedure calls and replays canned results.

    ``results`` maps procedure name -> rows returned by ``call``.
    """

    def __init__(self, results: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.results = results or {}
        self.calls: list[tuple[str, list[Any]]] = []
        self.errors: dict[str, Exception] = {}

    async def call(self, procedure: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        self.calls.append((procedure, list(params)))
        if procedure in self.errors:
            raise self.errors[procedure]
        return self.results.get(procedure, [])

    async def call_one_row(self, procedure: str, params: Sequence[Any]) -> dict[str, Any]:
        rows = await self.call(procedure, params)
        assert len(rows) == 1, f"{procedure} returned {len(rows)} rows"
        return rows[0]

    def params_for(self, procedure: str) -> list[Any]:
        matching = [params for name, params in self.calls if name == procedure]
        assert len(matching) == 1, f"expected one call to {procedure}, got {len(matching)}"
        return matching[0]

    @property
    def procedure_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def fake_db() -> FakeProcedures:
    return FakeProcedures()
