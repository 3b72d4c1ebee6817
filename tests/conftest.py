from __future__ import annotations

import io
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

import pytest
from openpyxl import Workbook

from armp import REQUIRED_COLUMNS

BASE_ROW: dict[str, Any] = {
    "Category": "Safety",
    "Question": "Are fire exits clear?",
    "Responsible Team": "Alpha",
    "Issue Finding Date": datetime(2024, 1, 1),
    "Issue Closed Date": None,
    "Reopen Dates": None,
    "Status": None,
    "Reopen Count": 0,
    "Accumulated Points": 0,
}


@pytest.fixture
def make_row() -> Callable[..., dict[str, Any]]:
    """Build a raw row keyed by the canonical headers, with overrides."""

    def _make(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        row = dict(BASE_ROW)
        row.update(overrides or {})
        return row

    return _make


@pytest.fixture
def xlsx_bytes() -> Callable[..., bytes]:
    """Serialize header + rows into an in-memory .xlsx workbook."""

    def _build(
        rows: Sequence[Sequence[object]], headers: Sequence[str] = REQUIRED_COLUMNS
    ) -> bytes:
        wb = Workbook()
        ws = wb.active
        assert ws is not None
        ws.append(list(headers))
        for row in rows:
            ws.append(list(row))
        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()

    return _build
