from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import csv

import pandas as pd
import pytest

from armp import REQUIRED_COLUMNS
from armp.errors import EmptyInputError, InputReadError, SchemaError
from armp.io import read_file, read_rows
from armp.models import FindingStatus
from armp.pipeline import ingest

XlsxFactory = Callable[..., bytes]


def _sheet_row(**overrides: object) -> list[object]:
    values: dict[str, object] = {
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
    for key, value in overrides.items():
        values[key.replace("_", " ")] = value
    return [values[col] for col in REQUIRED_COLUMNS]


def test_read_rows_xlsx_keeps_native_cell_types(xlsx_bytes: XlsxFactory) -> None:
    data = xlsx_bytes(
        [
            _sheet_row(**{"Issue_Closed_Date": datetime(2024, 1, 5), "Accumulated_Points": 10}),
            _sheet_row(Status="Open"),
        ]
    )

    headers, rows = read_rows(data, "audit.xlsx")

    assert headers == list(REQUIRED_COLUMNS)
    assert len(rows) == 2
    assert isinstance(rows[0]["Issue Finding Date"], datetime)
    assert rows[0]["Issue Closed Date"] == datetime(2024, 1, 5)
    assert rows[1]["Issue Closed Date"] is None
    assert rows[0]["Reopen Dates"] is None
    assert rows[0]["Accumulated Points"] == 10
    assert rows[1]["Status"] == "Open"


def test_read_rows_skips_blank_rows(xlsx_bytes: XlsxFactory) -> None:
    data = xlsx_bytes([_sheet_row(), [None] * len(REQUIRED_COLUMNS), _sheet_row()])

    _headers, rows = read_rows(data, "audit.xlsx")

    assert len(rows) == 2


def test_read_rows_header_only_is_empty(xlsx_bytes: XlsxFactory) -> None:
    with pytest.raises(EmptyInputError, match="empty"):
        read_rows(xlsx_bytes([]), "audit.xlsx")


def test_read_rows_csv_keeps_strings() -> None:
    data = (
        ",".join(REQUIRED_COLUMNS)
        + "\nSafety,Exits?,Alpha,2024-01-01,2024-01-03,,Closed - Late,1,5\n"
    ).encode("utf-8")

    headers, rows = read_rows(data, "audit.csv")

    assert headers == list(REQUIRED_COLUMNS)
    assert rows[0]["Issue Finding Date"] == "2024-01-01"
    assert rows[0]["Reopen Dates"] is None
    assert rows[0]["Accumulated Points"] == "5"


def test_read_rows_csv_latin1_fallback() -> None:
    data = (",".join(REQUIRED_COLUMNS) + "\nSécurité,Q,Alpha,2024-01-01,,,,0,0\n").encode("latin-1")

    _headers, rows = read_rows(data, "audit.csv")

    assert rows[0]["Category"] == "Sécurité"


def test_read_rows_empty_csv() -> None:
    with pytest.raises(EmptyInputError):
        read_rows(b"", "audit.csv")


@pytest.mark.parametrize("data", [b"   ", b"\n\n", b"\r\n \t\r\n"])
def test_read_rows_blank_csv_is_empty(data: bytes) -> None:
    with pytest.raises(EmptyInputError):
        read_rows(data, "audit.csv")


def test_read_rows_csv_sniffer_failure_is_read_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_read_csv(*_args: object, **_kwargs: object) -> pd.DataFrame:
        raise csv.Error("Could not determine delimiter")

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    with pytest.raises(InputReadError, match="Could not determine delimiter"):
        read_rows(b"Category\nSecurity\n", "audit.csv")


def test_read_rows_rejects_unsupported_extension() -> None:
    with pytest.raises(InputReadError, match="Unsupported file type"):
        read_rows(b"{}", "audit.json")


def test_read_rows_wraps_corrupt_workbook() -> None:
    with pytest.raises(InputReadError, match="audit.xlsx"):
        read_rows(b"definitely not a zip archive", "audit.xlsx")


def test_read_rows_xls_without_engine_is_read_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_read_excel(*_args: object, **_kwargs: object) -> pd.DataFrame:
        raise ImportError("Missing optional dependency 'xlrd'")

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    with pytest.raises(InputReadError, match="xlrd"):
        read_rows(b"\xd0\xcf", "legacy.xls")


def test_read_file_missing_path_is_read_error(tmp_path: Path) -> None:
    with pytest.raises(InputReadError, match="missing.xlsx"):
        read_file(tmp_path / "missing.xlsx")


def test_read_file_returns_bytes(tmp_path: Path) -> None:
    path = tmp_path / "audit.xlsx"
    path.write_bytes(b"abc")

    assert read_file(path) == b"abc"


# ── End to end ───────────────────────────────────────────────────


def test_ingest_workbook_bytes(xlsx_bytes: XlsxFactory) -> None:
    data = xlsx_bytes(
        [
            _sheet_row(**{"Issue_Closed_Date": datetime(2024, 1, 5), "Accumulated_Points": 10}),
            _sheet_row(Status="REOPENED", **{"Reopen_Count": 2, "Accumulated_Points": "-3"}),
            _sheet_row(**{"Responsible_Team": "Beta", "Accumulated_Points": "bonus"}),
        ]
    )

    findings = ingest(data, "audit.xlsx")

    assert len(findings) == 3
    assert findings[0].status is FindingStatus.CLOSED_TIMELY
    assert findings[0].days_to_close == 4
    assert findings[1].status is FindingStatus.REOPENED
    assert findings[1].reopen_count == 2
    assert findings[1].points == -3
    assert findings[2].points == 0


def test_ingest_header_matching_is_case_and_space_insensitive(xlsx_bytes: XlsxFactory) -> None:
    headers = [f" {col.lower()} " for col in REQUIRED_COLUMNS]

    findings = ingest(xlsx_bytes([_sheet_row()], headers=headers), "audit.xlsx")

    assert findings[0].responsible_team == "Alpha"


def test_ingest_missing_header_fails(xlsx_bytes: XlsxFactory) -> None:
    headers = [col for col in REQUIRED_COLUMNS if col != "Reopen Count"]
    row = [v for col, v in zip(REQUIRED_COLUMNS, _sheet_row()) if col != "Reopen Count"]

    with pytest.raises(SchemaError, match="Reopen Count"):
        ingest(xlsx_bytes([row], headers=headers), "audit.xlsx")
