"""I/O helpers — read uploaded bytes and decode the first sheet into rows."""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import Any, Callable, Literal, cast

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from armp.errors import EmptyInputError, InputReadError

logger = logging.getLogger(__name__)

RawRow = dict[str, Any]

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
_EXCEL_DECODE_ERRORS = (ValueError, KeyError, OSError, zipfile.BadZipFile, InvalidFileException)

# ── Reading ──────────────────────────────────────────────────────


def read_file(path: Path) -> bytes:
    """Return the raw bytes of *path*.

    Raises
    ------
    InputReadError
        If the file is missing or cannot be read.
    """
    path = Path(path)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise InputReadError(f"Failed to read the file {path.name!r}: {exc.strerror or exc}") from exc


# ── Decoding ─────────────────────────────────────────────────────


def _read_csv(data: bytes, filename: str) -> pd.DataFrame:
    if not data.strip():
        raise EmptyInputError()
    last_exc: Exception | None = None
    engine: Literal["python"] = "python"
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            return pd.read_csv(
                io.BytesIO(data),
                dtype="string",
                sep=None,
                engine=engine,
                encoding=encoding,
                encoding_errors="strict",
                skip_blank_lines=True,
            )
        except pd.errors.EmptyDataError as exc:
            raise EmptyInputError() from exc
        except csv.Error as exc:
            # the delimiter sniffer gives up on single-column or ragged text
            raise InputReadError(f"Could not read CSV {filename!r}: {exc}") from exc
        except (UnicodeDecodeError, pd.errors.ParserError) as exc:
            last_exc = exc
    raise InputReadError(f"Could not read CSV {filename!r} (decode or parse failed)") from last_exc


def _read_excel(data: bytes, filename: str, engine: str) -> pd.DataFrame:
    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
    try:
        # sheet_name=0: only the first worksheet is ingested
        return read_excel(io.BytesIO(data), sheet_name=0, engine=engine)
    except ImportError as exc:
        raise InputReadError(
            f"Unsupported .xls input unless '{engine}' is installed. "
            "Either convert to .xlsx or add the dependency."
        ) from exc
    except _EXCEL_DECODE_ERRORS as exc:
        raise InputReadError(f"Could not read workbook {filename!r}: {exc}") from exc


def _to_raw_rows(df: pd.DataFrame) -> list[RawRow]:
    df = df.dropna(how="all")
    df = df.astype(object).where(df.notna(), None)
    return cast(list[RawRow], df.to_dict(orient="records"))


def read_rows(data: bytes, filename: str) -> tuple[list[str], list[RawRow]]:
    """Decode *data* into ``(headers, rows)``.

    The first sheet row is the header row. Every row maps header → cell value,
    where a cell is a ``str``, a number, a datetime, or ``None`` when empty.
    Entirely blank rows are skipped.

    Raises
    ------
    InputReadError
        If the extension is not supported or decoding fails.
    EmptyInputError
        If the sheet has no data rows.
    """
    suffix = Path(filename).suffix.lower()
    if suffix == ".csv":
        df = _read_csv(data, filename)
    elif suffix in EXCEL_SUFFIXES:
        df = _read_excel(data, filename, "openpyxl")
    elif suffix == ".xls":
        df = _read_excel(data, filename, "xlrd")
    else:
        raise InputReadError(f"Unsupported file type: {suffix!r}. Use .xlsx, .xls, or .csv")

    df.columns = pd.Index([str(c) for c in df.columns])
    rows = _to_raw_rows(df)
    logger.debug("Decoded %s: %d rows x %d columns", filename, len(rows), len(df.columns))
    if not rows:
        raise EmptyInputError()
    return list(df.columns), rows
