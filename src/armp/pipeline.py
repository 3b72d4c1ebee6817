"""Normalization + aggregation pipeline — pure functions, no side effects."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from numbers import Real
from typing import Any

import pandas as pd
from dateutil import parser as dateparser
from openpyxl.utils.datetime import from_excel

from armp.columns import HeaderMap, resolve_columns
from armp.errors import DateParseError, EmptyInputError
from armp.io import RawRow, read_rows
from armp.models import DashboardStats, Finding, FindingStatus, TeamLeaderboardEntry

logger = logging.getLogger(__name__)

FindingSet = tuple[Finding, ...]

# Row 1 of the sheet is the header, so data row ``index`` is sheet row ``index + 2``.
HEADER_ROW_OFFSET = 2
SECONDS_PER_DAY = 86400

_STATUS_LITERALS: dict[str, FindingStatus] = {
    "open": FindingStatus.OPEN,
    "closed - timely": FindingStatus.CLOSED_TIMELY,
    "closed - late": FindingStatus.CLOSED_LATE,
    "re-opened": FindingStatus.REOPENED,
    "reopened": FindingStatus.REOPENED,
}

_THOUSANDS_COMMA_RE = re.compile(r"^-?\d{1,3}(,\d{3})+(\.\d+)?$")

# Strings pandas would resolve against the current clock.
_RELATIVE_DATE_WORDS = frozenset({"now", "today", "tomorrow", "yesterday"})
_FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2004, 2, 2))

FINDINGS_TABLE_COLUMNS = [
    "Category",
    "Question",
    "Responsible Team",
    "Finding Date",
    "Closed Date",
    "Status",
    "Reopen Count",
    "Points",
]

# ── Cell helpers ─────────────────────────────────────────────────


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _text(value: object) -> str:
    if value is None or (not isinstance(value, str) and _is_blank(value)):
        return ""
    return value if isinstance(value, str) else str(value)


# ── Type coercion helpers ────────────────────────────────────────


def _is_partial_date(text: str) -> bool:
    """True if *text* leaves out the year, month or day, e.g. "March 5" or "10:30"."""
    try:
        first, second = (dateparser.parse(text, default=d) for d in _FILL_DEFAULTS)
    except (ValueError, OverflowError):
        return False
    return first != second


def parse_date(value: object) -> datetime | None:
    """Interpret a loosely-typed cell as a naive datetime.

    Returns ``None`` for an empty cell. Numbers are Excel serial day numbers.

    Raises
    ------
    ValueError
        If the cell is present but is not a date.
    """
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a date: {value!r}")

    parsed: object
    if isinstance(value, pd.Timestamp):
        parsed = value.to_pydatetime()
    elif isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, Real):
        try:
            parsed = from_excel(float(value))
        except (OverflowError, ValueError) as exc:
            raise ValueError(f"Not a date: {value!r}") from exc
    elif isinstance(value, str):
        text = value.strip()
        if text.lower() in _RELATIVE_DATE_WORDS or _is_partial_date(text):
            raise ValueError(f"Not a date: {value!r}")
        try:
            stamp = pd.to_datetime(text, errors="coerce")
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"Not a date: {value!r}") from exc
        if pd.isna(stamp):
            raise ValueError(f"Not a date: {value!r}")
        parsed = stamp.to_pydatetime()
    else:
        raise ValueError(f"Not a date: {value!r}")

    # from_excel hands back a bare time for fractions of a day
    if not isinstance(parsed, datetime):
        raise ValueError(f"Not a date: {value!r}")
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def _normalize_numeric_token(token: str) -> str:
    token = token.strip()
    token = re.sub(r"^\((.*)\)$", r"-\1", token)
    if token.startswith("+"):
        token = token[1:]
    if _THOUSANDS_COMMA_RE.fullmatch(token):
        token = token.replace(",", "")
    return token


def coerce_int(value: object) -> int:
    """Coerce a cell to an int, defaulting to 0 for anything non-numeric."""
    if isinstance(value, bool) or _is_blank(value):
        return 0
    if isinstance(value, Real):
        number = float(value)
    else:
        number = pd.to_numeric(_normalize_numeric_token(str(value)), errors="coerce")
    if pd.isna(number) or not math.isfinite(number):
        return 0
    return int(number)


def normalize_status(
    raw: object, *, closed_date: datetime | None, reopen_date: datetime | None
) -> FindingStatus:
    """Map a raw status cell onto :class:`FindingStatus`.

    Unrecognised or blank cells fall back to the dates: a reopen date means
    Re-Opened, otherwise a closed date means Closed - Timely, otherwise Open.
    Lateness is never inferred.
    """
    if isinstance(raw, str):
        status = _STATUS_LITERALS.get(raw.strip().lower())
        if status is not None:
            return status
    if reopen_date is not None:
        return FindingStatus.REOPENED
    if closed_date is not None:
        return FindingStatus.CLOSED_TIMELY
    return FindingStatus.OPEN


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from *start* to *end*, rounded up. Negative if *end* is earlier."""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


# ── Row normalization ───────────────────────────────────────────


def _date_cell(row: Mapping[str, Any], header_map: HeaderMap, column: str, row_number: int) -> datetime | None:
    try:
        return parse_date(row.get(header_map[column]))
    except ValueError as exc:
        raise DateParseError(row_number, column) from exc


def normalize_row(row: Mapping[str, Any], header_map: HeaderMap, index: int) -> Finding:
    """Turn one raw row into a :class:`Finding`.

    Raises
    ------
    DateParseError
        If the finding date is missing or unparseable, or if a closed/reopen
        date is present but unparseable.
    """
    row_number = index + HEADER_ROW_OFFSET

    def cell(column: str) -> Any:
        return row.get(header_map[column])

    finding_date = _date_cell(row, header_map, "Issue Finding Date", row_number)
    if finding_date is None:
        raise DateParseError(row_number, "Issue Finding Date")
    closed_date = _date_cell(row, header_map, "Issue Closed Date", row_number)
    reopen_date = _date_cell(row, header_map, "Reopen Dates", row_number)

    # Negative durations (closed before found) are kept as-is.
    days_to_close = days_between(finding_date, closed_date) if closed_date is not None else None

    return Finding(
        id=index,
        category=_text(cell("Category")),
        question=_text(cell("Question")),
        responsible_team=_text(cell("Responsible Team")),
        issue_finding_date=finding_date,
        issue_closed_date=closed_date,
        reopen_date=reopen_date,
        status=normalize_status(cell("Status"), closed_date=closed_date, reopen_date=reopen_date),
        points=coerce_int(cell("Accumulated Points")),
        reopen_count=coerce_int(cell("Reopen Count")),
        days_to_close=days_to_close,
    )


# ── Finding set ─────────────────────────────────────────────────


def build_findings(
    rows: Sequence[RawRow], headers: Iterable[object] | None = None
) -> FindingSet:
    """Normalize every row, all-or-nothing.

    *headers* defaults to the keys of the first row. The first failing row
    aborts the whole set.
    """
    if not rows:
        raise EmptyInputError()
    header_map = resolve_columns(headers if headers is not None else rows[0].keys())
    findings = tuple(normalize_row(row, header_map, index) for index, row in enumerate(rows))
    logger.debug("Normalized %d findings", len(findings))
    return findings


def ingest(data: bytes, filename: str = "upload.xlsx") -> FindingSet:
    """Decode *data* (named *filename* for format detection) into a finding set.

    Raises
    ------
    IngestError
        Any subclass; nothing is returned for a partially valid file.
    """
    headers, rows = read_rows(data, filename)
    return build_findings(rows, headers)


# ── Aggregators ─────────────────────────────────────────────────


def _round_half_up(value: float, ndigits: int) -> float:
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def compute_dashboard_stats(findings: Sequence[Finding]) -> DashboardStats:
    """Totals per status plus average days to close."""
    total = len(findings)
    open_count = sum(1 for f in findings if f.status is FindingStatus.OPEN)
    reopened = sum(1 for f in findings if f.status is FindingStatus.REOPENED)

    durations = [f.days_to_close for f in findings if f.days_to_close is not None]
    avg = _round_half_up(sum(durations) / len(durations), 1) if durations else None

    return DashboardStats(
        total=total,
        open=open_count,
        closed=total - open_count,
        reopened=reopened,
        avg_days_to_close=avg,
    )


def compute_leaderboard(findings: Sequence[Finding]) -> list[TeamLeaderboardEntry]:
    """Group by responsible team and rank by total points, highest first.

    Teams are matched by exact name. Ties keep first-seen order.
    """
    teams: dict[str, TeamLeaderboardEntry] = {}
    for finding in findings:
        entry = teams.get(finding.responsible_team)
        if entry is None:
            entry = teams[finding.responsible_team] = TeamLeaderboardEntry(finding.responsible_team)
        entry.add(finding)
    return sorted(teams.values(), key=lambda e: e.total_points, reverse=True)


def findings_to_frame(findings: Sequence[Finding]) -> pd.DataFrame:
    """Return the findings listing, one row per finding in set order."""
    if not findings:
        return pd.DataFrame(columns=FINDINGS_TABLE_COLUMNS)
    records = [
        {
            "Category": f.category,
            "Question": f.question,
            "Responsible Team": f.responsible_team,
            "Finding Date": f.issue_finding_date.date(),
            "Closed Date": f.issue_closed_date.date() if f.issue_closed_date else None,
            "Status": f.status.value,
            "Reopen Count": f.reopen_count,
            "Points": f.points,
        }
        for f in findings
    ]
    return pd.DataFrame.from_records(records, columns=FINDINGS_TABLE_COLUMNS)
