"""Data models used across the package."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from numbers import Integral
from typing import Any


class FindingStatus(str, Enum):
    OPEN = "Open"
    CLOSED_TIMELY = "Closed - Timely"
    CLOSED_LATE = "Closed - Late"
    REOPENED = "Re-Opened"


def _to_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    return int(value)


def _to_non_negative_int(value: Any, field_name: str) -> int:
    result = _to_int(value, field_name)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Finding:
    """One validated audit finding, built from exactly one sheet row.

    Contract invariant: ``days_to_close is None`` iff ``issue_closed_date is None``.
    """

    id: int
    category: str
    question: str
    responsible_team: str
    issue_finding_date: datetime
    issue_closed_date: datetime | None
    reopen_date: datetime | None
    status: FindingStatus
    points: int = 0
    reopen_count: int = 0
    days_to_close: int | None = None

    def __post_init__(self) -> None:
        _to_non_negative_int(self.id, "id")
        _to_int(self.points, "points")
        _to_int(self.reopen_count, "reopen_count")
        if not isinstance(self.status, FindingStatus):
            raise TypeError("status must be a FindingStatus")
        if not isinstance(self.issue_finding_date, datetime):
            raise TypeError("issue_finding_date must be a datetime")
        if (self.days_to_close is None) != (self.issue_closed_date is None):
            raise ValueError("days_to_close must be set exactly when issue_closed_date is set")
        if self.days_to_close is not None:
            _to_int(self.days_to_close, "days_to_close")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "question": self.question,
            "responsible_team": self.responsible_team,
            "issue_finding_date": self.issue_finding_date.isoformat(),
            "issue_closed_date": _iso_or_none(self.issue_closed_date),
            "reopen_date": _iso_or_none(self.reopen_date),
            "status": self.status.value,
            "points": self.points,
            "reopen_count": self.reopen_count,
            "days_to_close": self.days_to_close,
        }


@dataclass(frozen=True)
class DashboardStats:
    """Headline numbers for the dashboard view.

    ``closed`` counts every finding that is not Open, re-opened ones included.
    ``avg_days_to_close`` is ``None`` when no finding has a closed date.
    """

    total: int = 0
    open: int = 0
    closed: int = 0
    reopened: int = 0
    avg_days_to_close: float | None = None

    def __post_init__(self) -> None:
        for name in ("total", "open", "closed", "reopened"):
            _to_non_negative_int(getattr(self, name), name)
        if self.open + self.closed != self.total:
            raise ValueError("closed must equal total - open")

    @property
    def avg_days_to_close_display(self) -> str:
        if self.avg_days_to_close is None:
            return "N/A"
        return f"{self.avg_days_to_close:.1f}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "open": self.open,
            "closed": self.closed,
            "reopened": self.reopened,
            "avg_days_to_close": self.avg_days_to_close,
        }


@dataclass
class TeamLeaderboardEntry:
    """Per-team point total and status counters."""

    team_name: str
    total_points: int = 0
    timely_closed: int = 0
    late_closed: int = 0
    reopened: int = 0
    still_open: int = 0

    def add(self, finding: Finding) -> None:
        self.total_points += finding.points
        if finding.status is FindingStatus.CLOSED_TIMELY:
            self.timely_closed += 1
        elif finding.status is FindingStatus.CLOSED_LATE:
            self.late_closed += 1
        elif finding.status is FindingStatus.REOPENED:
            self.reopened += 1
        else:
            self.still_open += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_name": self.team_name,
            "total_points": self.total_points,
            "timely_closed": self.timely_closed,
            "late_closed": self.late_closed,
            "reopened": self.reopened,
            "still_open": self.still_open,
        }
