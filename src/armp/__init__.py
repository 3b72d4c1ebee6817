"""armp — Audit findings spreadsheets into dashboard stats and team leaderboards."""

import logging

__version__ = "0.1.0"

REQUIRED_COLUMNS: tuple[str, ...] = (
    "Category",
    "Question",
    "Responsible Team",
    "Issue Finding Date",
    "Issue Closed Date",
    "Reopen Dates",
    "Status",
    "Reopen Count",
    "Accumulated Points",
)

logging.getLogger(__name__).addHandler(logging.NullHandler())
