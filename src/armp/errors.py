"""Ingestion error taxonomy.

Every error raised while turning an uploaded sheet into findings derives from
:class:`IngestError`, and ``str(exc)`` is always a message fit to show a user.
"""

from __future__ import annotations

GENERIC_FAILURE_MESSAGE = "An unexpected error occurred while processing the file."


class IngestError(ValueError):
    """Base class for anything that aborts an ingestion."""


class InputReadError(IngestError):
    """The file bytes could not be read or decoded into rows."""


class EmptyInputError(IngestError):
    """The decoded sheet has no data rows."""

    def __init__(
        self, message: str = "The uploaded file is empty or in an unsupported format."
    ) -> None:
        super().__init__(message)


class SchemaError(IngestError):
    """A required column has no (or more than one) matching header."""

    def __init__(self, column: str, message: str | None = None) -> None:
        self.column = column
        if message is None:
            message = (
                f'Missing required column: "{column}". '
                "Please ensure your Excel file contains all required columns."
            )
        super().__init__(message)


class DateParseError(IngestError):
    """A date cell could not be interpreted as a calendar date.

    ``row`` is the human-facing sheet row number (header row is row 1).
    """

    def __init__(self, row: int, field: str) -> None:
        self.row = row
        self.field = field
        super().__init__(f"Invalid date format in row {row} for '{field}'.")


class IngestInProgressError(IngestError):
    """A new upload was started while another one is still loading."""

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        super().__init__(
            f'Still processing "{file_name}". Wait for it to finish before uploading again.'
        )
