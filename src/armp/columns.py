"""Column resolution — match required logical columns to actual sheet headers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from armp import REQUIRED_COLUMNS
from armp.errors import SchemaError

logger = logging.getLogger(__name__)

HeaderMap = dict[str, str]


def _normalize_header_name(name: object) -> str:
    return str(name).strip().lower()


def resolve_columns(
    headers: Iterable[object], required: Sequence[str] = REQUIRED_COLUMNS
) -> HeaderMap:
    """Return ``{logical column: actual header}`` for every column in *required*.

    Matching ignores case and surrounding whitespace on both sides.

    Raises
    ------
    SchemaError
        For the first required column with no matching header, or with more
        than one.
    """
    by_key: dict[str, list[str]] = {}
    for header in headers:
        by_key.setdefault(_normalize_header_name(header), []).append(str(header))

    header_map: HeaderMap = {}
    for column in required:
        matches = by_key.get(_normalize_header_name(column), [])
        if not matches:
            raise SchemaError(column)
        if len(matches) > 1:
            raise SchemaError(
                column,
                f'Column "{column}" matches more than one header '
                f"({' + '.join(repr(m) for m in matches)}). Rename or remove one.",
            )
        header_map[column] = matches[0]

    logger.debug("Resolved headers: %s", header_map)
    return header_map
