"""Column-letter math and row conventions shared by ingestion and rendering."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

HEADER_ROW_INDEX = 0
FORMULA_PREFIX = "="


def column_letter(index: int) -> str:
    """Convert a 1-based column index to its spreadsheet letter label.

    Bijective base-26 with no zero digit: 1 -> A, 26 -> Z, 27 -> AA, 702 -> ZZ.
    """
    if index < 1:
        raise ValueError(f"Column index must be at least 1, got {index}")
    letters: list[str] = []
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(ord("A") + remainder))
    return "".join(reversed(letters))


def is_formula(value: Any) -> bool:
    """Return True for string cell values holding a formula literal."""
    return isinstance(value, str) and value.startswith(FORMULA_PREFIX)


def header_row(rows: Sequence[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Return the header row (row 0) or an empty mapping for a sheet without rows."""
    if len(rows) <= HEADER_ROW_INDEX:
        return {}
    return rows[HEADER_ROW_INDEX]


def header_values(rows: Sequence[Mapping[str, Any]]) -> list[Any]:
    """Return the truthy header values in column order."""
    return [value for value in header_row(rows).values() if value]


def header_strings(rows: Sequence[Mapping[str, Any]]) -> list[str]:
    """Return non-blank textual header values, stripped, in column order."""
    return [
        value.strip()
        for value in header_row(rows).values()
        if isinstance(value, str) and value.strip()
    ]
