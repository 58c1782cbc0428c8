"""Dataclasses representing the canonical in-memory spreadsheet."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeAlias

from spreadsheet_search.columns import is_formula

CellValue: TypeAlias = str | int | float | bool | None
Row: TypeAlias = Mapping[str, CellValue]


class SourceKind(str, Enum):
    """Where a dataset was loaded from."""

    FILE = "file"
    GOOGLE_SHEETS = "google_sheets"


@dataclass(frozen=True)
class Sheet:
    """A named sheet holding ordered rows keyed by column letter."""

    name: str
    rows: tuple[Row, ...]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def has_formulas(self) -> bool:
        return any(is_formula(value) for row in self.rows for value in row.values())


@dataclass(frozen=True)
class Dataset:
    """The loaded spreadsheet: display name, sheets in ingestion order, load time.

    ``loaded_at`` is stamped by the store when the dataset is installed.
    """

    name: str
    sheets: tuple[Sheet, ...]
    loaded_at: datetime | None = None
    source: SourceKind = SourceKind.FILE
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def get_sheet(self, name: str) -> Sheet | None:
        """Look up a sheet by exact, case-sensitive name."""
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None
