"""Structural statistics derived from the canonical dataset.

Every function here is a pure read of an immutable ``Dataset``; nothing is
cached or mutated, so callers may invoke them concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from spreadsheet_search.columns import header_row, is_formula
from spreadsheet_search.spreadsheet import Dataset, Sheet

DEFAULT_MAX_CONCEPTS = 20


@dataclass(frozen=True)
class Stats:
    """Counts and header concepts for one dataset."""

    sheets: int
    total_cells: int
    formula_cells: int
    business_concepts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheets": self.sheets,
            "total_cells": self.total_cells,
            "formula_cells": self.formula_cells,
            "business_concepts": list(self.business_concepts),
        }


@dataclass(frozen=True)
class TabSummary:
    """Per-sheet summary shown after a load and in the current summary."""

    name: str
    row_count: int
    has_formulas: bool
    is_glossary_tab: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "row_count": self.row_count,
            "has_formulas": self.has_formulas,
            "is_glossary_tab": self.is_glossary_tab,
        }


def total_cells(dataset: Dataset) -> int:
    """Sum of row key counts across all sheets."""
    return sum(len(row) for sheet in dataset.sheets for row in sheet.rows)


def formula_cells(dataset: Dataset) -> int:
    """Number of cells holding a formula literal."""
    return sum(
        1
        for sheet in dataset.sheets
        for row in sheet.rows
        for value in row.values()
        if is_formula(value)
    )


def business_concepts(
    dataset: Dataset, limit: int = DEFAULT_MAX_CONCEPTS
) -> list[str]:
    """Lower-cased header strings, first occurrence wins, capped at ``limit``."""
    concepts: dict[str, None] = {}
    for sheet in dataset.sheets:
        for value in header_row(sheet.rows).values():
            if isinstance(value, str) and value.strip():
                concepts.setdefault(value.lower(), None)
    return list(concepts)[:limit]


def compute_stats(dataset: Dataset, max_concepts: int = DEFAULT_MAX_CONCEPTS) -> Stats:
    return Stats(
        sheets=len(dataset.sheets),
        total_cells=total_cells(dataset),
        formula_cells=formula_cells(dataset),
        business_concepts=business_concepts(dataset, max_concepts),
    )


def summarize_tab(sheet: Sheet, glossary_sheet: str | None = None) -> TabSummary:
    return TabSummary(
        name=sheet.name,
        row_count=sheet.row_count,
        has_formulas=sheet.has_formulas,
        is_glossary_tab=glossary_sheet is not None and sheet.name == glossary_sheet,
    )


def summarize_tabs(
    dataset: Dataset, glossary_sheet: str | None = None
) -> list[TabSummary]:
    """Summaries for every sheet, in dataset order."""
    return [summarize_tab(sheet, glossary_sheet) for sheet in dataset.sheets]
