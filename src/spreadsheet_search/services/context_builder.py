"""Render the canonical dataset into bounded text for the LLM prompt.

The main context lists every sheet with its headers, a few sample rows and
the first formulas found. The glossary context renders a term/definition
sheet. Both are hard-truncated; truncation may cut mid-sheet.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from spreadsheet_search.columns import header_values, is_formula
from spreadsheet_search.config import Settings, settings
from spreadsheet_search.spreadsheet import Dataset, Sheet

GLOSSARY_HEADER = "DEFINITIONS AND BUSINESS TERMS:\n"


@dataclass(frozen=True)
class ContextLimits:
    """Size bounds applied while rendering contexts."""

    max_context_chars: int = 4000
    max_glossary_chars: int = 1000
    sample_rows: int = 5
    max_formulas: int = 10

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> ContextLimits:
        s = s or settings
        return cls(
            max_context_chars=s.context_max_chars,
            max_glossary_chars=s.glossary_max_chars,
            sample_rows=s.context_sample_rows,
            max_formulas=s.context_max_formulas,
        )


def _render_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def iter_formulas(sheet: Sheet) -> Iterator[str]:
    """Yield ``<column><row>: <formula>`` entries in row-then-column order."""
    for row_number, row in enumerate(sheet.rows, start=1):
        for column, value in row.items():
            if is_formula(value):
                yield f"{column}{row_number}: {value}"


def render_sheet(sheet: Sheet, limits: ContextLimits) -> str:
    parts = [f"\nSHEET: {sheet.name}\n"]
    if sheet.rows:
        headers = [_render_value(value) for value in header_values(sheet.rows)]
        parts.append(f"HEADERS: {', '.join(headers)}\n")

        parts.append("SAMPLE DATA:\n")
        for row_number, row in enumerate(sheet.rows[: limits.sample_rows], start=1):
            rendered = " | ".join(_render_value(value) for value in row.values())
            parts.append(f"Row {row_number}: {rendered}\n")

        formulas: list[str] = []
        for entry in iter_formulas(sheet):
            if len(formulas) >= limits.max_formulas:
                break
            formulas.append(entry)
        if formulas:
            parts.append(f"FORMULAS: {', '.join(formulas)}\n")
    parts.append("\n")
    return "".join(parts)


def build_context(dataset: Dataset, limits: ContextLimits | None = None) -> str:
    """Render all sheets of ``dataset`` in order, truncated to the context cap."""
    limits = limits or ContextLimits()
    text = "".join(render_sheet(sheet, limits) for sheet in dataset.sheets)
    return text[: limits.max_context_chars]


def _glossary_pair(row: Mapping[str, Any]) -> tuple[str, str] | None:
    term = row.get("A") or row.get("a")
    definition = row.get("B") or row.get("b")
    if not isinstance(term, str) or not isinstance(definition, str):
        return None
    if not term or not definition:
        return None
    return term, definition


def build_glossary_context(sheet: Sheet, limits: ContextLimits | None = None) -> str:
    """Render ``term: definition`` lines from columns A and B of ``sheet``.

    Rows where either side is missing or not text are skipped. Lower-case
    ``a``/``b`` keys are accepted for sources with case-insensitive columns.
    """
    limits = limits or ContextLimits()
    lines = [GLOSSARY_HEADER]
    for row in sheet.rows:
        pair = _glossary_pair(row)
        if pair is not None:
            lines.append(f"{pair[0]}: {pair[1]}\n")
    return "".join(lines)[: limits.max_glossary_chars]
