"""Convert external spreadsheet shapes into the canonical Dataset.

Two sources converge here:

- Google Sheets payloads: ``{"title": ..., "sheets": {name: 2-D grid}}``
- Parsed files: :class:`ParsedWorkbook` (or the equivalent mapping
  ``{"name": ..., "sheets": [{"name": ..., "data": [...]}]}``)

Both paths sanitize spreadsheet error markers and drop sheets without rows,
so a zero-row sheet never reaches the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from spreadsheet_search.columns import column_letter
from spreadsheet_search.services.file_parser import ParsedSheet, ParsedWorkbook
from spreadsheet_search.spreadsheet import CellValue, Dataset, Row, Sheet, SourceKind
from spreadsheet_search.utils.exceptions import InvalidSourceShapeError
from spreadsheet_search.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_MARKERS = ("#DIV/0!", "#NAME?", "#REF!", "#VALUE!")
ERROR_REPLACEMENT = "0"
DEFAULT_TITLE = "Untitled Spreadsheet"


def sanitize_cell(value: Any) -> CellValue:
    """Replace error markers with "0"; keep formulas and other values verbatim."""
    if value is None:
        return ""
    if isinstance(value, str):
        if any(marker in value for marker in ERROR_MARKERS):
            return ERROR_REPLACEMENT
        return value
    if isinstance(value, (bool, int, float)):
        return value
    return str(value)


def grid_row_to_row(values: Sequence[Any] | None) -> Row:
    """Key a positional row by column letter (1 -> A, 27 -> AA)."""
    if not values:
        return {}
    return {
        column_letter(col_idx): sanitize_cell(value)
        for col_idx, value in enumerate(values, start=1)
    }


def mapping_row_to_row(values: Mapping[str, Any]) -> Row:
    """Sanitize a row that is already keyed by column letter."""
    return {str(key): sanitize_cell(value) for key, value in values.items()}


def _convert_rows(
    rows: Iterable[Sequence[Any] | Mapping[str, Any] | None],
) -> tuple[Row, ...]:
    converted: list[Row] = []
    for row in rows:
        if isinstance(row, Mapping):
            converted.append(mapping_row_to_row(row))
        elif row is None or isinstance(row, (list, tuple)):
            converted.append(grid_row_to_row(row))
        else:
            raise InvalidSourceShapeError(
                f"Unsupported row type: {type(row).__name__}",
                details={"row_type": type(row).__name__},
            )
    return tuple(converted)


def _build_sheets(
    named_rows: Iterable[tuple[str, Any]], source: SourceKind
) -> tuple[Sheet, ...]:
    sheets: list[Sheet] = []
    for name, rows in named_rows:
        if not rows:
            logger.info("Skipping empty sheet", sheet=name, source=source.value)
            continue
        if not isinstance(rows, (list, tuple)):
            raise InvalidSourceShapeError(
                f'Sheet "{name}" rows must be a list',
                source=source.value,
                details={"sheet": name},
            )
        sheet = Sheet(name=str(name), rows=_convert_rows(rows))
        logger.debug("Converted sheet", sheet=sheet.name, rows=sheet.row_count)
        sheets.append(sheet)
    return tuple(sheets)


def from_google_sheets(payload: Mapping[str, Any]) -> Dataset:
    """Build a Dataset from a sheet-name -> 2-D grid mapping.

    Raises:
        InvalidSourceShapeError: If ``payload["sheets"]`` is missing or not a mapping.
    """
    if not isinstance(payload, Mapping):
        raise InvalidSourceShapeError(
            "Invalid Google Sheets data structure",
            source=SourceKind.GOOGLE_SHEETS.value,
        )
    grids = payload.get("sheets")
    if not isinstance(grids, Mapping):
        raise InvalidSourceShapeError(
            "Invalid Google Sheets data structure",
            source=SourceKind.GOOGLE_SHEETS.value,
        )

    metadata = payload.get("metadata") or {}
    title = payload.get("title") or _metadata_title(metadata) or DEFAULT_TITLE
    sheets = _build_sheets(grids.items(), SourceKind.GOOGLE_SHEETS)

    logger.info("Converted Google Sheets data", title=title, sheets=len(sheets))
    return Dataset(
        name=str(title),
        sheets=sheets,
        source=SourceKind.GOOGLE_SHEETS,
        metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
    )


def from_parsed_file(source: ParsedWorkbook | Mapping[str, Any]) -> Dataset:
    """Build a Dataset from the file parser's sheet-oriented output.

    Raises:
        InvalidSourceShapeError: If the sheet collection is missing or malformed.
    """
    if isinstance(source, ParsedWorkbook):
        name = source.name
        named_rows = [(sheet.name, sheet.rows) for sheet in source.sheets]
        metadata: Mapping[str, Any] = source.metadata
    elif isinstance(source, Mapping) and isinstance(source.get("sheets"), list):
        name = str(source.get("name") or source.get("title") or DEFAULT_TITLE)
        named_rows = [_sheet_entry(entry) for entry in source["sheets"]]
        metadata = source.get("metadata") or {}
    else:
        raise InvalidSourceShapeError(
            "Parsed file has no sheet collection", source=SourceKind.FILE.value
        )

    sheets = _build_sheets(named_rows, SourceKind.FILE)
    logger.info("Converted parsed file", name=name, sheets=len(sheets))
    return Dataset(
        name=name,
        sheets=sheets,
        source=SourceKind.FILE,
        metadata=dict(metadata),
    )


def _sheet_entry(entry: Any) -> tuple[str, Any]:
    if isinstance(entry, ParsedSheet):
        return entry.name, entry.rows
    if isinstance(entry, Mapping) and "name" in entry:
        return str(entry["name"]), entry.get("data", entry.get("rows"))
    raise InvalidSourceShapeError(
        "Sheet entries must have a name and rows", source=SourceKind.FILE.value
    )


def _metadata_title(metadata: Any) -> str | None:
    if not isinstance(metadata, Mapping):
        return None
    properties = metadata.get("properties")
    if isinstance(properties, Mapping):
        title = properties.get("title")
        return str(title) if title else None
    return None
