"""Spreadsheet file parser for uploaded workbooks and CSV files."""

from __future__ import annotations

import io
import re
import zipfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Any

import chardet
import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from spreadsheet_search.columns import column_letter
from spreadsheet_search.spreadsheet import CellValue
from spreadsheet_search.utils.exceptions import FileParseError, UnsupportedFormatError
from spreadsheet_search.utils.logging import get_logger

logger = get_logger(__name__)

EXCEL_EXTENSIONS = frozenset({"xlsx", "xlsm"})
CSV_EXTENSIONS = frozenset({"csv"})

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")

MIN_ENCODING_CONFIDENCE = 0.7
FALLBACK_ENCODINGS = ("utf-8", "cp1252", "latin-1")


@dataclass
class ParsedSheet:
    """One sheet as produced by the parser.

    Rows are either positional value lists or mappings keyed by column letter.
    """

    name: str
    rows: list[Sequence[Any] | Mapping[str, Any]]


@dataclass
class ParsedWorkbook:
    """A parsed file: its display name and sheets in workbook order."""

    name: str
    sheets: list[ParsedSheet]
    metadata: dict[str, Any] = field(default_factory=dict)


class SpreadsheetFileParser:
    """Parse uploaded spreadsheet bytes using openpyxl (Excel) or pandas (CSV)."""

    def __init__(self, allowed_extensions: Sequence[str] | None = None) -> None:
        self.allowed_extensions = frozenset(
            ext.lower().lstrip(".")
            for ext in (allowed_extensions or EXCEL_EXTENSIONS | CSV_EXTENSIONS)
        )

    def parse(self, content: bytes, filename: str) -> ParsedWorkbook:
        """Parse file content into a sheet-oriented structure.

        Raises:
            UnsupportedFormatError: If the extension is not accepted.
            FileParseError: If the content cannot be read.
        """
        extension = PurePath(filename).suffix.lower().lstrip(".")
        if extension not in self.allowed_extensions:
            raise UnsupportedFormatError(
                f"Unsupported file type: .{extension or '?'}",
                extension=extension or None,
                filename=filename,
            )

        if extension in EXCEL_EXTENSIONS:
            workbook = self._parse_excel(content, filename)
        elif extension in CSV_EXTENSIONS:
            workbook = self._parse_csv(content, filename)
        else:
            raise UnsupportedFormatError(
                f"No parser registered for .{extension}",
                extension=extension,
                filename=filename,
            )

        logger.info(
            "Parsed spreadsheet file",
            filename=filename,
            sheets=len(workbook.sheets),
        )
        return workbook

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _parse_excel(self, content: bytes, filename: str) -> ParsedWorkbook:
        # data_only=False keeps formulas as their "=..." source text
        try:
            workbook = load_workbook(
                filename=io.BytesIO(content), data_only=False, read_only=True
            )
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise FileParseError(
                f"Could not read Excel workbook: {e}", filename=filename
            ) from e

        try:
            sheets = [
                ParsedSheet(name=worksheet.title, rows=self._worksheet_rows(worksheet))
                for worksheet in workbook.worksheets
            ]
            sheet_names = list(workbook.sheetnames)
        finally:
            workbook.close()

        return ParsedWorkbook(
            name=filename,
            sheets=sheets,
            metadata={"sheet_names": sheet_names, "format": "excel"},
        )

    def _worksheet_rows(
        self, worksheet: Worksheet
    ) -> list[Sequence[Any] | Mapping[str, Any]]:
        """Read a worksheet as letter-keyed rows, omitting empty cells."""
        rows: list[Sequence[Any] | Mapping[str, Any]] = []
        for values in worksheet.iter_rows(values_only=True):
            row: dict[str, CellValue] = {}
            for col_idx, value in enumerate(values, start=1):
                if value is None:
                    continue
                row[column_letter(col_idx)] = self._to_cell_value(value)
            rows.append(row)

        # Trailing blank rows carry no data
        while rows and not rows[-1]:
            rows.pop()
        return rows

    def _parse_csv(self, content: bytes, filename: str) -> ParsedWorkbook:
        encoding = self._detect_encoding(content)
        try:
            frame = pd.read_csv(
                io.BytesIO(content),
                encoding=encoding,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
            )
        except pd.errors.EmptyDataError:
            frame = pd.DataFrame()
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise FileParseError(
                f"Could not read CSV file: {e}", filename=filename
            ) from e

        grid = [
            [self._coerce_text(value) for value in record]
            for record in frame.itertuples(index=False, name=None)
        ]
        return ParsedWorkbook(
            name=filename,
            sheets=[ParsedSheet(name=PurePath(filename).stem or "Sheet1", rows=grid)],
            metadata={"format": "csv", "encoding": encoding},
        )

    @staticmethod
    def _detect_encoding(content: bytes) -> str:
        """Guess the text encoding of CSV bytes, falling back to common codecs."""
        if not content:
            return "utf-8"

        result = chardet.detect(content)
        encoding = result.get("encoding")
        confidence = result.get("confidence", 0.0) or 0.0
        if encoding and confidence >= MIN_ENCODING_CONFIDENCE:
            logger.debug(
                "Detected CSV encoding", encoding=encoding, confidence=confidence
            )
            return encoding.lower()

        for fallback in FALLBACK_ENCODINGS:
            try:
                content.decode(fallback)
            except UnicodeDecodeError:
                continue
            logger.debug("Using fallback CSV encoding", encoding=fallback)
            return fallback
        # latin-1 decodes any byte string, so the loop always returns
        return "latin-1"

    @staticmethod
    def _to_cell_value(value: Any) -> CellValue:
        """Map openpyxl values onto canonical cell values."""
        if isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        return str(value)

    @staticmethod
    def _coerce_text(text: str) -> CellValue:
        """Turn numeric CSV text into numbers; leave everything else as text."""
        stripped = text.strip()
        if not _NUMBER_RE.match(stripped):
            return text
        if _INTEGER_RE.match(stripped):
            return int(stripped)
        return float(stripped)
