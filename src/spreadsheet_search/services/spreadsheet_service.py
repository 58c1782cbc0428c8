"""Service facade wiring ingestion, the store, analytics and the orchestrator.

The HTTP layer talks only to :class:`SpreadsheetService`; every operation
here returns plain data (dataclasses or dicts) and raises the domain errors
from :mod:`spreadsheet_search.utils.exceptions`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from spreadsheet_search.columns import header_strings
from spreadsheet_search.config import Settings, settings
from spreadsheet_search.services import ingestion
from spreadsheet_search.services.analytics import (
    Stats,
    TabSummary,
    compute_stats,
    summarize_tabs,
)
from spreadsheet_search.services.context_builder import ContextLimits
from spreadsheet_search.services.file_parser import SpreadsheetFileParser
from spreadsheet_search.services.google_sheets import GoogleSheetsClient
from spreadsheet_search.services.llm_client import CollaboratorHealth, ReasoningClient
from spreadsheet_search.services.orchestrator import QueryOrchestrator
from spreadsheet_search.services.reply_parser import SearchResult
from spreadsheet_search.spreadsheet import Dataset
from spreadsheet_search.store import SpreadsheetStore
from spreadsheet_search.utils.exceptions import FileTooLargeError
from spreadsheet_search.utils.logging import LogContext, get_logger, timed_operation

logger = get_logger(__name__)

MIN_SUGGESTION_QUERY_LENGTH = 2
DEFAULT_MAX_SUGGESTIONS = 8
GENERIC_SUGGESTIONS = (
    "Find maximum values",
    "Show totals and averages",
    "Calculate growth rates",
    "Compare performance metrics",
)

EXAMPLE_QUERIES: tuple[dict[str, Any], ...] = (
    {
        "category": "Financial Metrics",
        "queries": [
            "Find all revenue data",
            "Show profit calculations",
            "Where are my margins?",
            "Calculate growth rates",
        ],
    },
    {
        "category": "Performance Analysis",
        "queries": [
            "Find top performers",
            "Show efficiency metrics",
            "Compare quarterly results",
            "Analyze trends over time",
        ],
    },
    {
        "category": "Data Exploration",
        "queries": [
            "Show all calculations",
            "Find percentage values",
            "Where are the totals?",
            "List all metrics",
        ],
    },
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class LoadSummary:
    """What a caller learns after loading a dataset."""

    title: str
    description: str
    stats: Stats
    tabs: list[TabSummary] = field(default_factory=list)
    loaded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "stats": self.stats.to_dict(),
            "tabs": [tab.to_dict() for tab in self.tabs],
            "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
        }


class SpreadsheetService:
    """Outward interface over one process-wide store."""

    def __init__(
        self,
        store: SpreadsheetStore | None = None,
        client: ReasoningClient | None = None,
        sheets_client: GoogleSheetsClient | None = None,
        parser: SpreadsheetFileParser | None = None,
        config: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or settings
        self.clock = clock or _utc_now
        self.store = store or SpreadsheetStore(clock=self.clock)
        self.client = client or ReasoningClient()
        self.sheets_client = sheets_client or GoogleSheetsClient()
        self.parser = parser or SpreadsheetFileParser(
            self.config.allowed_extensions_list
        )
        self.orchestrator = QueryOrchestrator(
            self.store, self.client, ContextLimits.from_settings(self.config)
        )

    async def aclose(self) -> None:
        await self.sheets_client.close()

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    async def load_file(self, content: bytes, filename: str) -> LoadSummary:
        """Parse an uploaded file, install it, and describe it.

        Raises:
            FileTooLargeError: If the content exceeds the configured size.
            UnsupportedFormatError: If the extension is not accepted.
            FileParseError: If the file cannot be read.
            CollaboratorError: If the description call fails for a reason
                other than quota exhaustion.
        """
        if len(content) > self.config.max_file_size_bytes:
            raise FileTooLargeError(
                file_size=len(content),
                max_size=self.config.max_file_size_bytes,
                filename=filename,
            )

        with LogContext(source="file", filename=filename):
            workbook = self.parser.parse(content, filename)
            dataset = ingestion.from_parsed_file(workbook)
            return await self._install(dataset)

    async def load_google_sheet(self, link: str) -> LoadSummary:
        """Fetch a shared spreadsheet by link, install it, and describe it.

        Raises:
            InvalidReferenceError: If the link holds no spreadsheet id.
            FetchFailedError: If the spreadsheet cannot be fetched.
            InvalidSourceShapeError: If the fetched payload is malformed.
        """
        with LogContext(source="google_sheets"):
            payload = await self.sheets_client.fetch_by_reference(link)
            dataset = ingestion.from_google_sheets(payload)
            return await self._install(dataset)

    async def _install(self, dataset: Dataset) -> LoadSummary:
        with timed_operation(logger, "load") as metrics:
            stamped = self.store.load(dataset)
            stats = self._stats(stamped)
            metrics.sheets = len(stamped.sheets)
            metrics.cells = stats.total_cells
            metrics.llm_calls += 1
            description = await self.orchestrator.describe(stamped)
        return LoadSummary(
            title=stamped.name,
            description=description,
            stats=stats,
            tabs=summarize_tabs(stamped),
            loaded_at=stamped.loaded_at,
        )

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def search(self, query: str, timeout: float | None = None) -> SearchResult:
        return await self.orchestrator.search(query, timeout=timeout)

    def select_glossary(self, tab_name: str) -> dict[str, Any]:
        """Designate ``tab_name`` as the glossary sheet and confirm it."""
        selected = self.store.select_glossary(tab_name)
        return {
            "success": True,
            "selected_tab": selected,
            "message": f'Tab "{selected}" selected as training/glossary data',
        }

    def _stats(self, dataset: Dataset) -> Stats:
        return compute_stats(dataset, self.config.max_business_concepts)

    def stats(self) -> Stats | None:
        snapshot = self.store.current()
        if snapshot is None:
            return None
        return self._stats(snapshot.dataset)

    def current_spreadsheet(self) -> dict[str, Any] | None:
        """Summary of the resident dataset, or None when nothing is loaded."""
        snapshot = self.store.current()
        if snapshot is None:
            return None
        dataset = snapshot.dataset
        processed_at = dataset.loaded_at.isoformat() if dataset.loaded_at else None
        tabs = summarize_tabs(dataset, snapshot.glossary_sheet)
        return {
            "file_name": dataset.name,
            "source": dataset.source.value,
            "stats": self._stats(dataset).to_dict(),
            "tabs": [tab.to_dict() for tab in tabs],
            "selected_glossary_tab": snapshot.glossary_sheet,
            "processed_at": processed_at,
        }

    def analytics(self) -> dict[str, Any]:
        """Aggregate counts for dashboards; ``has_data`` is False when empty."""
        timestamp = self.clock().isoformat()
        summary = self.current_spreadsheet()
        if summary is None:
            return {
                "has_data": False,
                "message": "No spreadsheet loaded",
                "timestamp": timestamp,
            }

        stats = summary["stats"]
        return {
            "has_data": True,
            "file_name": summary["file_name"],
            "total_sheets": stats["sheets"],
            "total_cells": stats["total_cells"],
            "total_formulas": stats["formula_cells"],
            "business_concepts": len(stats["business_concepts"]),
            "selected_glossary_tab": summary["selected_glossary_tab"],
            "tabs": summary["tabs"],
            "processed_at": summary["processed_at"],
            "timestamp": timestamp,
        }

    def suggestions(
        self, partial_query: str, max_suggestions: int = DEFAULT_MAX_SUGGESTIONS
    ) -> list[str]:
        """Header-driven query suggestions for a partially typed query."""
        if len((partial_query or "").strip()) < MIN_SUGGESTION_QUERY_LENGTH:
            return []

        snapshot = self.store.current()
        if snapshot is None:
            return []

        headers: dict[str, None] = {}
        for sheet in snapshot.dataset.sheets:
            for header in header_strings(sheet.rows):
                headers.setdefault(header, None)
        names = list(headers)

        suggestions = [
            *(f"Find all {header} data" for header in names[:5]),
            *(f"Show {header} values" for header in names[:3]),
            *GENERIC_SUGGESTIONS,
        ]
        return suggestions[:max_suggestions]

    @staticmethod
    def example_queries() -> list[dict[str, Any]]:
        """Static catalog of example queries grouped by category."""
        return [
            {"category": group["category"], "queries": list(group["queries"])}
            for group in EXAMPLE_QUERIES
        ]

    async def collaborator_health(self) -> CollaboratorHealth:
        health = await self.client.health_check()
        logger.info(
            "LLM health checked",
            status=health.status.value,
            system_status=health.system_status,
        )
        return health
