"""Single-slot holder for the currently loaded spreadsheet."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from types import MappingProxyType

from spreadsheet_search.spreadsheet import Dataset, Sheet
from spreadsheet_search.utils.exceptions import NotLoadedError, SheetNotFoundError
from spreadsheet_search.utils.logging import get_logger

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _freeze_sheet(sheet: Sheet) -> Sheet:
    return Sheet(
        name=sheet.name,
        rows=tuple(MappingProxyType(dict(row)) for row in sheet.rows),
    )


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of the store: the dataset plus the glossary tab name."""

    dataset: Dataset
    glossary_sheet: str | None = None

    def resolve_glossary(self) -> Sheet | None:
        """Return the glossary sheet if one is selected and still present."""
        if self.glossary_sheet is None:
            return None
        return self.dataset.get_sheet(self.glossary_sheet)


class SpreadsheetStore:
    """Holds exactly one dataset for the process lifetime.

    Every mutation swaps the snapshot reference in a single assignment, so a
    reader holding a snapshot never observes a half-built state.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utc_now
        self._snapshot: StoreSnapshot | None = None

    def load(self, dataset: Dataset) -> Dataset:
        """Install ``dataset``, discarding any previous one and the glossary choice.

        Rows are copied into read-only mappings, so later changes to the
        caller's rows never reach the stored dataset.

        Returns:
            The installed dataset, stamped with its load time.
        """
        stamped = dataclasses.replace(
            dataset,
            sheets=tuple(_freeze_sheet(sheet) for sheet in dataset.sheets),
            metadata=MappingProxyType(dict(dataset.metadata)),
            loaded_at=self._clock(),
        )
        previous = self._snapshot
        self._snapshot = StoreSnapshot(dataset=stamped)
        logger.info(
            "Spreadsheet loaded",
            name=stamped.name,
            sheets=len(stamped.sheets),
            replaced=previous.dataset.name if previous else None,
        )
        return stamped

    def current(self) -> StoreSnapshot | None:
        """Return the current snapshot, or None when nothing is loaded."""
        return self._snapshot

    def select_glossary(self, sheet_name: str) -> str:
        """Mark ``sheet_name`` as the glossary tab.

        Raises:
            NotLoadedError: If no dataset is loaded.
            SheetNotFoundError: If the name matches no sheet exactly.
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise NotLoadedError()

        if snapshot.dataset.get_sheet(sheet_name) is None:
            raise SheetNotFoundError(
                sheet_name, available=snapshot.dataset.sheet_names
            )

        if snapshot.glossary_sheet != sheet_name:
            self._snapshot = dataclasses.replace(snapshot, glossary_sheet=sheet_name)
            logger.info("Selected glossary tab", tab=sheet_name)
        return sheet_name
