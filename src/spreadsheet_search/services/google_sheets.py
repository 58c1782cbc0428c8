"""Fetch shared spreadsheets through the Google Sheets v4 REST API."""

from __future__ import annotations

import re
import time
from typing import Any
from urllib.parse import quote

import httpx

from spreadsheet_search.config import settings
from spreadsheet_search.utils.exceptions import FetchFailedError, InvalidReferenceError
from spreadsheet_search.utils.logging import get_logger

logger = get_logger(__name__)

SPREADSHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


def extract_spreadsheet_id(url: str) -> str | None:
    """Pull the spreadsheet id out of a sharing link, or None if absent."""
    if not isinstance(url, str):
        return None
    match = SPREADSHEET_ID_RE.search(url)
    return match.group(1) if match else None


def a1_range(sheet_title: str, cell_range: str) -> str:
    """Build ``'<title>'!<range>``; quoting keeps spaces and symbols valid."""
    escaped = sheet_title.replace("'", "''")
    return f"'{escaped}'!{cell_range}"


def _properties(resource: Any) -> dict[str, Any]:
    properties = resource.get("properties") if isinstance(resource, dict) else None
    return properties if isinstance(properties, dict) else {}


def sheet_titles(metadata: dict[str, Any]) -> list[str]:
    """Sheet titles in workbook order; entries without a string title are skipped."""
    sheets = metadata.get("sheets")
    if not isinstance(sheets, list):
        return []
    titles = [_properties(sheet).get("title") for sheet in sheets]
    return [title for title in titles if isinstance(title, str)]


class GoogleSheetsClient:
    """Read every sheet of a spreadsheet as a 2-D grid of display values."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        cell_range: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = (
            api_key if api_key is not None else settings.get_google_sheets_api_key()
        )
        self.base_url = (base_url or settings.google_sheets_base_url).rstrip("/")
        self.cell_range = cell_range or settings.google_sheets_range
        self.timeout = timeout or settings.google_sheets_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_by_reference(self, reference: str) -> dict[str, Any]:
        """Fetch all sheets of the spreadsheet behind ``reference``.

        Returns:
            ``{"title": ..., "metadata": ..., "sheets": {title: grid}}`` with
            sheets in spreadsheet order.

        Raises:
            InvalidReferenceError: If no spreadsheet id can be extracted.
            FetchFailedError: If the key is missing or the metadata request
                fails. A failing sheet yields an empty grid instead.
        """
        spreadsheet_id = extract_spreadsheet_id(reference)
        if not spreadsheet_id:
            raise InvalidReferenceError(reference)

        if not self.api_key:
            raise FetchFailedError(
                "Google Sheets API key not configured",
                reference=reference,
                details={"missing": "google_sheets_api_key"},
            )

        logger.info("Fetching spreadsheet metadata", spreadsheet_id=spreadsheet_id)
        metadata = await self._fetch_metadata(spreadsheet_id, reference)

        titles = sheet_titles(metadata)

        grids: dict[str, list[list[Any]]] = {}
        for title in titles:
            grids[title] = await self._fetch_values(spreadsheet_id, title)
        empty = [title for title, grid in grids.items() if not grid]
        logger.info("Fetched spreadsheet", sheets=len(grids), empty_sheets=len(empty))

        return {
            "title": _properties(metadata).get("title"),
            "metadata": metadata,
            "sheets": grids,
        }

    async def _fetch_metadata(
        self, spreadsheet_id: str, reference: str
    ) -> dict[str, Any]:
        client = await self._get_client()
        url = f"{self.base_url}/{spreadsheet_id}"
        start_time = time.time()
        try:
            response = await client.get(url, params={"key": self.api_key})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.log_api_call(
                "google_sheets",
                "get_metadata",
                time.time() - start_time,
                error=f"HTTP {e.response.status_code}",
            )
            raise FetchFailedError(
                f"Failed to fetch spreadsheet data: HTTP {e.response.status_code}",
                reference=reference,
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.log_api_call(
                "google_sheets",
                "get_metadata",
                time.time() - start_time,
                error=str(e),
            )
            raise FetchFailedError(
                f"Failed to fetch spreadsheet data: {e}", reference=reference
            ) from e

        logger.log_api_call("google_sheets", "get_metadata", time.time() - start_time)
        if not isinstance(data, dict):
            raise FetchFailedError(
                "Unexpected spreadsheet metadata format", reference=reference
            )
        return data

    async def _fetch_values(self, spreadsheet_id: str, title: str) -> list[list[Any]]:
        client = await self._get_client()
        cell_range = quote(a1_range(title, self.cell_range), safe="")
        url = f"{self.base_url}/{spreadsheet_id}/values/{cell_range}"
        try:
            response = await client.get(url, params={"key": self.api_key})
            response.raise_for_status()
            values = response.json().get("values") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(
                "Could not fetch sheet values; using empty grid",
                sheet=title,
                error=str(e),
            )
            return []

        if not isinstance(values, list):
            return []
        logger.debug("Fetched sheet values", sheet=title, rows=len(values))
        return values
