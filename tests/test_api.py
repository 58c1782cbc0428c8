"""Tests for the FastAPI application."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi import status

from spreadsheet_search.api import create_app
from spreadsheet_search.config import Settings
from spreadsheet_search.services.llm_client import ReasoningClient
from spreadsheet_search.services.spreadsheet_service import SpreadsheetService
from spreadsheet_search.spreadsheet import Dataset

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@asynccontextmanager
async def create_test_client(
    service: SpreadsheetService,
    raise_app_exceptions: bool = True,
) -> AsyncIterator[httpx.AsyncClient]:
    """Create an async test client with proper lifespan handling.

    Args:
        service: Service instance the app should expose.
        raise_app_exceptions: Whether unhandled errors propagate to the test.
    """
    app = create_app(service=service)
    async with (
        app.router.lifespan_context(app),
        httpx.AsyncClient(
            transport=httpx.ASGITransport(
                app=app, raise_app_exceptions=raise_app_exceptions
            ),
            base_url="http://test",
        ) as client,
    ):
        client.app = app  # type: ignore[attr-defined]
        yield client


@pytest.fixture
def sheets_client() -> MagicMock:
    sheets_client = MagicMock()
    sheets_client.fetch_by_reference = AsyncMock(
        return_value={
            "title": "Team Budget",
            "sheets": {"Budget": [["Dept", "Spend"], ["Ops", "1200"]]},
        }
    )
    sheets_client.close = AsyncMock()
    return sheets_client


@pytest.fixture
def make_api_client(
    clock: Callable[[], datetime],
    make_client: Callable[..., ReasoningClient],
    sheets_client: MagicMock,
) -> Callable[..., Any]:
    """Build a test client whose LLM answers with ``replies`` in order."""

    def _make(
        *replies: str | Exception,
        client: ReasoningClient | None = None,
        raise_app_exceptions: bool = True,
    ) -> Any:
        service = SpreadsheetService(
            client=client or make_client(*replies),
            sheets_client=sheets_client,
            config=Settings(_env_file=None, max_file_size_mb=1),
            clock=clock,
        )
        return create_test_client(service, raise_app_exceptions=raise_app_exceptions)

    return _make


@pytest.fixture
async def client(
    make_api_client: Callable[..., Any],
) -> AsyncIterator[httpx.AsyncClient]:
    """Create an async test client with an idle LLM."""
    async with make_api_client() as ac:
        yield ac


async def _upload(
    ac: httpx.AsyncClient, content: bytes, filename: str = "sales.xlsx"
) -> httpx.Response:
    return await ac.post(
        "/api/upload", files={"file": (filename, content, XLSX_MIME)}
    )


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    async def test_health_check(self, client: httpx.AsyncClient) -> None:
        """Test that health check reports healthy with version and timestamp."""
        response = await client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert isinstance(datetime.fromisoformat(data["timestamp"]), datetime)

    async def test_request_id_echoed(self, client: httpx.AsyncClient) -> None:
        """Test that a caller-supplied request ID is returned."""
        response = await client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    async def test_request_id_generated(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")
        assert response.headers["X-Request-ID"]

    async def test_openapi_json_available(self, client: httpx.AsyncClient) -> None:
        """Test that OpenAPI JSON schema is available."""
        response = await client.get("/openapi.json")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["info"]["title"] == "Spreadsheet Search API"


class TestUploadEndpoint:
    """Tests for the spreadsheet upload endpoint."""

    async def test_upload_workbook(
        self,
        make_api_client: Callable[..., Any],
        sales_workbook_bytes: bytes,
        fixed_now: datetime,
    ) -> None:
        """Test that an uploaded workbook is loaded and summarized."""
        async with make_api_client("Your data is regional sales.") as ac:
            response = await _upload(ac, sales_workbook_bytes)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Spreadsheet processed successfully"
        assert data["title"] == "sales.xlsx"
        assert data["description"] == "Your data is regional sales."
        assert data["stats"]["sheets"] == 2
        assert data["stats"]["formula_cells"] == 2
        assert [tab["name"] for tab in data["tabs"]] == ["Sales", "Notes"]
        assert data["loaded_at"] == fixed_now.isoformat()

    async def test_upload_csv(self, make_api_client: Callable[..., Any]) -> None:
        async with make_api_client("Costs.") as ac:
            response = await _upload(ac, b"Item,Cost\nRent,1200\n", "costs.csv")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["tabs"][0]["name"] == "costs"

    async def test_unsupported_extension(self, client: httpx.AsyncClient) -> None:
        """Test that non-spreadsheet uploads are rejected with 400."""
        response = await _upload(client, b"hello", "notes.txt")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["error_code"] == "E1002"
        assert data["request_id"]

    async def test_file_too_large(self, client: httpx.AsyncClient) -> None:
        response = await _upload(client, b"x" * (1024 * 1024 + 1), "big.csv")

        assert response.status_code == 413
        assert response.json()["error_code"] == "E1001"

    async def test_corrupt_workbook(self, client: httpx.AsyncClient) -> None:
        response = await _upload(client, b"not a workbook", "broken.xlsx")

        assert response.status_code == 422
        assert response.json()["error_code"] == "E1003"

    async def test_missing_file_field(self, client: httpx.AsyncClient) -> None:
        """Test that a request without a file is an invalid request."""
        response = await client.post("/api/upload", data={"other": "value"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "E3002"

    async def test_quota_error_uses_fallback_description(
        self,
        make_api_client: Callable[..., Any],
        sales_workbook_bytes: bytes,
    ) -> None:
        async with make_api_client(RuntimeError("429 quota exceeded")) as ac:
            response = await _upload(ac, sales_workbook_bytes)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["description"].startswith("Business data with 2 sheets")


class TestGoogleSheetsEndpoint:
    """Tests for loading Google Sheets links."""

    async def test_load_link(
        self, make_api_client: Callable[..., Any], sheets_client: MagicMock
    ) -> None:
        link = "https://docs.google.com/spreadsheets/d/abc123/edit"
        async with make_api_client("Team budget.") as ac:
            response = await ac.post("/api/google-sheets", json={"link": link})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["message"] == "Google Sheets data processed successfully"
        assert data["title"] == "Team Budget"
        sheets_client.fetch_by_reference.assert_awaited_once_with(link)

    async def test_missing_link(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/google-sheets", json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestSearchEndpoint:
    """Tests for the search endpoint."""

    async def test_search_without_data(self, client: httpx.AsyncClient) -> None:
        """Test that searching with nothing loaded is informational, not an error."""
        response = await client.post("/api/search", json={"query": "revenue?"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["answer"] == "No spreadsheet loaded"
        assert data["is_from_collaborator"] is False
        assert data["message"] == "Please upload a spreadsheet first to enable search."

    async def test_empty_query(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/search", json={"query": "   "})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "E3001"

    async def test_missing_query_field(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/search", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["error_code"] == "E3002"
        assert data["details"]["errors"][0]["loc"] == ["body", "query"]

    async def test_search_answer(
        self,
        make_api_client: Callable[..., Any],
        sales_workbook_bytes: bytes,
        valid_reply: str,
    ) -> None:
        """Test a full upload then search flow."""
        async with make_api_client("Sales data.", valid_reply) as ac:
            await _upload(ac, sales_workbook_bytes)
            response = await ac.post(
                "/api/search", json={"query": "What is total revenue?"}
            )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["query"] == "What is total revenue?"
        assert data["answer"] == "Total revenue is 450"
        assert data["tabs_used"] == ["Sales"]
        assert data["is_from_collaborator"] is True
        assert data["message"] is None

    async def test_malformed_reply(
        self,
        make_api_client: Callable[..., Any],
        sales_workbook_bytes: bytes,
    ) -> None:
        async with make_api_client("Sales data.", "no json at all") as ac:
            await _upload(ac, sales_workbook_bytes)
            response = await ac.post("/api/search", json={"query": "q"})

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["error_code"] == "E5006"

    async def test_llm_not_configured(
        self,
        make_api_client: Callable[..., Any],
        sales_dataset: Dataset,
    ) -> None:
        """Test that search without an API key reports 503."""
        async with make_api_client(client=ReasoningClient(api_key="")) as ac:
            service = ac.app.state.service  # type: ignore[attr-defined]
            service.store.load(sales_dataset)
            response = await ac.post("/api/search", json={"query": "q"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["error_code"] == "E5003"


class TestSpreadsheetEndpoints:
    """Tests for summary, glossary and analytics endpoints."""

    async def test_current_spreadsheet_empty(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/spreadsheet")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "success": True,
            "has_data": False,
            "spreadsheet": None,
        }

    async def test_glossary_selection_flow(
        self,
        make_api_client: Callable[..., Any],
        sales_workbook_bytes: bytes,
    ) -> None:
        """Test selecting a glossary tab and seeing it in the summary."""
        async with make_api_client("Sales data.") as ac:
            await _upload(ac, sales_workbook_bytes)
            selected = await ac.post("/api/glossary", json={"tab_name": "Notes"})
            missing = await ac.post("/api/glossary", json={"tab_name": "notes"})
            summary = await ac.get("/api/spreadsheet")

        assert selected.status_code == status.HTTP_200_OK
        assert selected.json() == {
            "success": True,
            "selected_tab": "Notes",
            "message": 'Tab "Notes" selected as training/glossary data',
        }
        assert missing.status_code == status.HTTP_404_NOT_FOUND
        assert missing.json()["error_code"] == "E2002"

        spreadsheet = summary.json()["spreadsheet"]
        assert spreadsheet["selected_glossary_tab"] == "Notes"
        assert [tab["is_glossary_tab"] for tab in spreadsheet["tabs"]] == [
            False,
            True,
        ]

    async def test_glossary_without_data(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/glossary", json={"tab_name": "Notes"})

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error_code"] == "E2001"

    async def test_glossary_empty_name(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/glossary", json={"tab_name": ""})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_analytics(
        self,
        make_api_client: Callable[..., Any],
        sales_workbook_bytes: bytes,
    ) -> None:
        async with make_api_client("Sales data.") as ac:
            empty = await ac.get("/api/analytics")
            await _upload(ac, sales_workbook_bytes)
            loaded = await ac.get("/api/analytics")

        assert empty.json()["analytics"]["has_data"] is False
        analytics = loaded.json()["analytics"]
        assert analytics["has_data"] is True
        assert analytics["total_sheets"] == 2
        assert analytics["total_formulas"] == 2


class TestSuggestionEndpoints:
    """Tests for suggestions and examples."""

    async def test_suggestions(
        self,
        make_api_client: Callable[..., Any],
        sales_workbook_bytes: bytes,
    ) -> None:
        async with make_api_client("Sales data.") as ac:
            before = await ac.get("/api/suggestions", params={"q": "rev"})
            await _upload(ac, sales_workbook_bytes)
            short = await ac.get("/api/suggestions", params={"q": "r"})
            response = await ac.get("/api/suggestions", params={"q": "rev"})

        assert before.json()["suggestions"] == []
        assert short.json()["suggestions"] == []
        suggestions = response.json()["suggestions"]
        assert suggestions[0] == "Find all Region data"
        assert len(suggestions) == 8

    async def test_examples(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/examples")

        assert response.status_code == status.HTTP_200_OK
        examples = response.json()["examples"]
        assert len(examples) == 3
        assert examples[0]["category"] == "Financial Metrics"


class TestLLMHealthEndpoint:
    """Tests for the LLM health endpoint."""

    async def test_healthy(self, make_api_client: Callable[..., Any]) -> None:
        async with make_api_client("OK") as ac:
            response = await ac.get("/api/llm-health")

        assert response.status_code == status.HTTP_200_OK
        llm = response.json()["llm"]
        assert llm["status"] == "healthy"
        assert llm["system_status"] == "UP"
        assert llm["available"] is True

    async def test_down_still_returns_200(
        self, make_api_client: Callable[..., Any]
    ) -> None:
        """Test that an unconfigured LLM is reported in the body, not the status."""
        async with make_api_client(client=ReasoningClient(api_key="")) as ac:
            response = await ac.get("/api/llm-health")

        assert response.status_code == status.HTTP_200_OK
        llm = response.json()["llm"]
        assert llm["status"] == "no_api_key"
        assert llm["system_status"] == "DOWN"
        assert llm["message"] == "SYSTEM DOWN - No API key configured"


class TestUnexpectedErrors:
    """Tests for the catch-all exception handler."""

    async def test_unexpected_error_returns_500(
        self, make_api_client: Callable[..., Any]
    ) -> None:
        async with make_api_client(raise_app_exceptions=False) as ac:
            service = ac.app.state.service  # type: ignore[attr-defined]
            with patch.object(
                service, "analytics", side_effect=RuntimeError("kaboom")
            ):
                response = await ac.get("/api/analytics")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        data = response.json()
        assert data["error_code"] == "E9001"
        assert "kaboom" not in data["detail"]

    async def test_lifespan_closes_service(
        self, make_api_client: Callable[..., Any], sheets_client: MagicMock
    ) -> None:
        async with make_api_client():
            pass
        sheets_client.close.assert_awaited_once()
