from __future__ import annotations

import io
import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage
from openpyxl import Workbook

from spreadsheet_search.services.llm_client import ReasoningClient
from spreadsheet_search.spreadsheet import Dataset, Sheet

FIXED_NOW = datetime(2026, 1, 15, 9, 30, tzinfo=UTC)

VALID_REPLY = json.dumps(
    {
        "answer": "Total revenue is 450",
        "location": "Sales!C4",
        "value": "450",
        "explanation": "Summed the revenue column",
        "calculation": "=SUM(C2:C3)",
        "tabsUsed": ["Sales"],
        "alternatives": ["North leads with 300"],
        "suggestion": "Track revenue by quarter",
    }
)


def fixed_clock() -> datetime:
    return FIXED_NOW


def mock_chat_model(*replies: str | Exception) -> MagicMock:
    """Chat model double whose ``ainvoke`` yields ``replies`` in order."""
    llm = MagicMock()
    llm.ainvoke = AsyncMock(
        side_effect=[
            reply if isinstance(reply, Exception) else AIMessage(content=reply)
            for reply in replies
        ]
    )
    return llm


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sales_sheet() -> Sheet:
    return Sheet(
        name="Sales",
        rows=(
            {"A": "Region", "B": "Units", "C": "Revenue"},
            {"A": "North", "B": 30, "C": 300},
            {"A": "South", "B": 15, "C": 150},
            {"A": "Total", "B": "=SUM(B2:B3)", "C": "=SUM(C2:C3)"},
        ),
    )


@pytest.fixture
def glossary_sheet() -> Sheet:
    return Sheet(
        name="Glossary",
        rows=(
            {"A": "Term", "B": "Definition"},
            {"A": "Revenue", "B": "Money received from sales"},
            {"A": "Units", "B": "Items shipped"},
        ),
    )


@pytest.fixture
def sales_dataset(sales_sheet: Sheet, glossary_sheet: Sheet) -> Dataset:
    return Dataset(name="sales.xlsx", sheets=(sales_sheet, glossary_sheet))


@pytest.fixture
def other_dataset() -> Dataset:
    return Dataset(
        name="costs.xlsx",
        sheets=(
            Sheet(
                name="Costs",
                rows=({"A": "Item", "B": "Cost"}, {"A": "Rent", "B": 1200}),
            ),
        ),
    )


@pytest.fixture
def make_client() -> Callable[..., ReasoningClient]:
    """Build a configured ReasoningClient answering with the given replies."""

    def _make(*replies: str | Exception, **kwargs: Any) -> ReasoningClient:
        return ReasoningClient(
            api_key="sk-test", llm=mock_chat_model(*replies), **kwargs
        )

    return _make


@pytest.fixture
def sales_workbook_bytes() -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sales"
    sheet.append(["Region", "Units", "Revenue"])
    sheet.append(["North", 30, 300])
    sheet.append(["South", 15, "#DIV/0!"])
    sheet.append(["Total", "=SUM(B2:B3)", "=SUM(C2:C3)"])

    workbook.create_sheet("Empty")

    notes = workbook.create_sheet("Notes")
    notes.append(["Term", "Definition"])
    notes.append(["Units", "Items shipped"])
    return workbook_bytes(workbook)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock returning a fixed load time."""
    return fixed_clock


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def chat_model() -> Callable[..., MagicMock]:
    return mock_chat_model


@pytest.fixture
def valid_reply() -> str:
    return VALID_REPLY
