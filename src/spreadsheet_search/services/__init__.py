"""Services for spreadsheet search."""

from spreadsheet_search.services.file_parser import SpreadsheetFileParser
from spreadsheet_search.services.google_sheets import GoogleSheetsClient
from spreadsheet_search.services.llm_client import CollaboratorHealth, ReasoningClient
from spreadsheet_search.services.orchestrator import QueryOrchestrator
from spreadsheet_search.services.reply_parser import SearchResult, parse_search_reply
from spreadsheet_search.services.spreadsheet_service import (
    LoadSummary,
    SpreadsheetService,
)

__all__ = [
    "CollaboratorHealth",
    "GoogleSheetsClient",
    "LoadSummary",
    "QueryOrchestrator",
    "ReasoningClient",
    "SearchResult",
    "SpreadsheetFileParser",
    "SpreadsheetService",
    "parse_search_reply",
]
