"""Utilities package for spreadsheet search.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from spreadsheet_search.utils.exceptions import (
    CollaboratorError,
    DatasetError,
    ErrorCode,
    FileError,
    HTTPStatusMixin,
    IngestionError,
    QueryError,
    SpreadsheetSearchError,
    ValidationError,
)
from spreadsheet_search.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "CollaboratorError",
    "DatasetError",
    "ErrorCode",
    "FileError",
    "HTTPStatusMixin",
    "IngestionError",
    "QueryError",
    "SpreadsheetSearchError",
    "ValidationError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
