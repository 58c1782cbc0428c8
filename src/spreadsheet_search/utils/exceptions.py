"""Centralized exception classes for spreadsheet search.

This module provides a hierarchy of custom exceptions with error codes,
HTTP status code mapping, and structured error details for consistent
error handling throughout the application.

Exception Hierarchy:
    SpreadsheetSearchError (base)
    ├── FileError
    │   ├── FileTooLargeError
    │   ├── UnsupportedFormatError
    │   └── FileParseError
    ├── IngestionError
    │   └── InvalidSourceShapeError
    ├── DatasetError
    │   ├── NotLoadedError
    │   └── SheetNotFoundError
    ├── QueryError
    │   └── EmptyQueryError
    ├── ExternalSourceError
    │   ├── InvalidReferenceError
    │   └── FetchFailedError
    ├── CollaboratorError
    │   ├── CollaboratorUnavailableError
    │   ├── CollaboratorRateLimitError
    │   └── MalformedReplyError
    └── ValidationError

Error Codes:
    All errors have a unique error code (e.g., "E1001") that can be used
    for programmatic error handling and documentation.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: File/ingestion errors
    - E2xxx: Dataset/store errors
    - E3xxx: Query errors
    - E5xxx: External service errors
    - E9xxx: Internal/unexpected errors
    """

    # File / ingestion errors (E1xxx)
    FILE_TOO_LARGE = "E1001"
    UNSUPPORTED_FORMAT = "E1002"
    FILE_PARSE_ERROR = "E1003"
    INVALID_SOURCE_SHAPE = "E1004"

    # Dataset errors (E2xxx)
    NOT_LOADED = "E2001"
    SHEET_NOT_FOUND = "E2002"

    # Query errors (E3xxx)
    EMPTY_QUERY = "E3001"
    INVALID_REQUEST = "E3002"

    # External service errors (E5xxx)
    INVALID_REFERENCE = "E5001"
    FETCH_FAILED = "E5002"
    COLLABORATOR_UNAVAILABLE = "E5003"
    COLLABORATOR_ERROR = "E5004"
    COLLABORATOR_RATE_LIMIT = "E5005"
    MALFORMED_REPLY = "E5006"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions.

    This mixin allows exceptions to declare their appropriate HTTP status code
    for API responses. Subclasses should set the `http_status` class attribute.
    """

    http_status: int = 500

    def get_http_status(self) -> int:
        """Get the HTTP status code for this exception.

        Returns:
            HTTP status code appropriate for this error.
        """
        return self.http_status


class SpreadsheetSearchError(Exception, HTTPStatusMixin):
    """Base exception for all spreadsheet search errors.

    It provides:
    - Unique error codes for programmatic handling
    - HTTP status code mapping for API responses
    - Structured error details for logging and debugging

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses.

        Returns:
            Dictionary with error information.
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# File Errors (E1xxx)
# =============================================================================


class FileError(SpreadsheetSearchError):
    """Base class for uploaded-file errors."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.FILE_PARSE_ERROR,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the uploaded filename.

        Args:
            message: Error message.
            error_code: Error code.
            filename: Name of the problematic upload.
            details: Additional details.
        """
        details = details or {}
        if filename:
            details["filename"] = filename
        super().__init__(message, error_code, details)
        self.filename = filename


class FileTooLargeError(FileError):
    """Raised when an upload exceeds the maximum allowed size."""

    http_status: int = 413

    def __init__(
        self,
        file_size: int,
        max_size: int,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with size information.

        Args:
            file_size: Actual file size in bytes.
            max_size: Maximum allowed size in bytes.
            filename: Optional filename.
            details: Additional details.
        """
        details = details or {}
        details["file_size_bytes"] = file_size
        details["max_size_bytes"] = max_size
        message = (
            f"File size ({file_size} bytes) exceeds maximum "
            f"allowed size ({max_size} bytes)"
        )
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_TOO_LARGE,
            filename=filename,
            details=details,
        )
        self.file_size = file_size
        self.max_size = max_size


class UnsupportedFormatError(FileError):
    """Raised when an uploaded file type is not supported."""

    def __init__(
        self,
        message: str,
        extension: str | None = None,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with format information.

        Args:
            message: Error message.
            extension: File extension that was rejected.
            filename: Optional filename.
            details: Additional details.
        """
        details = details or {}
        if extension:
            details["extension"] = extension
        super().__init__(
            message=message,
            error_code=ErrorCode.UNSUPPORTED_FORMAT,
            filename=filename,
            details=details,
        )
        self.extension = extension


class FileParseError(FileError):
    """Raised when a spreadsheet file cannot be parsed."""

    http_status: int = 422

    def __init__(
        self,
        message: str,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_PARSE_ERROR,
            filename=filename,
            details=details,
        )


# =============================================================================
# Ingestion Errors (E1xxx)
# =============================================================================


class IngestionError(SpreadsheetSearchError):
    """Base class for errors converting a source into the canonical model."""

    http_status: int = 422

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_SOURCE_SHAPE,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the source kind.

        Args:
            message: Error message.
            error_code: Error code.
            source: Source kind being ingested (e.g. "google_sheets").
            details: Additional details.
        """
        details = details or {}
        if source:
            details["source"] = source
        super().__init__(message, error_code, details)
        self.source = source


class InvalidSourceShapeError(IngestionError):
    """Raised when a source lacks the expected top-level sheet collection."""

    def __init__(
        self,
        message: str = "Source data has no sheet collection",
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_SOURCE_SHAPE,
            source=source,
            details=details,
        )


# =============================================================================
# Dataset Errors (E2xxx)
# =============================================================================


class DatasetError(SpreadsheetSearchError):
    """Base class for errors about the resident dataset."""

    http_status: int = 400


class NotLoadedError(DatasetError):
    """Raised when an operation needs a dataset but none is loaded."""

    http_status: int = 409

    def __init__(
        self,
        message: str = "No spreadsheet loaded",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.NOT_LOADED, details)


class SheetNotFoundError(DatasetError):
    """Raised when a sheet name does not exist in the resident dataset."""

    http_status: int = 404

    def __init__(
        self,
        sheet_name: str,
        available: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the missing sheet name.

        Args:
            sheet_name: The sheet name that was requested.
            available: Sheet names present in the dataset.
            details: Additional details.
        """
        details = details or {}
        details["sheet_name"] = sheet_name
        if available is not None:
            details["available_sheets"] = available
        super().__init__(
            f'Tab "{sheet_name}" not found', ErrorCode.SHEET_NOT_FOUND, details
        )
        self.sheet_name = sheet_name


# =============================================================================
# Query Errors (E3xxx)
# =============================================================================


class QueryError(SpreadsheetSearchError):
    """Base class for invalid search queries."""

    http_status: int = 400


class EmptyQueryError(QueryError):
    """Raised when a query is empty or whitespace-only."""

    def __init__(
        self,
        message: str = "Please provide a valid search query",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMPTY_QUERY, details)


# =============================================================================
# External Source Errors (E5xxx)
# =============================================================================


class ExternalSourceError(SpreadsheetSearchError):
    """Base class for errors from the external spreadsheet source."""

    http_status: int = 502

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.FETCH_FAILED,
        reference: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the spreadsheet reference.

        Args:
            message: Error message.
            error_code: Error code.
            reference: The link or identifier that was used.
            details: Additional details.
        """
        details = details or {}
        if reference:
            details["reference"] = reference
        super().__init__(message, error_code, details)
        self.reference = reference


class InvalidReferenceError(ExternalSourceError):
    """Raised when a link cannot be resolved to a spreadsheet identifier."""

    http_status: int = 400

    def __init__(
        self,
        reference: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message or "Invalid Google Sheets URL",
            error_code=ErrorCode.INVALID_REFERENCE,
            reference=reference,
            details=details,
        )


class FetchFailedError(ExternalSourceError):
    """Raised when the spreadsheet source cannot be reached or answers badly."""

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=message,
            error_code=ErrorCode.FETCH_FAILED,
            reference=reference,
            details=details,
        )


# =============================================================================
# Collaborator Errors (E5xxx)
# =============================================================================


class CollaboratorError(SpreadsheetSearchError):
    """Base class for reasoning collaborator (LLM) errors."""

    http_status: int = 502

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.COLLABORATOR_ERROR,
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with model information.

        Args:
            message: Error message.
            error_code: Error code.
            model: The LLM model that caused the error.
            details: Additional details.
        """
        details = details or {}
        if model:
            details["model"] = model
        super().__init__(message, error_code, details)
        self.model = model


class CollaboratorUnavailableError(CollaboratorError):
    """Raised when the collaborator is not configured or initialized."""

    http_status: int = 503

    def __init__(
        self,
        message: str = "LLM client is not configured",
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.COLLABORATOR_UNAVAILABLE,
            model=model,
            details=details,
        )


class CollaboratorRateLimitError(CollaboratorError):
    """Raised when the collaborator's quota or rate limit is exceeded."""

    http_status: int = 429

    def __init__(
        self,
        message: str = "LLM API quota exceeded",
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.COLLABORATOR_RATE_LIMIT,
            model=model,
            details=details,
        )


class MalformedReplyError(CollaboratorError):
    """Raised when a collaborator reply holds no decodable JSON object."""

    def __init__(
        self,
        message: str = "LLM returned invalid response format",
        response_preview: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if response_preview is not None:
            details["response_preview"] = response_preview[:500]
        super().__init__(
            message=message,
            error_code=ErrorCode.MALFORMED_REPLY,
            details=details,
        )


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(SpreadsheetSearchError):
    """General validation error for request input."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with validation details.

        Args:
            message: Main error message.
            field: Field that failed validation.
            details: Additional details.
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_REQUEST,
            details=details,
        )
