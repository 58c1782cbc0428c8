"""Pydantic models for API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field

from spreadsheet_search.utils.exceptions import ErrorCode


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str


class SearchRequest(BaseModel):
    """Request body for the search endpoint."""

    query: str = Field(..., description="Natural-language question")


class GoogleSheetsRequest(BaseModel):
    """Request body for loading a shared Google Sheets link."""

    link: str = Field(..., description="Google Sheets sharing URL")


class GlossaryRequest(BaseModel):
    """Request body for selecting the glossary tab."""

    tab_name: str = Field(..., min_length=1, description="Exact sheet name")


class StatsModel(BaseModel):
    """Structural statistics of the loaded spreadsheet."""

    sheets: int
    total_cells: int
    formula_cells: int
    business_concepts: list[str] = Field(default_factory=list)


class TabModel(BaseModel):
    """Summary of one sheet."""

    name: str
    row_count: int
    has_formulas: bool
    is_glossary_tab: bool = False


class LoadResponse(BaseModel):
    """Response model for upload and Google Sheets load endpoints."""

    success: bool = True
    message: str = Field(..., description="Status message")
    title: str = Field(..., description="Display name of the loaded dataset")
    description: str = Field(..., description="One-line description of the data")
    stats: StatsModel
    tabs: list[TabModel] = Field(default_factory=list)
    loaded_at: str | None = Field(default=None, description="ISO load timestamp")


class SearchResponse(BaseModel):
    """Response model for the search endpoint."""

    success: bool = True
    query: str
    answer: str
    location: str
    value: str
    explanation: str
    calculation: str
    tabs_used: list[str] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)
    suggestion: str = ""
    is_from_collaborator: bool = Field(
        ..., description="False for the informational no-data result"
    )
    message: str | None = None


class SpreadsheetSummary(BaseModel):
    """Summary of the currently loaded spreadsheet."""

    file_name: str
    source: str
    stats: StatsModel
    tabs: list[TabModel] = Field(default_factory=list)
    selected_glossary_tab: str | None = None
    processed_at: str | None = None


class CurrentSpreadsheetResponse(BaseModel):
    """Response model for the current spreadsheet endpoint."""

    success: bool = True
    has_data: bool
    spreadsheet: SpreadsheetSummary | None = None


class GlossaryResponse(BaseModel):
    """Response model for glossary selection."""

    success: bool = True
    selected_tab: str
    message: str


class AnalyticsResponse(BaseModel):
    """Response model for the analytics endpoint."""

    success: bool = True
    analytics: dict[str, Any]


class SuggestionsResponse(BaseModel):
    """Response model for query suggestions."""

    success: bool = True
    suggestions: list[str] = Field(default_factory=list)


class ExampleCategory(BaseModel):
    """A named group of example queries."""

    category: str
    queries: list[str]


class ExamplesResponse(BaseModel):
    """Response model for the example queries catalog."""

    success: bool = True
    examples: list[ExampleCategory]


class CollaboratorHealthModel(BaseModel):
    """LLM health record."""

    status: str
    available: bool
    api_key_configured: bool
    initialized: bool
    last_checked: str
    response_time_ms: int | None = None
    error: str | None = None
    message: str
    system_status: str = Field(..., description="UP or DOWN")


class LLMHealthResponse(BaseModel):
    """Response model for the LLM health endpoint (always HTTP 200)."""

    success: bool = True
    llm: CollaboratorHealthModel
    timestamp: str


class ErrorDetail(BaseModel):
    """Error detail model for API error responses.

    This model provides structured error responses with:
    - Human-readable error message
    - Machine-readable error code
    - Optional additional details for debugging
    - Optional request ID for correlation
    """

    detail: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code (e.g., 'E1001')",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details for debugging",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID for error correlation",
    )

    @classmethod
    def from_error_code(
        cls,
        error_code: ErrorCode,
        detail: str,
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> "ErrorDetail":
        """Create an ErrorDetail from an ErrorCode enum value."""
        return cls(
            detail=detail,
            error_code=error_code.value,
            details=details,
            request_id=request_id,
        )
