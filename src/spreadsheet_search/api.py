"""FastAPI application for spreadsheet search."""

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spreadsheet_search import __version__
from spreadsheet_search.config import settings, validate_settings_on_startup
from spreadsheet_search.models import (
    AnalyticsResponse,
    CurrentSpreadsheetResponse,
    ErrorDetail,
    ExamplesResponse,
    GlossaryRequest,
    GlossaryResponse,
    GoogleSheetsRequest,
    HealthResponse,
    LLMHealthResponse,
    LoadResponse,
    SearchRequest,
    SearchResponse,
    SuggestionsResponse,
)
from spreadsheet_search.services.spreadsheet_service import SpreadsheetService
from spreadsheet_search.utils.exceptions import (
    ErrorCode,
    SpreadsheetSearchError,
    ValidationError,
)
from spreadsheet_search.utils.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

# Configure structured logging using settings
configure_logging(level=settings.log_level_int)
logger = get_logger(__name__)


def _service(request: Request) -> SpreadsheetService:
    service: SpreadsheetService = request.app.state.service
    return service


def create_app(service: SpreadsheetService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Service to expose. A default one bound to a fresh store is
            created when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        try:
            yield
        finally:
            await app.state.service.aclose()

    app = FastAPI(
        title="Spreadsheet Search API",
        description=(
            "Load one spreadsheet from a file or a Google Sheets link and ask "
            "natural-language questions about it."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.service = service or SpreadsheetService()

    # Configure CORS using settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Validate settings on startup
    validate_settings_on_startup(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it in logs and the response header."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(SpreadsheetSearchError)
    async def domain_exception_handler(
        request: Request, exc: SpreadsheetSearchError
    ) -> JSONResponse:
        """Map domain exceptions to their HTTP status and error code."""
        request_id = getattr(request.state, "request_id", get_request_id())
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            f"Request failed: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorDetail(
                detail=exc.message,
                error_code=exc.error_code.value,
                details=exc.details if exc.details else None,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed request bodies as 400 with the invalid-request code."""
        request_id = getattr(request.state, "request_id", get_request_id())
        errors = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
            for error in exc.errors()
        ]
        logger.warning("Invalid request", errors=len(errors))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorDetail.from_error_code(
                ErrorCode.INVALID_REQUEST,
                detail="Invalid request",
                details={"errors": errors},
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        """Custom exception handler for HTTP exceptions."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                detail=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all exception handler for unexpected errors.

        Logs the full exception and returns a generic error response
        to avoid leaking internal details.
        """
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                detail=detail,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request) -> dict[str, Any]:
        """Check the health status of the service."""
        logger.debug("Health check requested")
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
        }

    @app.post(
        "/api/upload",
        response_model=LoadResponse,
        tags=["Loading"],
        responses={
            400: {"model": ErrorDetail, "description": "Missing or unsupported file"},
            413: {"model": ErrorDetail, "description": "File too large"},
            422: {"model": ErrorDetail, "description": "Unreadable file"},
        },
    )
    async def upload_spreadsheet(
        request: Request,
        file: Annotated[UploadFile, File(description="Spreadsheet file to load")],
    ) -> dict[str, Any]:
        """Upload a spreadsheet file, replacing any loaded dataset.

        Raises:
            ValidationError: 400 if no file name was sent.
            FileTooLargeError: 413 if the file exceeds the size limit.
        """
        if not file.filename:
            logger.warning("Upload request missing file")
            raise ValidationError(
                message="A spreadsheet file must be provided", field="file"
            )

        content = await file.read()
        summary = await _service(request).load_file(content, file.filename)

        logger.info(
            "Spreadsheet uploaded",
            filename=file.filename,
            file_size=len(content),
            sheets=summary.stats.sheets,
        )
        return {
            "success": True,
            "message": "Spreadsheet processed successfully",
            **summary.to_dict(),
        }

    @app.post(
        "/api/google-sheets",
        response_model=LoadResponse,
        tags=["Loading"],
        responses={
            400: {"model": ErrorDetail, "description": "Invalid Google Sheets URL"},
            502: {"model": ErrorDetail, "description": "Fetch failed"},
        },
    )
    async def load_google_sheet(
        request: Request, body: GoogleSheetsRequest
    ) -> dict[str, Any]:
        """Load a shared Google Sheets spreadsheet by link."""
        summary = await _service(request).load_google_sheet(body.link)
        return {
            "success": True,
            "message": "Google Sheets data processed successfully",
            **summary.to_dict(),
        }

    @app.post(
        "/api/search",
        response_model=SearchResponse,
        tags=["Search"],
        responses={
            400: {"model": ErrorDetail, "description": "Empty query"},
            502: {"model": ErrorDetail, "description": "LLM failure"},
            503: {"model": ErrorDetail, "description": "LLM not configured"},
        },
    )
    async def search(request: Request, body: SearchRequest) -> dict[str, Any]:
        """Answer a natural-language question about the loaded spreadsheet."""
        result = await _service(request).search(body.query)
        return {"success": True, **result.to_dict()}

    @app.get(
        "/api/spreadsheet",
        response_model=CurrentSpreadsheetResponse,
        tags=["Spreadsheet"],
    )
    async def current_spreadsheet(request: Request) -> dict[str, Any]:
        """Summary of the currently loaded spreadsheet, if any."""
        summary = _service(request).current_spreadsheet()
        return {
            "success": True,
            "has_data": summary is not None,
            "spreadsheet": summary,
        }

    @app.post(
        "/api/glossary",
        response_model=GlossaryResponse,
        tags=["Spreadsheet"],
        responses={
            404: {"model": ErrorDetail, "description": "Tab not found"},
            409: {"model": ErrorDetail, "description": "No spreadsheet loaded"},
        },
    )
    async def select_glossary(
        request: Request, body: GlossaryRequest
    ) -> dict[str, Any]:
        """Select the sheet used as glossary/training data."""
        return _service(request).select_glossary(body.tab_name)

    @app.get("/api/analytics", response_model=AnalyticsResponse, tags=["Spreadsheet"])
    async def analytics(request: Request) -> dict[str, Any]:
        """Structural statistics of the loaded spreadsheet."""
        return {"success": True, "analytics": _service(request).analytics()}

    @app.get(
        "/api/suggestions", response_model=SuggestionsResponse, tags=["Search"]
    )
    async def suggestions(
        request: Request,
        q: Annotated[str, Query(description="Partially typed query")] = "",
    ) -> dict[str, Any]:
        """Header-driven suggestions for a partially typed query."""
        return {"success": True, "suggestions": _service(request).suggestions(q)}

    @app.get("/api/examples", response_model=ExamplesResponse, tags=["Search"])
    async def examples() -> dict[str, Any]:
        """Static catalog of example queries."""
        return {"success": True, "examples": SpreadsheetService.example_queries()}

    @app.get("/api/llm-health", response_model=LLMHealthResponse, tags=["Health"])
    async def llm_health(request: Request) -> dict[str, Any]:
        """Probe the LLM. Always answers 200; the body carries the status."""
        health = await _service(request).collaborator_health()
        return {
            "success": True,
            "llm": health.to_dict(),
            "timestamp": datetime.now(UTC).isoformat(),
        }

    logger.info("FastAPI application created successfully")
    return app


# Create the application instance
app = create_app()
