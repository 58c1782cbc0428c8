"""Spreadsheet Search - ask natural-language questions about one spreadsheet."""

__version__ = "0.1.0"

from spreadsheet_search.api import app, create_app  # noqa: E402

__all__ = ["app", "create_app"]


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from spreadsheet_search.config import settings

    uvicorn.run(
        "spreadsheet_search.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
