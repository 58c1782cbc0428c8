"""Structured logging utilities for spreadsheet search.

Messages carry ``key=value`` fields after a ``|`` separator. Records emitted
while a request is in flight are prefixed with that request's id and with any
fields bound by an enclosing :class:`LogContext` (the load source, the uploaded
file name).

Usage:
    from spreadsheet_search.utils.logging import get_logger, LogContext

    logger = get_logger(__name__)

    with LogContext(source="file", filename="sales.xlsx"):
        logger.info("Spreadsheet loaded", sheets=3, cells=120)
"""

import logging
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(context)s%(message)s"

_NO_FIELDS: Mapping[str, Any] = MappingProxyType({})

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_bound_fields: ContextVar[Mapping[str, Any]] = ContextVar(
    "bound_fields", default=_NO_FIELDS
)


def get_request_id() -> str | None:
    """Return the id of the request being handled, if any."""
    return _request_id.get()


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def bound_fields() -> Mapping[str, Any]:
    """Fields bound by the enclosing LogContext blocks, outermost first."""
    return _bound_fields.get()


def clear_context() -> None:
    """Forget the request id and every bound field."""
    _request_id.set(None)
    _bound_fields.set(_NO_FIELDS)


def render_fields(fields: Mapping[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in fields.items())


def context_prefix() -> str:
    """Render the current request id and bound fields as ``[k=v ...] ``."""
    parts = []
    request_id = _request_id.get()
    if request_id:
        parts.append(f"request_id={request_id}")
    parts.extend(f"{key}={value}" for key, value in _bound_fields.get().items())
    return f"[{' '.join(parts)}] " if parts else ""


class ContextFilter(logging.Filter):
    """Stamp each record with ``record.context`` for the ``%(context)s`` field.

    Attach it to a handler, not a logger, so records from third-party loggers
    (uvicorn, httpx) get the attribute too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = context_prefix()
        return True


@dataclass
class OperationMetrics:
    """Counters gathered while loading or searching a spreadsheet.

    Zero counters are left out of the logged fields.
    """

    operation: str
    sheets: int = 0
    cells: int = 0
    llm_calls: int = 0
    prompt_chars: int = 0
    duration_seconds: float = 0.0

    def fields(self) -> dict[str, Any]:
        counters = {
            "sheets": self.sheets,
            "cells": self.cells,
            "llm_calls": self.llm_calls,
            "prompt_chars": self.prompt_chars,
        }
        result: dict[str, Any] = {k: v for k, v in counters.items() if v}
        result["duration_seconds"] = f"{self.duration_seconds:.3f}"
        return result


class StructuredLogger:
    """Wrapper around :class:`logging.Logger` that appends ``key=value`` fields."""

    def __init__(self, name: str) -> None:
        self.logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        message: str,
        fields: Mapping[str, Any],
        exc_info: bool = False,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        if fields:
            message = f"{message} | {render_fields(fields)}"
        self.logger.log(level, message, exc_info=exc_info)

    def debug(self, message: str, **fields: Any) -> None:
        self._log(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, message, fields, exc_info=exc_info)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, message, fields, exc_info=True)

    def log_api_call(
        self,
        service: str,
        operation: str,
        duration_seconds: float,
        error: str | None = None,
    ) -> None:
        """Record one outbound call to OpenAI or Google Sheets.

        Args:
            service: ``"openai"`` or ``"google_sheets"``.
            operation: What was called, e.g. ``"generate"`` or ``"get_metadata"``.
            duration_seconds: Wall time of the call.
            error: Failure description; a failed call is logged at ERROR.
        """
        fields: dict[str, Any] = {
            "service": service,
            "operation": operation,
            "duration_seconds": f"{duration_seconds:.3f}",
        }
        if error is None:
            self._log(logging.INFO, "API call succeeded", fields)
        else:
            fields["error"] = error
            self._log(logging.ERROR, "API call failed", fields)

    def log_search_result(
        self,
        query: str,
        duration_seconds: float,
        tabs_used: list[str],
        from_collaborator: bool,
    ) -> None:
        self.info(
            "Search completed",
            query=query[:80],
            duration_seconds=f"{duration_seconds:.2f}",
            tabs_used=len(tabs_used),
            from_collaborator=from_collaborator,
        )

    def log_metrics(self, metrics: OperationMetrics) -> None:
        self._log(logging.INFO, f"Finished {metrics.operation}", metrics.fields())


class LogContext:
    """Bind fields, and optionally a request id, to records logged in a block.

    Nested blocks layer their fields over the enclosing ones; leaving a block
    restores exactly what was bound before it.
    """

    def __init__(self, request_id: str | None = None, **fields: Any) -> None:
        self._request_id = request_id
        self._fields = fields
        self._tokens: list[Token[Any]] = []

    def __enter__(self) -> "LogContext":
        merged = {**_bound_fields.get(), **self._fields}
        self._tokens.append(_bound_fields.set(MappingProxyType(merged)))
        if self._request_id is not None:
            self._tokens.append(_request_id.set(self._request_id))
        return self

    def __exit__(self, *args: Any) -> None:
        while self._tokens:
            token = self._tokens.pop()
            token.var.reset(token)


@contextmanager
def timed_operation(
    logger: StructuredLogger, operation: str
) -> Iterator[OperationMetrics]:
    """Time a load or search and log its counters when the block exits.

    The metrics are logged even when the block raises.
    """
    metrics = OperationMetrics(operation=operation)
    started = time.perf_counter()
    try:
        yield metrics
    finally:
        metrics.duration_seconds = time.perf_counter() - started
        logger.log_metrics(metrics)


def configure_logging(
    level: int | str = logging.INFO, fmt: str = DEFAULT_FORMAT
) -> None:
    """Send all records to stderr through one context-aware handler.

    Replaces whatever handlers the root logger already has.
    """
    handler = logging.StreamHandler()
    handler.addFilter(ContextFilter())
    handler.setFormatter(logging.Formatter(fmt))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
