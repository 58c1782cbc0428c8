"""Reasoning collaborator client backed by LangChain's ChatOpenAI.

This module wraps a chat model behind two operations:

- ``generate(prompt)``: one outbound completion, bounded by a timeout
- ``health_check()``: a cheap probe classified into a fixed status set

Provider failures are translated into the collaborator error hierarchy so the
orchestrator and the HTTP layer never see provider-specific exceptions.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx
import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from spreadsheet_search.config import settings
from spreadsheet_search.utils.exceptions import (
    CollaboratorError,
    CollaboratorRateLimitError,
    CollaboratorUnavailableError,
)
from spreadsheet_search.utils.logging import get_logger

logger = get_logger(__name__)

HEALTH_PROBE_PROMPT = (
    'Respond with just the word "OK" if you can understand this message.'
)

_QUOTA_MARKERS = ("429", "quota", "too many requests", "rate limit")


class HealthStatus(str, Enum):
    """Outcome of a collaborator health probe."""

    HEALTHY = "healthy"
    NO_API_KEY = "no_api_key"
    NOT_INITIALIZED = "not_initialized"
    INVALID_API_KEY = "invalid_api_key"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK_ERROR = "network_error"
    UNEXPECTED_RESPONSE = "unexpected_response"
    ERROR = "error"


STATUS_MESSAGES: dict[HealthStatus, str] = {
    HealthStatus.HEALTHY: "LLM is working perfectly",
    HealthStatus.NO_API_KEY: "SYSTEM DOWN - No API key configured",
    HealthStatus.NOT_INITIALIZED: "SYSTEM DOWN - LLM not initialized",
    HealthStatus.INVALID_API_KEY: "SYSTEM DOWN - Invalid or expired API key",
    HealthStatus.QUOTA_EXCEEDED: "SYSTEM DOWN - API quota exceeded",
    HealthStatus.NETWORK_ERROR: "SYSTEM DOWN - Network connectivity issues",
    HealthStatus.ERROR: "SYSTEM DOWN - LLM service error",
    HealthStatus.UNEXPECTED_RESPONSE: "SYSTEM DOWN - LLM malfunction",
}
UNKNOWN_STATUS_MESSAGE = "SYSTEM DOWN - Unknown error"


def status_message(status: HealthStatus | str) -> str:
    """Map a health status to its fixed user-facing message."""
    try:
        return STATUS_MESSAGES[HealthStatus(status)]
    except ValueError:
        return UNKNOWN_STATUS_MESSAGE


@dataclass
class CollaboratorHealth:
    """Result of a health probe against the reasoning collaborator."""

    status: HealthStatus
    api_key_configured: bool
    initialized: bool
    last_checked: datetime = field(default_factory=lambda: datetime.now(UTC))
    response_time_ms: int | None = None
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    @property
    def message(self) -> str:
        return status_message(self.status)

    @property
    def system_status(self) -> str:
        return "UP" if self.available else "DOWN"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "available": self.available,
            "api_key_configured": self.api_key_configured,
            "initialized": self.initialized,
            "last_checked": self.last_checked.isoformat(),
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "message": self.message,
            "system_status": self.system_status,
        }


def _is_quota_error(error: BaseException) -> bool:
    if isinstance(error, openai.RateLimitError):
        return True
    text = str(error).lower()
    return any(marker in text for marker in _QUOTA_MARKERS)


def classify_error(error: BaseException) -> HealthStatus:
    """Bucket a provider exception into a health status."""
    if isinstance(error, CollaboratorUnavailableError):
        return HealthStatus.NOT_INITIALIZED
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return HealthStatus.INVALID_API_KEY
    if isinstance(error, CollaboratorRateLimitError) or _is_quota_error(error):
        return HealthStatus.QUOTA_EXCEEDED
    if isinstance(error, (openai.APIConnectionError, TimeoutError)):
        return HealthStatus.NETWORK_ERROR

    text = str(error).lower()
    if "api key" in text:
        return HealthStatus.INVALID_API_KEY
    if "network" in text or "timeout" in text or "timed out" in text:
        return HealthStatus.NETWORK_ERROR
    return HealthStatus.ERROR


class ReasoningClient:
    """Text-in, text-out access to the configured chat model."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout_seconds: float | None = None,
        llm: BaseChatModel | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: OpenAI API key. Defaults to settings.
            model: Model name to use. Defaults to settings.openai_model.
            temperature: Sampling temperature. Defaults to settings.
            max_tokens: Maximum tokens for a response. Defaults to settings.
            timeout_seconds: Default bound on one call. Defaults to settings.
            llm: Pre-built chat model, used instead of constructing ChatOpenAI.
            http_client: HTTP client handed to the OpenAI SDK.
        """
        self.api_key = api_key if api_key is not None else settings.get_openai_api_key()
        self.model = model or settings.openai_model
        self.temperature = (
            temperature if temperature is not None else settings.openai_temperature
        )
        self.max_tokens = max_tokens or settings.openai_max_tokens
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds

        self._llm: BaseChatModel | None = llm
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return self._llm is not None or bool(self.api_key)

    @property
    def llm(self) -> BaseChatModel:
        """Get or create the LangChain chat model.

        Raises:
            CollaboratorUnavailableError: If the API key is not configured.
        """
        if self._llm is None:
            if not self.api_key:
                raise CollaboratorUnavailableError(
                    "OpenAI API key not configured",
                    model=self.model,
                    details={"missing": "openai_api_key"},
                )

            self._llm = ChatOpenAI(
                api_key=self.api_key,  # type: ignore[arg-type]
                model=self.model,
                temperature=self.temperature,
                max_completion_tokens=self.max_tokens,
                # One request per call; failures surface to the caller
                max_retries=0,
                http_async_client=self._http_client,
            )

        return self._llm

    async def generate(self, prompt: str, timeout: float | None = None) -> str:
        """Send ``prompt`` as a single user message and return the reply text.

        Args:
            prompt: Full prompt text.
            timeout: Seconds to wait before abandoning the call. Defaults to
                the client's ``timeout_seconds``.

        Raises:
            CollaboratorUnavailableError: If the client is not configured.
            CollaboratorRateLimitError: If the provider reports a quota error.
            CollaboratorError: On any other provider or transport failure,
                including timeout expiry.
        """
        llm = self.llm
        limit = timeout or self.timeout_seconds
        start_time = time.time()

        try:
            response = await asyncio.wait_for(
                llm.ainvoke([HumanMessage(content=prompt)]), timeout=limit
            )
        except TimeoutError as e:
            duration = time.time() - start_time
            logger.log_api_call(
                "openai", "generate", duration, error="timeout"
            )
            raise CollaboratorError(
                f"LLM call timed out after {limit:.0f}s",
                model=self.model,
                details={"timeout_seconds": limit},
            ) from e
        except Exception as e:
            duration = time.time() - start_time
            logger.log_api_call(
                "openai", "generate", duration, error=str(e)
            )
            if _is_quota_error(e):
                raise CollaboratorRateLimitError(
                    model=self.model, details={"original_error": str(e)}
                ) from e
            raise CollaboratorError(
                f"LLM call failed: {e}",
                model=self.model,
                details={"original_error": str(e)},
            ) from e

        duration = time.time() - start_time
        logger.log_api_call("openai", "generate", duration)

        content = response.content
        if not isinstance(content, str):
            content = str(content)
        return content

    async def health_check(self) -> CollaboratorHealth:
        """Probe the model with a tiny prompt and classify the outcome.

        Never raises; failures are reported through the returned status.
        """
        if not self.is_configured:
            return CollaboratorHealth(
                status=HealthStatus.NO_API_KEY,
                api_key_configured=False,
                initialized=False,
                error="No OpenAI API key configured",
            )

        try:
            _ = self.llm
        except Exception as e:
            return CollaboratorHealth(
                status=HealthStatus.NOT_INITIALIZED,
                api_key_configured=bool(self.api_key),
                initialized=False,
                error=str(e),
            )

        start_time = time.perf_counter()
        try:
            reply = await self.generate(HEALTH_PROBE_PROMPT)
        except CollaboratorError as e:
            cause = e.__cause__ or e
            status = classify_error(cause)
            logger.warning("LLM health check failed", status=status.value)
            return CollaboratorHealth(
                status=status,
                api_key_configured=bool(self.api_key),
                initialized=True,
                error=e.message,
            )

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        if "ok" in reply.lower():
            status = HealthStatus.HEALTHY
            error = None
        else:
            status = HealthStatus.UNEXPECTED_RESPONSE
            error = "LLM responded but with unexpected content"

        return CollaboratorHealth(
            status=status,
            api_key_configured=bool(self.api_key),
            initialized=True,
            response_time_ms=elapsed_ms,
            error=error,
        )
