"""Configuration management for spreadsheet search.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
SSE_ prefix, or via a .env file in the project root.

Environment Variables:
    SSE_MAX_FILE_SIZE_MB: Maximum upload size in MB (default: 10)
    SSE_ALLOWED_EXTENSIONS: Comma-separated upload extensions (default: xlsx,xlsm,csv)
    SSE_OPENAI_API_KEY: OpenAI API key (required for search)
    SSE_OPENAI_MODEL: OpenAI model used for answering (default: gpt-4o)
    SSE_OPENAI_TEMPERATURE: LLM temperature setting (default: 0.0)
    SSE_OPENAI_MAX_TOKENS: Maximum tokens for LLM responses (default: 2048)
    SSE_LLM_TIMEOUT_SECONDS: Timeout for a single LLM call (default: 60)
    SSE_GOOGLE_SHEETS_API_KEY: Google Sheets API key (required for links)
    SSE_GOOGLE_SHEETS_BASE_URL: Sheets v4 API base URL
    SSE_GOOGLE_SHEETS_RANGE: Cell range fetched per sheet (default: A1:Z1000)
    SSE_GOOGLE_SHEETS_TIMEOUT_SECONDS: HTTP timeout for Sheets calls (default: 30)
    SSE_CONTEXT_MAX_CHARS: Character cap on the spreadsheet context (default: 4000)
    SSE_GLOSSARY_MAX_CHARS: Character cap on the glossary context (default: 1000)
    SSE_CONTEXT_SAMPLE_ROWS: Rows sampled per sheet in the context (default: 5)
    SSE_CONTEXT_MAX_FORMULAS: Formulas listed per sheet in the context (default: 10)
    SSE_MAX_BUSINESS_CONCEPTS: Cap on extracted header concepts (default: 20)
    SSE_LOG_LEVEL: Logging level (default: INFO)
    SSE_DEBUG: Enable debug mode (default: false)
    SSE_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    SSE_SERVER_HOST: Server bind host (default: 0.0.0.0)
    SSE_SERVER_PORT: Server bind port (default: 8000)
"""

import logging
from typing import Any

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Sensitive values like API keys use SecretStr to prevent accidental logging.

    Example .env file:
        SSE_OPENAI_API_KEY=sk-...
        SSE_GOOGLE_SHEETS_API_KEY=AIza...
        SSE_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="SSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # File Upload Settings
    # =========================================================================

    max_file_size_mb: int = 10
    """Maximum upload size in megabytes."""

    allowed_extensions: str = "xlsx,xlsm,csv"
    """Comma-separated list of accepted upload extensions."""

    # =========================================================================
    # OpenAI / LLM Settings
    # =========================================================================

    openai_api_key: SecretStr = SecretStr("")
    """OpenAI API key. Required for answering questions."""

    openai_model: str = "gpt-4o"
    """OpenAI model used to answer spreadsheet questions."""

    openai_temperature: float = 0.0
    """Temperature for LLM sampling."""

    openai_max_tokens: int = 2048
    """Maximum tokens for LLM response generation."""

    llm_timeout_seconds: float = 60.0
    """Upper bound on a single LLM call before it is abandoned."""

    # =========================================================================
    # Google Sheets Settings
    # =========================================================================

    google_sheets_api_key: SecretStr = SecretStr("")
    """Google Sheets API key used to read shared spreadsheets."""

    google_sheets_base_url: str = "https://sheets.googleapis.com/v4/spreadsheets"
    """Base URL of the Sheets v4 REST API."""

    google_sheets_range: str = "A1:Z1000"
    """Cell range requested for every sheet."""

    google_sheets_timeout_seconds: float = 30.0
    """HTTP timeout for Sheets API requests."""

    # =========================================================================
    # Context Limits
    # =========================================================================

    context_max_chars: int = 4000
    """Character cap on the rendered spreadsheet context."""

    glossary_max_chars: int = 1000
    """Character cap on the rendered glossary context."""

    context_sample_rows: int = 5
    """Number of leading rows rendered per sheet."""

    context_max_formulas: int = 10
    """Number of formulas rendered per sheet."""

    max_business_concepts: int = 20
    """Maximum number of header concepts reported in stats."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with additional error details."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "*"
    """Comma-separated list of allowed CORS origins, or * for all."""

    server_host: str = "0.0.0.0"
    """Host address for the server to bind to."""

    server_port: int = 8000
    """Port for the server to listen on."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_file_size(cls, v: int) -> int:
        """Validate file size is positive and reasonable."""
        if not 1 <= v <= 500:
            raise ValueError(f"max_file_size_mb must be between 1 and 500, got {v}")
        return v

    @field_validator(
        "context_max_chars",
        "glossary_max_chars",
        "context_sample_rows",
        "context_max_formulas",
        "max_business_concepts",
    )
    @classmethod
    def validate_limit(cls, v: int) -> int:
        """Validate context limits are positive."""
        if v < 1:
            raise ValueError(f"Context limits must be at least 1, got {v}")
        return v

    @field_validator("llm_timeout_seconds", "google_sheets_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError(f"Timeouts must be greater than 0, got {v}")
        return v

    @field_validator("openai_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"openai_temperature must be between 0.0 and 2.0, got {v}")
        return v

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"server_port must be between 1 and 65535, got {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def allowed_extensions_list(self) -> list[str]:
        """Get accepted extensions as a normalized list without dots."""
        return [
            ext.strip().lower().lstrip(".")
            for ext in self.allowed_extensions.split(",")
            if ext.strip()
        ]

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def get_openai_api_key(self) -> str:
        """Get the OpenAI API key value.

        Returns:
            The API key string. Returns empty string if not set.
        """
        return self.openai_api_key.get_secret_value()

    def get_google_sheets_api_key(self) -> str:
        """Get the Google Sheets API key value, or empty string if not set."""
        return self.google_sheets_api_key.get_secret_value()

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary with sensitive values masked."""
        return {
            "max_file_size_mb": self.max_file_size_mb,
            "allowed_extensions": self.allowed_extensions,
            "openai_api_key": "***" if self.get_openai_api_key() else "(not set)",
            "openai_model": self.openai_model,
            "openai_temperature": self.openai_temperature,
            "openai_max_tokens": self.openai_max_tokens,
            "llm_timeout_seconds": self.llm_timeout_seconds,
            "google_sheets_api_key": (
                "***" if self.get_google_sheets_api_key() else "(not set)"
            ),
            "google_sheets_base_url": self.google_sheets_base_url,
            "google_sheets_range": self.google_sheets_range,
            "google_sheets_timeout_seconds": self.google_sheets_timeout_seconds,
            "context_max_chars": self.context_max_chars,
            "glossary_max_chars": self.glossary_max_chars,
            "context_sample_rows": self.context_sample_rows,
            "context_max_formulas": self.context_max_formulas,
            "max_business_concepts": self.max_business_concepts,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Validate settings on application startup.

    Emits warnings for missing credentials and permissive CORS, then logs a
    configuration summary without sensitive values.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if not s.get_openai_api_key():
        logger.warning(
            "OPENAI_API_KEY is not configured. Search will not work. "
            "Set SSE_OPENAI_API_KEY environment variable."
        )

    if not s.get_google_sheets_api_key():
        logger.warning(
            "GOOGLE_SHEETS_API_KEY is not configured. Google Sheets links will "
            "be rejected. Set SSE_GOOGLE_SHEETS_API_KEY environment variable."
        )

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"model={s.openai_model}, context_max_chars={s.context_max_chars}"
    )


settings = Settings()
