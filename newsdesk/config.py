"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults. Every variable is prefixed with
``NEWSDESK_``.
"""

import os
from dataclasses import dataclass

ENV_PREFIX = "NEWSDESK_"


def _env(name: str) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}")


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name (without prefix).
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = (_env(name) or "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_float_env(name: str, default: float) -> float:
    """Get a float value from environment variable.

    Unparseable values fall back to the default.
    """
    value = _env(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_int_env(name: str, default: int) -> int:
    """Get an integer value from environment variable."""
    value = _env(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        API_BASE_URL: Base URL of the backend REST API (includes ``/api``).
        API_TOKEN: Bearer token forwarded to the backend, if any.
        REQUEST_TIMEOUT_SECONDS: Per-request HTTP timeout.
        DEBOUNCE_SECONDS: Quiet period before a trigger starts a fetch.
        RETRY_MAX_RETRIES: Retries after the initial attempt of one metric.
        RETRY_BASE_DELAY_SECONDS: First backoff delay; doubles per retry.
        AGGREGATION_POLICY: ``all_or_nothing`` or ``partial``.
        ABORT_IN_FLIGHT: Cancel superseded HTTP work instead of only
            discarding its result.
        LOG_LEVEL: Logging level.
    """

    # Backend
    API_BASE_URL: str = "http://localhost:8080/api"
    API_TOKEN: str | None = None
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Request coordination
    DEBOUNCE_SECONDS: float = 0.5
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    AGGREGATION_POLICY: str = "all_or_nothing"
    ABORT_IN_FLIGHT: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            API_BASE_URL=_env("API_BASE_URL") or "http://localhost:8080/api",
            API_TOKEN=_env("API_TOKEN"),
            REQUEST_TIMEOUT_SECONDS=_get_float_env("REQUEST_TIMEOUT_SECONDS", 30.0),
            DEBOUNCE_SECONDS=_get_float_env("DEBOUNCE_SECONDS", 0.5),
            RETRY_MAX_RETRIES=_get_int_env("RETRY_MAX_RETRIES", 3),
            RETRY_BASE_DELAY_SECONDS=_get_float_env("RETRY_BASE_DELAY_SECONDS", 1.0),
            AGGREGATION_POLICY=(_env("AGGREGATION_POLICY") or "all_or_nothing").lower(),
            ABORT_IN_FLIGHT=_get_bool_env("ABORT_IN_FLIGHT", default=True),
            LOG_LEVEL=_env("LOG_LEVEL") or "INFO",
        )


# Global settings instance
settings = Settings.from_env()
