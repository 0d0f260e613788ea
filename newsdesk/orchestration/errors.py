"""Error taxonomy for dashboard statistics orchestration.

Exception Hierarchy:
    DashboardError (base)
    ├── RetriesExhaustedError - One metric failed after every retry
    ├── AggregateFailureError - A bundle could not be loaded
    ├── GenerationCancelledError - Work belonging to a superseded generation
    ├── UnsupportedRoleError - Role has no dashboard metric set
    └── CoordinatorClosedError - Coordinator used after teardown

Transport and HTTP failures are raised by the statistics client as
``StatisticsClientError`` and are the only errors retried.
"""

import asyncio
from typing import Any

import structlog

from newsdesk.data.statistics_client import StatisticsAuthError, StatisticsClientError

logger = structlog.get_logger(__name__)

# User-facing messages
AGGREGATE_FAILURE_MESSAGE = "Failed to load dashboard statistics"
PARTIAL_FAILURE_MESSAGE = "Some dashboard statistics could not be loaded"


class DashboardError(Exception):
    """Base exception for all dashboard orchestration errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
        recoverable: Whether a new fetch may succeed.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class RetriesExhaustedError(DashboardError):
    """A metric call kept failing after all retries.

    Attributes:
        metric: Name of the metric that failed.
        attempts: Number of calls made, including the initial one.
        last_error: The last underlying error.
    """

    def __init__(
        self,
        message: str,
        *,
        metric: str | None = None,
        attempts: int = 0,
        last_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details, recoverable=True)
        self.metric = metric
        self.attempts = attempts
        self.last_error = last_error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base.update(
            {
                "metric": self.metric,
                "attempts": self.attempts,
                "last_error": str(self.last_error) if self.last_error else None,
            }
        )
        return base


class AggregateFailureError(DashboardError):
    """A dashboard bundle could not be loaded.

    Attributes:
        role: Role whose bundle failed.
        failures: Error message per failed metric.
    """

    def __init__(
        self,
        message: str = AGGREGATE_FAILURE_MESSAGE,
        *,
        role: str | None = None,
        failures: dict[str, str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details, recoverable=True)
        self.role = role
        self.failures = failures or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base.update({"role": self.role, "failures": self.failures})
        return base


class GenerationCancelledError(DashboardError):
    """Work was abandoned because its generation was superseded.

    Never surfaced to users.
    """

    def __init__(self, generation: int | None = None) -> None:
        super().__init__(
            f"Generation {generation} was cancelled",
            details={"generation": generation},
            recoverable=False,
        )
        self.generation = generation


class UnsupportedRoleError(DashboardError):
    """The role has no dashboard metric set."""

    def __init__(self, role: Any) -> None:
        super().__init__(
            f"No dashboard statistics for role: {role}",
            details={"role": str(role)},
            recoverable=False,
        )
        self.role = role


class CoordinatorClosedError(DashboardError):
    """The request coordinator was used after it was closed."""

    def __init__(self) -> None:
        super().__init__("Request coordinator is closed", recoverable=False)


# Errors the retrying invoker retries
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (StatisticsClientError,)


def classify_error(error: BaseException) -> tuple[str, bool]:
    """Classify an error for logging.

    Args:
        error: The error to classify.

    Returns:
        Tuple of (error_category, is_recoverable).
    """
    if isinstance(error, (GenerationCancelledError, asyncio.CancelledError)):
        return ("cancelled", False)

    if isinstance(error, DashboardError):
        return (type(error).__name__, error.recoverable)

    if isinstance(error, StatisticsAuthError):
        return ("authentication", True)

    if isinstance(error, StatisticsClientError):
        if error.status == 0:
            return ("network", True)
        if error.status >= 500:
            return ("server", True)
        return ("http", True)

    error_map: dict[type[BaseException], tuple[str, bool]] = {
        TimeoutError: ("timeout", True),
        ConnectionError: ("connection", True),
        ValueError: ("validation", False),
    }

    for exc_type, (category, recoverable) in error_map.items():
        if isinstance(error, exc_type):
            return (category, recoverable)

    return ("unknown", False)
