"""Bounded retry with exponential backoff for single metric calls.

This module provides:
- CancellationToken: Cooperative cancellation signal for one generation
- RetryConfig: Retry limits and backoff timing
- RetryingInvoker: Runs one call with retries, abandoning promptly once
  its token is cancelled
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from newsdesk.config import settings
from newsdesk.orchestration.errors import (
    RETRYABLE_ERRORS,
    GenerationCancelledError,
    RetriesExhaustedError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class CancellationToken:
    """Cancellation signal shared by every call of one generation.

    Cancellation is advisory: holders check it at their own suspension
    points. Once cancelled a token never resets.

    Attributes:
        generation: Generation the token belongs to.
    """

    def __init__(self, generation: int | None = None) -> None:
        self.generation = generation
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """Whether the token has been cancelled."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation to every holder of the token."""
        self._event.set()

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise GenerationCancelledError if the token is cancelled."""
        if self.cancelled:
            raise GenerationCancelledError(self.generation)


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Delays are ``base_delay_seconds * 2**retry`` (1s, 2s, 4s by default).

    Attributes:
        max_retries: Retries after the initial attempt.
        base_delay_seconds: Delay before the first retry.
        max_delay_seconds: Upper bound for a single delay.
        retry_exceptions: Exception types to retry on.
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    retry_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: RETRYABLE_ERRORS
    )

    @property
    def max_attempts(self) -> int:
        """Total attempts including the initial one."""
        return self.max_retries + 1

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        """Create config from application settings."""
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            base_delay_seconds=settings.RETRY_BASE_DELAY_SECONDS,
        )


class RetryingInvoker:
    """Runs a zero-argument async call with bounded retry and backoff.

    Example:
        invoker = RetryingInvoker(RetryConfig(max_retries=3))
        stats = await invoker.invoke(client.get_admin_dashboard_stats, token)
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialize the invoker.

        Args:
            config: Retry configuration. Defaults to application settings.
            sleep: Coroutine used for backoff delays.
        """
        self.config = config or RetryConfig.from_settings()
        self._sleep = sleep

    async def _backoff(self, delay: float, token: CancellationToken | None = None) -> None:
        """Sleep before a retry, returning early if the token is cancelled.

        Raises:
            GenerationCancelledError: If the token is cancelled before or
                during the delay.
        """
        if token is None:
            await self._sleep(delay)
            return

        token.raise_if_cancelled()
        sleeper = asyncio.ensure_future(self._sleep(delay))
        canceller = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (sleeper, canceller):
                if not pending.done():
                    pending.cancel()
        token.raise_if_cancelled()

    async def invoke(
        self,
        call: Callable[[], Awaitable[T]],
        token: CancellationToken | None = None,
        *,
        metric: str | None = None,
    ) -> T:
        """Run a call, retrying retryable failures with exponential backoff.

        Args:
            call: Zero-argument async operation.
            token: Cancellation token of the surrounding generation.
            metric: Metric name for logs and errors.

        Returns:
            The call's result.

        Raises:
            RetriesExhaustedError: If every attempt failed with a retryable
                error. Carries the last underlying error.
            GenerationCancelledError: If the token was cancelled.
        """
        attempt = 0
        log = logger.bind(metric=metric)

        try:
            async for attempt_context in AsyncRetrying(
                sleep=partial(self._backoff, token=token),
                stop=stop_after_attempt(self.config.max_attempts),
                wait=wait_exponential(
                    multiplier=self.config.base_delay_seconds,
                    exp_base=2,
                    max=self.config.max_delay_seconds,
                ),
                retry=retry_if_exception_type(self.config.retry_exceptions),
                reraise=True,
            ):
                with attempt_context:
                    if token is not None:
                        token.raise_if_cancelled()
                    attempt += 1
                    if attempt > 1:
                        log.info(
                            "metric_retry_attempt",
                            attempt=attempt,
                            max_attempts=self.config.max_attempts,
                        )
                    return await call()
        except self.config.retry_exceptions as e:
            log.warning("metric_retries_exhausted", attempts=attempt, error=str(e))
            raise RetriesExhaustedError(
                f"{metric or 'call'} failed after {attempt} attempts: {e}",
                metric=metric,
                attempts=attempt,
                last_error=e,
            ) from e

        # This should not be reached due to reraise=True
        raise RuntimeError("Retry loop exited unexpectedly")
