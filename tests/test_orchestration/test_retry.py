"""Tests for the retrying invoker and cancellation tokens."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from newsdesk.data.statistics_client import StatisticsClientError
from newsdesk.orchestration.errors import GenerationCancelledError, RetriesExhaustedError
from newsdesk.orchestration.retry import CancellationToken, RetryConfig, RetryingInvoker


def _server_error() -> StatisticsClientError:
    return StatisticsClientError("/writer/statistics/dashboard", 500, "boom")


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_starts_uncancelled(self) -> None:
        """Test a new token is not cancelled."""
        token = CancellationToken(generation=3)
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel(self) -> None:
        """Test cancelling a token raises for its holders."""
        token = CancellationToken(generation=3)
        token.cancel()
        assert token.cancelled is True
        with pytest.raises(GenerationCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.generation == 3

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self) -> None:
        """Test waiters wake up on cancellation."""
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        await asyncio.wait_for(token.wait(), timeout=1.0)


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_defaults(self) -> None:
        """Test default retry configuration."""
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.max_attempts == 4
        assert config.base_delay_seconds == 1.0
        assert config.retry_exceptions == (StatisticsClientError,)


class TestRetryingInvoker:
    """Tests for RetryingInvoker."""

    @pytest.mark.asyncio
    async def test_success_without_retry(self, instant_invoker, recording_sleep) -> None:
        """Test a successful call is made once."""
        call = AsyncMock(return_value={"totalViews": 7})

        result = await instant_invoker.invoke(call, metric="dashboardStats")

        assert result == {"totalViews": 7}
        assert call.await_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self, instant_invoker, recording_sleep) -> None:
        """Test two failures are retried after 1s then 2s."""
        call = AsyncMock(side_effect=[_server_error(), _server_error(), {"ok": True}])

        result = await instant_invoker.invoke(call, CancellationToken(1), metric="dashboardStats")

        assert result == {"ok": True}
        assert call.await_count == 3
        assert recording_sleep.delays == pytest.approx([1.0, 2.0], rel=0.5)

    @pytest.mark.asyncio
    async def test_exhausts_retries(self, instant_invoker, recording_sleep) -> None:
        """Test four failures raise RetriesExhaustedError with the last error."""
        errors = [_server_error() for _ in range(4)]
        call = AsyncMock(side_effect=errors)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await instant_invoker.invoke(call, metric="dashboardStats")

        assert call.await_count == 4
        assert recording_sleep.delays == pytest.approx([1.0, 2.0, 4.0])
        assert exc_info.value.attempts == 4
        assert exc_info.value.metric == "dashboardStats"
        assert exc_info.value.last_error is errors[-1]
        assert exc_info.value.__cause__ is errors[-1]

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates(self, instant_invoker, recording_sleep) -> None:
        """Test errors outside the retryable set are not retried."""
        call = AsyncMock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError, match="bad input"):
            await instant_invoker.invoke(call)

        assert call.await_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_config(self, recording_sleep) -> None:
        """Test retry limits and delays follow the config."""
        invoker = RetryingInvoker(
            RetryConfig(max_retries=1, base_delay_seconds=0.5), sleep=recording_sleep
        )
        call = AsyncMock(side_effect=_server_error())

        with pytest.raises(RetriesExhaustedError):
            await invoker.invoke(call)

        assert call.await_count == 2
        assert recording_sleep.delays == pytest.approx([0.5])

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self, instant_invoker) -> None:
        """Test a cancelled token stops the call from being made."""
        token = CancellationToken(2)
        token.cancel()
        call = AsyncMock(return_value={})

        with pytest.raises(GenerationCancelledError):
            await instant_invoker.invoke(call, token)

        call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_interrupts_backoff(self) -> None:
        """Test cancelling during a backoff abandons the retry at once."""

        async def long_sleep(delay: float) -> None:
            await asyncio.sleep(3600)

        invoker = RetryingInvoker(RetryConfig(max_retries=3), sleep=long_sleep)
        token = CancellationToken(5)
        call = AsyncMock(side_effect=_server_error())
        asyncio.get_running_loop().call_later(0.02, token.cancel)

        with pytest.raises(GenerationCancelledError):
            await asyncio.wait_for(invoker.invoke(call, token), timeout=1.0)

        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_cancel_between_attempts_skips_call(self, recording_sleep) -> None:
        """Test a token cancelled by the failing call prevents the retry."""
        token = CancellationToken(1)

        async def failing() -> None:
            token.cancel()
            raise _server_error()

        call = AsyncMock(side_effect=failing)
        invoker = RetryingInvoker(RetryConfig(max_retries=3), sleep=recording_sleep)

        with pytest.raises(GenerationCancelledError):
            await invoker.invoke(call, token)

        assert call.await_count == 1
