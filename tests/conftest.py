"""Shared fakes for dashboard orchestration tests."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from newsdesk.data.catalog import metrics_for_role
from newsdesk.data.models import (
    DateRange,
    MetricBundle,
    MetricOutcome,
    MetricSpec,
    Role,
)
from newsdesk.data.statistics_client import StatisticsClient
from newsdesk.orchestration.retry import CancellationToken, RetryConfig, RetryingInvoker

TEST_BASE_URL = "http://testserver/api"


class RecordingSleep:
    """Backoff sleep that returns at once and records each delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedStatisticsClient:
    """Stand-in for StatisticsClient driven by per-endpoint scripts.

    Each script entry is a payload or an exception; the last entry repeats.
    Endpoints without a script return ``{"endpoint": <path>}``. Endpoints
    listed in ``blocked`` wait on ``release`` before answering.
    """

    def __init__(self, scripts: dict[str, list[Any]] | None = None) -> None:
        self.scripts = scripts or {}
        self.calls: list[tuple[str, DateRange | None]] = []
        self.cancelled: list[str] = []
        self.blocked: set[str] = set()
        self.release = asyncio.Event()

    def calls_to(self, endpoint: str) -> int:
        return sum(1 for path, _ in self.calls if path == endpoint)

    async def fetch_metric(self, spec: MetricSpec, date_range: DateRange | None = None) -> Any:
        self.calls.append((spec.endpoint, date_range))
        try:
            if spec.endpoint in self.blocked:
                await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled.append(spec.endpoint)
            raise

        script = self.scripts.get(spec.endpoint)
        if not script:
            return {"endpoint": spec.endpoint}
        index = min(self.calls_to(spec.endpoint) - 1, len(script) - 1)
        outcome = script[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@dataclass
class AggregateCall:
    """One recorded call to DeferredAggregator.aggregate."""

    role: Role
    date_range: DateRange | None
    token: CancellationToken | None
    future: asyncio.Future[Any]
    task: asyncio.Task[Any] | None = None

    def resolve(self, result: MetricBundle | BaseException) -> None:
        self.future.set_result(result)


@dataclass
class DeferredAggregator:
    """Aggregator whose results are released by the test."""

    auto_resolve: bool = False
    calls: list[AggregateCall] = field(default_factory=list)

    async def aggregate(
        self,
        role: Role,
        date_range: DateRange | None = None,
        token: CancellationToken | None = None,
    ) -> MetricBundle:
        call = AggregateCall(
            role=role,
            date_range=date_range,
            token=token,
            future=asyncio.get_running_loop().create_future(),
            task=asyncio.current_task(),
        )
        self.calls.append(call)
        if self.auto_resolve:
            return make_bundle(role, f"call-{len(self.calls)}", token)
        result = await call.future
        if isinstance(result, BaseException):
            raise result
        return result

    async def wait_for_calls(self, count: int, timeout: float = 2.0) -> None:
        async def _poll() -> None:
            while len(self.calls) < count:
                await asyncio.sleep(0.002)

        await asyncio.wait_for(_poll(), timeout=timeout)


def make_bundle(
    role: Role,
    marker: str,
    token: CancellationToken | None = None,
    failed: set[str] | None = None,
) -> MetricBundle:
    """Build a bundle for every metric of a role, tagging payloads with marker."""
    failed = failed or set()
    outcomes = {}
    for spec in metrics_for_role(role):
        if spec.name.value in failed:
            outcomes[spec.name] = MetricOutcome(metric=spec.name, error="boom", attempts=4)
        else:
            outcomes[spec.name] = MetricOutcome(
                metric=spec.name, payload={"marker": marker, "metric": spec.name.value}
            )
    return MetricBundle(
        role=role,
        generation=token.generation if token else None,
        outcomes=outcomes,
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Instant backoff sleep that records delays."""
    return RecordingSleep()


@pytest.fixture
def instant_invoker(recording_sleep: RecordingSleep) -> RetryingInvoker:
    """Retrying invoker with the default 3 retries and no real waiting."""
    return RetryingInvoker(RetryConfig(max_retries=3, base_delay_seconds=1.0), sleep=recording_sleep)


@pytest.fixture
def scripted_client() -> Callable[..., ScriptedStatisticsClient]:
    """Factory for scripted statistics clients."""
    return ScriptedStatisticsClient


@pytest.fixture
def deferred_aggregator() -> Callable[..., DeferredAggregator]:
    """Factory for deferred aggregators."""
    return DeferredAggregator


@pytest.fixture
def bundle_factory() -> Callable[..., MetricBundle]:
    """Factory for metric bundles."""
    return make_bundle


@pytest.fixture
def january() -> DateRange:
    """Date range covering January 2024."""
    return DateRange(start="2024-01-01T00:00:00", end="2024-01-31T00:00:00")


@pytest.fixture
def mock_http_client() -> Callable[..., StatisticsClient]:
    """Factory for a StatisticsClient backed by httpx.MockTransport."""

    def _build(
        handler: Callable[[httpx.Request], httpx.Response],
        token: str | None = None,
    ) -> StatisticsClient:
        return StatisticsClient(
            base_url=TEST_BASE_URL,
            token=token,
            timeout=5.0,
            transport=httpx.MockTransport(handler),
        )

    return _build
