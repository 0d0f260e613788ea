"""Concurrent fan-out of a role's metric calls.

The aggregator looks up the role's metric set in the static catalog,
runs every call as its own asyncio task behind the retrying invoker and
joins the results according to an aggregation policy.
"""

import asyncio
from enum import Enum
from typing import Any

import structlog

from newsdesk.config import settings
from newsdesk.data.catalog import metrics_for_role
from newsdesk.data.models import (
    DateRange,
    MetricBundle,
    MetricName,
    MetricOutcome,
    MetricSpec,
    Role,
)
from newsdesk.data.statistics_client import StatisticsClient
from newsdesk.orchestration.errors import RetriesExhaustedError, UnsupportedRoleError
from newsdesk.orchestration.retry import CancellationToken, RetryingInvoker

logger = structlog.get_logger(__name__)


class AggregationPolicy(str, Enum):
    """How metric failures affect the bundle."""

    ALL_OR_NOTHING = "all_or_nothing"  # First failure fails the bundle
    PARTIAL = "partial"  # Each metric succeeds or fails on its own

    @classmethod
    def from_settings(cls) -> "AggregationPolicy":
        """Get the policy configured in application settings."""
        try:
            return cls(settings.AGGREGATION_POLICY)
        except ValueError:
            return cls.ALL_OR_NOTHING


class ParallelAggregator:
    """Fetches a role's full metric bundle concurrently.

    Example:
        aggregator = ParallelAggregator(StatisticsClient())
        bundle = await aggregator.aggregate(Role.ADMIN, date_range)
        stats = bundle.payloads[MetricName.DASHBOARD_STATS]
    """

    def __init__(
        self,
        client: StatisticsClient,
        invoker: RetryingInvoker | None = None,
        policy: AggregationPolicy | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            client: Statistics client used for every metric call.
            invoker: Retrying invoker wrapping each call.
            policy: Aggregation policy. Defaults to application settings.
        """
        self._client = client
        self._invoker = invoker or RetryingInvoker()
        self.policy = policy or AggregationPolicy.from_settings()
        self._logger = logger.bind(component="parallel_aggregator")

    def plan(self, role: Role) -> tuple[MetricSpec, ...]:
        """Get the metric calls needed for a role.

        Raises:
            UnsupportedRoleError: If the role has no dashboard metric set.
        """
        specs = metrics_for_role(role)
        if not specs:
            raise UnsupportedRoleError(role)
        return specs

    async def _fetch_one(
        self,
        spec: MetricSpec,
        date_range: DateRange | None,
        token: CancellationToken | None,
    ) -> MetricOutcome:
        attempts = 0

        async def call() -> Any:
            nonlocal attempts
            attempts += 1
            return await self._client.fetch_metric(spec, date_range)

        payload = await self._invoker.invoke(call, token, metric=spec.name.value)
        return MetricOutcome(metric=spec.name, payload=payload, attempts=attempts)

    async def aggregate(
        self,
        role: Role,
        date_range: DateRange | None = None,
        token: CancellationToken | None = None,
    ) -> MetricBundle:
        """Fetch every metric of a role's dashboard concurrently.

        Args:
            role: Viewer role selecting the metric set.
            date_range: Window for date-ranged metrics.
            token: Cancellation token of the current generation.

        Returns:
            MetricBundle with one outcome per metric, in catalog order.
            Under ALL_OR_NOTHING every outcome is a success.

        Raises:
            UnsupportedRoleError: If the role has no metric set.
            RetriesExhaustedError: Under ALL_OR_NOTHING, the first metric
                that exhausted its retries.
            GenerationCancelledError: If the token was cancelled.
        """
        specs = self.plan(role)
        generation = token.generation if token is not None else None
        log = self._logger.bind(role=role.value, generation=generation)
        log.debug("aggregation_started", metrics=len(specs), policy=self.policy.value)

        tasks = [
            asyncio.create_task(
                self._fetch_one(spec, date_range, token),
                name=f"metric:{spec.name.value}",
            )
            for spec in specs
        ]

        try:
            if self.policy is AggregationPolicy.ALL_OR_NOTHING:
                results: list[Any] = list(await asyncio.gather(*tasks))
            else:
                results = list(await asyncio.gather(*tasks, return_exceptions=True))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
                elif not task.cancelled():
                    task.exception()
            raise

        if token is not None:
            token.raise_if_cancelled()

        outcomes: dict[MetricName, MetricOutcome] = {}
        for spec, result in zip(specs, results, strict=True):
            if isinstance(result, MetricOutcome):
                outcomes[spec.name] = result
            elif isinstance(result, RetriesExhaustedError):
                outcomes[spec.name] = MetricOutcome(
                    metric=spec.name, error=result.message, attempts=result.attempts
                )
            else:
                raise result

        bundle = MetricBundle(
            role=role,
            date_range=date_range,
            generation=generation,
            outcomes=outcomes,
        )
        log.info(
            "aggregation_completed",
            succeeded=len(bundle.payloads),
            failed=len(bundle.failures),
        )
        return bundle
