"""Request coordination for the statistics dashboard.

The coordinator owns the notion of the "current request". It debounces
trigger changes, supersedes in-flight generations and commits only the
results of the current generation to the dashboard state store.

State machine:
    IDLE        --trigger-->        DEBOUNCING
    DEBOUNCING  --trigger-->        DEBOUNCING (timer restarted)
    DEBOUNCING  --timer fires-->    IN_FLIGHT (new generation)
    IN_FLIGHT   --trigger-->        DEBOUNCING (generation cancelled)
    IN_FLIGHT   --settled-->        IDLE
    any         --aclose()-->       CLOSED
"""

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from newsdesk.config import settings
from newsdesk.data.catalog import metrics_for_role
from newsdesk.data.models import DateRange, MetricBundle, Role
from newsdesk.orchestration.aggregator import ParallelAggregator
from newsdesk.orchestration.errors import (
    AGGREGATE_FAILURE_MESSAGE,
    PARTIAL_FAILURE_MESSAGE,
    AggregateFailureError,
    CoordinatorClosedError,
    DashboardError,
    GenerationCancelledError,
    RetriesExhaustedError,
    classify_error,
)
from newsdesk.orchestration.retry import CancellationToken
from newsdesk.orchestration.state import DashboardState, DashboardStateStore

logger = structlog.get_logger(__name__)

ErrorNotifier = Callable[[str], None]


class CoordinatorPhase(str, Enum):
    """Lifecycle phase of the request coordinator."""

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    IN_FLIGHT = "in_flight"
    CLOSED = "closed"


@dataclass(frozen=True)
class Trigger:
    """Inputs that determine which bundle the dashboard needs."""

    role: Role | None
    date_range: DateRange | None = None


class RequestCoordinator:
    """Debounces triggers and keeps exactly one generation current.

    Example:
        async with RequestCoordinator(aggregator, store) as coordinator:
            coordinator.trigger(Role.ADMIN, date_range)
            await coordinator.wait_idle()
            print(coordinator.state.results_by_role["admin"])
    """

    def __init__(
        self,
        aggregator: ParallelAggregator,
        store: DashboardStateStore | None = None,
        *,
        debounce_seconds: float | None = None,
        abort_in_flight: bool | None = None,
        on_error: ErrorNotifier | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            aggregator: Aggregator that fetches one bundle.
            store: State store the coordinator commits into.
            debounce_seconds: Quiet period before a trigger starts a fetch.
            abort_in_flight: Cancel the superseded generation's task, which
                aborts its HTTP calls, instead of only ignoring its result.
            on_error: Called with the user-facing message when a generation
                fails (e.g. to show a toast).
        """
        self._aggregator = aggregator
        self._store = store or DashboardStateStore()
        self._debounce_seconds = (
            settings.DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self._abort_in_flight = (
            settings.ABORT_IN_FLIGHT if abort_in_flight is None else abort_in_flight
        )
        self._on_error = on_error

        self._phase = CoordinatorPhase.IDLE
        self._generation = 0
        self._trigger: Trigger | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._token: CancellationToken | None = None
        self._task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._logger = logger.bind(component="request_coordinator")

    @property
    def phase(self) -> CoordinatorPhase:
        """Current lifecycle phase."""
        return self._phase

    @property
    def generation(self) -> int:
        """Most recently allocated generation (0 before the first fetch)."""
        return self._generation

    @property
    def last_trigger(self) -> Trigger | None:
        """The most recent trigger."""
        return self._trigger

    @property
    def store(self) -> DashboardStateStore:
        """The state store the coordinator writes into."""
        return self._store

    @property
    def state(self) -> DashboardState:
        """Snapshot of the current dashboard state."""
        return self._store.state

    def snapshot(self) -> dict[str, Any]:
        """Public view of the dashboard state."""
        return self._store.state.to_public_dict()

    def _ensure_open(self) -> None:
        if self._phase is CoordinatorPhase.CLOSED:
            raise CoordinatorClosedError()

    def _is_current(self, generation: int, token: CancellationToken) -> bool:
        return (
            generation == self._generation
            and not token.cancelled
            and self._phase is not CoordinatorPhase.CLOSED
        )

    def _cancel_in_flight(self) -> None:
        if self._token is not None:
            self._token.cancel()
        task = self._task
        self._task = None
        if task is not None and not task.done() and self._abort_in_flight:
            task.cancel()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _settle(self) -> None:
        if self._phase is CoordinatorPhase.CLOSED:
            return
        if self._timer is None and self._task is None:
            self._phase = CoordinatorPhase.IDLE
            self._idle.set()

    def trigger(self, role: Role | str | None, date_range: DateRange | None = None) -> None:
        """Register a change of role or date range.

        The in-flight generation, if any, is cancelled at once; a new one
        starts after the debounce period unless another trigger arrives.

        Raises:
            CoordinatorClosedError: If the coordinator has been closed.
        """
        self._ensure_open()
        loop = asyncio.get_running_loop()

        self._trigger = Trigger(role=Role.parse(role), date_range=date_range)
        self._cancel_in_flight()
        self._cancel_timer()
        self._timer = loop.call_later(self._debounce_seconds, self._on_debounce_elapsed)
        self._phase = CoordinatorPhase.DEBOUNCING
        self._idle.clear()

        self._logger.debug(
            "trigger_received",
            role=self._trigger.role.value if self._trigger.role else None,
            debounce_seconds=self._debounce_seconds,
        )

    def refetch(self) -> asyncio.Task[None] | None:
        """Start a new generation immediately with the last trigger.

        Returns:
            The generation's task, or None if there is nothing to fetch or
            a listener superseded the generation as it started.

        Raises:
            CoordinatorClosedError: If the coordinator has been closed.
        """
        self._ensure_open()
        if self._trigger is None:
            return None
        self._cancel_timer()
        self._idle.clear()
        return self._start_generation()

    def _on_debounce_elapsed(self) -> None:
        self._timer = None
        self._start_generation()

    def _start_generation(self) -> asyncio.Task[None] | None:
        trigger = self._trigger
        self._cancel_in_flight()

        self._generation += 1
        generation = self._generation
        token = CancellationToken(generation)
        self._token = token

        role = trigger.role if trigger is not None else None
        if trigger is None or role is None or not metrics_for_role(role):
            self._logger.debug(
                "dashboard_role_ignored",
                generation=generation,
                role=role.value if role else None,
            )
            self._store.finish()
            self._settle()
            return None

        self._phase = CoordinatorPhase.IN_FLIGHT
        task = asyncio.create_task(
            self._run(generation, role, trigger.date_range, token),
            name=f"dashboard-generation-{generation}",
        )
        self._task = task
        task.add_done_callback(self._on_task_done)

        # Listeners may trigger again from this notification.
        self._store.begin_loading()
        if token.cancelled:
            return None
        return task

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task is self._task:
            self._task = None
            self._settle()

    async def _run(
        self,
        generation: int,
        role: Role,
        date_range: DateRange | None,
        token: CancellationToken,
    ) -> None:
        log = self._logger.bind(generation=generation, role=role.value)
        if not self._is_current(generation, token):
            log.debug("generation_discarded", reason="superseded_before_start")
            return
        log.info("generation_started")

        try:
            bundle = await self._aggregator.aggregate(role, date_range, token)
        except GenerationCancelledError:
            log.debug("generation_discarded", reason="cancelled")
            return
        except Exception as e:
            if not self._is_current(generation, token):
                log.debug("generation_discarded", reason="superseded_failure")
                return
            self._fail(generation, role, e, log)
            return

        if not self._is_current(generation, token):
            log.debug("generation_discarded", reason="superseded")
            return

        self._commit(bundle, log)

    def _commit(self, bundle: MetricBundle, log: Any) -> None:
        message = PARTIAL_FAILURE_MESSAGE if bundle.failures else None
        self._store.commit(bundle, error=message)
        log.info(
            "generation_committed",
            metrics=len(bundle.payloads),
            failed=len(bundle.failures),
        )
        if message:
            self._notify_error(message)

    def _fail(self, generation: int, role: Role, error: Exception, log: Any) -> None:
        failures: dict[str, str] = {}
        if isinstance(error, RetriesExhaustedError) and error.metric:
            failures[error.metric] = str(error.last_error or error)
        failure = AggregateFailureError(role=role.value, failures=failures)
        category, _ = classify_error(error)

        if isinstance(error, DashboardError):
            log.warning("generation_failed", category=category, **failure.to_dict())
        else:
            log.error(
                "generation_failed",
                category=category,
                error=str(error),
                exc_info=error,
            )

        self._store.fail(failure.message, generation)
        self._notify_error(failure.message)

    def _notify_error(self, message: str) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(message)
        except Exception as e:
            self._logger.error("error_notifier_failed", error=str(e))

    async def wait_idle(self) -> None:
        """Wait until no debounce timer is pending and nothing is in flight."""
        await self._idle.wait()

    async def aclose(self) -> None:
        """Cancel outstanding work and pending timers.

        Further triggers raise CoordinatorClosedError.
        """
        if self._phase is CoordinatorPhase.CLOSED:
            return

        self._phase = CoordinatorPhase.CLOSED
        self._cancel_timer()
        if self._token is not None:
            self._token.cancel()

        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._idle.set()
        self._logger.debug("coordinator_closed", generation=self._generation)

    async def __aenter__(self) -> "RequestCoordinator":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.aclose()
