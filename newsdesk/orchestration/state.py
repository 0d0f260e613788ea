"""Observable dashboard state.

The store is a plain container read by presentation code. It performs no
validation of its own: only the request coordinator writes to it, and only
for the current generation.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from newsdesk.data.catalog import ROLE_METRICS
from newsdesk.data.models import MetricBundle, MetricName, Role

logger = structlog.get_logger(__name__)

StateListener = Callable[["DashboardState"], None]


def _empty_results() -> dict[str, dict[MetricName, Any]]:
    return {
        role.bag_key: dict.fromkeys((spec.name for spec in specs), None)
        for role, specs in ROLE_METRICS.items()
    }


def _empty_metric_errors() -> dict[str, dict[MetricName, str]]:
    return {role.bag_key: {} for role in ROLE_METRICS}


class DashboardState(BaseModel):
    """Snapshot of everything the dashboard renders.

    Attributes:
        is_loading: Whether a generation is in flight.
        error: User-facing error message of the last generation, if any.
        results_by_role: Metric payloads per role bag (``admin``, ``writer``);
            ``None`` until loaded.
        metric_errors: Per-metric failure messages per role bag, populated
            only under the partial aggregation policy.
        generation: Last generation committed or failed.
        updated_at: When the state last changed.
    """

    is_loading: bool = False
    error: str | None = None
    results_by_role: dict[str, dict[MetricName, Any]] = Field(default_factory=_empty_results)
    metric_errors: dict[str, dict[MetricName, str]] = Field(
        default_factory=_empty_metric_errors
    )
    generation: int | None = None
    updated_at: datetime | None = None

    def results_for(self, role: Role) -> dict[MetricName, Any]:
        """Get the result bag of a role."""
        return self.results_by_role.get(role.bag_key, {})

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize the fields consumers observe, with JSON-friendly keys."""
        return {
            "isLoading": self.is_loading,
            "error": self.error,
            "resultsByRole": {
                bag: {metric.value: payload for metric, payload in results.items()}
                for bag, results in self.results_by_role.items()
            },
            "metricErrors": {
                bag: {metric.value: message for metric, message in errors.items()}
                for bag, errors in self.metric_errors.items()
                if errors
            },
        }


class DashboardStateStore:
    """Holds the dashboard state and notifies subscribers of changes."""

    def __init__(self) -> None:
        self._state = DashboardState()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> DashboardState:
        """A deep copy of the current state."""
        return self._state.model_copy(deep=True)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with a snapshot after every change.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        self._state.updated_at = datetime.now()
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("state_listener_failed", error=str(e))

    def begin_loading(self) -> None:
        """Mark a new generation as in flight and clear the error."""
        self._state.is_loading = True
        self._state.error = None
        self._notify()

    def commit(self, bundle: MetricBundle, error: str | None = None) -> None:
        """Write a bundle's results into its role bag.

        Successful metrics replace their previous payloads; failed metrics
        keep their previous payloads and record their error message.

        Args:
            bundle: Bundle of the current generation.
            error: User-facing message to show alongside the results.
        """
        bag = bundle.role.bag_key
        results = self._state.results_by_role.setdefault(bag, {})
        metric_errors = self._state.metric_errors.setdefault(bag, {})

        for metric, outcome in bundle.outcomes.items():
            if outcome.ok:
                results[metric] = outcome.payload
                metric_errors.pop(metric, None)
            else:
                metric_errors[metric] = outcome.error or ""

        self._state.is_loading = False
        self._state.error = error
        self._state.generation = bundle.generation
        self._notify()

    def fail(self, message: str, generation: int | None = None) -> None:
        """Record a failed generation, leaving every result bag untouched."""
        self._state.is_loading = False
        self._state.error = message
        self._state.generation = generation
        self._notify()

    def finish(self) -> None:
        """Clear the loading flag without touching results or error."""
        self._state.is_loading = False
        self._notify()
