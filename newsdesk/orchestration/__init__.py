"""Dashboard statistics orchestration.

This module contains:
- Retry with exponential backoff for single metric calls
- Concurrent aggregation of a role's metric bundle
- Debounced, generation-based request coordination
- The observable dashboard state store
- Error handling
"""

from newsdesk.orchestration.aggregator import AggregationPolicy, ParallelAggregator
from newsdesk.orchestration.coordinator import (
    CoordinatorPhase,
    RequestCoordinator,
    Trigger,
)
from newsdesk.orchestration.errors import (
    AGGREGATE_FAILURE_MESSAGE,
    PARTIAL_FAILURE_MESSAGE,
    AggregateFailureError,
    CoordinatorClosedError,
    DashboardError,
    GenerationCancelledError,
    RetriesExhaustedError,
    UnsupportedRoleError,
    classify_error,
)
from newsdesk.orchestration.retry import CancellationToken, RetryConfig, RetryingInvoker
from newsdesk.orchestration.state import DashboardState, DashboardStateStore

__all__ = [
    # Aggregation
    "AggregationPolicy",
    "ParallelAggregator",
    # Coordination
    "CoordinatorPhase",
    "RequestCoordinator",
    "Trigger",
    # Errors
    "AGGREGATE_FAILURE_MESSAGE",
    "PARTIAL_FAILURE_MESSAGE",
    "AggregateFailureError",
    "CoordinatorClosedError",
    "DashboardError",
    "GenerationCancelledError",
    "RetriesExhaustedError",
    "UnsupportedRoleError",
    "classify_error",
    # Retry
    "CancellationToken",
    "RetryConfig",
    "RetryingInvoker",
    # State
    "DashboardState",
    "DashboardStateStore",
]
