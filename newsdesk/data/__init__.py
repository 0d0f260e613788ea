"""Data layer for dashboard statistics.

This module provides:
- StatisticsClient: Async client for the backend statistics endpoints
- Metric catalog: Which calls each role's dashboard needs
- Data models: Role, DateRange, MetricName, MetricBundle
"""

from newsdesk.data.catalog import (
    ADMIN_METRICS,
    ROLE_METRICS,
    WRITER_METRICS,
    dashboard_roles,
    metrics_for_role,
)
from newsdesk.data.models import (
    DateRange,
    MetricBundle,
    MetricName,
    MetricOutcome,
    MetricSpec,
    Role,
)
from newsdesk.data.statistics_client import (
    StatisticsAuthError,
    StatisticsClient,
    StatisticsClientError,
)

__all__ = [
    "ADMIN_METRICS",
    "DateRange",
    "MetricBundle",
    "MetricName",
    "MetricOutcome",
    "MetricSpec",
    "ROLE_METRICS",
    "Role",
    "StatisticsAuthError",
    "StatisticsClient",
    "StatisticsClientError",
    "WRITER_METRICS",
    "dashboard_roles",
    "metrics_for_role",
]
