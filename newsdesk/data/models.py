"""Data models for dashboard statistics.

This module defines the Pydantic models and enums shared by the
statistics client, the aggregator and the dashboard state store.
Individual metric payloads are opaque JSON and are never modelled here.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Viewer role of the signed-in user."""

    ADMIN = "ADMIN"
    WRITER = "WRITER"
    READER = "READER"

    @classmethod
    def parse(cls, value: "Role | str | None") -> "Role | None":
        """Parse a role case-insensitively.

        Args:
            value: Role, role name, or None.

        Returns:
            The matching Role, or None for missing/unknown values.
        """
        if value is None or isinstance(value, Role):
            return value
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None

    @property
    def bag_key(self) -> str:
        """Key of this role's bag in the dashboard results."""
        return self.value.lower()


class MetricName(str, Enum):
    """Identifier of one statistics call."""

    DASHBOARD_STATS = "dashboardStats"

    # Admin
    ARTICLES_OVERVIEW = "articlesOverview"
    USERS_OVERVIEW = "usersOverview"
    CATEGORY_PERFORMANCE = "categoryPerformance"
    WRITER_PERFORMANCE = "writerPerformance"
    ENGAGEMENT_METRICS = "engagementMetrics"

    # Writer
    ARTICLES_PERFORMANCE = "articlesPerformance"
    ARTICLES_ENGAGEMENT = "articlesEngagement"
    CATEGORIES_PERFORMANCE = "categoriesPerformance"
    READER_INSIGHTS = "readerInsights"


class DateRange(BaseModel):
    """Reporting window sent to date-ranged endpoints.

    ``start <= end`` is assumed to be validated upstream.

    Attributes:
        start: Start of the window.
        end: End of the window.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _promote_dates(cls, value: Any) -> Any:
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.min)
        return value

    def to_query_params(self) -> dict[str, str]:
        """Serialize the window as the backend's query parameters."""
        return {
            "startDate": self.start.isoformat(),
            "endDate": self.end.isoformat(),
        }


class MetricSpec(BaseModel):
    """One entry of a role's metric catalog.

    Attributes:
        name: Metric identifier.
        endpoint: Path below the API base URL.
        date_ranged: Whether the call takes ``startDate``/``endDate``.
    """

    model_config = ConfigDict(frozen=True)

    name: MetricName
    endpoint: str
    date_ranged: bool = False


class MetricOutcome(BaseModel):
    """Result of one metric branch of an aggregation.

    Exactly one of ``payload`` and ``error`` is set.

    Attributes:
        metric: Metric identifier.
        payload: Opaque JSON payload on success.
        error: Failure message when the branch failed.
        attempts: Number of calls made, including the initial one.
    """

    metric: MetricName
    payload: Any = None
    error: str | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        """Whether the branch succeeded."""
        return self.error is None


class MetricBundle(BaseModel):
    """Every metric outcome required to render one dashboard view.

    Attributes:
        role: Role the bundle was fetched for.
        date_range: Window used for date-ranged metrics.
        generation: Generation that produced the bundle, if any.
        outcomes: Outcome per metric, in catalog order.
        fetched_at: When the aggregation finished.
    """

    role: Role
    date_range: DateRange | None = None
    generation: int | None = None
    outcomes: dict[MetricName, MetricOutcome] = Field(default_factory=dict)
    fetched_at: datetime = Field(default_factory=datetime.now)

    @property
    def payloads(self) -> dict[MetricName, Any]:
        """Payloads of the successful metrics."""
        return {name: o.payload for name, o in self.outcomes.items() if o.ok}

    @property
    def failures(self) -> dict[MetricName, str]:
        """Error messages of the failed metrics."""
        return {name: o.error for name, o in self.outcomes.items() if o.error is not None}

    @property
    def is_complete(self) -> bool:
        """True when every metric succeeded."""
        return bool(self.outcomes) and not self.failures
