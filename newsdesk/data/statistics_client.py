"""Async client for the newsdesk statistics REST API.

This module provides an async client for the backend's admin and writer
statistics endpoints. Each endpoint returns an opaque JSON aggregate.
"""

from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from newsdesk.config import settings
from newsdesk.data.catalog import ADMIN_METRICS, WRITER_METRICS
from newsdesk.data.models import DateRange, MetricName, MetricSpec

logger = structlog.get_logger(__name__)

_ADMIN = {spec.name: spec for spec in ADMIN_METRICS}
_WRITER = {spec.name: spec for spec in WRITER_METRICS}


class StatisticsClientError(Exception):
    """Raised when a statistics call fails for any transport or HTTP reason."""

    def __init__(self, endpoint: str, status: int, message: str) -> None:
        self.endpoint = endpoint
        self.status = status
        self.message = message
        super().__init__(f"Statistics API error {status} on {endpoint}: {message}")


class StatisticsAuthError(StatisticsClientError):
    """Raised when the backend rejects the credentials (HTTP 401)."""

    def __init__(self, endpoint: str) -> None:
        super().__init__(endpoint, 401, "Unauthorized")


class StatisticsClient:
    """Async client for the statistics endpoints under ``/api``.

    Example:
        async with StatisticsClient() as client:
            stats = await client.get_admin_dashboard_stats()
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the statistics client.

        Args:
            base_url: API base URL. Defaults to ``settings.API_BASE_URL``.
            token: Bearer token. Defaults to ``settings.API_TOKEN``.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component="statistics_client")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, endpoint: str, params: Mapping[str, str] | None = None
    ) -> Any:
        """Make a GET request and decode its JSON body.

        Args:
            endpoint: Path below the base URL (e.g. "/admin/statistics/dashboard").
            params: Optional query parameters.

        Returns:
            Decoded JSON payload.

        Raises:
            StatisticsAuthError: On HTTP 401.
            StatisticsClientError: On any other non-2xx status, network
                failure, timeout, or undecodable or empty body.
        """
        client = await self._get_client()

        self._logger.debug("statistics_request", endpoint=endpoint, params=params)

        try:
            response = await client.get(endpoint, params=dict(params) if params else None)
        except httpx.RequestError as e:
            self._logger.warning("statistics_transport_error", endpoint=endpoint, error=str(e))
            raise StatisticsClientError(endpoint, 0, str(e) or type(e).__name__) from e

        if response.status_code == 401:
            raise StatisticsAuthError(endpoint)

        if not response.is_success:
            self._logger.warning(
                "statistics_http_error",
                endpoint=endpoint,
                status=response.status_code,
            )
            raise StatisticsClientError(endpoint, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise StatisticsClientError(
                endpoint, response.status_code, "Response body is not valid JSON"
            ) from e

        if data is None:
            raise StatisticsClientError(endpoint, response.status_code, "Empty payload")

        self._logger.debug(
            "statistics_response",
            endpoint=endpoint,
            status=response.status_code,
        )
        return data

    async def fetch_metric(self, spec: MetricSpec, date_range: DateRange | None = None) -> Any:
        """Fetch one catalog metric.

        Args:
            spec: Catalog entry to fetch.
            date_range: Window for date-ranged metrics; ignored otherwise.

        Returns:
            The metric's JSON payload.

        Raises:
            ValueError: If a date-ranged metric is requested without a range.
        """
        params = None
        if spec.date_ranged:
            if date_range is None:
                raise ValueError(f"{spec.name.value} requires a date range")
            params = date_range.to_query_params()
        return await self._request(spec.endpoint, params=params)

    # Admin statistics

    async def get_admin_dashboard_stats(self) -> Any:
        return await self.fetch_metric(_ADMIN[MetricName.DASHBOARD_STATS])

    async def get_articles_overview(self, date_range: DateRange) -> Any:
        return await self.fetch_metric(_ADMIN[MetricName.ARTICLES_OVERVIEW], date_range)

    async def get_users_overview(self, date_range: DateRange) -> Any:
        return await self.fetch_metric(_ADMIN[MetricName.USERS_OVERVIEW], date_range)

    async def get_category_performance(self) -> Any:
        return await self.fetch_metric(_ADMIN[MetricName.CATEGORY_PERFORMANCE])

    async def get_writer_performance(self) -> Any:
        return await self.fetch_metric(_ADMIN[MetricName.WRITER_PERFORMANCE])

    async def get_engagement_metrics(self) -> Any:
        return await self.fetch_metric(_ADMIN[MetricName.ENGAGEMENT_METRICS])

    # Writer statistics

    async def get_writer_dashboard_stats(self) -> Any:
        return await self.fetch_metric(_WRITER[MetricName.DASHBOARD_STATS])

    async def get_writer_articles_performance(self) -> Any:
        return await self.fetch_metric(_WRITER[MetricName.ARTICLES_PERFORMANCE])

    async def get_writer_articles_engagement(self) -> Any:
        return await self.fetch_metric(_WRITER[MetricName.ARTICLES_ENGAGEMENT])

    async def get_writer_categories_performance(self) -> Any:
        return await self.fetch_metric(_WRITER[MetricName.CATEGORIES_PERFORMANCE])

    async def get_writer_reader_insights(self) -> Any:
        return await self.fetch_metric(_WRITER[MetricName.READER_INSIGHTS])

    async def __aenter__(self) -> "StatisticsClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
