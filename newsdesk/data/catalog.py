"""Static catalog of the statistics each role's dashboard needs."""

from newsdesk.data.models import MetricName, MetricSpec, Role

ADMIN_METRICS: tuple[MetricSpec, ...] = (
    MetricSpec(name=MetricName.DASHBOARD_STATS, endpoint="/admin/statistics/dashboard"),
    MetricSpec(
        name=MetricName.ARTICLES_OVERVIEW,
        endpoint="/admin/statistics/articles/overview",
        date_ranged=True,
    ),
    MetricSpec(
        name=MetricName.USERS_OVERVIEW,
        endpoint="/admin/statistics/users/overview",
        date_ranged=True,
    ),
    MetricSpec(
        name=MetricName.CATEGORY_PERFORMANCE,
        endpoint="/admin/statistics/categories/performance",
    ),
    MetricSpec(
        name=MetricName.WRITER_PERFORMANCE,
        endpoint="/admin/statistics/writers/performance",
    ),
    MetricSpec(name=MetricName.ENGAGEMENT_METRICS, endpoint="/admin/statistics/engagement"),
)

WRITER_METRICS: tuple[MetricSpec, ...] = (
    MetricSpec(name=MetricName.DASHBOARD_STATS, endpoint="/writer/statistics/dashboard"),
    MetricSpec(
        name=MetricName.ARTICLES_PERFORMANCE,
        endpoint="/writer/statistics/articles/performance",
    ),
    MetricSpec(
        name=MetricName.ARTICLES_ENGAGEMENT,
        endpoint="/writer/statistics/articles/engagement",
    ),
    MetricSpec(
        name=MetricName.CATEGORIES_PERFORMANCE,
        endpoint="/writer/statistics/categories/performance",
    ),
    MetricSpec(name=MetricName.READER_INSIGHTS, endpoint="/writer/statistics/readers/insights"),
)

# Roles missing from this table never trigger a fetch
ROLE_METRICS: dict[Role, tuple[MetricSpec, ...]] = {
    Role.ADMIN: ADMIN_METRICS,
    Role.WRITER: WRITER_METRICS,
}


def metrics_for_role(role: Role | None) -> tuple[MetricSpec, ...]:
    """Get the metric set for a role.

    Args:
        role: Viewer role.

    Returns:
        The role's metric specs, or an empty tuple if it has none.
    """
    if role is None:
        return ()
    return ROLE_METRICS.get(role, ())


def dashboard_roles() -> tuple[Role, ...]:
    """Roles that have a dashboard metric set."""
    return tuple(ROLE_METRICS)
