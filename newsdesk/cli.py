"""Command-line interface for loading dashboard statistics.

Builds the statistics client, aggregator, state store and request
coordinator from settings, triggers one load and prints the resulting
dashboard state as JSON.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import structlog

from newsdesk.config import settings
from newsdesk.data.catalog import dashboard_roles
from newsdesk.data.models import DateRange, Role
from newsdesk.data.statistics_client import StatisticsClient
from newsdesk.orchestration.aggregator import AggregationPolicy, ParallelAggregator
from newsdesk.orchestration.coordinator import RequestCoordinator
from newsdesk.orchestration.retry import RetryingInvoker
from newsdesk.orchestration.state import DashboardStateStore

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_DAYS = 30


def configure_logging(level: str) -> None:
    """Route structlog output to stderr at the given level."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def save_results(results: dict[str, Any], path: Path) -> None:
    """Save dashboard state to JSON file.

    Args:
        results: State dictionary to save.
        path: Output file path.
    """
    with open(path, "w") as f:
        json.dump(results, f, indent=2, default=str)


async def load_dashboard_command(args: argparse.Namespace) -> int:
    """Execute the 'load' command.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    role = Role.parse(args.role)
    end = args.end or date.today()
    start = args.start or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    date_range = DateRange(start=start, end=end)

    client = StatisticsClient(base_url=args.base_url, token=args.token)
    aggregator = ParallelAggregator(
        client,
        invoker=RetryingInvoker(),
        policy=AggregationPolicy(args.policy),
    )
    store = DashboardStateStore()

    logger.info(
        "dashboard_load_requested",
        role=role.value if role else args.role,
        start=start.isoformat(),
        end=end.isoformat(),
        policy=args.policy,
    )

    async with client:
        async with RequestCoordinator(
            aggregator,
            store,
            debounce_seconds=0.0,
            on_error=lambda message: logger.error("dashboard_error", message=message),
        ) as coordinator:
            coordinator.trigger(role, date_range)
            await coordinator.wait_idle()
            results = coordinator.snapshot()

    if args.output:
        save_results(results, Path(args.output))
        logger.info("results_saved", path=args.output)
    else:
        print(json.dumps(results, indent=2, default=str))

    return 1 if results["error"] else 0


def main() -> int:
    """Main entry point for CLI.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        description="Newsdesk dashboard statistics CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    load_parser = subparsers.add_parser("load", help="Load one dashboard bundle")
    load_parser.add_argument(
        "--role",
        required=True,
        help="Dashboard role (ADMIN or WRITER)",
    )
    load_parser.add_argument(
        "--start",
        type=date.fromisoformat,
        help="Start date (YYYY-MM-DD), defaults to 30 days before --end",
    )
    load_parser.add_argument(
        "--end",
        type=date.fromisoformat,
        help="End date (YYYY-MM-DD), defaults to today",
    )
    load_parser.add_argument(
        "--policy",
        choices=[p.value for p in AggregationPolicy],
        default=AggregationPolicy.from_settings().value,
        help="How metric failures affect the bundle",
    )
    load_parser.add_argument(
        "--base-url",
        default=settings.API_BASE_URL,
        help="Backend API base URL",
    )
    load_parser.add_argument(
        "--token",
        default=settings.API_TOKEN,
        help="Bearer token for the backend",
    )
    load_parser.add_argument(
        "--output",
        "-o",
        help="Output file for dashboard state JSON",
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "load" and Role.parse(args.role) not in dashboard_roles():
        choices = ", ".join(role.value for role in dashboard_roles())
        parser.error(f"--role must be one of {choices}, got {args.role!r}")

    configure_logging(settings.LOG_LEVEL)

    if args.command == "load":
        return asyncio.run(load_dashboard_command(args))

    return 1


if __name__ == "__main__":
    sys.exit(main())
