"""Command-line refresh and status for the series cache."""

import argparse
import asyncio
import logging
import sys

from housing_dashboard.config import Settings
from housing_dashboard.context import DashboardContext, build_context
from housing_dashboard.errors import DashboardError


logger = logging.getLogger(__name__)


def print_status(ctx: DashboardContext) -> None:
    status = ctx.get_status()
    print("\nCache Status:")
    print("-" * 100)
    for series_id, info in sorted(status.items()):
        count = info["observation_count"]
        last = info["last_date"] or "N/A"
        fetched = (info["last_fetched"] or "never")[:16]
        flag = " [backing off]" if ctx.store.should_backoff(series_id) else ""
        print(
            f"{series_id:30} | {count:6} obs | Last: {last:10} | Fetched: {fetched:16} "
            f"| {info['title']}{flag}"
        )


async def refresh_series(ctx: DashboardContext, series_ids: list[str], full: bool) -> int:
    """Refresh the given series in the foreground. Returns the failure count."""
    failures = 0
    for series_id in series_ids:
        config = ctx.registry.get(series_id)
        if not await ctx.coordinator.refresh(config, full=full):
            failures += 1
    return failures


async def run(args: argparse.Namespace) -> int:
    settings = Settings()
    if not args.status:
        settings.validate()

    ctx = build_context(settings)
    try:
        if args.status:
            print_status(ctx)
            return 0

        if args.series:
            series_ids = [s.strip() for s in args.series.split(",") if s.strip()]
        else:
            series_ids = [config.id for config in ctx.registry.list_built_in()]

        failures = await refresh_series(ctx, series_ids, args.full)
        if failures:
            logger.warning(f"Failed to refresh {failures} of {len(series_ids)} series")

        print("\nDone. Cache status:")
        print_status(ctx)
        return 1 if failures else 0
    finally:
        await ctx.aclose()


def main() -> None:
    """CLI entry point for refreshing cached series."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Refresh cached dashboard series")
    parser.add_argument(
        "--full",
        action="store_true",
        help="Fetch full history and replace cached data",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show cache status and exit",
    )
    parser.add_argument(
        "--series",
        type=str,
        help="Comma-separated series ids to refresh (default: all built-in)",
    )
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(run(args)))
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)
    except DashboardError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
