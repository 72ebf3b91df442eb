"""Command-line interface for the yield allocator."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import AppConfig, load_config
from .feeds import DefiLlamaFeed
from .logging_setup import configure_logging
from .services import CycleScheduler, LifecycleManager, build_report
from .storage import SqlitePositionStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="yield-allocator",
        description="Yield-farming allocation simulator",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("cycle", help="Run a single reconciliation cycle")
    sub.add_parser("report", help="Print portfolio and risk summary")

    run_parser = sub.add_parser("run", help="Run reconciliation cycles periodically")
    run_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Cycle interval in minutes (overrides config)",
    )

    return parser


def _open_store(config: AppConfig) -> SqlitePositionStore:
    store = SqlitePositionStore(config.storage.path)
    store.initialize()
    return store


def _build_manager(config: AppConfig, store: SqlitePositionStore) -> LifecycleManager:
    return LifecycleManager(
        config.strategy, config.scoring, DefiLlamaFeed(config.feed), store
    )


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    store = _open_store(config)

    if args.command == "cycle":
        result = await _build_manager(config, store).run_cycle()
        if result.status == result.SKIPPED:
            logger.warning("Cycle skipped: %s", result.reason)
    elif args.command == "report":
        print(build_report(store.list_all(), config.analytics))
    elif args.command == "run":
        interval = args.interval or config.strategy.tick_interval_minutes
        scheduler = CycleScheduler(_build_manager(config, store).run_cycle, interval)
        await scheduler.run_forever()
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
