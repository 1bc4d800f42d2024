"""
Daemon that periodically refreshes the cached AFD products.
"""

from __future__ import annotations

import argparse
import logging
import random
import time

from afd_cache.config import get_settings
from afd_cache.dependencies import (
    get_known_offices,
    get_store_handle,
    get_upstream_client,
)
from afd_cache.refresh import run_refresh

logger = logging.getLogger(__name__)


def run_once(offices: list[str] | None = None, force: bool = False) -> int:
    """Run one refresh cycle and return the number of offices updated."""
    outcomes = run_refresh(
        offices,
        store=get_store_handle(),
        upstream=get_upstream_client(),
        known_offices=get_known_offices(),
        force=force,
    )
    updated = sum(1 for outcome in outcomes if outcome.updated)
    failed = sum(1 for outcome in outcomes if outcome.error)
    logger.info(
        "Refresh complete: %d updated, %d failed, %d total",
        updated,
        failed,
        len(outcomes),
    )
    return updated


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="AFD cache refresh daemon")
    parser.add_argument(
        "-o",
        "--office",
        action="append",
        default=None,
        help="Refresh only this office (repeatable)",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Skip the If-Modified-Since check",
    )
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=settings.refresh_interval_seconds,
        help="Seconds between refresh runs",
    )
    parser.add_argument(
        "--jitter-seconds",
        type=int,
        default=settings.refresh_jitter_seconds,
        help="Max random jitter added to sleep",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh and exit",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if not get_known_offices():
        logger.error("No offices configured, nothing to refresh")
        return 1

    while True:
        try:
            run_once(args.office, force=args.force)
        except Exception as exc:
            logger.exception("Refresh failed: %s", exc)

        if args.once:
            return 0

        sleep_for = args.interval_seconds + random.uniform(0, args.jitter_seconds)
        logger.info("Sleeping for %.1fs", sleep_for)
        time.sleep(sleep_for)


if __name__ == "__main__":
    raise SystemExit(main())
