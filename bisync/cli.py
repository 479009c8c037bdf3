"""
Command Line Entry Point

Usage:
    bisync run                 Run one WaWi -> BI sync
    bisync health              Check both database connections
    bisync run --log-level DEBUG
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from bisync.config import get_settings
from bisync.config.logging import configure_logging
from bisync.database.connection import Database
from bisync.sync.service import WawiBiSync


async def run_sync() -> int:
    """Run one sync and print the caller-facing response"""
    sync = WawiBiSync.from_settings(get_settings())
    try:
        result = await sync.run()
    finally:
        await sync.close()

    print(json.dumps(result.to_response(), indent=2))
    return 0 if result.succeeded else 1


async def run_health() -> int:
    """Check both stores and print their status"""
    settings = get_settings()
    stores = [
        Database.from_settings("wawi", settings.wawi_db),
        Database.from_settings("bi", settings.bi_db),
    ]
    report = {}
    try:
        for store in stores:
            report[store.name] = await store.check_health()
    finally:
        for store in stores:
            await store.dispose()

    print(json.dumps(report, indent=2))
    healthy = all(r["status"] == "healthy" for r in report.values())
    return 0 if healthy else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="WaWi -> BI synchronization")
    parser.add_argument(
        "command",
        choices=["run", "health"],
        help="run: synchronize once; health: check database connections",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)",
    )

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "health":
        return asyncio.run(run_health())
    return asyncio.run(run_sync())


if __name__ == "__main__":
    sys.exit(main())
