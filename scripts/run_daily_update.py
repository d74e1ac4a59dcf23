"""
Card Trends — One-shot Daily Snapshot

Stores the market trend snapshot for one day and exits. For external
cron setups that do not run the long-lived scheduler.

Usage:
    python scripts/run_daily_update.py
    python scripts/run_daily_update.py --date 2026-10-17
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import date

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cardtrends.config import settings
from cardtrends.main import build_service, configure_logging, create_db_engine


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Store the market trend snapshot for one day (idempotent).",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="ISO date to snapshot (default: today, UTC).",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    configure_logging(settings.LOG_LEVEL)

    engine, session_factory = create_db_engine()
    try:
        result = await build_service(session_factory).run_daily_update(args.date)
    except Exception as e:
        print(f"Daily update failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        await engine.dispose()

    if result.snapshot is None:
        print(f"No snapshot stored for {result.date} (no market data).")
    elif result.created:
        print(f"Snapshot created for {result.date}.")
    else:
        print(f"Snapshot for {result.date} already existed.")


if __name__ == "__main__":
    asyncio.run(main())
