#!/usr/bin/env python3
"""
Settle one or more evaluation weeks by hand.

Without arguments settles the week closed by the last Wednesday. With
--from, settles every week from that Wednesday up to --to (inclusive),
oldest first, which is how a gap in the snapshot series is backfilled.

Usage:
    python scripts/run_week.py [--week YYYY-MM-DD] [--from YYYY-MM-DD [--to YYYY-MM-DD]]
"""

import sys
import os
import argparse
import asyncio
from datetime import date, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from llave_system.config.rules import EVALUATION_WEEKDAY
from core.db import get_db_session_ctx, setup_database
from llave_system.events.setup import setup_llave_event_handlers
from llave_system.services.weekly_recompute_service import WeeklyRecomputeService
from llave_system.utils.time_machine import timeMachine

import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_week(value: str) -> date:
    """Parse YYYY-MM-DD and snap it to its evaluation Wednesday."""
    try:
        day = date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}, expected YYYY-MM-DD")

    snapped = day - timedelta(days=(day.weekday() - EVALUATION_WEEKDAY) % 7)
    if snapped != day:
        logger.warning(f"{day} is not a Wednesday, using {snapped}")
    return snapped


def weeks_between(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=7)


async def run(weeks):
    for week in weeks:
        with get_db_session_ctx() as session:
            stats = await WeeklyRecomputeService(session).runWeek(week)

        print(
            f"✓ {stats['weekDate']}: {stats['agentsWithKey']}/{stats['agentsEvaluated']} with Key, "
            f"commissions ${stats['totalCommissions']}, "
            f"{stats['snapshotsWritten']} snapshots, {stats['campaignsCreated']} new campaigns"
        )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Settle evaluation weeks')
    parser.add_argument('--week', type=parse_week,
                        help='Single evaluation Wednesday to settle')
    parser.add_argument('--from', dest='start', type=parse_week,
                        help='First Wednesday of a backfill range')
    parser.add_argument('--to', dest='end', type=parse_week,
                        help='Last Wednesday of a backfill range (default: last closed week)')
    args = parser.parse_args()

    Config.initialize_from_env()
    Config.validate_critical_keys()
    setup_database()
    setup_llave_event_handlers()

    if args.start:
        end = args.end or timeMachine.lastClosedWeekDate
        if end < args.start:
            parser.error("--to must not be before --from")
        weeks = list(weeks_between(args.start, end))
    else:
        weeks = [args.week or timeMachine.lastClosedWeekDate]

    try:
        asyncio.run(run(weeks))
    except Exception as e:
        logger.error(f"❌ Week run failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
