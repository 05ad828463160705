#!/usr/bin/env python3
"""
Work-hours time tracker.

Usage:
  time-tracker clock-in
  time-tracker break          # toggles: starts a break, or ends the open one
  time-tracker clock-out
  time-tracker status
  time-tracker report [--weeks N]

The log lives in a JSON file (TIME_TRACKER_LOG_FILE, default ~/.dotfiles/time_log.json).
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from dotenv import load_dotenv

from config import Settings
from domain import (
    CorruptStoreError,
    DayRecord,
    InvalidTransitionError,
    LockTimeoutError,
    PersistenceError,
)
from notifier import StatusNotifier, build_notifier
from repository import DayLogStore, todays_record
from services import (
    Action,
    TransitionResult,
    WorkHoursCalculator,
    break_toggle,
    breaks_duration_hours,
    clock_in,
    clock_out,
    fmt_ts,
    now_local,
)

logger = logging.getLogger("time_tracker")

EXIT_OK = 0
EXIT_INVALID_TRANSITION = 1
EXIT_PERSISTENCE = 3
EXIT_LOCK_TIMEOUT = 4

TRANSITIONS: Dict[str, Callable[..., TransitionResult]] = {
    "clock-in": clock_in,
    "clock-out": clock_out,
    "break": break_toggle,
}


def run_transition(store: DayLogStore, command: str, now: Optional[datetime] = None) -> TransitionResult:
    """One locked load -> transition -> save cycle on today's record."""
    transition = TRANSITIONS[command]
    now = now or now_local()
    with store.locked():
        log = store.load_or_reset()
        record = todays_record(log, now.date())
        result = transition(record, now=now)
        if result.changed:
            store.save(log)
    return result


def publish_status(notifier: StatusNotifier, result: TransitionResult, ttl_seconds: int) -> None:
    """Mirrors the new state externally. Never raises."""
    try:
        if result.action in (Action.CLOCKED_IN, Action.BREAK_ENDED):
            notifier.set_status("Working", ":computer:", ttl_seconds)
        elif result.action is Action.BREAK_STARTED:
            notifier.set_status("On Break", ":coffee:", ttl_seconds)
        elif result.action is Action.CLOCKED_OUT:
            notifier.clear_status()
    except Exception as e:
        logger.warning("Status update failed (%s); the time log is unaffected.", e)


def log_day_summary(record: DayRecord) -> None:
    logger.info("End of day summary:")
    logger.info("Clocked in at: %s", fmt_ts(record.clock_in))
    logger.info("Clocked out at: %s", fmt_ts(record.clock_out))
    logger.info("Breaks taken: %d (%.2f hours)", len(record.breaks), breaks_duration_hours(record))
    logger.info("Total hours worked: %s", record.hours_worked)


def describe_record(key: str, record: DayRecord) -> List[str]:
    lines = [f"Date:         {key}"]
    lines.append(f"Clocked in:   {fmt_ts(record.clock_in) if record.clock_in else 'not yet'}")
    lines.append(f"Clocked out:  {fmt_ts(record.clock_out)}")
    closed = [b for b in record.breaks if not b.is_open]
    lines.append(f"Breaks:       {len(closed)} closed ({breaks_duration_hours(record):.2f} h)")
    if record.open_break is not None:
        lines.append(f"On break since {fmt_ts(record.open_break.break_start)}")
    if record.hours_worked is not None:
        lines.append(f"Hours worked: {record.hours_worked}")
    return lines


# =========================
# Commands
# =========================
def cmd_transition(store: DayLogStore, settings: Settings, command: str) -> int:
    result = run_transition(store, command)
    logger.info(result.message)
    if result.action is Action.CLOCKED_OUT:
        log_day_summary(result.record)
    publish_status(build_notifier(settings), result, settings.status_ttl_seconds)
    return EXIT_OK


def cmd_status(store: DayLogStore) -> int:
    today = now_local().date()
    log = store.load()
    key = today.isoformat()
    record = log.get(key, DayRecord())
    print("\n".join(describe_record(key, record)))
    return EXIT_OK


def cmd_report(store: DayLogStore, settings: Settings, weeks: int) -> int:
    from utils import filter_since, log_to_dataframe, weekly_summary_dataframe

    since = now_local().date() - timedelta(weeks=weeks)
    log = filter_since(store.load(), since)
    if not log:
        print(f"No entries since {since.isoformat()}.")
        return EXIT_OK
    calc = WorkHoursCalculator(settings.daily_hours, settings.weekly_hours)
    print(log_to_dataframe(log, calc).to_string(index=False, na_rep="-"))
    print()
    print(weekly_summary_dataframe(log, calc).to_string(index=False))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="time-tracker", description="Track work hours and breaks.")
    parser.add_argument("--log-file", help="Path to the JSON time log (overrides TIME_TRACKER_LOG_FILE)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True
    sub.add_parser("clock-in", help="Start the work day")
    sub.add_parser("clock-out", help="End the work day and compute hours worked")
    sub.add_parser("break", help="Start a break, or end the one in progress")
    sub.add_parser("status", help="Show today's entry")
    report = sub.add_parser("report", help="Daily table and weekly totals")
    report.add_argument("--weeks", type=int, default=4, help="How many weeks back to include (default: 4)")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    try:
        settings = Settings.from_env()
    except ValueError as e:
        parser.error(str(e))
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    store = DayLogStore(args.log_file or settings.log_file, lock_timeout=settings.lock_timeout)
    try:
        if args.command == "status":
            return cmd_status(store)
        if args.command == "report":
            return cmd_report(store, settings, args.weeks)
        return cmd_transition(store, settings, args.command)
    except InvalidTransitionError as e:
        logger.warning("Rejected %s: %s", args.command, e)
        print(e, file=sys.stderr)
        return EXIT_INVALID_TRANSITION
    except LockTimeoutError as e:
        logger.error("%s", e)
        return EXIT_LOCK_TIMEOUT
    except CorruptStoreError as e:
        # only reachable from status/report; transitions quarantine instead
        logger.error("Time log is corrupt: %s", e)
        return EXIT_PERSISTENCE
    except PersistenceError as e:
        logger.error("Could not persist the time log: %s", e)
        return EXIT_PERSISTENCE


if __name__ == "__main__":
    sys.exit(main())
