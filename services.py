# services.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, Mapping, Tuple

from domain import BreakInterval, DayRecord, InvalidTransitionError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    CLOCKED_IN = "clocked_in"
    ALREADY_CLOCKED_IN = "already_clocked_in"
    CLOCKED_OUT = "clocked_out"
    BREAK_STARTED = "break_started"
    BREAK_ENDED = "break_ended"


@dataclass
class TransitionResult:
    action: Action
    record: DayRecord
    message: str

    @property
    def changed(self) -> bool:
        return self.action is not Action.ALREADY_CLOCKED_IN


def now_local() -> datetime:
    """Current local time, timezone-aware, whole seconds."""
    return datetime.now().astimezone().replace(microsecond=0)


def fmt_ts(dt: datetime | None) -> str:
    return dt.isoformat() if dt is not None else "-"


# =========================
# Transitions
# =========================
def clock_in(record: DayRecord, now: datetime | None = None) -> TransitionResult:
    if record.clock_in is not None:
        return TransitionResult(
            Action.ALREADY_CLOCKED_IN, record, f"Already clocked in at {fmt_ts(record.clock_in)}."
        )
    record.clock_in = now or now_local()
    return TransitionResult(Action.CLOCKED_IN, record, f"Clocked in at {fmt_ts(record.clock_in)}.")


def clock_out(record: DayRecord, now: datetime | None = None) -> TransitionResult:
    if record.clock_in is None:
        raise InvalidTransitionError("You need to clock in first!")
    if record.clock_out is not None:
        raise InvalidTransitionError(f"Already clocked out at {fmt_ts(record.clock_out)}.")
    now = now or now_local()
    if now < record.clock_in:
        raise InvalidTransitionError(
            f"Clock-out time {fmt_ts(now)} is earlier than clock-in {fmt_ts(record.clock_in)}."
        )
    if record.open_break is not None:
        logger.warning("Break started at %s is still open; it is not deducted.",
                       fmt_ts(record.open_break.break_start))
    record.clock_out = now
    record.hours_worked = calculate_hours_worked(record)
    return TransitionResult(
        Action.CLOCKED_OUT, record,
        f"Clocked out at {fmt_ts(record.clock_out)}. Total hours worked: {record.hours_worked}.",
    )


def break_toggle(record: DayRecord, now: datetime | None = None) -> TransitionResult:
    """Closes the open break, or opens a new one when none is open."""
    now = now or now_local()
    current = record.open_break
    if current is not None:
        current.break_end = now
        action, message = Action.BREAK_ENDED, f"Break ended at {fmt_ts(now)}."
    else:
        record.breaks.append(BreakInterval(break_start=now))
        action, message = Action.BREAK_STARTED, f"Break started at {fmt_ts(now)}."
    if record.clock_out is not None:
        # keep the derived total consistent with closed breaks
        record.hours_worked = calculate_hours_worked(record)
    return TransitionResult(action, record, message)


# =========================
# Derived values
# =========================
def breaks_duration_hours(record: DayRecord) -> float:
    """
    Sum of closed breaks, in hours (unrounded).
    Once clocked in and out, each break only counts for the part inside that span.
    """
    total = 0.0
    for b in record.breaks:
        if b.is_open:
            continue
        if record.clock_in is None or record.clock_out is None:
            total += b.duration_hours
            continue
        start = max(b.break_start, record.clock_in)
        end = min(b.break_end, record.clock_out)
        if end > start:
            total += (end - start).total_seconds() / 3600.0
    return total


def calculate_hours_worked(record: DayRecord) -> float | None:
    """Clocked span minus closed breaks, in hours, 2 decimals. None until clocked out."""
    if record.clock_in is None or record.clock_out is None:
        return None
    span = (record.clock_out - record.clock_in).total_seconds() / 3600.0
    return round(span - breaks_duration_hours(record), 2)


def is_clocked_in(record: DayRecord) -> bool:
    return record.clock_in is not None and record.clock_out is None


def is_on_break(record: DayRecord) -> bool:
    return record.open_break is not None


def iso_year_week(key: str) -> Tuple[int, int]:
    """(ISO year, ISO week) for a YYYY-MM-DD log key."""
    iso = date.fromisoformat(key).isocalendar()
    return (iso[0], iso[1])


class WorkHoursCalculator:
    """Overtime rules applied on top of the day log."""
    def __init__(self, daily_threshold: float = 8.0, weekly_threshold: float = 40.0):
        self.daily_threshold = daily_threshold
        self.weekly_threshold = weekly_threshold

    def calculate_daily_overtime(self, hours_worked: float) -> float:
        """Overtime above the daily threshold."""
        return round(max(0.0, hours_worked - self.daily_threshold), 2)

    def calculate_weekly_hours(self, log: Mapping[str, DayRecord]) -> Dict[Tuple[int, int], float]:
        """
        Hours per ISO week over completed days.
        Returns dict {(year, week): hours}.
        """
        weekly_hours: Dict[Tuple[int, int], float] = {}
        for key, record in log.items():
            if record.hours_worked is None:
                continue
            wk = iso_year_week(key)
            weekly_hours[wk] = weekly_hours.get(wk, 0.0) + record.hours_worked
        return {k: round(v, 2) for k, v in weekly_hours.items()}

    def calculate_weekly_overtime(self, log: Mapping[str, DayRecord]) -> Dict[Tuple[int, int], float]:
        return {
            k: round(max(0.0, total - self.weekly_threshold), 2)
            for k, total in self.calculate_weekly_hours(log).items()
        }
