# domain.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List


@dataclass
class BreakInterval:
    """A single break. `break_end` is None while the break is still open."""
    break_start: datetime
    break_end: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.break_end is None

    @property
    def duration_hours(self) -> float:
        """Length of a closed break in hours (0.0 while open)."""
        if self.break_end is None:
            return 0.0
        return (self.break_end - self.break_start).total_seconds() / 3600.0


@dataclass
class DayRecord:
    """Represents one calendar day of the work log."""
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    breaks: List[BreakInterval] = field(default_factory=list)
    hours_worked: float | None = None

    @property
    def open_break(self) -> BreakInterval | None:
        for b in reversed(self.breaks):
            if b.is_open:
                return b
        return None

    @property
    def is_empty(self) -> bool:
        return self.clock_in is None and self.clock_out is None and not self.breaks


def date_key(d: date) -> str:
    """Store key for a calendar date (YYYY-MM-DD)."""
    return d.isoformat()


# =========================
# Errors
# =========================
class TimeTrackerError(Exception):
    """Base class for everything the tracker raises on purpose."""


class CorruptStoreError(TimeTrackerError):
    """The persisted log exists but cannot be trusted."""


class PersistenceError(TimeTrackerError):
    """Reading or writing the log file failed at the OS level."""


class LockTimeoutError(TimeTrackerError):
    """Another invocation held the log lock for too long."""


class InvalidTransitionError(TimeTrackerError):
    """A transition whose precondition does not hold (e.g. clock-out before clock-in)."""
