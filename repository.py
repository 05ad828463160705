# repository.py
from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import re
import tempfile
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List

from pydantic import ConfigDict, ValidationError
from sqlmodel import SQLModel, Field

from domain import (
    BreakInterval,
    CorruptStoreError,
    DayRecord,
    LockTimeoutError,
    PersistenceError,
    date_key,
)
from services import calculate_hours_worked

logger = logging.getLogger(__name__)

DayLog = Dict[str, DayRecord]

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class BreakIntervalDoc(SQLModel):
    model_config = ConfigDict(extra="forbid")

    break_start: datetime
    break_end: datetime | None = None


class DayRecordDoc(SQLModel):
    """On-disk shape of one day, as found in the JSON file."""
    model_config = ConfigDict(extra="forbid")

    clock_in: datetime | None = None
    clock_out: datetime | None = None
    breaks: List[BreakIntervalDoc] = Field(default_factory=list)
    hours_worked: float | None = None


# =========================
# Reading
# =========================
def load_log(path: str | os.PathLike) -> DayLog:
    """
    Reads the whole log. A missing or blank file is an empty log.
    Anything else that does not parse into valid day records raises CorruptStoreError.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except UnicodeDecodeError as e:
        raise CorruptStoreError(f"{path} is not UTF-8 text: {e}") from e
    except OSError as e:
        raise PersistenceError(f"Could not read {path}: {e}") from e

    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptStoreError(f"{path} is not valid JSON: {e}") from e

    if isinstance(data, list):
        data = _from_legacy_list(data)
    if not isinstance(data, dict):
        raise CorruptStoreError(f"{path} must hold a JSON object keyed by date, got {type(data).__name__}")

    log: DayLog = {}
    for key, value in data.items():
        _check_date_key(key)
        log[key] = _to_record(key, value)
    return log


def _check_date_key(key: str) -> None:
    if not _DATE_KEY_RE.match(key):
        raise CorruptStoreError(f"Invalid date key {key!r} (expected YYYY-MM-DD)")
    try:
        date.fromisoformat(key)
    except ValueError as e:
        raise CorruptStoreError(f"Invalid date key {key!r}: {e}") from e


def _from_legacy_list(entries: List[Any]) -> Dict[str, Any]:
    # Old layout: [{"date": "...", "clock_in": ..., "breaks": [{"break_start": null, ...}], "hours_worked": 0}]
    converted: Dict[str, Any] = {}
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("date"), str):
            raise CorruptStoreError(f"Legacy entry without a date: {entry!r}")
        entry = dict(entry)
        key = entry.pop("date")
        if key in converted:
            raise CorruptStoreError(f"Legacy log has two entries for {key}")
        entry["breaks"] = [
            b for b in (entry.get("breaks") or [])
            if not (isinstance(b, dict) and b.get("break_start") is None)
        ]
        if entry.get("clock_out") is None:
            entry["hours_worked"] = None
        converted[key] = entry
    logger.info("Converted legacy list-format log (%d entries)", len(converted))
    return converted


def _aware(dt: datetime | None) -> datetime | None:
    # Naive timestamps are taken as local time.
    if dt is not None and dt.tzinfo is None:
        return dt.astimezone()
    return dt


def _to_record(key: str, value: Any) -> DayRecord:
    if not isinstance(value, dict):
        raise CorruptStoreError(f"Entry {key} must be an object, got {type(value).__name__}")
    # strict JSON mode: no epoch numbers as timestamps, no numeric strings as hours
    try:
        doc = DayRecordDoc.model_validate_json(json.dumps(value), strict=True)
    except ValidationError as e:
        raise CorruptStoreError(f"Entry {key} is malformed: {e}") from e

    record = DayRecord(
        clock_in=_aware(doc.clock_in),
        clock_out=_aware(doc.clock_out),
        breaks=[BreakInterval(_aware(b.break_start), _aware(b.break_end)) for b in doc.breaks],
    )

    if record.clock_out is not None:
        if record.clock_in is None:
            raise CorruptStoreError(f"Entry {key} has clock_out without clock_in")
        if record.clock_out < record.clock_in:
            raise CorruptStoreError(f"Entry {key} has clock_out before clock_in")
    if sum(1 for b in record.breaks if b.is_open) > 1:
        raise CorruptStoreError(f"Entry {key} has more than one open break")
    for b in record.breaks:
        if b.break_end is not None and b.break_end < b.break_start:
            raise CorruptStoreError(f"Entry {key} has a break ending before it starts")

    # hours_worked is derived; the stored number is never trusted
    record.hours_worked = calculate_hours_worked(record)
    if doc.hours_worked != record.hours_worked:
        logger.warning("Entry %s had hours_worked=%s, recomputed as %s",
                       key, doc.hours_worked, record.hours_worked)
    return record


# =========================
# Writing
# =========================
def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def record_to_dict(record: DayRecord) -> Dict[str, Any]:
    return {
        "clock_in": _iso(record.clock_in),
        "clock_out": _iso(record.clock_out),
        "breaks": [
            {"break_start": _iso(b.break_start), "break_end": _iso(b.break_end)}
            for b in record.breaks
        ],
        "hours_worked": record.hours_worked,
    }


def dumps_log(log: DayLog) -> str:
    payload = {key: record_to_dict(record) for key, record in log.items()}
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def save_log(path: str | os.PathLike, log: DayLog) -> None:
    """Rewrites the whole file atomically (temp file in the same dir, then rename)."""
    path = Path(path)
    payload = dumps_log(log)
    tmp_path = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
        raise PersistenceError(f"Could not write {path}: {e}") from e
    logger.debug("Saved %d day(s) to %s", len(log), path)


def todays_record(log: DayLog, day: date) -> DayRecord:
    """Returns the record for `day`, adding an empty one to the in-memory log if needed."""
    return log.setdefault(date_key(day), DayRecord())


# =========================
# Locking and quarantine
# =========================
@contextlib.contextmanager
def locked(path: str | os.PathLike, timeout: float = 5.0, poll_interval: float = 0.05) -> Iterator[Path]:
    """Exclusive flock on `<path>.lock`; raises LockTimeoutError after `timeout` seconds."""
    path = Path(path)
    lock_path = path.with_name(path.name + ".lock")
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        fh = lock_path.open("a")
    except OSError as e:
        raise PersistenceError(f"Could not open lock file {lock_path}: {e}") from e

    deadline = time.monotonic() + timeout
    try:
        while True:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        f"{path} is locked by another time-tracker process (waited {timeout:g}s)"
                    )
                time.sleep(poll_interval)
        try:
            yield lock_path
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    finally:
        fh.close()


def quarantine(path: str | os.PathLike) -> Path:
    """Moves a corrupt log aside so a fresh one can be started without losing the bytes."""
    path = Path(path)
    target = path.with_name(f"{path.name}.corrupt-{datetime.now():%Y%m%dT%H%M%S}")
    try:
        os.replace(path, target)
    except OSError as e:
        raise PersistenceError(f"Could not move corrupt log {path} aside: {e}") from e
    return target


class DayLogStore:
    """JSON day log bound to one file path."""
    def __init__(self, path: str | os.PathLike, lock_timeout: float = 5.0):
        self.path = Path(path).expanduser()
        self.lock_timeout = lock_timeout

    def load(self) -> DayLog:
        return load_log(self.path)

    def load_or_reset(self) -> DayLog:
        """Like load(), but a corrupt file is quarantined and an empty log returned."""
        try:
            return self.load()
        except CorruptStoreError as e:
            backup = quarantine(self.path)
            logger.error("Time log was corrupt (%s). Moved it to %s and started a new one.", e, backup)
            return {}

    def save(self, log: DayLog) -> None:
        save_log(self.path, log)

    def locked(self):
        return locked(self.path, timeout=self.lock_timeout)

    @staticmethod
    def todays_record(log: DayLog, day: date) -> DayRecord:
        return todays_record(log, day)


__all__ = [
    "BreakIntervalDoc",
    "DayLog",
    "DayLogStore",
    "DayRecordDoc",
    "dumps_log",
    "load_log",
    "locked",
    "quarantine",
    "record_to_dict",
    "save_log",
    "todays_record",
]
