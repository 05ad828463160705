# utils.py
import pandas as pd
from datetime import date, datetime, timedelta
from typing import Mapping, Optional

from domain import DayRecord
from services import WorkHoursCalculator, breaks_duration_hours, iso_year_week

DAILY_COLUMNS = ["Date", "ISO Week", "Clock in", "Clock out", "Breaks", "Break (min)",
                 "Hours Worked", "Overtime (daily)"]
WEEKLY_COLUMNS = ["ISO Week", "From", "To", "Days", "Hours", "Overtime (weekly)"]


def format_minutes(minutes: int) -> str:
    minutes = max(0, int(minutes))
    h, m = divmod(minutes, 60)
    if h == 0:
        return f"{m} min"
    if m == 0:
        return f"{h} h"
    return f"{h} h {m} min"


def format_hours(hours: float) -> str:
    return format_minutes(int(round(float(hours) * 60)))


def _hhmm(dt: Optional[datetime]) -> str:
    return dt.strftime("%H:%M") if dt is not None else ""


def filter_since(log: Mapping[str, DayRecord], since: date) -> dict:
    """Days on or after `since` (keys compare lexically as YYYY-MM-DD)."""
    cutoff = since.isoformat()
    return {k: v for k, v in log.items() if k >= cutoff}


def log_to_dataframe(log: Mapping[str, DayRecord],
                     calculator: Optional[WorkHoursCalculator] = None) -> pd.DataFrame:
    calculator = calculator or WorkHoursCalculator()
    rows = []
    for key, r in log.items():
        year, week = iso_year_week(key)
        rows.append({
            "Date": key,
            "ISO Week": f"{year}-W{week:02d}",
            "Clock in": _hhmm(r.clock_in),
            "Clock out": _hhmm(r.clock_out),
            "Breaks": len(r.breaks),
            "Break (min)": int(round(breaks_duration_hours(r) * 60)),
            "Hours Worked": r.hours_worked,
            "Overtime (daily)": (calculator.calculate_daily_overtime(r.hours_worked)
                                 if r.hours_worked is not None else None),
        })
    df = pd.DataFrame(rows, columns=DAILY_COLUMNS)
    if not df.empty:
        df = df.sort_values(["Date"], ascending=False).reset_index(drop=True)
    return df


def weekly_summary_dataframe(log: Mapping[str, DayRecord],
                             calculator: Optional[WorkHoursCalculator] = None) -> pd.DataFrame:
    calculator = calculator or WorkHoursCalculator()
    hours = calculator.calculate_weekly_hours(log)
    overtime = calculator.calculate_weekly_overtime(log)
    days: dict = {}
    for key, r in log.items():
        if r.hours_worked is not None:
            wk = iso_year_week(key)
            days[wk] = days.get(wk, 0) + 1
    rows = []
    for (yy, ww) in sorted(hours, reverse=True):
        monday = date.fromisocalendar(yy, ww, 1)
        rows.append({
            "ISO Week": f"{yy}-W{ww:02d}",
            "From": monday.isoformat(),
            "To": (monday + timedelta(days=6)).isoformat(),
            "Days": days.get((yy, ww), 0),
            "Hours": hours[(yy, ww)],
            "Overtime (weekly)": overtime[(yy, ww)],
        })
    return pd.DataFrame(rows, columns=WEEKLY_COLUMNS)
