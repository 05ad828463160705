from datetime import datetime, timedelta, timezone

import pytest

TZ = timezone(timedelta(hours=-4))

_ENV_VARS = [
    "TIME_TRACKER_LOG_FILE",
    "TIME_TRACKER_LOCK_TIMEOUT",
    "TIME_TRACKER_LOG_LEVEL",
    "TIME_TRACKER_DAILY_HOURS",
    "TIME_TRACKER_WEEKLY_HOURS",
    "SLACK_STATUS_TOKENS",
    "AD_HOC_WORKSPACE_TOKEN",
    "SLACK_STATUS_TTL_HOURS",
    "SLACK_TIMEOUT",
]


def at(hh: int, mm: int = 0, day: int = 3) -> datetime:
    """Fixed-offset timestamp on June `day`, 2024 (June 3rd is a Monday)."""
    return datetime(2024, 6, day, hh, mm, tzinfo=TZ)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "time_log.json"
