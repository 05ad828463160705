# config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping

DEFAULT_LOG_FILE = "~/.dotfiles/time_log.json"


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _tokens(env: Mapping[str, str]) -> List[str]:
    tokens = [t.strip() for t in env.get("SLACK_STATUS_TOKENS", "").split(",") if t.strip()]
    legacy = env.get("AD_HOC_WORKSPACE_TOKEN", "").strip()
    if legacy and legacy not in tokens:
        tokens.append(legacy)
    return tokens


@dataclass
class Settings:
    log_file: Path = field(default_factory=lambda: Path(DEFAULT_LOG_FILE).expanduser())
    lock_timeout: float = 5.0
    log_level: str = "INFO"
    daily_hours: float = 8.0
    weekly_hours: float = 40.0
    slack_tokens: List[str] = field(default_factory=list)
    status_ttl_hours: float = 8.0
    slack_timeout: float = 5.0

    @property
    def status_ttl_seconds(self) -> int:
        return int(self.status_ttl_hours * 3600)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Reads TIME_TRACKER_* and SLACK_* variables. Call load_dotenv() first to honour a .env file."""
        env = os.environ if env is None else env
        return cls(
            log_file=Path(env.get("TIME_TRACKER_LOG_FILE") or DEFAULT_LOG_FILE).expanduser(),
            lock_timeout=_float(env, "TIME_TRACKER_LOCK_TIMEOUT", 5.0),
            log_level=(env.get("TIME_TRACKER_LOG_LEVEL") or "INFO").upper(),
            daily_hours=_float(env, "TIME_TRACKER_DAILY_HOURS", 8.0),
            weekly_hours=_float(env, "TIME_TRACKER_WEEKLY_HOURS", 40.0),
            slack_tokens=_tokens(env),
            status_ttl_hours=_float(env, "SLACK_STATUS_TTL_HOURS", 8.0),
            slack_timeout=_float(env, "SLACK_TIMEOUT", 5.0),
        )
