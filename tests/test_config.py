from pathlib import Path

import pytest

from config import DEFAULT_LOG_FILE, Settings


class TestSettings:
    def test_defaults(self):
        s = Settings.from_env({})
        assert s.log_file == Path(DEFAULT_LOG_FILE).expanduser()
        assert s.lock_timeout == 5.0
        assert s.log_level == "INFO"
        assert s.slack_tokens == []
        assert s.status_ttl_seconds == 8 * 3600

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TIME_TRACKER_LOG_FILE", str(tmp_path / "log.json"))
        monkeypatch.setenv("TIME_TRACKER_LOCK_TIMEOUT", "0.5")
        monkeypatch.setenv("TIME_TRACKER_LOG_LEVEL", "debug")
        monkeypatch.setenv("SLACK_STATUS_TTL_HOURS", "1.5")
        s = Settings.from_env()
        assert s.log_file == tmp_path / "log.json"
        assert s.lock_timeout == 0.5
        assert s.log_level == "DEBUG"
        assert s.status_ttl_seconds == 5400

    def test_tokens_merge_legacy_variable(self):
        s = Settings.from_env({"SLACK_STATUS_TOKENS": "a, b,,", "AD_HOC_WORKSPACE_TOKEN": "c"})
        assert s.slack_tokens == ["a", "b", "c"]

    def test_legacy_token_not_duplicated(self):
        s = Settings.from_env({"SLACK_STATUS_TOKENS": "a", "AD_HOC_WORKSPACE_TOKEN": "a"})
        assert s.slack_tokens == ["a"]

    @pytest.mark.parametrize("value", ["soon", "-1"])
    def test_invalid_number(self, value):
        with pytest.raises(ValueError, match="TIME_TRACKER_DAILY_HOURS"):
            Settings.from_env({"TIME_TRACKER_DAILY_HOURS": value})
