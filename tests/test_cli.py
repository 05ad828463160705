"""End-to-end tests for the command dispatcher."""
import json
from unittest.mock import MagicMock

import pytest

import cli
from conftest import at
from repository import locked


@pytest.fixture
def notifier(monkeypatch):
    mock = MagicMock()
    monkeypatch.setattr(cli, "build_notifier", lambda settings: mock)
    monkeypatch.setattr(cli, "load_dotenv", lambda *a, **kw: False)
    return mock


@pytest.fixture
def run(log_path, notifier, monkeypatch):
    def _run(command, when, *extra):
        monkeypatch.setattr(cli, "now_local", lambda: when)
        return cli.main(["--log-file", str(log_path), command, *extra])
    return _run


def read(log_path):
    return json.loads(log_path.read_text())


class TestTransitions:
    def test_full_day(self, run, log_path, notifier):
        assert run("clock-in", at(9)) == 0
        assert run("break", at(12)) == 0
        assert run("break", at(12, 30)) == 0
        assert run("clock-out", at(17)) == 0
        day = read(log_path)["2024-06-03"]
        assert day["clock_in"] == "2024-06-03T09:00:00-04:00"
        assert day["clock_out"] == "2024-06-03T17:00:00-04:00"
        assert day["breaks"] == [{
            "break_start": "2024-06-03T12:00:00-04:00",
            "break_end": "2024-06-03T12:30:00-04:00",
        }]
        assert day["hours_worked"] == 7.5

    def test_repeated_clock_in_keeps_first_time(self, run, log_path, notifier):
        run("clock-in", at(9))
        before = log_path.read_bytes()
        assert run("clock-in", at(10)) == 0
        assert log_path.read_bytes() == before
        assert notifier.set_status.call_count == 1

    def test_clock_out_without_clock_in(self, run, log_path, notifier, capsys):
        assert run("clock-out", at(17)) == cli.EXIT_INVALID_TRANSITION
        assert "clock in first" in capsys.readouterr().err
        assert not log_path.exists()
        notifier.clear_status.assert_not_called()

    def test_new_day_gets_new_record(self, run, log_path):
        run("clock-in", at(9))
        run("clock-in", at(9, day=4))
        assert set(read(log_path)) == {"2024-06-03", "2024-06-04"}

    def test_existing_days_are_preserved(self, run, log_path):
        log_path.write_text(json.dumps({"2024-05-31": {
            "clock_in": "2024-05-31T09:00:00-04:00",
            "clock_out": "2024-05-31T17:00:00-04:00",
            "breaks": [],
            "hours_worked": 8.0,
        }}))
        run("clock-in", at(9))
        assert read(log_path)["2024-05-31"]["hours_worked"] == 8.0


class TestNotifications:
    def test_status_mapping(self, run, notifier):
        run("clock-in", at(9))
        notifier.set_status.assert_called_with("Working", ":computer:", 8 * 3600)
        run("break", at(12))
        notifier.set_status.assert_called_with("On Break", ":coffee:", 8 * 3600)
        run("break", at(12, 15))
        notifier.set_status.assert_called_with("Working", ":computer:", 8 * 3600)
        run("clock-out", at(17))
        notifier.clear_status.assert_called_once_with()

    def test_notifier_failure_does_not_block(self, run, log_path, notifier):
        notifier.set_status.side_effect = RuntimeError("slack down")
        assert run("clock-in", at(9)) == 0
        assert read(log_path)["2024-06-03"]["clock_in"] == "2024-06-03T09:00:00-04:00"


class TestFailures:
    def test_corrupt_log_is_quarantined(self, run, log_path):
        log_path.write_text("{oops")
        assert run("clock-in", at(9)) == 0
        assert list(read(log_path)) == ["2024-06-03"]
        backups = list(log_path.parent.glob("time_log.json.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_text() == "{oops"

    def test_lock_contention(self, run, log_path, monkeypatch):
        monkeypatch.setenv("TIME_TRACKER_LOCK_TIMEOUT", "0.1")
        with locked(log_path, timeout=1):
            assert run("clock-in", at(9)) == cli.EXIT_LOCK_TIMEOUT
        assert not log_path.exists()

    def test_persistence_failure(self, notifier, monkeypatch, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        monkeypatch.setattr(cli, "now_local", lambda: at(9))
        code = cli.main(["--log-file", str(blocker / "log.json"), "clock-in"])
        assert code == cli.EXIT_PERSISTENCE
        notifier.set_status.assert_not_called()

    def test_log_file_from_environment(self, notifier, monkeypatch, tmp_path):
        path = tmp_path / "env_log.json"
        monkeypatch.setenv("TIME_TRACKER_LOG_FILE", str(path))
        monkeypatch.setattr(cli, "now_local", lambda: at(9))
        assert cli.main(["clock-in"]) == 0
        assert "2024-06-03" in read(path)

    def test_unknown_command(self, notifier):
        with pytest.raises(SystemExit) as exc:
            cli.main(["lunch"])
        assert exc.value.code == 2


class TestReadOnlyCommands:
    def test_status(self, run, capsys):
        run("clock-in", at(9))
        run("break", at(12))
        capsys.readouterr()
        assert run("status", at(12, 5)) == 0
        out = capsys.readouterr().out
        assert "2024-06-03T09:00:00-04:00" in out
        assert "On break since 2024-06-03T12:00:00-04:00" in out

    def test_status_on_corrupt_log(self, run, log_path):
        log_path.write_text("[1, 2")
        assert run("status", at(9)) == cli.EXIT_PERSISTENCE
        assert log_path.read_text() == "[1, 2"

    def test_report(self, run, capsys):
        run("clock-in", at(9))
        run("clock-out", at(17, 30))
        capsys.readouterr()
        assert run("report", at(10, day=5), "--weeks", "1") == 0
        out = capsys.readouterr().out
        assert "2024-W23" in out
        assert "8.5" in out

    def test_report_empty(self, run, capsys):
        assert run("report", at(10)) == 0
        assert "No entries since" in capsys.readouterr().out
