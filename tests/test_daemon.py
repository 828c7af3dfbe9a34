from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import pytest

import cronfile
from cronfile import ConfigurationError, Cronfile, Daemon, JobExecutionError, RunState
from cronfile.cli import main, resolve_file
from cronfile.daemon import seconds_until_next_minute
from conftest import make_cron

UTC = timezone.utc


def test_seconds_until_next_minute() -> None:
    assert seconds_until_next_minute(datetime(2026, 3, 1, 12, 0, 0)) == 60
    assert seconds_until_next_minute(datetime(2026, 3, 1, 12, 0, 45)) == 15


def test_tick_publishes_errors_and_results(cron: Cronfile) -> None:
    def explode() -> None:
        raise RuntimeError("kaput")

    errors = []
    results = []
    cron.on("error", lambda err, when: errors.append((err, when)))
    cron.on("results", lambda summary, when: results.append(summary))
    cron.on("* * * * *", [explode, lambda: None])

    when = datetime(2026, 3, 1, 12, 50, tzinfo=UTC)
    summary = Daemon(cron).tick(when)

    assert summary.errored == 1
    assert isinstance(errors[0][0], JobExecutionError)
    assert errors[0][1] == when
    assert results == [summary]


def test_tick_publishes_schedule_errors(cron: Cronfile, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_schedule(timestamp, force_all=False):
        raise ConfigurationError('Error: Invalid cron expression "61 * * * *"')

    errors = []
    results = []
    cron.on("error", lambda err, when: errors.append(err))
    cron.on("results", lambda summary, when: results.append(summary))
    monkeypatch.setattr(cron.engine, "due_jobs", broken_schedule)

    summary = Daemon(cron).tick(datetime(2026, 3, 1, 12, 50, tzinfo=UTC))

    assert isinstance(errors[0], ConfigurationError)
    assert summary.errors == errors
    assert results == [summary]


def test_tick_does_not_touch_run_state_or_lock(cron: Cronfile, tmp_path: Path) -> None:
    seen = []
    cron.on("* * * * *", lambda: seen.append((tmp_path / "jobs.lock").exists()))
    daemon = Daemon(cron)
    daemon.tick(datetime(2026, 3, 1, 12, 50, tzinfo=UTC))
    daemon.tick(datetime(2026, 3, 1, 12, 51, tzinfo=UTC))

    assert seen == [False, False]
    assert cron.state is RunState.NOT_STARTED


def test_run_forever_waits_for_minute_boundary(cron: Cronfile) -> None:
    now = [datetime(2026, 3, 1, 12, 49, 40, tzinfo=UTC)]
    sleeps: List[float] = []
    fired = threading.Event()
    started = []

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        now[0] = now[0] + timedelta(seconds=seconds)

    cron.on("started", started.append)
    cron.on("50 12 * * *", fired.set)
    ticks = Daemon(cron, clock=lambda: now[0], sleep=fake_sleep).run_forever(max_ticks=2)

    assert ticks == 2
    assert started == [20]
    assert sleeps == [20, 60]
    assert fired.wait(5)


def test_cli_ticks_once_at_forced_time(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fresh = make_cron(tmp_path)
    monkeypatch.setattr(cronfile, "cron", fresh)
    marker = tmp_path / "ran.txt"
    script = tmp_path / "cronjobs.py"
    script.write_text(
        "from pathlib import Path\n"
        "from cronfile import cron\n"
        f"cron.on('50 12 * * *', lambda: Path({str(marker)!r}).write_text('ran', encoding='utf-8'))\n"
        "if __name__ == '__main__':\n"
        "    cron.run()\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)

    assert main(["--time", "2026-03-01T12:50:00"]) == 0
    assert marker.read_text(encoding="utf-8") == "ran"
    assert fresh.state is RunState.NOT_STARTED


def test_cli_exit_code_reflects_job_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fresh = make_cron(tmp_path)
    monkeypatch.setattr(cronfile, "cron", fresh)
    script = tmp_path / "failing.py"
    script.write_text(
        "from cronfile import cron\n"
        "def broken():\n"
        "    raise RuntimeError('nope')\n"
        "cron.on('every_minute', broken)\n",
        encoding="utf-8",
    )
    assert main([str(script), "-t", "12:50"]) == 1


def test_cli_rejects_faked_time_in_production(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fresh = make_cron(tmp_path, production=True)
    monkeypatch.setattr(cronfile, "cron", fresh)
    assert main([str(tmp_path / "whatever.py"), "--time", "12:50"]) == 1


def test_cli_rejects_invalid_time(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fresh = make_cron(tmp_path)
    monkeypatch.setattr(cronfile, "cron", fresh)
    script = tmp_path / "empty.py"
    script.write_text("", encoding="utf-8")
    assert main([str(script), "--time", "yesterday-ish"]) == 1


def test_cli_missing_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cronfile, "cron", make_cron(tmp_path))
    assert main([str(tmp_path / "absent.py"), "--time", "12:50"]) == 1


def test_cli_loads_extra_aliases(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fresh = make_cron(tmp_path)
    monkeypatch.setattr(cronfile, "cron", fresh)
    aliases = tmp_path / "aliases.yaml"
    aliases.write_text('"50 12 * * *": lunch\n', encoding="utf-8")
    script = tmp_path / "lunch.py"
    script.write_text("from cronfile import cron\ncron.on('lunch', lambda: None)\n", encoding="utf-8")

    assert main([str(script), "--aliases", str(aliases), "--time", "12:50"]) == 0
    assert fresh.registry.expressions() == ["50 12 * * *"]


def test_resolve_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert resolve_file("~/jobs.py") == tmp_path / "jobs.py"
    assert resolve_file("jobs.py", cwd=tmp_path) == tmp_path / "jobs.py"
    assert resolve_file("/etc/jobs.py") == Path("/etc/jobs.py")
