from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List

import pytest

from cronfile import Cronfile, Settings

UTC = timezone.utc
# 2026-03-01 is a Sunday.
SUNDAY_1250 = datetime(2026, 3, 1, 12, 50, 30, tzinfo=UTC)


def make_settings(lock_dir: Path, production: bool = False) -> Settings:
    return Settings(
        lock_dir=lock_dir,
        lock_name="jobs",
        production=production,
        timezone=UTC,
        timezone_name="UTC",
    )


def make_cron(lock_dir: Path, at: datetime = SUNDAY_1250, production: bool = False) -> Cronfile:
    return Cronfile.with_default_aliases(settings=make_settings(lock_dir, production), clock=lambda: at)


@pytest.fixture
def cron(tmp_path: Path) -> Cronfile:
    return make_cron(tmp_path)


class Recorder:
    """Thread-safe call log for ordering assertions."""

    def __init__(self) -> None:
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def add(self, name: str) -> None:
        with self._lock:
            self.calls.append(name)

    def job(self, name: str) -> Callable[[], None]:
        def record() -> None:
            self.add(name)

        record.__name__ = record.__qualname__ = name
        return record


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
