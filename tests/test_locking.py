from __future__ import annotations

from pathlib import Path

import pytest

from cronfile import AlreadyRunningError, LockConflictError, LockManager
from cronfile.locking import DEFAULT_LOCK_NAME, script_lock_name


def test_acquire_creates_marker_and_release_removes_it(tmp_path: Path) -> None:
    lock = LockManager(tmp_path, "nightly")
    path = lock.acquire(["0 0 * * *"])

    assert path == tmp_path / "nightly.lock"
    assert path.exists()
    assert lock.active

    lock.release()
    assert not path.exists()
    assert not lock.active


def test_second_acquire_in_process_is_rejected(tmp_path: Path) -> None:
    lock = LockManager(tmp_path, "nightly")
    lock.acquire()
    with pytest.raises(AlreadyRunningError):
        lock.acquire()


def test_existing_marker_is_a_conflict(tmp_path: Path) -> None:
    LockManager(tmp_path, "nightly").acquire()
    other = LockManager(tmp_path, "nightly")
    with pytest.raises(LockConflictError, match="nightly.lock"):
        other.acquire()
    assert not other.active


def test_release_is_idempotent(tmp_path: Path) -> None:
    lock = LockManager(tmp_path, "nightly")
    path = lock.acquire()
    path.unlink()
    lock.release()
    lock.release()
    assert not lock.active


def test_release_without_acquire_leaves_foreign_marker(tmp_path: Path) -> None:
    marker = tmp_path / "nightly.lock"
    marker.write_text("1", encoding="utf-8")
    LockManager(tmp_path, "nightly").release()
    assert marker.exists()


def test_lock_can_be_reacquired_after_release(tmp_path: Path) -> None:
    lock = LockManager(tmp_path, "nightly")
    lock.acquire()
    lock.release()
    assert lock.acquire().exists()


def test_script_lock_name_from_invoking_script() -> None:
    assert script_lock_name("/srv/app/cronjobs.py") == "cronjobs"
    assert script_lock_name("") == DEFAULT_LOCK_NAME
    assert script_lock_name("-c") == DEFAULT_LOCK_NAME


def test_default_name_derived_from_argv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.argv", ["/srv/app/billing.py", "test"])
    assert LockManager(tmp_path).path == tmp_path / "billing.lock"
