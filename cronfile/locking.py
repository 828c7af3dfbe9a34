"""
Advisory cross-process lock backed by a marker file.

The marker only guards against overlapping invocations of the same
cronfile script. A marker left behind by a crashed process blocks later
runs until it is removed.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Optional

from cronfile.errors import AlreadyRunningError, LockConflictError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_NAME = "cronfile"
LOCK_SUFFIX = ".lock"


def script_lock_name(argv0: Optional[str] = None) -> str:
    script = sys.argv[0] if argv0 is None else argv0
    if not script or script in {"-c", "-m", "-"}:
        return DEFAULT_LOCK_NAME
    return Path(script).stem or DEFAULT_LOCK_NAME


class LockManager:
    def __init__(self, directory: Path, name: Optional[str] = None):
        self.directory = Path(directory)
        self.name = name
        self._path: Optional[Path] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def path(self) -> Path:
        if self._path is not None:
            return self._path
        return self.directory / f"{self.name or script_lock_name()}{LOCK_SUFFIX}"

    def acquire(self, times: Iterable[str] = ()) -> Path:
        if self._active:
            raise AlreadyRunningError("You cannot run the cron pipeline twice.")
        path = self.path
        logger.info("Locking with %s (%s)", path, ", ".join(times) or "no schedules due")
        try:
            with path.open("x", encoding="utf-8") as handle:
                handle.write(str(os.getpid()))
        except FileExistsError as exc:
            raise LockConflictError(f"Cron already running: lock marker {path} exists.") from exc
        self._path = path
        self._active = True
        return path

    def release(self) -> None:
        if not self._active:
            logger.debug("Lock not held by this process; nothing to release.")
            return
        path = self.path
        self._active = False
        self._path = None
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Lock marker %s already removed.", path)
        logger.info("Released lock %s", path)
