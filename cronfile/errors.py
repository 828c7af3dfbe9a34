from __future__ import annotations

from typing import Optional


class CronfileError(Exception):
    """Base error for cronfile."""


class ConfigurationError(CronfileError):
    """Malformed alias table, settings or registration arguments."""


class AlreadyRunningError(CronfileError):
    """Raised when a run is attempted twice in the same process."""


class LockConflictError(CronfileError):
    """Another process holds the lock marker."""


class TypeMismatchError(CronfileError, TypeError):
    """A non-callable was registered where a callable is required."""


class JobExecutionError(CronfileError):
    """Captured failure of a single job. Delivered, never raised by the engine."""

    def __init__(self, message: str, job_name: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.job_name = job_name
        if cause is not None:
            self.__cause__ = cause
