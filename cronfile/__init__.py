"""
cronfile: register functions against cron expressions or aliases and run
whatever is due for the current minute.

``cron`` is the process-wide default instance with the standard aliases
loaded; cronfile scripts import it, register jobs and call ``cron.run()``.
"""

from cronfile.aliases import AliasTable
from cronfile.config import Settings
from cronfile.controller import Cronfile, RunOptions, RunState
from cronfile.daemon import Daemon
from cronfile.engine import JobOutcome, PipelineResult, RunSummary, TickEngine
from cronfile.errors import (
    AlreadyRunningError,
    ConfigurationError,
    CronfileError,
    JobExecutionError,
    LockConflictError,
    TypeMismatchError,
)
from cronfile.jobs import Completion, Job, JobStyle
from cronfile.locking import LockManager
from cronfile.registry import JobRegistry

cron = Cronfile.with_default_aliases()

__all__ = [
    "AliasTable",
    "AlreadyRunningError",
    "Completion",
    "ConfigurationError",
    "Cronfile",
    "CronfileError",
    "Daemon",
    "Job",
    "JobExecutionError",
    "JobOutcome",
    "JobRegistry",
    "JobStyle",
    "LockConflictError",
    "LockManager",
    "PipelineResult",
    "RunOptions",
    "RunState",
    "RunSummary",
    "Settings",
    "TickEngine",
    "TypeMismatchError",
    "cron",
]
