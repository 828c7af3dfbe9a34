"""
Run controller: the public ``Cronfile`` object a cronfile script talks to.

A script registers jobs with :meth:`Cronfile.on` and then calls
:meth:`Cronfile.run` once. ``run`` resolves the effective minute, works out
the due jobs and executes::

    acquire lock, start hooks (in order) -> due jobs (concurrently)
        -> release lock, stop hooks (in order) -> callback(error)

Start and stop hooks fail forward: a failing hook stops the rest of its own
sequence, but the stop sequence always runs so the lock is always released.
"""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from cronfile.aliases import AliasTable
from cronfile.config import Settings
from cronfile.engine import TickEngine
from cronfile.errors import AlreadyRunningError, ConfigurationError, CronfileError
from cronfile.events import EventBus, Listener, is_notification_event
from cronfile.jobs import Job, JobStyle
from cronfile.locking import LockManager
from cronfile.log import setup_logging
from cronfile.matcher import truncate_to_minute
from cronfile.registry import JobCallables, JobRegistry

logger = logging.getLogger(__name__)

MODE_LIST = "list"
MODE_TEST = "test"
NO_LOCKING_FLAG = "--no-locking"
TIME_OVERRIDE_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

Callback = Callable[[Optional[BaseException]], Any]


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RunOptions:
    mode: Optional[str]
    use_locking: bool

    @staticmethod
    def parse(args: Sequence[str]) -> "RunOptions":
        positional = [arg for arg in args if not arg.startswith("--")]
        return RunOptions(
            mode=positional[0] if positional else None,
            use_locking=NO_LOCKING_FLAG not in args,
        )


def apply_time_override(timestamp: datetime, value: str) -> datetime:
    match = TIME_OVERRIDE_RE.match(value.strip())
    if not match:
        raise ConfigurationError(f'Error: run mode must be "list", "test" or HH:MM, got "{value}".')
    hour = int(match.group(1))
    minute = int(match.group(2))
    if hour > 23 or minute > 59:
        raise ConfigurationError(f'Error: time override must be HH:MM (24-hour), got "{value}".')
    return timestamp.replace(hour=hour, minute=minute, second=0, microsecond=0)


def parse_time(value: Union[str, datetime], tz: tzinfo, today: datetime) -> datetime:
    """Parse a faked time: a datetime, ``HH:MM`` on ``today``'s date, or an ISO datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and TIME_OVERRIDE_RE.match(value.strip()):
        return apply_time_override(today, value)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError as exc:
            raise ConfigurationError(f"Error: Invalid date: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return truncate_to_minute(parsed)


def _exit_callback(error: Optional[BaseException]) -> None:
    if error is not None:
        logger.error("Cron run failed: %s", error, exc_info=error)
        raise SystemExit(1)
    raise SystemExit(0)


class Cronfile:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        aliases: Optional[Mapping[str, Any]] = None,
        lock: Optional[LockManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.alias_table = AliasTable()
        if aliases:
            self.alias_table.load(aliases)
        self.registry = JobRegistry(self.alias_table)
        self.events = EventBus()
        self.engine = TickEngine(self.registry, self.events)
        self.lock = lock or LockManager(self.settings.lock_dir, self.settings.lock_name)
        self._clock = clock or (lambda: datetime.now(tz=self.settings.timezone))
        self._forced_time: Optional[datetime] = None
        self._state = RunState.NOT_STARTED

    @classmethod
    def with_default_aliases(cls, **kwargs: Any) -> "Cronfile":
        instance = cls(**kwargs)
        instance.alias_table.load_defaults()
        return instance

    @property
    def state(self) -> RunState:
        return self._state

    # Registration

    def aliases(self, mapping: Mapping[str, Any]) -> "Cronfile":
        self.alias_table.load(mapping)
        return self

    def on(
        self,
        key: str,
        fns: JobCallables,
        description: Optional[str] = None,
        style: Any = JobStyle.RESULT,
    ) -> "Cronfile":
        """
        Register job(s) against a cron expression, an alias or a lifecycle
        event (``start``/``stop``). Notification names (``tick``, ``error``,
        ``started``, ``results``) subscribe listeners instead; listeners take
        no description or style.
        """
        if is_notification_event(key):
            if description is not None or style != JobStyle.RESULT:
                raise ConfigurationError(f'Error: "{key}" listeners take no description or style.')
            for listener in fns if isinstance(fns, (list, tuple)) else [fns]:
                self.events.on(key, listener)
            return self
        self.registry.register(key, fns, description=description, style=style)
        return self

    def job(
        self,
        key: str,
        description: Optional[str] = None,
        style: Any = JobStyle.RESULT,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.on(key, fn, description=description, style=style)
            return fn

        return decorator

    def once(self, name: str, listener: Listener) -> "Cronfile":
        self.events.once(name, listener)
        return self

    def emit(self, name: str, *args: Any) -> int:
        return self.events.emit(name, *args)

    def list(self) -> str:
        return self.registry.summary()

    # Time

    def force_time(self, when: Union[str, datetime]) -> datetime:
        if self.settings.production:
            raise ConfigurationError("You cannot fake a time in production.")
        self._forced_time = parse_time(when, self.settings.timezone, self._clock())
        logger.info("Faking time as %s", self._forced_time.isoformat())
        return self._forced_time

    def now(self) -> datetime:
        if self._forced_time is not None:
            return self._forced_time
        return self._clock()

    def get(self, timestamp: datetime) -> List[Job]:
        return self.engine.due_jobs(timestamp)

    # Running

    def run(self, args: Optional[Sequence[str]] = None, callback: Optional[Callback] = None) -> Optional[BaseException]:
        if args is None:
            args = sys.argv[1:]
        if callback is None:
            setup_logging(self.settings.log_level)
            callback = _exit_callback

        if self._state is not RunState.NOT_STARTED:
            error: Optional[BaseException] = AlreadyRunningError("You cannot run the cron pipeline twice.")
            logger.error("Refusing to run: state is %s.", self._state.value)
            callback(error)
            return error

        self._state = RunState.RUNNING
        try:
            error = self._run_pipeline(list(args))
        except CronfileError as exc:
            error = exc
        self._state = RunState.FAILED if error is not None else RunState.COMPLETED
        callback(error)
        return error

    def _run_pipeline(self, args: List[str]) -> Optional[BaseException]:
        options = RunOptions.parse(args)
        if options.mode == MODE_LIST:
            print(self.list())
            return None

        timestamp = truncate_to_minute(self.now())
        if options.mode not in (None, MODE_TEST):
            timestamp = apply_time_override(timestamp, options.mode)
            if self.settings.production:
                raise ConfigurationError("You cannot fake a time in production.")
        due = self.engine.due_jobs(timestamp, force_all=options.mode == MODE_TEST)

        start = self.registry.hooks("start")
        stop = self.registry.hooks("stop")
        if options.use_locking:
            times = list(dict.fromkeys(job.target for job in due))

            def acquire_lock() -> None:
                self.lock.acquire(times)

            def release_lock() -> None:
                self.lock.release()

            start.insert(0, Job.build("start", "start", acquire_lock, description="Acquire run lock"))
            stop.insert(0, Job.build("stop", "stop", release_lock, description="Release run lock"))

        result = self.engine.run_pipeline(start, due, stop, timestamp)
        error = result.error
        if error is not None and options.use_locking:
            self.lock.release()
        logger.info(
            "Run finished: %s due, %s succeeded, %s errored.",
            result.summary.due,
            result.summary.succeeded,
            result.summary.errored,
        )
        self.events.emit("results", result.summary, timestamp)
        return error

    def stop(self, callback: Optional[Callback] = None) -> Optional[BaseException]:
        """Emergency path: run only the stop hooks and drop the lock if held."""
        error = self.engine.run_sequence(self.registry.hooks("stop"), phase="stop")
        if self.lock.active:
            self.lock.release()
        if callback is not None:
            callback(error)
        return error
