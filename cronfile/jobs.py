"""
Job wrapping.

Every registered callable is adapted once, at registration, into
``invoke(done)`` which signals completion exactly once through a
:class:`Completion`. How the callable reports completion is declared by the
caller with a :class:`JobStyle` tag rather than guessed from its signature.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from cronfile.errors import ConfigurationError, JobExecutionError, TypeMismatchError

logger = logging.getLogger(__name__)

Done = Callable[..., None]
Invoke = Callable[[Done], None]


class JobStyle(str, Enum):
    CALLBACK = "callback"  # fn(done); calls done() or done(error)
    RESULT = "result"  # fn(); plain return or awaitable


class Completion:
    """One-shot completion signal. Safe to fire from any thread."""

    def __init__(self, name: str = "job"):
        self.name = name
        self.error: Optional[BaseException] = None
        self._event = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, error: Any = None) -> None:
        with self._lock:
            if self._event.is_set():
                logger.warning("%s signalled completion more than once; ignoring.", self.name)
                return
            if not isinstance(error, BaseException):
                error = JobExecutionError(str(error), job_name=self.name) if error else None
            self.error = error
            self._event.set()

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        self._event.wait(timeout)
        return self.error


async def _settle(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _drive(awaitable: Awaitable[Any]) -> None:
    """Await ``awaitable`` to completion, on a helper thread when a loop is already running here."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(_settle(awaitable))
        return

    failures: List[BaseException] = []

    def settle_in_thread() -> None:
        try:
            asyncio.run(_settle(awaitable))
        except Exception as exc:
            failures.append(exc)

    thread = threading.Thread(target=settle_in_thread, daemon=True, name="cronfile-awaitable")
    thread.start()
    thread.join()
    if failures:
        raise failures[0]


def _callable_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)


def adapt(fn: Callable[..., Any], style: Any = JobStyle.RESULT) -> Invoke:
    if not callable(fn):
        raise TypeMismatchError(f"Expected a callable job, found {type(fn).__name__}.")
    try:
        style = JobStyle(style)
    except ValueError as exc:
        raise ConfigurationError(f'Error: Unknown job style "{style}".') from exc

    if style is JobStyle.CALLBACK:

        def invoke(done: Done) -> None:
            try:
                fn(done)
            except Exception as exc:
                done(exc)

    else:

        def invoke(done: Done) -> None:
            try:
                result = fn()
                if inspect.isawaitable(result):
                    _drive(result)
            except Exception as exc:
                done(exc)
                return
            done()

    invoke.__wrapped__ = fn  # type: ignore[attr-defined]
    return invoke


@dataclass(frozen=True)
class Job:
    key: str
    target: str
    name: str
    style: JobStyle
    invoke: Invoke
    description: Optional[str] = None

    @staticmethod
    def build(
        key: str,
        target: str,
        fn: Callable[..., Any],
        style: Any = JobStyle.RESULT,
        description: Optional[str] = None,
    ) -> "Job":
        invoke = adapt(fn, style)
        return Job(
            key=key,
            target=target,
            name=_callable_name(fn),
            style=JobStyle(style),
            invoke=invoke,
            description=description,
        )

    def start(self) -> Completion:
        completion = Completion(self.name)
        self.invoke(completion)
        return completion
