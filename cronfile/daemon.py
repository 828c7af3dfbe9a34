"""
Always-on runner: ticks once per minute boundary and runs whatever is due.

Unlike :meth:`Cronfile.run` this never takes the lock and never runs the
start/stop hooks for each tick; only ``cron.stop()`` is called on shutdown.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from cronfile.controller import Cronfile
from cronfile.engine import RunSummary
from cronfile.errors import CronfileError

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60


def seconds_until_next_minute(now: datetime) -> int:
    return (SECONDS_PER_MINUTE - now.second) or SECONDS_PER_MINUTE


class Daemon:
    def __init__(
        self,
        cron: Cronfile,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cron = cron
        self.clock = clock or cron.now
        self.sleep = sleep

    def _report(self, error: BaseException, when: datetime) -> None:
        if self.cron.events.has_listeners("error"):
            self.cron.emit("error", error, when)
        else:
            logger.error("An error occurred executing a cron at %s: %s", when.isoformat(), error)

    def tick(self, when: datetime) -> RunSummary:
        try:
            due = self.cron.get(when)
        except CronfileError as exc:
            self._report(exc, when)
            summary = RunSummary(timestamp=when, errors=[exc])
            self.cron.emit("results", summary, when)
            return summary
        if not due:
            return RunSummary(timestamp=when)
        outcomes = self.cron.engine.run_batch(due)
        for outcome in outcomes:
            if outcome.error is not None:
                self._report(outcome.error, when)
        summary = RunSummary.from_outcomes(when, outcomes)
        self.cron.emit("results", summary, when)
        return summary

    def _dispatch(self, when: datetime) -> threading.Thread:
        thread = threading.Thread(target=self.tick, args=(when,), daemon=True, name=f"cronfile-tick:{when:%H%M}")
        thread.start()
        return thread

    def run_forever(self, max_ticks: Optional[int] = None) -> int:
        wait_seconds = seconds_until_next_minute(self.clock())
        logger.info("Waiting %ss for the next minute", wait_seconds)
        self.cron.emit("started", wait_seconds)
        self.sleep(wait_seconds)

        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            self._dispatch(self.clock())
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.sleep(seconds_until_next_minute(self.clock()))
        return ticks
