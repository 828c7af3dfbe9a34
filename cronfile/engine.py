"""
Tick engine: decide which jobs are due for a minute and execute the
start-hooks / job-batch / stop-hooks pipeline.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from cronfile.errors import JobExecutionError
from cronfile.events import EventBus
from cronfile.jobs import Completion, Job
from cronfile.matcher import matches, truncate_to_minute
from cronfile.registry import JobRegistry

logger = logging.getLogger(__name__)


@dataclass
class JobOutcome:
    job: Job
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class RunSummary:
    timestamp: datetime
    due: int = 0
    succeeded: int = 0
    errored: int = 0
    errors: List[BaseException] = field(default_factory=list)

    @staticmethod
    def from_outcomes(timestamp: datetime, outcomes: Sequence[JobOutcome]) -> "RunSummary":
        errors = [outcome.error for outcome in outcomes if outcome.error is not None]
        return RunSummary(
            timestamp=timestamp,
            due=len(outcomes),
            succeeded=len(outcomes) - len(errors),
            errored=len(errors),
            errors=errors,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {"jobs": self.due, "succeeded": self.succeeded, "errored": self.errored}


@dataclass
class PipelineResult:
    summary: RunSummary
    start_error: Optional[BaseException] = None
    stop_error: Optional[BaseException] = None
    batch_ran: bool = False

    @property
    def error(self) -> Optional[BaseException]:
        """First error across start hooks, the job batch and stop hooks."""
        if self.start_error is not None:
            return self.start_error
        if self.summary.errors:
            return self.summary.errors[0]
        return self.stop_error


class TickEngine:
    def __init__(self, registry: JobRegistry, events: EventBus):
        self.registry = registry
        self.events = events

    def due_jobs(self, timestamp: datetime, force_all: bool = False) -> List[Job]:
        minute = truncate_to_minute(timestamp)
        if force_all:
            due = self.registry.all_jobs()
        else:
            due = []
            for expression in self.registry.expressions():
                if matches(expression, minute):
                    due.extend(self.registry.jobs_for(expression))
        logger.info("%s - %s job(s) due", minute.isoformat(), len(due))
        self.events.emit("tick", minute, len(due))
        return due

    def run_sequence(self, jobs: Sequence[Job], phase: str = "hooks") -> Optional[BaseException]:
        for idx, job in enumerate(jobs, start=1):
            logger.debug("[%s %s/%s] Running %s", phase, idx, len(jobs), job.name)
            error = job.start().wait()
            if error is not None:
                logger.error("[%s] %s failed: %s; skipping remaining %s hook(s).", phase, job.name, error, phase)
                return error
        return None

    def run_batch(self, jobs: Sequence[Job]) -> List[JobOutcome]:
        completions: List[Completion] = []
        for job in jobs:
            completion = Completion(job.name)
            completions.append(completion)
            thread = threading.Thread(
                target=job.invoke,
                args=(completion,),
                daemon=True,
                name=f"cronfile-job:{job.name}",
            )
            thread.start()

        outcomes: List[JobOutcome] = []
        for job, completion in zip(jobs, completions):
            error = completion.wait()
            if error is not None:
                logger.error("Job %s failed: %s", job.name, error)
                if not isinstance(error, JobExecutionError):
                    error = JobExecutionError(f"Job {job.name} failed: {error}", job_name=job.name, cause=error)
            outcomes.append(JobOutcome(job=job, error=error))
        return outcomes

    def run_pipeline(
        self,
        start: Sequence[Job],
        due: Sequence[Job],
        stop: Sequence[Job],
        timestamp: datetime,
    ) -> PipelineResult:
        start_error = self.run_sequence(start, phase="start")
        outcomes: List[JobOutcome] = []
        batch_ran = start_error is None
        if batch_ran:
            outcomes = self.run_batch(due)
        else:
            logger.error("Start hooks failed; skipping %s due job(s).", len(due))
        stop_error = self.run_sequence(stop, phase="stop")
        return PipelineResult(
            summary=RunSummary.from_outcomes(timestamp, outcomes),
            start_error=start_error,
            stop_error=stop_error,
            batch_ran=batch_ran,
        )
