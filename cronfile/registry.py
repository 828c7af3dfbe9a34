"""
Append-only job registry: schedule buckets keyed by resolved expression,
plus the ordered ``start`` and ``stop`` hook lists.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from cronfile.aliases import AliasTable
from cronfile.errors import ConfigurationError, TypeMismatchError
from cronfile.events import LIFECYCLE_EVENTS, is_lifecycle_event
from cronfile.jobs import Job, JobStyle
from cronfile.matcher import validate

CRON_FIELD_RE = re.compile(r"^[0-9A-Za-z*,/\-?#]+$")
CRON_FIELD_COUNT = 5

JobCallables = Union[Callable[..., Any], Sequence[Callable[..., Any]]]


def validate_expression_shape(expression: str, key: str) -> None:
    fields = expression.split()
    if len(fields) != CRON_FIELD_COUNT or not all(CRON_FIELD_RE.match(part) for part in fields):
        raise ConfigurationError(
            f'Error: "{key}" is neither a known alias, a lifecycle event, '
            "nor a 5-field cron expression (minute hour day month weekday)."
        )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


class JobRegistry:
    def __init__(self, aliases: Optional[AliasTable] = None):
        self.aliases = aliases if aliases is not None else AliasTable()
        self._buckets: Dict[str, List[Job]] = {}
        self._hooks: Dict[str, List[Job]] = {name: [] for name in LIFECYCLE_EVENTS}
        self._descriptions: Dict[str, List[str]] = {}
        self._raw_keys: Dict[str, List[str]] = {}

    def register(
        self,
        key: str,
        fns: JobCallables,
        description: Optional[str] = None,
        style: Any = JobStyle.RESULT,
    ) -> "JobRegistry":
        if not isinstance(key, str) or not key.strip():
            raise ConfigurationError("Error: job key must be a non-empty string.")
        if description is not None and not isinstance(description, str):
            raise ConfigurationError("Error: job description must be a string.")
        if callable(fns):
            items = [fns]
        elif isinstance(fns, (list, tuple)):
            items = list(fns)
        else:
            raise TypeMismatchError(f"Expected a callable or a list of callables, found {type(fns).__name__}.")
        if not items:
            raise ConfigurationError(f'Error: no jobs given for "{key}".')

        key = key.strip()
        if is_lifecycle_event(key):
            target = key.lower()
        else:
            target = self.aliases.resolve(key)
            validate_expression_shape(target, key)
            validate(target)

        # Build every job first so a bad item leaves the registry untouched.
        jobs = [Job.build(key, target, fn, style=style, description=description) for fn in items]
        if is_lifecycle_event(key):
            self._hooks[target].extend(jobs)
        else:
            self._buckets.setdefault(target, []).extend(jobs)

        raw_keys = self._raw_keys.setdefault(target, [])
        if key not in raw_keys:
            raw_keys.append(key)
        if description:
            self._descriptions.setdefault(target, []).append(description)
        return self

    def expressions(self) -> List[str]:
        return list(self._buckets)

    def jobs_for(self, expression: str) -> List[Job]:
        return list(self._buckets.get(expression, []))

    def hooks(self, name: str) -> List[Job]:
        return list(self._hooks[name.lower()])

    def all_jobs(self) -> List[Job]:
        return [job for jobs in self._buckets.values() for job in jobs]

    def descriptions(self, target: str) -> List[str]:
        return list(self._descriptions.get(target, []))

    def _section(self, target: str, jobs: List[Job], title: str) -> List[str]:
        lines = [f"{title} ({_plural(len(jobs), 'job')})"]
        lines.extend(f"- {text}" for text in self.descriptions(target))
        return lines

    def summary(self) -> str:
        sections: List[List[str]] = []
        if self._hooks["start"]:
            sections.append(self._section("start", self._hooks["start"], "start"))
        for expression, jobs in self._buckets.items():
            title = expression
            aliases = [key for key in self._raw_keys.get(expression, []) if key != expression]
            if aliases:
                title = f"{expression} [{', '.join(aliases)}]"
            sections.append(self._section(expression, jobs, title))
        if self._hooks["stop"]:
            sections.append(self._section("stop", self._hooks["stop"], "stop"))
        return "\n\n".join("\n".join(lines) for lines in sections)
