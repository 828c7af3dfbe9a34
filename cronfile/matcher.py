"""
Schedule matching on top of croniter, at minute resolution.
"""

from __future__ import annotations

from datetime import datetime

from croniter import croniter

from cronfile.errors import ConfigurationError


def truncate_to_minute(timestamp: datetime) -> datetime:
    return timestamp.replace(second=0, microsecond=0)


def matches(expression: str, timestamp: datetime) -> bool:
    """Return True when ``timestamp`` falls inside a minute selected by ``expression``."""
    try:
        return bool(croniter.match(expression, truncate_to_minute(timestamp)))
    except (ValueError, KeyError) as exc:
        raise ConfigurationError(f'Error: Invalid cron expression "{expression}": {exc}') from exc


def validate(expression: str) -> None:
    """Raise ConfigurationError unless croniter accepts every field of ``expression``."""
    try:
        croniter(expression)
    except (ValueError, KeyError) as exc:
        raise ConfigurationError(f'Error: Invalid cron expression "{expression}": {exc}') from exc
