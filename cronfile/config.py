"""
Process settings for cronfile, read from CRONFILE_* environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cronfile.errors import ConfigurationError

ENV_LOCK_DIR = "CRONFILE_LOCK_DIR"
ENV_LOCK_NAME = "CRONFILE_LOCK_NAME"
ENV_MODE = "CRONFILE_ENV"
ENV_TIMEZONE = "CRONFILE_TIMEZONE"
ENV_LOG_LEVEL = "CRONFILE_LOG_LEVEL"
PRODUCTION = "production"
DEFAULT_LOG_LEVEL = "INFO"


def _non_empty(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def system_timezone() -> Tuple[ZoneInfo, str]:
    local_tz = datetime.now().astimezone().tzinfo
    if isinstance(local_tz, ZoneInfo):
        return local_tz, local_tz.key
    tz_name = os.environ.get("TZ")
    if tz_name:
        try:
            zone = ZoneInfo(tz_name)
            return zone, tz_name
        except ZoneInfoNotFoundError:
            pass
    return ZoneInfo("UTC"), "UTC"


def parse_timezone(name: str, field_path: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ConfigurationError(f'Error: Invalid timezone "{name}" at {field_path}.') from exc


@dataclass(frozen=True)
class Settings:
    lock_dir: Path
    lock_name: Optional[str]
    production: bool
    timezone: ZoneInfo
    timezone_name: str
    log_level: str = DEFAULT_LOG_LEVEL

    @staticmethod
    def from_env() -> "Settings":
        tz_name = _non_empty(os.getenv(ENV_TIMEZONE))
        if tz_name:
            tz = parse_timezone(tz_name, ENV_TIMEZONE)
        else:
            tz, tz_name = system_timezone()
        lock_dir = _non_empty(os.getenv(ENV_LOCK_DIR))
        mode = _non_empty(os.getenv(ENV_MODE)) or ""
        return Settings(
            lock_dir=Path(lock_dir) if lock_dir else Path.cwd(),
            lock_name=_non_empty(os.getenv(ENV_LOCK_NAME)),
            production=mode.lower() == PRODUCTION,
            timezone=tz,
            timezone_name=tz_name,
            log_level=(_non_empty(os.getenv(ENV_LOG_LEVEL)) or DEFAULT_LOG_LEVEL).upper(),
        )
