#!/usr/bin/env python3
"""
cronfile command line: load one or more cronfile scripts and run their jobs
every minute, or once at a faked time.
"""

from __future__ import annotations

import argparse
import logging
import os
import runpy
from pathlib import Path
from typing import List, Optional

import cronfile
from cronfile.controller import Cronfile, parse_time
from cronfile.daemon import Daemon
from cronfile.errors import ConfigurationError, CronfileError
from cronfile.log import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_FILE = "cronjobs.py"
LOAD_RUN_NAME = "__cronfile__"
INTERRUPTED_EXIT_CODE = 130


def resolve_file(raw: str, cwd: Optional[Path] = None) -> Path:
    if raw.startswith("~/"):
        return Path(os.path.expanduser(raw))
    path = Path(raw)
    if not path.is_absolute():
        path = (cwd or Path.cwd()) / path
    return path


def load_files(files: List[str], cwd: Optional[Path] = None) -> List[Path]:
    loaded: List[Path] = []
    for raw in files:
        path = resolve_file(raw, cwd)
        if not path.exists():
            raise CronfileError(f"Cronfile not found: {path}")
        logger.info("Loading %s", path)
        runpy.run_path(str(path), run_name=LOAD_RUN_NAME)
        loaded.append(path)
    return loaded


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cronfile",
        description="Run cronfile jobs every minute",
        epilog="Each file registers jobs on `from cronfile import cron`.",
    )
    parser.add_argument("files", nargs="*", help=f"Cronfile script(s) to load (default: {DEFAULT_FILE})")
    parser.add_argument("-t", "--time", help="Fake a time (HH:MM or ISO datetime) and tick once")
    parser.add_argument("--aliases", help="YAML file with extra schedule aliases")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Print info/debug statements")
    return parser.parse_args(argv)


def _log_level(verbose: int) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def main(argv: Optional[List[str]] = None, cron: Optional[Cronfile] = None) -> int:
    args = parse_args(argv)
    setup_logging(_log_level(args.verbose), Path(args.log_file) if args.log_file else None)
    logger.debug("Args %s", vars(args))
    cron = cron or cronfile.cron

    try:
        if args.time and cron.settings.production:
            raise ConfigurationError("You cannot fake a time in production.")
        if args.aliases:
            cron.alias_table.load_file(Path(args.aliases))
        load_files(args.files or [DEFAULT_FILE])

        daemon = Daemon(cron)
        if args.time:
            when = parse_time(args.time, cron.settings.timezone, cron.now())
            summary = daemon.tick(when)
            return 1 if summary.errors else 0
        try:
            daemon.run_forever()
        except KeyboardInterrupt:
            logger.info("Daemon interrupted by user.")
            cron.stop()
            return INTERRUPTED_EXIT_CODE
        return 0
    except CronfileError as exc:
        logger.error(str(exc))
        return 1
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected error: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
