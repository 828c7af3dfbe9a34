#!/usr/bin/env python3
"""
Sample cronfile.

Single-shot, from a crontab entry that fires every minute::

    * * * * * cd /srv/app && python example/cronjobs.py

Or always-on, letting cronfile wait for each minute itself::

    cronfile example/cronjobs.py -v
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from cronfile import JobStyle, cron

STATE_DIR = Path(__file__).resolve().parent / "state"
logger = logging.getLogger("cronjobs")


def _append_event(kind: str) -> None:
    STATE_DIR.mkdir(parents=True, exist_ok=True)
    record = {"type": kind, "at": datetime.now(tz=timezone.utc).isoformat()}
    with (STATE_DIR / "queue.jsonl").open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record) + "\n")


def open_connections() -> None:
    STATE_DIR.mkdir(parents=True, exist_ok=True)


def close_connections() -> None:
    logger.info("Closing connections")


cron.on("start", open_connections, "Prepare the state directory")
cron.on("stop", close_connections, "Close connections")

cron.on("every_five_minutes", lambda: _append_event("content-rec"), "Rebuild the content recommendations")
cron.on("every_five_minutes", lambda: _append_event("topics"), "Rebuild the list of topics")
cron.on("every_ten_minutes", lambda: _append_event("queue-automated-feeds"), "Queue the automation feeds")
cron.on(
    "every_twenty_minutes",
    [lambda: _append_event("feed-all-hot"), lambda: _append_event("feed-home-hot")],
    "Rebuild the All & Editorial hot feeds",
)


@cron.job("0 */12 * * *", "Rebuild the users leaderboard")
async def rebuild_leaderboard() -> None:
    await asyncio.sleep(0.1)
    _append_event("users-leaderboard")


def notify_ops(done) -> None:
    _append_event("ops-heartbeat")
    done()


cron.on("@hourly", notify_ops, "Send the ops heartbeat", style=JobStyle.CALLBACK)


def log_tick(when: datetime, count: int) -> None:
    logger.info("tick %s %d matches", when.isoformat(), count)


cron.on("tick", log_tick)


if __name__ == "__main__":
    cron.run()
