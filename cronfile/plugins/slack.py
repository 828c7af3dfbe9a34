"""
Slack incoming-webhook notifier.

Subscribe an instance to the ``results`` and/or ``error`` channels::

    notify = SlackNotifier(webhook_url="https://hooks.slack.com/services/...")
    cron.on("results", notify)
    cron.on("error", notify)
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from http import client as http_client
from importlib import metadata
from typing import Any, Callable, Dict, Optional
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from cronfile.engine import RunSummary
from cronfile.errors import ConfigurationError, CronfileError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 3000
RESULTS_COLOR = "#439FE0"
ERROR_COLOR = "danger"

Formatter = Callable[[Any], Dict[str, Any]]
Callback = Callable[[Optional[BaseException]], Any]


def _version() -> str:
    try:
        return metadata.version("cronfile")
    except metadata.PackageNotFoundError:
        return "0"


def format_error(err: BaseException) -> Dict[str, Any]:
    text = f"{type(err).__name__}: {err}"
    return {"fallback": text, "color": ERROR_COLOR, "text": text}


def format_results(results: Any) -> Dict[str, Any]:
    payload = results.to_payload() if isinstance(results, RunSummary) else dict(results)
    return {
        "fallback": json.dumps(payload),
        "color": RESULTS_COLOR,
        "fields": [{"title": key, "value": value, "short": True} for key, value in payload.items()],
    }


class SlackNotifier:
    def __init__(
        self,
        webhook_url: str,
        channel: Optional[str] = None,
        username: Optional[str] = None,
        icon_emoji: Optional[str] = None,
        format_error: Formatter = format_error,
        format_results: Formatter = format_results,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        if not webhook_url:
            raise ConfigurationError("Missing Slack webhook_url")
        parsed = urllib_parse.urlparse(webhook_url)
        if not parsed.hostname or parsed.path in ("", "/"):
            raise ConfigurationError("Invalid URL for webhook_url")
        self.webhook_url = webhook_url
        self.format_error = format_error
        self.format_results = format_results
        self.timeout_ms = timeout_ms
        self.defaults: Dict[str, Any] = {}
        if channel:
            self.defaults["channel"] = channel
        if username:
            self.defaults["username"] = username
        if icon_emoji:
            self.defaults["icon_emoji"] = icon_emoji

    def build_body(self, results: Any, when: Optional[datetime] = None) -> Dict[str, Any]:
        if isinstance(results, BaseException):
            attachment = self.format_error(results)
        else:
            attachment = self.format_results(results)
        attachment["ts"] = when.timestamp() if when is not None else time.time()
        return {**self.defaults, "attachments": [attachment]}

    def send(self, results: Any, when: Optional[datetime] = None) -> None:
        body = json.dumps(self.build_body(results, when))
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": f"cronfile-plugin-slack-{_version()}",
        }
        req = urllib_request.Request(
            url=self.webhook_url,
            data=body.encode("utf-8"),
            method="POST",
            headers=headers,
        )
        try:
            with urllib_request.urlopen(req, timeout=max(0.1, self.timeout_ms / 1000.0)) as response:
                if response.status == 200:
                    return
                status = response.status
                response_body = response.read().decode("utf-8", errors="replace")
        except urllib_error.HTTPError as exc:
            status = exc.code
            response_body = exc.read().decode("utf-8", errors="replace")
        except urllib_error.URLError as exc:
            raise CronfileError(f"Error sending data {body} to Slack: {exc.reason}") from exc
        except (OSError, http_client.HTTPException) as exc:
            raise CronfileError(f"Error sending data {body} to Slack: {exc!r}") from exc
        raise CronfileError(f"Bad response from Slack sending {body}: {status}: {response_body}")

    def __call__(
        self,
        results: Any,
        when: Optional[datetime] = None,
        callback: Optional[Callback] = None,
    ) -> Optional[BaseException]:
        try:
            self.send(results, when)
            error: Optional[BaseException] = None
        except CronfileError as exc:
            error = exc
        if callback is not None:
            callback(error)
        elif error is not None:
            logger.error("Slack notification failed: %s", error)
        return error
