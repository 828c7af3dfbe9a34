"""
Notification channels.

``start`` and ``stop`` are lifecycle hook lists owned by the registry; the
names below are pure notification channels with no execution semantics.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from cronfile.errors import ConfigurationError

logger = logging.getLogger(__name__)

LIFECYCLE_EVENTS = ("start", "stop")
NOTIFICATION_EVENTS = ("tick", "error", "started", "results")
RESERVED_NAMES = frozenset(LIFECYCLE_EVENTS + NOTIFICATION_EVENTS)

Listener = Callable[..., Any]


def is_lifecycle_event(name: str) -> bool:
    return isinstance(name, str) and name.lower() in LIFECYCLE_EVENTS


def is_notification_event(name: str) -> bool:
    return isinstance(name, str) and name.lower() in NOTIFICATION_EVENTS


@dataclass
class _Subscription:
    listener: Listener
    once: bool


class Channel:
    def __init__(self, name: str):
        self.name = name
        self._subscriptions: List[_Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener, once: bool = False) -> None:
        if not callable(listener):
            raise ConfigurationError(f'Error: listener for "{self.name}" must be callable.')
        with self._lock:
            self._subscriptions.append(_Subscription(listener=listener, once=once))

    def __len__(self) -> int:
        return len(self._subscriptions)

    def publish(self, *args: Any) -> int:
        with self._lock:
            current = list(self._subscriptions)
            self._subscriptions = [sub for sub in self._subscriptions if not sub.once]
        for sub in current:
            try:
                sub.listener(*args)
            except Exception:
                logger.exception('Listener for "%s" failed.', self.name)
        return len(current)


class EventBus:
    def __init__(self) -> None:
        self._channels: Dict[str, Channel] = {name: Channel(name) for name in NOTIFICATION_EVENTS}

    def channel(self, name: str) -> Channel:
        if not is_notification_event(name):
            raise ConfigurationError(
                f'Error: unknown event "{name}"; expected one of {", ".join(NOTIFICATION_EVENTS)}.'
            )
        return self._channels[name.lower()]

    def on(self, name: str, listener: Listener) -> None:
        self.channel(name).subscribe(listener)

    def once(self, name: str, listener: Listener) -> None:
        self.channel(name).subscribe(listener, once=True)

    def emit(self, name: str, *args: Any) -> int:
        return self.channel(name).publish(*args)

    def has_listeners(self, name: str) -> bool:
        return len(self.channel(name)) > 0
