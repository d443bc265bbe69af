"""Local notification outbox.

The service cannot draw on the phone's screen, so local notifications are
queued here and the client collects them by polling the API.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class LocalNotification:
    title: str
    body: str
    created_at: float


class LocalNotificationOutbox:
    """LocalNotifier keeping the most recent undelivered notifications."""

    def __init__(self, max_size: int = 50) -> None:
        self._pending: deque[LocalNotification] = deque(maxlen=max_size)
        self._last: LocalNotification | None = None

    def notify(self, title: str, body: str) -> None:
        if len(self._pending) == self._pending.maxlen:
            log.warning("local_outbox_full", dropped=self._pending[0].title)
        note = LocalNotification(title=title, body=body, created_at=time.time())
        self._pending.append(note)
        self._last = note

    def record_delivered(self, title: str, body: str) -> None:
        """Remember a notification delivered through another channel (remote push)."""
        self._last = LocalNotification(title=title, body=body, created_at=time.time())

    def drain(self) -> list[LocalNotification]:
        items = list(self._pending)
        self._pending.clear()
        return items

    @property
    def last(self) -> LocalNotification | None:
        return self._last

    def __len__(self) -> int:
        return len(self._pending)
