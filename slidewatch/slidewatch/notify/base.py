"""Notification interfaces (ports) for trigger dispatch."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from slidewatch.core.models import NotificationRequest


class NotificationQueue(Protocol):
    """Port: accepts notification requests and delivers them to the dispatcher."""

    async def put(self, request: NotificationRequest) -> None: ...

    async def get(self) -> NotificationRequest: ...

    def qsize(self) -> int: ...


class PushTransport(Protocol):
    """Port: delivers one remote push. Returns False on failure, never raises."""

    async def send(self, token: str, title: str, body: str) -> bool: ...


class LocalNotifier(Protocol):
    """Port: shows a notification on the device itself."""

    def notify(self, title: str, body: str) -> None: ...

    def record_delivered(self, title: str, body: str) -> None: ...
