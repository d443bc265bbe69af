"""In-process asyncio queue implementation of NotificationQueue."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from slidewatch.core.models import NotificationRequest


class AsyncioNotificationQueue:
    """NotificationQueue backed by asyncio.Queue."""

    def __init__(self, max_size: int = 1_000) -> None:
        self._queue: asyncio.Queue[NotificationRequest] = asyncio.Queue(maxsize=max_size)

    async def put(self, request: NotificationRequest) -> None:
        await self._queue.put(request)

    async def get(self) -> NotificationRequest:
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()
