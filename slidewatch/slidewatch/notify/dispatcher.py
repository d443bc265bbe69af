"""Notification dispatcher: drains the queue and delivers each request once.

Requests with a token go to the push transport; requests without one, and
proximity alerts, go to the local notifier. Failures are logged and counted,
never retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from slidewatch.core.models import NotificationRequest
    from slidewatch.core.stats import MonitorStats
    from slidewatch.notify.base import LocalNotifier, NotificationQueue, PushTransport

log = structlog.get_logger()


class NotificationDispatcher:

    def __init__(
        self,
        queue: NotificationQueue,
        push: PushTransport,
        local: LocalNotifier,
        stats: MonitorStats,
    ) -> None:
        self._queue = queue
        self._push = push
        self._local = local
        self._stats = stats

    async def dispatch(self, request: NotificationRequest) -> bool:
        """Deliver one request. Returns False if delivery failed."""
        if request.token:
            ok = await self._push.send(request.token, request.title, request.body)
            if not ok:
                self._stats.record_dispatch_failure()
                return False
            self._stats.record_push_sent()
            self._local.record_delivered(request.title, request.body)
            return True

        self._local.notify(request.title, request.body)
        self._stats.record_local_notification()
        return True

    async def run_consumer(self) -> None:
        """Consume from the queue and deliver. Runs as a background task."""
        log.info("notification_consumer_started")
        while True:
            request = await self._queue.get()
            try:
                await self.dispatch(request)
                log.debug("notification_dispatched", kind=request.kind, remote=bool(request.token))
            except Exception:
                log.error("notification_dispatch_failed", kind=request.kind, exc_info=True)
                self._stats.record_dispatch_failure()
            self._stats.update_queue_depth(self._queue.qsize())
