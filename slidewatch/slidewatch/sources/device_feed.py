"""Sensor feeds and device status pushed over HTTP by the mobile client.

The phone owns the real accelerometer and GPS. It posts readings to the API,
which publishes them here; subscribers (the field-check session) receive
them through a callback, the same way an on-device listener would.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

import structlog

log = structlog.get_logger()


class _FeedSubscription:
    def __init__(self, feed: DeviceSensorFeed, callback: Callable[[Any], None]) -> None:
        self._feed = feed
        self._callback = callback

    def remove(self) -> None:
        self._feed._unsubscribe(self._callback)


class DeviceSensorFeed:
    """SensorFeed fed by client uploads."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Callable[[Any], None]] = []
        # Cadence the client should sample at, as asked by the last subscriber.
        self.requested_options: dict[str, Any] = {}

    async def subscribe(self, callback: Callable[[Any], None], **options: Any) -> _FeedSubscription:
        if callback not in self._subscribers:
            self._subscribers.append(callback)
        self.requested_options = dict(options)
        log.debug("feed_subscribed", feed=self.name, options=options)
        return _FeedSubscription(self, callback)

    def _unsubscribe(self, callback: Callable[[Any], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)
            log.debug("feed_unsubscribed", feed=self.name)
        if not self._subscribers:
            self.requested_options = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, readings: Iterable[Any]) -> int:
        """Deliver readings to every subscriber. Returns how many were delivered."""
        handlers = self._subscribers[:]
        if not handlers:
            return 0
        delivered = 0
        for reading in readings:
            for handler in handlers:
                try:
                    handler(reading)
                except Exception:
                    log.error("feed_handler_failed", feed=self.name, exc_info=True)
            delivered += 1
        return delivered


class DeviceStatus:
    """FieldPreconditions answered from the last state the client reported."""

    def __init__(self) -> None:
        self.connected: bool = False
        self.location_permission: bool = False

    def report(self, *, connected: bool | None = None, location_permission: bool | None = None) -> None:
        if connected is not None:
            self.connected = connected
        if location_permission is not None:
            self.location_permission = location_permission

    async def has_connectivity(self) -> bool:
        return self.connected

    async def has_location_permission(self) -> bool:
        return self.location_permission
