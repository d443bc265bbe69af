"""Collaborator interfaces (ports) feeding the scoring engine."""

from __future__ import annotations

from typing import Any, Callable, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from slidewatch.core.models import GeoPoint, StationRecord


class Subscription(Protocol):
    """Handle for an active sensor listener."""

    def remove(self) -> None: ...


class SensorFeed(Protocol):
    """Port: a stream of sensor readings delivered to a callback."""

    async def subscribe(self, callback: Callable[[Any], None], **options: Any) -> Subscription: ...


class FieldPreconditions(Protocol):
    """Port: device state gating a field check."""

    async def has_connectivity(self) -> bool: ...

    async def has_location_permission(self) -> bool: ...


class StationSource(Protocol):
    """Port: delivers the latest station record, or None if unavailable."""

    async def fetch_station(self) -> StationRecord | None: ...


class RainfallSource(Protocol):
    """Port: live 24h rainfall (mm) at a location, or None if unavailable."""

    async def fetch_rainfall_24h(self, point: GeoPoint) -> float | None: ...


class Geocoder(Protocol):
    """Port: resolves a place name to coordinates."""

    async def geocode(self, query: str) -> GeoPoint | None: ...
