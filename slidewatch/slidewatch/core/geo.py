"""Distance helpers for the device-to-station proximity checks."""

from __future__ import annotations

import math

from slidewatch.core.models import GeoPoint
from slidewatch.core.scoring import round_half_up

# Earth radius in meters (for Haversine).
_EARTH_R = 6_371_000.0

# Largest integer a JSON client can represent exactly.
MAX_DISTANCE_M = float(2**53 - 1)


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters between two points."""
    rlat1, rlat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    return 2 * _EARTH_R * math.asin(math.sqrt(h))


def format_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{round_half_up(meters)} m"


def format_coordinates(point: GeoPoint | None) -> str | None:
    if point is None:
        return None
    return f"{point.lat:.2f}N, {point.lon:.2f}E"
