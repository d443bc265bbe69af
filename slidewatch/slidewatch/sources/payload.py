"""Convert JSON-shaped station payloads into StationRecord.

Two shapes are accepted. The remote database record uses short field names::

    {"ten": ..., "id": ..., "dia_diem": ..., "toa_do": {"x": lat, "y": lon},
     "do_am_dat": ..., "do_doc": ..., "mua_24h": ..., "do_rung_dat": ...,
     "khoang_cach": ...}

Clients may also send the snapshot keys directly (``soilMoisture``,
``slopeAngle``, ``rainfall24h``, ``groundVibration``, ``distanceMeters``).
Anything that is not a real number becomes 0.
"""

from __future__ import annotations

from typing import Any

from slidewatch.core.geo import MAX_DISTANCE_M
from slidewatch.core.models import FactorKey, GeoPoint, SensorSnapshot, StationRecord
from slidewatch.core.scoring import as_number, clamp, finite_number

# Remote record field -> snapshot factor.
RECORD_FIELDS: dict[str, FactorKey] = {
    "do_am_dat": FactorKey.SOIL_MOISTURE,
    "do_doc": FactorKey.SLOPE_ANGLE,
    "mua_24h": FactorKey.RAINFALL_24H,
    "do_rung_dat": FactorKey.GROUND_VIBRATION,
}


def _pick(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return ""


def _is_number(value: Any) -> bool:
    return finite_number(value, float("nan")) == value


def parse_coordinates(value: Any) -> GeoPoint | None:
    """``{"x": lat, "y": lon}`` or ``{"lat": .., "lon": ..}``; both must be numbers."""
    if not isinstance(value, dict):
        return None
    lat = _pick(value, "x", "lat")
    lon = _pick(value, "y", "lon")
    if not (_is_number(lat) and _is_number(lon)):
        return None
    return GeoPoint(lat=float(lat), lon=float(lon))


def parse_snapshot(data: dict) -> SensorSnapshot:
    readings: dict[FactorKey, float] = {}
    for record_key, factor in RECORD_FIELDS.items():
        readings[factor] = finite_number(_pick(data, record_key, factor.value), 0.0)
    return SensorSnapshot(
        soil_moisture=readings[FactorKey.SOIL_MOISTURE],
        slope_angle=readings[FactorKey.SLOPE_ANGLE],
        rainfall_24h=readings[FactorKey.RAINFALL_24H],
        ground_vibration=readings[FactorKey.GROUND_VIBRATION],
    )


def parse_station(data: Any) -> StationRecord:
    """Build a complete StationRecord. A non-dict payload yields an all-zero record."""
    if not isinstance(data, dict):
        data = {}
    distance = as_number(_pick(data, "khoang_cach", "distanceMeters"), 0.0)
    return StationRecord(
        snapshot=parse_snapshot(data),
        name=_text(_pick(data, "ten", "name")),
        station_id=_text(_pick(data, "id", "stationId")),
        place=_text(_pick(data, "dia_diem", "place")),
        coordinates=parse_coordinates(_pick(data, "toa_do", "coordinates")),
        distance_m=clamp(distance, 0.0, MAX_DISTANCE_M),
    )
