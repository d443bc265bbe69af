"""Risk assessment endpoints: current risk, station readings, device position."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from slidewatch.api.body import error_response, read_json
from slidewatch.core.geo import format_coordinates, format_distance
from slidewatch.core.models import GeoPoint, RiskAssessment
from slidewatch.core.monitor import StationMonitor
from slidewatch.core.scoring import as_number
from slidewatch.sources.payload import parse_station

router = APIRouter(prefix="/api/v1")


def risk_body(monitor: StationMonitor, assessment: RiskAssessment) -> dict:
    """Serialize an assessment together with the station it describes."""
    record = monitor.record
    distance = monitor.distance_m()
    coords = record.coordinates
    return {
        "probability": assessment.probability,
        "probability_percent": assessment.probability_percent,
        "band": assessment.band.value,
        "weighted_score": assessment.weighted_score,
        "forecasts": [
            {
                "hours_ahead": f.hours_ahead,
                "projected_probability": f.projected_probability,
                "band": f.band.value,
            }
            for f in assessment.forecasts
        ],
        "factors": [
            {
                "key": r.key.value,
                "raw_value": r.raw_value,
                "normalized_level": r.normalized_level,
                "display_value": r.display_value,
                "weight": r.weight,
                "gauge_min": r.gauge_min,
                "gauge_max": r.gauge_max,
            }
            for r in assessment.factors
        ],
        "dominant_factor_key": assessment.dominant_factor.value,
        "sensor_confidence": assessment.sensor_confidence,
        "mitigation": {
            "tier": assessment.mitigation_tier,
            "steps": list(assessment.mitigation_steps),
        },
        "station": {
            "name": monitor.site_name,
            "id": record.station_id,
            "place": record.place,
            "coordinates": None if coords is None else {"lat": coords.lat, "lon": coords.lon},
            "coordinates_label": format_coordinates(coords),
            "distance_m": distance,
            "distance_label": format_distance(distance),
            "live_rainfall": monitor.rainfall_override is not None,
        },
    }


@router.get("/risk")
async def get_risk() -> dict:
    """Current assessment for the monitored station."""
    from slidewatch.main import get_monitor

    monitor = get_monitor()
    return risk_body(monitor, monitor.assessment)


@router.put("/snapshot")
async def put_snapshot(request: Request) -> JSONResponse:
    """Replace the station record and readings as a whole.

    Accepts the remote record field names (``do_am_dat``, ``khoang_cach``,
    ...) or the snapshot keys (``soilMoisture``, ``distanceMeters``, ...).
    """
    from slidewatch.main import get_monitor

    body, error = await read_json(request)
    if error is not None:
        return error

    monitor = get_monitor()
    assessment = await monitor.replace_station(parse_station(body))
    return JSONResponse(content=risk_body(monitor, assessment))


@router.post("/device/location")
async def post_device_location(request: Request) -> JSONResponse:
    from slidewatch.main import get_monitor

    body, error = await read_json(request)
    if error is not None:
        return error

    lat = as_number(body.get("lat"), float("nan"))
    lon = as_number(body.get("lon"), float("nan"))
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return error_response(422, "lat and lon must be valid coordinates")

    monitor = get_monitor()
    assessment = await monitor.update_device_position(GeoPoint(lat=lat, lon=lon))
    return JSONResponse(content=risk_body(monitor, assessment))


@router.post("/refresh")
async def post_refresh() -> dict:
    """Pull the remote record, geocode the station and fetch live rainfall now."""
    from slidewatch.main import get_monitor

    monitor = get_monitor()
    applied = await monitor.refresh()
    return {"applied": applied, "risk": risk_body(monitor, monitor.assessment)}
