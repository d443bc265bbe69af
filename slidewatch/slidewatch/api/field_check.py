"""Field-check endpoints: start/stop a session and upload on-site readings.

The phone streams accelerometer samples and GPS fixes here while a session is
recording. Readings posted while no session is recording are dropped.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from slidewatch.api.body import error_response, read_json
from slidewatch.core.models import GeoPoint, GroundSample
from slidewatch.core.scoring import as_number, finite_number

router = APIRouter(prefix="/api/v1/field-check")

# Start refusals -> HTTP status.
_REFUSAL_STATUS = {
    "already_active": 409,
    "no_connectivity": 412,
    "location_permission_denied": 412,
}


def _optional_bool(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def _parse_sample(data: object) -> GroundSample | None:
    if not isinstance(data, dict):
        return None
    return GroundSample(
        ax=finite_number(data.get("x"), 0.0),
        ay=finite_number(data.get("y"), 0.0),
        az=finite_number(data.get("z"), 0.0),
    )


def _parse_point(data: object) -> GeoPoint | None:
    if not isinstance(data, dict):
        return None
    lat = as_number(data.get("lat"), float("nan"))
    lon = as_number(data.get("lon"), float("nan"))
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return GeoPoint(lat=lat, lon=lon)


@router.get("")
async def get_field_check() -> dict:
    from slidewatch.main import get_session

    return get_session().snapshot()


@router.post("/start")
async def start_field_check(request: Request) -> JSONResponse:
    """Start a session.

    The body may carry the device's current ``connected`` and
    ``location_permission`` flags; they are recorded before the checks run.
    """
    from slidewatch.main import get_device_status, get_session

    body, error = await read_json(request, allow_empty=True)
    if error is not None:
        return error

    get_device_status().report(
        connected=_optional_bool(body.get("connected")),
        location_permission=_optional_bool(body.get("location_permission")),
    )

    session = get_session()
    result = await session.start()
    if not result.ok:
        status = _REFUSAL_STATUS.get(result.reason, 409)
        return error_response(status, result.reason, message=result.message)
    return JSONResponse(content=session.snapshot())


@router.post("/stop")
async def stop_field_check() -> dict:
    from slidewatch.main import get_session

    session = get_session()
    await session.stop(reason="manual")
    return session.snapshot()


@router.post("/samples")
async def post_samples(request: Request) -> JSONResponse:
    """Upload accelerometer samples: ``{"samples": [{"x": .., "y": .., "z": ..}]}``."""
    from slidewatch.main import get_feeds, get_session, get_stats

    body, error = await read_json(request)
    if error is not None:
        return error
    raw = body.get("samples")
    if not isinstance(raw, list):
        return error_response(422, "samples must be a list")

    samples = [s for s in (_parse_sample(item) for item in raw) if s is not None]
    accelerometer, _ = get_feeds()
    delivered = accelerometer.publish(samples)
    get_stats().record_ground_samples(delivered)

    session = get_session()
    return JSONResponse(content={
        "accepted": delivered,
        "trust_score": session.trust_score,
        "samples_buffered": session.snapshot()["samples_buffered"],
    })


@router.post("/points")
async def post_points(request: Request) -> JSONResponse:
    """Upload GPS fixes: ``{"points": [{"lat": .., "lon": ..}]}``."""
    from slidewatch.main import get_feeds, get_session, get_stats

    body, error = await read_json(request)
    if error is not None:
        return error
    raw = body.get("points")
    if not isinstance(raw, list):
        return error_response(422, "points must be a list")

    points = [p for p in (_parse_point(item) for item in raw) if p is not None]
    _, location = get_feeds()
    delivered = location.publish(points)
    get_stats().record_track_points(delivered)

    snapshot = get_session().snapshot()
    return JSONResponse(content={
        "accepted": delivered,
        "points_logged": snapshot["points_logged"],
        "points_label": snapshot["points_label"],
    })
