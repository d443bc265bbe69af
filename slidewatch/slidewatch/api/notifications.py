"""Notification endpoints: push token, setting, local outbox."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from slidewatch.api.body import error_response, read_json

router = APIRouter(prefix="/api/v1/notifications")


def _note_body(note) -> dict:
    return {"title": note.title, "body": note.body, "created_at": note.created_at}


@router.put("/token")
async def put_token(request: Request) -> JSONResponse:
    """Register the device's push token. Later push alerts go through the push service."""
    from slidewatch.main import get_alerts

    body, error = await read_json(request)
    if error is not None:
        return error
    token = body.get("token")
    if not isinstance(token, str) or not token.strip():
        return error_response(422, "token must be a non-empty string")

    get_alerts().push_token = token.strip()
    return JSONResponse(content={"registered": True})


@router.delete("/token")
async def delete_token() -> dict:
    """Forget the token and reset both alert latches (logout)."""
    from slidewatch.main import get_alerts

    get_alerts().reset()
    return {"registered": False}


@router.put("/settings")
async def put_settings(request: Request) -> JSONResponse:
    from slidewatch.main import get_alerts

    body, error = await read_json(request)
    if error is not None:
        return error
    enabled = body.get("enabled")
    if not isinstance(enabled, bool):
        return error_response(422, "enabled must be a boolean")

    alerts = get_alerts()
    alerts.notifications_enabled = enabled
    return JSONResponse(content={"enabled": alerts.notifications_enabled,
                                 "registered": alerts.push_token is not None})


@router.get("/outbox")
async def get_outbox() -> dict:
    """Drain pending local notifications. Each is returned once."""
    from slidewatch.main import get_outbox

    return {"notifications": [_note_body(n) for n in get_outbox().drain()]}


@router.get("/last")
async def get_last() -> dict:
    from slidewatch.main import get_outbox

    last = get_outbox().last
    return {"last": None if last is None else _note_body(last)}
