"""JSON request body parsing shared by the routers."""

from __future__ import annotations

import json
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


def error_response(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(content={"error": error, **extra}, status_code=status_code)


async def read_json(request: Request, *, allow_empty: bool = False) -> tuple[dict | None, JSONResponse | None]:
    """Return (body, None), or (None, error response) for a body that is not a JSON object."""
    body_bytes = await request.body()
    if not body_bytes and allow_empty:
        return {}, None
    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, error_response(400, "invalid JSON")
    if not isinstance(body, dict):
        return None, error_response(400, "expected a JSON object")
    return body, None
