"""Remote station record from a Firebase Realtime Database REST endpoint.

GET ``{db_url}/{path}.json`` with an optional ``auth`` query parameter.
Any failure (missing configuration, network error, non-2xx, bad JSON, null
record) yields None, and the caller keeps its previous record.
"""

from __future__ import annotations

import json

import httpx
import structlog

from slidewatch.core.models import StationRecord
from slidewatch.sources.payload import parse_station

log = structlog.get_logger()


def resolve_db_url(db_url: str, project_id: str) -> str:
    if db_url:
        return db_url.rstrip("/")
    if project_id:
        return f"https://{project_id}-default-rtdb.firebaseio.com"
    return ""


class FirebaseStationSource:
    """StationSource backed by the Realtime Database REST API."""

    def __init__(
        self,
        db_url: str = "",
        *,
        project_id: str = "",
        auth_token: str = "",
        path: str = "global",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.db_url = resolve_db_url(db_url, project_id)
        self._auth_token = auth_token
        self._path = path.strip("/")
        self._timeout = timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.db_url)

    async def fetch_station(self) -> StationRecord | None:
        if not self.configured:
            log.debug("firebase_not_configured")
            return None

        url = f"{self.db_url}/{self._path}.json"
        params = {"auth": self._auth_token} if self._auth_token else None
        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(url, params=params)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError:
            log.warning("firebase_fetch_failed", path=self._path, exc_info=True)
            return None
        except json.JSONDecodeError:
            log.warning("firebase_payload_invalid", path=self._path)
            return None

        if not isinstance(payload, dict):
            log.info("firebase_record_empty", path=self._path)
            return None
        log.info("firebase_record_fetched", path=self._path)
        return parse_station(payload)
