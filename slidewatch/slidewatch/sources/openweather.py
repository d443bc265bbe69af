"""OpenWeather collaborators: live 24h rainfall and place-name geocoding."""

from __future__ import annotations

import json
import math
from typing import Any, Callable

import httpx
import structlog

from slidewatch.core.models import GeoPoint
from slidewatch.core.scoring import finite_number

log = structlog.get_logger()

DEFAULT_BASE_URL = "https://api.openweathermap.org"

# The 5-day forecast is in 3-hour steps; 8 of them cover 24 hours.
FORECAST_STEPS_24H = 8


def rainfall_from_forecast(payload: Any) -> float | None:
    """Sum ``rain.3h`` over the first 24 hours of a forecast response."""
    entries = payload.get("list") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        return None
    total = 0.0
    for entry in entries[:FORECAST_STEPS_24H]:
        rain = entry.get("rain") if isinstance(entry, dict) else None
        total += finite_number(rain.get("3h") if isinstance(rain, dict) else None, 0.0)
    return total


def rainfall_from_current(payload: Any) -> float | None:
    """``rain.1h``, else ``rain.3h``, else 0: a valid response without rain means a dry day."""
    if not isinstance(payload, dict):
        return None
    rain = payload.get("rain")
    if isinstance(rain, dict):
        for key in ("1h", "3h"):
            value = finite_number(rain.get(key), float("nan"))
            if not math.isnan(value):
                return value
    return 0.0


class OpenWeatherClient:
    """RainfallSource and Geocoder over the OpenWeather HTTP API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def _get_json(self, label: str, path: str, params: dict) -> Any:
        """GET and decode; returns None on any failure."""
        url = f"{self._base_url}{path}"
        params = {**params, "appid": self._api_key}
        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            log.warning("openweather_http_error", endpoint=label,
                        status=exc.response.status_code, body=exc.response.text[:140])
        except httpx.HTTPError:
            log.warning("openweather_request_failed", endpoint=label, exc_info=True)
        except json.JSONDecodeError:
            log.warning("openweather_payload_invalid", endpoint=label)
        return None

    async def fetch_rainfall_24h(self, point: GeoPoint) -> float | None:
        if not self.configured:
            log.info("openweather_not_configured")
            return None

        coords = {"lat": point.lat, "lon": point.lon, "units": "metric"}
        endpoints: list[tuple[str, str, Callable[[Any], float | None]]] = [
            ("forecast", "/data/2.5/forecast", rainfall_from_forecast),
            ("current", "/data/2.5/weather", rainfall_from_current),
        ]
        for label, path, extract in endpoints:
            payload = await self._get_json(label, path, coords)
            if payload is None:
                continue
            rainfall = extract(payload)
            if rainfall is not None:
                log.info("rainfall_fetched", endpoint=label, rainfall_mm=round(rainfall, 2))
                return rainfall
            log.debug("rainfall_missing", endpoint=label)

        log.info("rainfall_unavailable")
        return None

    async def geocode(self, query: str) -> GeoPoint | None:
        if not self.configured or not query:
            return None
        payload = await self._get_json("geocode", "/geo/1.0/direct", {"q": query, "limit": 1})
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            log.info("geocode_no_match", query=query)
            return None
        first = payload[0]
        lat = finite_number(first.get("lat"), float("nan"))
        lon = finite_number(first.get("lon"), float("nan"))
        if math.isnan(lat) or math.isnan(lon):
            log.info("geocode_no_match", query=query)
            return None
        log.info("geocode_resolved", query=query, lat=lat, lon=lon)
        return GeoPoint(lat=lat, lon=lon)
