"""Tests for station payload parsing and the remote collaborators."""

from __future__ import annotations

import json

import httpx
import pytest

from slidewatch.core.models import GeoPoint
from slidewatch.sources.firebase import FirebaseStationSource, resolve_db_url
from slidewatch.sources.openweather import (
    OpenWeatherClient,
    rainfall_from_current,
    rainfall_from_forecast,
)
from slidewatch.sources.payload import parse_station
from slidewatch.sources.static_station import StaticStationSource

REMOTE_RECORD = {
    "ten": "Ridge Road Station",
    "id": "ST-001",
    "dia_diem": "Sa Pa",
    "toa_do": {"x": 22.3364, "y": 103.8438},
    "do_am_dat": 72.5,
    "do_doc": 31,
    "mua_24h": 96,
    "do_rung_dat": 4.3,
    "khoang_cach": 850,
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# --- payload -----------------------------------------------------------------

def test_parse_remote_record():
    record = parse_station(REMOTE_RECORD)

    assert record.name == "Ridge Road Station"
    assert record.station_id == "ST-001"
    assert record.place == "Sa Pa"
    assert record.coordinates == GeoPoint(22.3364, 103.8438)
    assert record.snapshot.soil_moisture == 72.5
    assert record.snapshot.slope_angle == 31.0
    assert record.snapshot.rainfall_24h == 96.0
    assert record.snapshot.ground_vibration == 4.3
    assert record.distance_m == 850.0


def test_parse_snapshot_keys():
    record = parse_station({
        "soilMoisture": 80, "slopeAngle": 35, "rainfall24h": 150, "groundVibration": 5,
        "distanceMeters": 50, "coordinates": {"lat": 1.5, "lon": 2.5},
    })
    assert record.snapshot.rainfall_24h == 150
    assert record.distance_m == 50
    assert record.coordinates == GeoPoint(1.5, 2.5)


def test_parse_non_numeric_readings_become_zero():
    record = parse_station({"do_am_dat": "wet", "do_doc": None, "mua_24h": float("nan"), "do_rung_dat": True})
    snap = record.snapshot
    assert (snap.soil_moisture, snap.slope_angle, snap.rainfall_24h, snap.ground_vibration) == (0, 0, 0, 0)


def test_parse_distance_is_clamped():
    assert parse_station({"khoang_cach": -20}).distance_m == 0.0
    assert parse_station({"khoang_cach": 1e300}).distance_m == float(2**53 - 1)


def test_parse_overflowing_numbers():
    # JSON 1e400 decodes to inf.
    inf = json.loads("1e400")
    record = parse_station({"do_am_dat": inf, "do_doc": -inf, "mua_24h": 96, "do_rung_dat": 4,
                            "khoang_cach": inf, "toa_do": {"x": inf, "y": 103.8}})

    assert record.snapshot.soil_moisture == 0.0
    assert record.snapshot.slope_angle == 0.0
    assert record.snapshot.rainfall_24h == 96.0
    assert record.distance_m == float(2**53 - 1)
    assert record.coordinates is None


def test_parse_rejects_partial_coordinates():
    assert parse_station({"toa_do": {"x": 22.3}}).coordinates is None
    assert parse_station({"toa_do": {"x": "22.3", "y": 103.8}}).coordinates is None


def test_parse_non_object_payload():
    record = parse_station(["not", "a", "record"])
    assert record.snapshot.soil_moisture == 0
    assert record.name == ""


def test_static_station_source(tmp_path):
    path = tmp_path / "station.json"
    path.write_text(json.dumps(REMOTE_RECORD))
    assert StaticStationSource(path).load().station_id == "ST-001"


def test_static_station_missing_file(tmp_path):
    record = StaticStationSource(tmp_path / "missing.json").load()
    assert record.snapshot.soil_moisture == 0


# --- firebase ----------------------------------------------------------------

def test_db_url_derived_from_project_id():
    assert resolve_db_url("", "slide-demo") == "https://slide-demo-default-rtdb.firebaseio.com"
    assert resolve_db_url("https://example.firebaseio.com/", "ignored") == "https://example.firebaseio.com"
    assert resolve_db_url("", "") == ""


@pytest.mark.asyncio
async def test_firebase_fetch():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json=REMOTE_RECORD)

    async with _client(handler) as client:
        source = FirebaseStationSource("https://db.example.com", auth_token="secret", client=client)
        record = await source.fetch_station()

    assert record.name == "Ridge Road Station"
    assert seen[0].path == "/global.json"
    assert seen[0].params["auth"] == "secret"


@pytest.mark.asyncio
async def test_firebase_unconfigured_returns_none():
    assert await FirebaseStationSource().fetch_station() is None


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(500, text="boom"),
    httpx.Response(200, json=None),
    httpx.Response(200, content=b"not json"),
])
async def test_firebase_failures_return_none(response):
    async with _client(lambda request: response) as client:
        source = FirebaseStationSource("https://db.example.com", client=client)
        assert await source.fetch_station() is None


@pytest.mark.asyncio
async def test_firebase_network_error_returns_none():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    async with _client(handler) as client:
        source = FirebaseStationSource("https://db.example.com", client=client)
        assert await source.fetch_station() is None


# --- openweather -------------------------------------------------------------

def test_forecast_sums_first_24_hours():
    entries = [{"rain": {"3h": 2.0}}] * 10 + [{"rain": {"3h": 100.0}}]
    assert rainfall_from_forecast({"list": entries}) == pytest.approx(16.0)


def test_forecast_without_rain_is_zero():
    assert rainfall_from_forecast({"list": [{"main": {}}, {"rain": {}}]}) == 0.0


def test_forecast_without_list_has_no_answer():
    assert rainfall_from_forecast({"cod": "401"}) is None


def test_current_weather_rain_fields():
    assert rainfall_from_current({"rain": {"1h": 1.5, "3h": 4.0}}) == 1.5
    assert rainfall_from_current({"rain": {"3h": 4.0}}) == 4.0


def test_current_weather_without_rain_is_a_dry_day():
    assert rainfall_from_current({"weather": [{"main": "Clear"}], "main": {"temp": 24.1}}) == 0.0
    assert rainfall_from_current({"rain": {"1h": "heavy"}}) == 0.0
    assert rainfall_from_current(["not", "an", "object"]) is None


@pytest.mark.asyncio
async def test_rainfall_prefers_forecast():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        assert request.url.params["appid"] == "key"
        return httpx.Response(200, json={"list": [{"rain": {"3h": 5.0}}] * 8})

    async with _client(handler) as client:
        weather = OpenWeatherClient("key", client=client)
        assert await weather.fetch_rainfall_24h(GeoPoint(22.3, 103.8)) == pytest.approx(40.0)

    assert paths == ["/data/2.5/forecast"]


@pytest.mark.asyncio
async def test_rainfall_falls_back_to_current_weather():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/forecast"):
            return httpx.Response(401, json={"message": "Invalid API key"})
        return httpx.Response(200, json={"rain": {"1h": 0.8}})

    async with _client(handler) as client:
        weather = OpenWeatherClient("key", client=client)
        assert await weather.fetch_rainfall_24h(GeoPoint(0, 0)) == 0.8


@pytest.mark.asyncio
async def test_dry_current_weather_replaces_static_rainfall():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/forecast"):
            return httpx.Response(500)
        return httpx.Response(200, json={"weather": [{"main": "Clear"}]})

    async with _client(handler) as client:
        weather = OpenWeatherClient("key", client=client)
        assert await weather.fetch_rainfall_24h(GeoPoint(0, 0)) == 0.0


@pytest.mark.asyncio
async def test_rainfall_unavailable():
    async with _client(lambda request: httpx.Response(503)) as client:
        weather = OpenWeatherClient("key", client=client)
        assert await weather.fetch_rainfall_24h(GeoPoint(0, 0)) is None


@pytest.mark.asyncio
async def test_rainfall_without_api_key_makes_no_request():
    def handler(request):
        raise AssertionError("unexpected request")

    async with _client(handler) as client:
        assert await OpenWeatherClient("", client=client).fetch_rainfall_24h(GeoPoint(0, 0)) is None


@pytest.mark.asyncio
async def test_geocode():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/geo/1.0/direct"
        assert request.url.params["q"] == "Sa Pa"
        return httpx.Response(200, json=[{"name": "Sa Pa", "lat": 22.33, "lon": 103.84}])

    async with _client(handler) as client:
        point = await OpenWeatherClient("key", client=client).geocode("Sa Pa")

    assert point == GeoPoint(22.33, 103.84)


@pytest.mark.asyncio
async def test_geocode_no_match():
    async with _client(lambda request: httpx.Response(200, json=[])) as client:
        assert await OpenWeatherClient("key", client=client).geocode("Nowhere") is None
