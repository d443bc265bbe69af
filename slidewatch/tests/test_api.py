"""Tests for the HTTP API endpoints."""

from __future__ import annotations

import asyncio

import pytest

import slidewatch.main as main_module


async def _settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["band"] == "elevated"
    assert data["field_check"] == "idle"
    assert "uptime_seconds" in data


@pytest.mark.asyncio
async def test_stats_empty(client):
    resp = await client.get("/api/v1/stats")
    assert resp.status_code == 200
    data = resp.json()
    assert data["snapshots_received"] == 0
    assert data["notifications"]["queue_depth"] == 0
    assert data["field_checks"]["started"] == 0


# --- risk --------------------------------------------------------------------

@pytest.mark.asyncio
async def test_risk_for_bundled_station(client):
    resp = await client.get("/api/v1/risk")
    assert resp.status_code == 200
    data = resp.json()

    assert data["band"] == "elevated"
    assert data["probability"] == pytest.approx(0.643067, abs=1e-5)
    assert data["probability_percent"] == 64
    assert data["dominant_factor_key"] == "soilMoisture"
    assert [f["band"] for f in data["forecasts"]] == ["high", "high", "danger"]
    assert [f["key"] for f in data["factors"]] == [
        "soilMoisture", "slopeAngle", "rainfall24h", "groundVibration",
    ]
    assert data["factors"][2]["display_value"] == "150 mm"
    assert data["mitigation"]["tier"] == "high"
    assert data["station"]["name"] == "Test Slope"
    assert data["station"]["distance_label"] == "850 m"
    assert data["station"]["coordinates"] is None


@pytest.mark.asyncio
async def test_put_snapshot_replaces_readings(client):
    resp = await client.put("/api/v1/snapshot", json={
        "soilMoisture": 40, "slopeAngle": 15, "rainfall24h": 10, "groundVibration": 1,
        "distanceMeters": 2400,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["band"] == "stable"
    assert data["probability"] == pytest.approx(0.18)
    assert data["station"]["distance_label"] == "2.4 km"
    assert data["station"]["name"] == "Monitoring site"

    stats = (await client.get("/api/v1/stats")).json()
    assert stats["snapshots_received"] == 1


@pytest.mark.asyncio
async def test_put_snapshot_rejects_bad_json(client):
    resp = await client.put("/api/v1/snapshot", content=b"{not json",
                            headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid JSON"


@pytest.mark.asyncio
async def test_put_snapshot_with_overflowing_number(client):
    body = b'{"soilMoisture": 1e400, "slopeAngle": 35, "rainfall24h": 150, "groundVibration": 5}'
    resp = await client.put("/api/v1/snapshot", content=body, headers={"content-type": "application/json"})
    assert resp.status_code == 200
    assert resp.json()["factors"][0]["raw_value"] == 0.0
    assert resp.json()["factors"][0]["display_value"] == "0.0%"

    resp = await client.get("/api/v1/risk")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_device_location_requires_coordinates(client):
    resp = await client.post("/api/v1/device/location", json={"lat": "north"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_device_near_station_queues_proximity_alert(client, consumer):
    await client.put("/api/v1/snapshot", json={
        "ten": "Ridge", "toa_do": {"x": 0.0, "y": 0.0},
        "do_am_dat": 80, "do_doc": 35, "mua_24h": 150, "do_rung_dat": 5, "khoang_cach": 5000,
    })
    resp = await client.post("/api/v1/device/location", json={"lat": 0.0, "lon": 0.0004})
    assert resp.status_code == 200
    assert resp.json()["station"]["distance_m"] == pytest.approx(44.48, abs=0.1)

    await _settle()
    outbox = (await client.get("/api/v1/notifications/outbox")).json()["notifications"]
    assert [n["title"] for n in outbox] == ["Distance alert"]
    assert outbox[0]["body"] == "Device is 44 m from the station (<= 100m)."

    last = (await client.get("/api/v1/notifications/last")).json()["last"]
    assert last["title"] == "Distance alert"


@pytest.mark.asyncio
async def test_high_risk_without_token_falls_back_to_local(client, consumer):
    resp = await client.put("/api/v1/snapshot", json={
        "ten": "Ridge", "do_am_dat": 95, "do_doc": 42, "mua_24h": 190, "do_rung_dat": 6,
        "khoang_cach": 30,
    })
    assert resp.json()["band"] == "danger"

    await _settle()
    outbox = (await client.get("/api/v1/notifications/outbox")).json()["notifications"]
    assert [n["title"] for n in outbox] == ["Distance alert", "High landslide risk"]
    assert outbox[1]["body"].startswith("Risk 98% at Ridge.")


@pytest.mark.asyncio
async def test_refresh_without_remote_sources(client):
    resp = await client.post("/api/v1/refresh")
    assert resp.status_code == 200
    data = resp.json()
    assert data["applied"] is True
    assert data["risk"]["station"]["name"] == "Test Slope"
    assert (await client.get("/api/v1/stats")).json()["refreshes"]["total"] == 1


# --- notifications -----------------------------------------------------------

@pytest.mark.asyncio
async def test_register_and_forget_push_token(client):
    resp = await client.put("/api/v1/notifications/token", json={"token": "ExponentPushToken[abc]"})
    assert resp.status_code == 200
    assert main_module.get_alerts().push_token == "ExponentPushToken[abc]"

    resp = await client.delete("/api/v1/notifications/token")
    assert resp.json() == {"registered": False}
    assert main_module.get_alerts().push_token is None


@pytest.mark.asyncio
async def test_register_token_validation(client):
    resp = await client.put("/api/v1/notifications/token", json={"token": ""})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_notifications_setting(client):
    resp = await client.put("/api/v1/notifications/settings", json={"enabled": False})
    assert resp.status_code == 200
    assert resp.json()["enabled"] is False
    assert main_module.get_alerts().notifications_enabled is False

    resp = await client.put("/api/v1/notifications/settings", json={"enabled": "no"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_last_notification_empty(client):
    resp = await client.get("/api/v1/notifications/last")
    assert resp.json() == {"last": None}


# --- field check -------------------------------------------------------------

@pytest.mark.asyncio
async def test_field_check_refused_without_connectivity(client):
    resp = await client.post("/api/v1/field-check/start")
    assert resp.status_code == 412
    data = resp.json()
    assert data["error"] == "no_connectivity"
    assert data["message"] == "Turn on Wi-Fi or cellular data to continue."


@pytest.mark.asyncio
async def test_field_check_refused_without_location_permission(client):
    resp = await client.post("/api/v1/field-check/start", json={"connected": True})
    assert resp.status_code == 412
    assert resp.json()["error"] == "location_permission_denied"


@pytest.mark.asyncio
async def test_field_check_full_session(client):
    resp = await client.post("/api/v1/field-check/start",
                             json={"connected": True, "location_permission": True})
    assert resp.status_code == 200
    assert resp.json()["state"] == "recording"

    resp = await client.post("/api/v1/field-check/start")
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_active"

    resp = await client.post("/api/v1/field-check/samples",
                             json={"samples": [{"x": 0.0, "y": 0.0, "z": 0.0}] * 10})
    assert resp.json() == {"accepted": 10, "trust_score": 100, "samples_buffered": 10}

    resp = await client.post("/api/v1/field-check/points",
                             json={"points": [{"lat": 22.3, "lon": 103.8}, {"lat": "bad"}]})
    assert resp.json()["accepted"] == 1
    assert resp.json()["points_label"] == "1 GPS points"

    status = (await client.get("/api/v1/field-check")).json()
    assert status["status"] == "Recording vibration & GPS (5 mins)..."
    assert status["trust_score"] == 100

    resp = await client.post("/api/v1/field-check/stop")
    data = resp.json()
    assert data["state"] == "stopped"
    assert data["trust_score"] is None
    assert data["last_result"]["reason"] == "manual"
    assert data["last_result"]["trust_score"] == 100
    assert data["last_result"]["points_logged"] == 1

    stats = (await client.get("/api/v1/stats")).json()["field_checks"]
    assert stats["samples_received"] == 10
    assert stats["points_received"] == 1
    assert stats["stopped"] == {"manual": 1}


@pytest.mark.asyncio
async def test_samples_without_session_are_dropped(client):
    resp = await client.post("/api/v1/field-check/samples", json={"samples": [{"x": 1, "y": 1, "z": 1}]})
    assert resp.status_code == 200
    assert resp.json()["accepted"] == 0
    assert resp.json()["trust_score"] is None


@pytest.mark.asyncio
async def test_overflowing_sample_axis_counts_as_zero(client):
    await client.post("/api/v1/field-check/start", json={"connected": True, "location_permission": True})
    body = b'{"samples": [{"x": 1e400, "y": 0, "z": 0}]}'
    resp = await client.post("/api/v1/field-check/samples", content=body,
                             headers={"content-type": "application/json"})
    assert resp.status_code == 200
    assert resp.json()["trust_score"] == 100


@pytest.mark.asyncio
async def test_samples_must_be_a_list(client):
    resp = await client.post("/api/v1/field-check/samples", json={"samples": "lots"})
    assert resp.status_code == 422
