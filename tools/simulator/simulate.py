#!/usr/bin/env python3
"""SlideWatch station and field-check simulator.

Drives a running server with a drifting station record, a device walking
toward the station, and an optional field check that streams accelerometer
samples and GPS fixes.

Usage:
    # Storm building over 2 minutes, device walking in from 600 m
    python -m tools.simulator.simulate --server http://localhost:8000 --duration 120

    # Include a field check with shaky ground
    python -m tools.simulator.simulate --field-check --shake 0.4

    # Specific station location
    python -m tools.simulator.simulate --station 22.3364,103.8438
"""

from __future__ import annotations

import argparse
import asyncio
import math
import random
import time
from dataclasses import dataclass

import httpx


@dataclass
class SimStation:
    lat: float
    lon: float
    soil_moisture: float
    slope_angle: float
    rainfall_24h: float
    ground_vibration: float
    snapshots_sent: int = 0
    errors: int = 0


@dataclass
class SimDevice:
    lat: float
    lon: float
    speed_mps: float
    fixes_sent: int = 0
    samples_sent: int = 0
    errors: int = 0


def drift_station(station: SimStation, storm: float) -> None:
    """Move the readings toward a storm of the given intensity (0..1)."""
    target_rain = 20 + 180 * storm
    station.rainfall_24h += (target_rain - station.rainfall_24h) * 0.2 + random.uniform(-2, 2)
    station.soil_moisture = min(100.0, station.soil_moisture + 0.05 * station.rainfall_24h / 10 + random.uniform(-0.3, 0.3))
    station.ground_vibration = max(0.0, 3.0 + 3.5 * storm + random.uniform(-0.4, 0.4))
    station.rainfall_24h = max(0.0, station.rainfall_24h)


def station_payload(station: SimStation) -> dict:
    """Record in the remote database shape."""
    return {
        "ten": "Simulated Slope",
        "id": "SIM-1",
        "dia_diem": "Simulator",
        "toa_do": {"x": station.lat, "y": station.lon},
        "do_am_dat": round(station.soil_moisture, 1),
        "do_doc": station.slope_angle,
        "mua_24h": round(station.rainfall_24h, 1),
        "do_rung_dat": round(station.ground_vibration, 2),
        "khoang_cach": 5000,
    }


def move_toward(device: SimDevice, station: SimStation, dt_seconds: float) -> None:
    """Walk the device toward the station, with some jitter."""
    dlat_m = (station.lat - device.lat) * 111_000
    dlon_m = (station.lon - device.lon) * 111_000 * math.cos(math.radians(device.lat))
    remaining = math.hypot(dlat_m, dlon_m)
    if remaining < 1.0:
        return
    step = min(remaining, device.speed_mps * dt_seconds)
    device.lat += (dlat_m / remaining) * step / 111_000 + random.uniform(-2e-6, 2e-6)
    device.lon += (dlon_m / remaining) * step / (111_000 * math.cos(math.radians(device.lat)))


def accel_samples(shake: float, n: int) -> list[dict]:
    """Accelerometer samples in g; shake is the peak per-axis amplitude."""
    return [
        {"x": random.uniform(-shake, shake), "y": random.uniform(-shake, shake), "z": random.uniform(-shake, shake)}
        for _ in range(n)
    ]


async def run_station(client: httpx.AsyncClient, station: SimStation, server_url: str,
                      interval: float, duration_seconds: float) -> None:
    """Push station records while a storm builds up and passes."""
    start = time.monotonic()
    end_time = start + duration_seconds
    while time.monotonic() < end_time:
        phase = (time.monotonic() - start) / duration_seconds
        drift_station(station, math.sin(math.pi * phase))
        try:
            resp = await client.put(f"{server_url}/api/v1/snapshot", json=station_payload(station))
            if resp.status_code == 200:
                station.snapshots_sent += 1
                risk = resp.json()
                print(f"  risk {risk['probability_percent']:3d}%  {risk['band']:<8}  "
                      f"distance {risk['station']['distance_label']}")
            else:
                station.errors += 1
        except httpx.RequestError:
            station.errors += 1
        await asyncio.sleep(interval)


async def run_device(client: httpx.AsyncClient, device: SimDevice, station: SimStation, server_url: str,
                     interval: float, duration_seconds: float, field_check: bool, shake: float) -> None:
    """Report device positions; optionally run a field check on the way."""
    end_time = time.monotonic() + duration_seconds

    if field_check:
        resp = await client.post(f"{server_url}/api/v1/field-check/start",
                                 json={"connected": True, "location_permission": True})
        if resp.status_code != 200:
            print(f"  field check refused: {resp.json().get('error')}")
            field_check = False

    while time.monotonic() < end_time:
        move_toward(device, station, interval)
        fix = {"lat": device.lat, "lon": device.lon}
        try:
            resp = await client.post(f"{server_url}/api/v1/device/location", json=fix)
            if resp.status_code == 200:
                device.fixes_sent += 1
            else:
                device.errors += 1
            if field_check:
                await client.post(f"{server_url}/api/v1/field-check/points", json={"points": [fix]})
                # 10 Hz accelerometer
                resp = await client.post(f"{server_url}/api/v1/field-check/samples",
                                         json={"samples": accel_samples(shake, int(interval * 10))})
                if resp.status_code == 200:
                    device.samples_sent += resp.json()["accepted"]
        except httpx.RequestError:
            device.errors += 1
        await asyncio.sleep(interval)

    if field_check:
        resp = await client.post(f"{server_url}/api/v1/field-check/stop")
        result = resp.json().get("last_result") or {}
        print(f"\nField check: trust {result.get('trust_score')}, "
              f"{result.get('points_logged', 0)} GPS points")


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    station_lat, station_lon = args.station
    station = SimStation(
        lat=station_lat,
        lon=station_lon,
        soil_moisture=65.0,
        slope_angle=args.slope,
        rainfall_24h=20.0,
        ground_vibration=3.0,
    )
    # Start the device north of the station.
    device = SimDevice(
        lat=station_lat + args.start_distance_m / 111_000,
        lon=station_lon,
        speed_mps=args.speed,
    )

    print(f"Starting simulation: station at {station_lat:.4f}, {station_lon:.4f}")
    print(f"  Device start: {args.start_distance_m:.0f} m away at {args.speed} m/s")
    print(f"  Duration: {args.duration}s")
    print(f"  Server: {args.server}")
    print(f"  Field check: {'on' if args.field_check else 'off'}")
    print()

    start = time.monotonic()

    async with httpx.AsyncClient(timeout=10.0) as client:
        await asyncio.gather(
            run_station(client, station, args.server, args.interval, args.duration),
            run_device(client, device, station, args.server, args.interval, args.duration,
                       args.field_check, args.shake),
        )

        elapsed = time.monotonic() - start
        print(f"\nSimulation complete in {elapsed:.1f}s")
        print(f"  Snapshots sent: {station.snapshots_sent}")
        print(f"  Location fixes sent: {device.fixes_sent}")
        print(f"  Errors: {station.errors + device.errors}")

        # Check server stats
        try:
            resp = await client.get(f"{args.server}/api/v1/stats")
            if resp.status_code == 200:
                stats = resp.json()
                print("\nServer stats:")
                print(f"  Assessments computed: {stats['assessments_computed']}")
                print(f"  Notifications queued: {stats['notifications']['queued']}")
                print(f"  Local notifications: {stats['notifications']['local']}")
                print(f"  Pushes sent: {stats['notifications']['pushes_sent']}")

            resp = await client.get(f"{args.server}/api/v1/notifications/outbox")
            for note in resp.json().get("notifications", []):
                print(f"  [{note['title']}] {note['body']}")
        except httpx.HTTPError as exc:
            print(f"\nCould not read server stats: {exc}")


def main():
    parser = argparse.ArgumentParser(description="SlideWatch station and device simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--duration", type=int, default=60, help="Simulation duration in seconds")
    parser.add_argument("--interval", type=float, default=2.0, help="Seconds between updates")
    parser.add_argument("--station", type=str, default="22.3364,103.8438",
                        help="Station lat,lon (default: Sa Pa)")
    parser.add_argument("--slope", type=float, default=34.0, help="Slope angle in degrees")
    parser.add_argument("--start-distance-m", type=float, default=600.0,
                        help="Initial device distance from the station")
    parser.add_argument("--speed", type=float, default=8.0, help="Device speed in m/s")
    parser.add_argument("--field-check", action="store_true", help="Run a field check while walking")
    parser.add_argument("--shake", type=float, default=0.1,
                        help="Peak accelerometer amplitude per axis in g (default: 0.1)")

    args = parser.parse_args()

    # Parse station
    lat, lon = args.station.split(",")
    args.station = (float(lat), float(lon))

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
