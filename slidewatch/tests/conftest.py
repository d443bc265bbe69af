"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json

import pytest
from httpx import ASGITransport, AsyncClient

import slidewatch.main as main_module
from slidewatch.config import AppConfig

# The worked example station: levels 0.5 / 0.5 / 0.583 / 0.4.
EXAMPLE_STATION = {
    "ten": "Test Slope",
    "id": "ST-T1",
    "dia_diem": "Test Valley",
    "do_am_dat": 80,
    "do_doc": 35,
    "mua_24h": 150,
    "do_rung_dat": 5,
    "khoang_cach": 850,
}


@pytest.fixture(autouse=True)
def _init_service(tmp_path):
    """Initialize service singletons for every test, using a temp station file."""
    station_path = tmp_path / "station.json"
    station_path.write_text(json.dumps(EXAMPLE_STATION))

    config = AppConfig()
    config.station.static_path = str(station_path)
    config.station.refresh_on_startup = False
    config.logging.level = "warning"

    main_module.init_components(config)

    yield

    # Cleanup
    main_module._stats = None
    main_module._monitor = None
    main_module._session = None
    main_module._alerts = None
    main_module._outbox = None
    main_module._dispatcher = None
    main_module._accelerometer = None
    main_module._location = None
    main_module._device_status = None


@pytest.fixture
async def client():
    from slidewatch.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await main_module.get_session().close()


@pytest.fixture
async def consumer():
    """Run the notification dispatcher in the background for the test."""
    task = asyncio.create_task(main_module.get_dispatcher().run_consumer())
    yield task
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass

