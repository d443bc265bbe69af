"""SlideWatch service: main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, sources, notify, and API layers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from slidewatch.api.field_check import router as field_check_router
from slidewatch.api.monitoring import router as monitoring_router
from slidewatch.api.notifications import router as notifications_router
from slidewatch.api.risk import router as risk_router
from slidewatch.config import AppConfig, load_config
from slidewatch.core.field_check import FieldCheckSession
from slidewatch.core.monitor import StationMonitor
from slidewatch.core.stats import MonitorStats
from slidewatch.core.triggers import AlertContext, TriggerPolicy, TriggerThresholds
from slidewatch.notify.asyncio_queue import AsyncioNotificationQueue
from slidewatch.notify.dispatcher import NotificationDispatcher
from slidewatch.notify.expo_push import ExpoPushTransport
from slidewatch.notify.local import LocalNotificationOutbox
from slidewatch.sources.device_feed import DeviceSensorFeed, DeviceStatus
from slidewatch.sources.firebase import FirebaseStationSource
from slidewatch.sources.openweather import OpenWeatherClient
from slidewatch.sources.static_station import StaticStationSource

log = structlog.get_logger()

# Module-level singletons (set during startup)
_stats: MonitorStats | None = None
_monitor: StationMonitor | None = None
_session: FieldCheckSession | None = None
_alerts: AlertContext | None = None
_outbox: LocalNotificationOutbox | None = None
_dispatcher: NotificationDispatcher | None = None
_accelerometer: DeviceSensorFeed | None = None
_location: DeviceSensorFeed | None = None
_device_status: DeviceStatus | None = None


def get_stats() -> MonitorStats:
    assert _stats is not None, "Service not initialized"
    return _stats


def get_monitor() -> StationMonitor:
    assert _monitor is not None, "Service not initialized"
    return _monitor


def get_session() -> FieldCheckSession:
    assert _session is not None, "Service not initialized"
    return _session


def get_alerts() -> AlertContext:
    assert _alerts is not None, "Service not initialized"
    return _alerts


def get_outbox() -> LocalNotificationOutbox:
    assert _outbox is not None, "Service not initialized"
    return _outbox


def get_dispatcher() -> NotificationDispatcher:
    assert _dispatcher is not None, "Service not initialized"
    return _dispatcher


def get_feeds() -> tuple[DeviceSensorFeed, DeviceSensorFeed]:
    """(accelerometer, location)"""
    assert _accelerometer is not None and _location is not None, "Service not initialized"
    return _accelerometer, _location


def get_device_status() -> DeviceStatus:
    assert _device_status is not None, "Service not initialized"
    return _device_status


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


def init_components(config: AppConfig) -> None:
    """Build every component from config and install the singletons."""
    global _stats, _monitor, _session, _alerts, _outbox, _dispatcher
    global _accelerometer, _location, _device_status

    _stats = MonitorStats()

    queue = AsyncioNotificationQueue(max_size=config.notify.max_size)
    _outbox = LocalNotificationOutbox(max_size=config.notify.outbox_size)
    push = ExpoPushTransport(config.push.endpoint, timeout_seconds=config.push.timeout_seconds)
    _dispatcher = NotificationDispatcher(queue=queue, push=push, local=_outbox, stats=_stats)

    _alerts = AlertContext(notifications_enabled=config.alerts.notifications_enabled)
    policy = TriggerPolicy(
        TriggerThresholds(
            proximity_threshold_m=config.alerts.proximity_threshold_m,
            proximity_hysteresis_m=config.alerts.proximity_hysteresis_m,
            push_risk_threshold=config.alerts.push_risk_threshold,
            push_rearm_margin=config.alerts.push_rearm_margin,
        ),
        _alerts,
    )

    weather = OpenWeatherClient(
        config.weather.api_key,
        base_url=config.weather.base_url,
        timeout_seconds=config.weather.timeout_seconds,
    )
    remote = FirebaseStationSource(
        config.firebase.db_url,
        project_id=config.firebase.project_id,
        auth_token=config.firebase.auth_token,
        path=config.firebase.path,
        timeout_seconds=config.firebase.timeout_seconds,
    )
    _monitor = StationMonitor(
        config.scoring.build_model(),
        policy,
        queue,
        _stats,
        station=StaticStationSource(config.station.static_path).load(),
        remote=remote,
        rainfall=weather,
        geocoder=weather,
    )

    _accelerometer = DeviceSensorFeed("accelerometer")
    _location = DeviceSensorFeed("location")
    _device_status = DeviceStatus()
    _session = FieldCheckSession(
        _accelerometer,
        _location,
        _device_status,
        duration_seconds=config.field_check.duration_seconds,
        buffer_size=config.field_check.buffer_size,
        accel_interval_ms=config.field_check.accel_interval_ms,
        location_interval_ms=config.field_check.location_interval_ms,
        location_distance_m=config.field_check.location_distance_m,
        stats=_stats,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    config = load_config()
    _setup_logging(config)

    log.info("service_starting",
             env=config.server.env,
             static_station=config.station.static_path,
             queue_max_size=config.notify.max_size)

    init_components(config)
    monitor = get_monitor()

    # Start background notification consumer
    consumer_task = asyncio.create_task(get_dispatcher().run_consumer())
    refresh_task = None
    if config.station.refresh_on_startup:
        refresh_task = asyncio.create_task(monitor.refresh())

    log.info("service_started",
             host=config.server.host,
             port=config.server.port)

    yield

    # Shutdown
    await get_session().close()
    await monitor.close()
    for task in (refresh_task, consumer_task):
        if task is None:
            continue
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    log.info("service_stopped")


app = FastAPI(
    title="SlideWatch",
    description="Landslide risk scoring and alerting service",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(risk_router)
app.include_router(field_check_router)
app.include_router(notifications_router)
app.include_router(monitoring_router)
