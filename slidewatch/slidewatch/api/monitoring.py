"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from slidewatch.main import get_monitor, get_session, get_stats

    snapshot = get_stats().snapshot()
    monitor = get_monitor()
    return {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "queue_depth": snapshot["notifications"]["queue_depth"],
        "band": monitor.assessment.band.value,
        "field_check": get_session().state.value,
    }


@router.get("/stats")
async def stats() -> dict:
    """Detailed service statistics.

    ``notifications.queued`` is keyed by kind (``proximity``, ``push``);
    ``field_checks.stopped`` is keyed by reason (``manual``, ``timeout``,
    ``cancelled``).
    """
    from slidewatch.main import get_stats

    return get_stats().snapshot()
