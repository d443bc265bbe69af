"""Field-check session: on-site accelerometer and GPS sampling.

State machine::

    IDLE -> ARMED -> RECORDING -> STOPPED
      ^       |                      |
      +-------+  (precondition fails)|
      ^                              |
      +---------- (start again) -----+

Sensor subscriptions and the session timer are acquired only after both
preconditions pass, and are released together on every exit path: manual
stop, timer expiry, or teardown of the owning context.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TYPE_CHECKING

import structlog

from slidewatch.core import messages
from slidewatch.core.ground_truth import DEFAULT_BUFFER_SIZE, GroundSampleBuffer, TrackLog
from slidewatch.core.models import GeoPoint, GroundSample

if TYPE_CHECKING:
    from slidewatch.core.stats import MonitorStats
    from slidewatch.sources.base import FieldPreconditions, SensorFeed

log = structlog.get_logger()

DEFAULT_DURATION_SECONDS = 5 * 60


class SessionState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    RECORDING = "recording"
    STOPPED = "stopped"


@dataclass(frozen=True)
class StartResult:
    ok: bool
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class FieldCheckResult:
    """Summary handed back when a recording ends."""
    reason: str              # "manual", "timeout" or "cancelled"
    trust_score: int | None
    samples_buffered: int
    points_logged: int
    duration_seconds: float


class FieldCheckSession:
    """One device's field check. Single event loop, no locking."""

    def __init__(
        self,
        accelerometer: SensorFeed,
        location: SensorFeed,
        preconditions: FieldPreconditions,
        *,
        duration_seconds: float = DEFAULT_DURATION_SECONDS,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        accel_interval_ms: int = 100,
        location_interval_ms: int = 2000,
        location_distance_m: float = 2.0,
        stats: MonitorStats | None = None,
    ) -> None:
        self._accelerometer = accelerometer
        self._location = location
        self._preconditions = preconditions
        self._duration = duration_seconds
        self._accel_interval_ms = accel_interval_ms
        self._location_interval_ms = location_interval_ms
        self._location_distance_m = location_distance_m
        self._stats = stats

        self._state = SessionState.IDLE
        self._samples = GroundSampleBuffer(buffer_size)
        self._track = TrackLog()
        self._resources: AsyncExitStack | None = None
        self._attempt = 0
        self._started_at: float | None = None
        self.last_result: FieldCheckResult | None = None

    # -- Observers -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in (SessionState.ARMED, SessionState.RECORDING)

    @property
    def trust_score(self) -> int | None:
        return self._samples.trust_score()

    @property
    def status(self) -> str:
        if self._state is SessionState.RECORDING:
            return messages.recording_status(self._duration)
        return messages.STATUS_READY

    def remaining_seconds(self) -> float | None:
        if self._state is not SessionState.RECORDING or self._started_at is None:
            return None
        return max(0.0, self._duration - (time.monotonic() - self._started_at))

    def snapshot(self) -> dict:
        recording = self._state is SessionState.RECORDING
        last = self.last_result
        return {
            "state": self._state.value,
            "status": self.status,
            "trust_score": self.trust_score,
            "points_logged": len(self._track),
            "points_label": messages.points_label(len(self._track), recording),
            "samples_buffered": len(self._samples),
            "remaining_seconds": self.remaining_seconds(),
            "last_result": None if last is None else {
                "reason": last.reason,
                "trust_score": last.trust_score,
                "samples_buffered": last.samples_buffered,
                "points_logged": last.points_logged,
                "duration_seconds": round(last.duration_seconds, 1),
            },
        }

    # -- Transitions ---------------------------------------------------------

    async def start(self) -> StartResult:
        """IDLE/STOPPED -> ARMED -> RECORDING, or back to IDLE with a reason.

        Each call is one attempt; a stop() while it is pending invalidates it,
        and the attempt releases whatever it acquired and reports "cancelled".
        """
        if self.is_active:
            return StartResult(False, "already_active", "A field check is already running.")

        self._attempt += 1
        attempt = self._attempt
        self._samples.clear()
        self._track.clear()
        self._state = SessionState.ARMED

        connected = await self._check("connectivity", self._preconditions.has_connectivity)
        if attempt != self._attempt:
            return StartResult(False, "cancelled")
        if not connected:
            return self._refuse("no_connectivity", messages.NO_CONNECTIVITY)

        permitted = await self._check("location_permission", self._preconditions.has_location_permission)
        if attempt != self._attempt:
            return StartResult(False, "cancelled")
        if not permitted:
            return self._refuse("location_permission_denied", messages.LOCATION_PERMISSION_MISSING)

        resources = AsyncExitStack()
        try:
            await self._acquire(resources, attempt)
        except BaseException:
            await resources.aclose()
            if attempt == self._attempt:
                self._state = SessionState.IDLE
            raise

        if attempt != self._attempt:
            await resources.aclose()
            log.info("field_check_start_cancelled")
            return StartResult(False, "cancelled")

        self._resources = resources
        self._started_at = time.monotonic()
        self._state = SessionState.RECORDING
        if self._stats is not None:
            self._stats.record_field_check_started()
        log.info("field_check_started", duration_seconds=self._duration)
        return StartResult(True)

    async def stop(self, reason: str = "manual") -> FieldCheckResult | None:
        """End the session. Safe to call in any state."""
        if self._state is SessionState.ARMED:
            # A start() is still in flight; it will see the new attempt number and bail out.
            self._attempt += 1
            self._state = SessionState.IDLE
            return None
        if self._state is not SessionState.RECORDING:
            return None

        elapsed = time.monotonic() - self._started_at if self._started_at is not None else 0.0
        result = FieldCheckResult(
            reason=reason,
            trust_score=self.trust_score,
            samples_buffered=len(self._samples),
            points_logged=len(self._track),
            duration_seconds=elapsed,
        )

        self._state = SessionState.STOPPED
        resources, self._resources = self._resources, None
        if resources is not None:
            await resources.aclose()

        self._samples.clear()
        self._track.clear()
        self._started_at = None
        self.last_result = result
        if self._stats is not None:
            self._stats.record_field_check_stopped(reason)
        log.info("field_check_stopped", reason=reason, trust_score=result.trust_score,
                 samples=result.samples_buffered, points=result.points_logged)
        return result

    async def close(self) -> None:
        """Tear down whatever is active; used when the owner goes away."""
        await self.stop(reason="cancelled")

    async def __aenter__(self) -> FieldCheckSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -- Sensor callbacks ----------------------------------------------------

    def record_sample(self, sample: GroundSample) -> None:
        if self._state is SessionState.RECORDING:
            self._samples.append(sample)

    def record_point(self, point: GeoPoint) -> None:
        if self._state is SessionState.RECORDING:
            self._track.append(point)

    # -- Internals -----------------------------------------------------------

    def _refuse(self, reason: str, message: str) -> StartResult:
        self._state = SessionState.IDLE
        if self._stats is not None:
            self._stats.record_field_check_refused()
        log.info("field_check_refused", reason=reason)
        return StartResult(False, reason, message)

    async def _check(self, name: str, probe: Callable[[], Awaitable[bool]]) -> bool:
        try:
            return bool(await probe())
        except Exception:
            log.warning("precondition_check_failed", check=name, exc_info=True)
            return False

    async def _acquire(self, resources: AsyncExitStack, attempt: int) -> None:
        await self._subscribe(
            resources, "accelerometer", self._accelerometer, self.record_sample,
            interval_ms=self._accel_interval_ms,
        )
        await self._subscribe(
            resources, "location", self._location, self.record_point,
            interval_ms=self._location_interval_ms, distance_m=self._location_distance_m,
        )
        timer = asyncio.create_task(self._expire(attempt))
        timer.add_done_callback(_log_timer_failure)
        resources.callback(_cancel_timer, timer)

    async def _subscribe(
        self,
        resources: AsyncExitStack,
        name: str,
        feed: SensorFeed,
        callback: Callable[[Any], None],
        **options: Any,
    ) -> None:
        """Subscribe to one feed; a failure degrades the session instead of aborting it."""
        try:
            subscription = await feed.subscribe(callback, **options)
        except Exception:
            log.warning("sensor_subscription_failed", sensor=name, exc_info=True)
            return
        resources.callback(subscription.remove)

    async def _expire(self, attempt: int) -> None:
        await asyncio.sleep(self._duration)
        if attempt == self._attempt:
            await self.stop(reason="timeout")


def _cancel_timer(timer: asyncio.Task) -> None:
    # The timer itself runs stop() on expiry; it must not cancel itself.
    if timer is not asyncio.current_task() and not timer.done():
        timer.cancel()


def _log_timer_failure(timer: asyncio.Task) -> None:
    if timer.cancelled():
        return
    exc = timer.exception()
    if exc is not None:
        log.error("field_check_timer_failed", exc_info=exc)
