"""Station monitor: owns the current station record and its assessment.

Every change (new record, new device position, finished refresh) goes
through ``_apply()``: the snapshot is replaced as a whole, the risk pipeline
runs once against it, and the trigger policy sees the fresh result. Only
then are the resulting notification requests put on the dispatch queue.

A refresh pulls the remote record, geocodes the station if it has no
coordinates, and fetches live rainfall. Starting a refresh cancels the one
in flight, and a generation counter makes sure a result that was overtaken
by newer state is dropped instead of applied.
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import TYPE_CHECKING

import structlog

from slidewatch.core import messages
from slidewatch.core.geo import MAX_DISTANCE_M, haversine_m
from slidewatch.core.models import GeoPoint, NotificationRequest, RiskAssessment, SensorSnapshot, StationRecord
from slidewatch.core.scoring import clamp

if TYPE_CHECKING:
    from slidewatch.core.scoring import RiskModel
    from slidewatch.core.stats import MonitorStats
    from slidewatch.core.triggers import TriggerPolicy
    from slidewatch.notify.base import NotificationQueue
    from slidewatch.sources.base import Geocoder, RainfallSource, StationSource

log = structlog.get_logger()


class StationMonitor:

    def __init__(
        self,
        model: RiskModel,
        policy: TriggerPolicy,
        queue: NotificationQueue,
        stats: MonitorStats,
        *,
        station: StationRecord | None = None,
        remote: StationSource | None = None,
        rainfall: RainfallSource | None = None,
        geocoder: Geocoder | None = None,
    ) -> None:
        self._model = model
        self._policy = policy
        self._queue = queue
        self._stats = stats
        self._remote = remote
        self._rainfall = rainfall
        self._geocoder = geocoder

        self._record = station or StationRecord(snapshot=SensorSnapshot())
        self._device_position: GeoPoint | None = None
        self._rainfall_override: float | None = None
        self._generation = 0
        self._refresh_task: asyncio.Task | None = None
        self._assessment = self._model.assess(self.snapshot)

    # -- Observers -----------------------------------------------------------

    @property
    def record(self) -> StationRecord:
        return self._record

    @property
    def snapshot(self) -> SensorSnapshot:
        """Readings actually scored: the record's, with live rainfall if fetched."""
        snapshot = self._record.snapshot
        if self._rainfall_override is not None:
            snapshot = dataclasses.replace(snapshot, rainfall_24h=self._rainfall_override)
        return snapshot

    @property
    def assessment(self) -> RiskAssessment:
        return self._assessment

    @property
    def device_position(self) -> GeoPoint | None:
        return self._device_position

    @property
    def rainfall_override(self) -> float | None:
        return self._rainfall_override

    @property
    def site_name(self) -> str:
        return self._record.name or messages.STATION_NAME_FALLBACK

    def distance_m(self) -> float:
        """Device-to-station distance; the record's own figure when either position is unknown."""
        station = self._record.coordinates
        if self._device_position is not None and station is not None:
            return clamp(haversine_m(self._device_position, station), 0.0, MAX_DISTANCE_M)
        return self._record.distance_m

    # -- Updates -------------------------------------------------------------

    async def replace_station(self, record: StationRecord) -> RiskAssessment:
        """Swap in a whole new record. Supersedes any refresh in flight."""
        self._generation += 1
        self._stats.record_snapshot()
        return await self._apply(record)

    async def update_device_position(self, point: GeoPoint) -> RiskAssessment:
        self._device_position = point
        return await self._apply(self._record)

    async def _apply(self, record: StationRecord, rainfall_override: float | None = None) -> RiskAssessment:
        self._record = record
        if rainfall_override is not None:
            self._rainfall_override = rainfall_override

        assessment = self._model.assess(self.snapshot)
        self._assessment = assessment
        self._stats.record_assessment()

        distance = self.distance_m()
        requests = self._policy.evaluate(
            distance_m=distance,
            probability=assessment.probability,
            probability_percent=assessment.probability_percent,
            site_name=self.site_name,
        )
        log.debug("assessment_updated", probability=round(assessment.probability, 4),
                  band=assessment.band.value, distance_m=round(distance, 1))

        for request in requests:
            await self._enqueue(request)
        return assessment

    async def _enqueue(self, request: NotificationRequest) -> None:
        try:
            await self._queue.put(request)
        except Exception:
            log.error("notification_enqueue_failed", kind=request.kind, exc_info=True)
            self._stats.record_dispatch_failure()
            return
        self._stats.record_notification_queued(request.kind)
        self._stats.update_queue_depth(self._queue.qsize())

    # -- Remote refresh ------------------------------------------------------

    async def refresh(self) -> bool:
        """Refresh from remote sources. Returns False if the result was not applied."""
        previous = self._refresh_task
        if previous is not None and not previous.done():
            previous.cancel()

        self._generation += 1
        task = asyncio.create_task(self._refresh_once(self._generation))
        self._refresh_task = task
        try:
            await asyncio.wait([task])
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            log.info("refresh_superseded")
            return False
        return task.result()

    async def _refresh_once(self, generation: int) -> bool:
        try:
            record, rainfall = await self._collect(self._record)
        except Exception:
            log.error("refresh_failed", exc_info=True)
            self._stats.record_refresh(ok=False)
            return False

        if generation != self._generation:
            log.info("refresh_result_stale", generation=generation, current=self._generation)
            return False

        await self._apply(record, rainfall_override=rainfall)
        self._stats.record_refresh(ok=True)
        log.info("refresh_applied", station=record.station_id or record.name,
                 live_rainfall=rainfall is not None)
        return True

    async def _collect(self, record: StationRecord) -> tuple[StationRecord, float | None]:
        """Gather the new record and live rainfall without touching monitor state."""
        if self._remote is not None:
            remote = await self._remote.fetch_station()
            if remote is not None:
                record = remote

        if record.coordinates is None and self._geocoder is not None:
            query = record.place or record.name
            if query:
                point = await self._geocoder.geocode(query)
                if point is not None:
                    record = dataclasses.replace(record, coordinates=point)

        rainfall = None
        if record.coordinates is not None and self._rainfall is not None:
            rainfall = await self._rainfall.fetch_rainfall_24h(record.coordinates)
        elif self._rainfall is not None:
            log.warning("rainfall_skipped_no_coordinates")
        return record, rainfall

    async def close(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
