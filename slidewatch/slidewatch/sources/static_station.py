"""Bundled station record shipped with the service."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from slidewatch.core.models import SensorSnapshot, StationRecord
from slidewatch.sources.payload import parse_station

log = structlog.get_logger()


class StaticStationSource:
    """Reads the station record from a JSON file on disk. Falls back to an empty record."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def load(self) -> StationRecord:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            log.warning("static_station_missing", path=str(self._path))
            return StationRecord(snapshot=SensorSnapshot())
        except (json.JSONDecodeError, OSError):
            log.error("static_station_unreadable", path=str(self._path), exc_info=True)
            return StationRecord(snapshot=SensorSnapshot())
        return parse_station(raw)
