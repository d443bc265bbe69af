"""SlideWatch: core internal data models.

These are plain dataclasses with no framework dependencies.
JSON payloads are converted to/from these at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class FactorKey(str, Enum):
    """Sensor factors, in canonical order (ties resolve to the earliest)."""

    SOIL_MOISTURE = "soilMoisture"
    SLOPE_ANGLE = "slopeAngle"
    RAINFALL_24H = "rainfall24h"
    GROUND_VIBRATION = "groundVibration"


# Iteration order used everywhere a factor loop affects the result.
CANONICAL_FACTORS: tuple[FactorKey, ...] = (
    FactorKey.SOIL_MOISTURE,
    FactorKey.SLOPE_ANGLE,
    FactorKey.RAINFALL_24H,
    FactorKey.GROUND_VIBRATION,
)


class RiskBand(str, Enum):
    STABLE = "stable"
    CAUTION = "caution"
    ELEVATED = "elevated"
    HIGH = "high"
    DANGER = "danger"

    @property
    def rank(self) -> int:
        return _BAND_ORDER.index(self)

    # Compare by severity, not by the str value.
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskBand):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskBand):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskBand):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskBand):
            return NotImplemented
        return self.rank >= other.rank


_BAND_ORDER = [RiskBand.STABLE, RiskBand.CAUTION, RiskBand.ELEVATED, RiskBand.HIGH, RiskBand.DANGER]


@dataclass(frozen=True)
class SensorSnapshot:
    soil_moisture: float = 0.0      # %
    slope_angle: float = 0.0        # degrees
    rainfall_24h: float = 0.0       # mm
    ground_vibration: float = 0.0   # cm/s²

    def value(self, key: FactorKey) -> float:
        return {
            FactorKey.SOIL_MOISTURE: self.soil_moisture,
            FactorKey.SLOPE_ANGLE: self.slope_angle,
            FactorKey.RAINFALL_24H: self.rainfall_24h,
            FactorKey.GROUND_VIBRATION: self.ground_vibration,
        }[key]


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


@dataclass(frozen=True)
class StationRecord:
    """A monitoring station as delivered by static config or the remote record."""
    snapshot: SensorSnapshot
    name: str = ""
    station_id: str = ""
    place: str = ""
    coordinates: GeoPoint | None = None
    distance_m: float = 0.0


@dataclass(frozen=True)
class GroundSample:
    ax: float
    ay: float
    az: float

    @property
    def magnitude(self) -> float:
        """Combined-axis magnitude, |ax| + |ay| + |az|."""
        return abs(self.ax) + abs(self.ay) + abs(self.az)


@dataclass(frozen=True)
class NotificationRequest:
    """Fire-and-forget dispatch request. No token means local-only."""
    kind: str                 # "proximity" or "push"
    title: str
    body: str
    token: str | None = None


@dataclass(frozen=True)
class Forecast:
    hours_ahead: float
    projected_probability: float
    band: RiskBand


@dataclass(frozen=True)
class FactorReading:
    key: FactorKey
    raw_value: float
    normalized_level: float
    weight: float
    display_value: str
    gauge_min: float
    gauge_max: float

    @property
    def contribution(self) -> float:
        return self.normalized_level * self.weight


@dataclass(frozen=True)
class RiskAssessment:
    snapshot: SensorSnapshot
    levels: dict[FactorKey, float]
    weighted_score: float
    probability: float
    band: RiskBand
    forecasts: tuple[Forecast, ...]
    factors: tuple[FactorReading, ...]
    dominant_factor: FactorKey
    sensor_confidence: int
    mitigation_tier: str
    probability_percent: int = 0
    mitigation_steps: tuple[str, ...] = field(default_factory=tuple)
