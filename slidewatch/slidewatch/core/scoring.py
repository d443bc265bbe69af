"""Risk scoring: turns a sensor snapshot into probability, band and forecast.

The pipeline is a chain of pure functions:

    normalize -> aggregate -> to_probability -> classify / project / select_dominant

``RiskModel.assess()`` runs the whole chain against one snapshot, so a result
is always computed from a single, complete set of readings.

The probability affine (BASELINE, GAIN) and the forecast pressure
coefficients are empirical calibration parameters, not physical constants.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from slidewatch.core.messages import MITIGATION_STEPS
from slidewatch.core.models import (
    CANONICAL_FACTORS,
    FactorKey,
    FactorReading,
    Forecast,
    RiskAssessment,
    RiskBand,
    SensorSnapshot,
)

# Importance weights; must sum to 1.0 to keep the weighted score in [0, 1].
WEIGHTS: dict[FactorKey, float] = {
    FactorKey.SOIL_MOISTURE: 0.32,
    FactorKey.SLOPE_ANGLE: 0.31,
    FactorKey.RAINFALL_24H: 0.22,
    FactorKey.GROUND_VIBRATION: 0.15,
}

# (start_risk, danger_threshold) per factor.
FACTOR_RANGES: dict[FactorKey, tuple[float, float]] = {
    FactorKey.SOIL_MOISTURE: (60.0, 100.0),     # soil approaching saturation
    FactorKey.SLOPE_ANGLE: (25.0, 45.0),        # unstable slope range
    FactorKey.RAINFALL_24H: (80.0, 200.0),      # moderate to heavy 24h rain
    FactorKey.GROUND_VIBRATION: (4.0, 6.5),     # seismic intensity band
}

BASELINE = 0.18
GAIN = 0.92

# Lower bound of each band, highest first. Ties go to the higher band.
BAND_THRESHOLDS: tuple[tuple[float, RiskBand], ...] = (
    (0.80, RiskBand.DANGER),
    (0.65, RiskBand.HIGH),
    (0.45, RiskBand.ELEVATED),
    (0.28, RiskBand.CAUTION),
)

FORECAST_HOURS: tuple[float, ...] = (1, 3, 6)

# Ground vibration is instantaneous, so it never drives the forecast.
FORECAST_PRESSURE: dict[FactorKey, float] = {
    FactorKey.RAINFALL_24H: 0.18,
    FactorKey.SLOPE_ANGLE: 0.12,
    FactorKey.SOIL_MOISTURE: 0.10,
}
FORECAST_SPAN_HOURS = 6.0

# (gauge_min, gauge_max, format) for the dashboard.
FACTOR_DISPLAY: dict[FactorKey, tuple[float, float, str]] = {
    FactorKey.SOIL_MOISTURE: (30.0, 95.0, "{:.1f}%"),
    FactorKey.SLOPE_ANGLE: (10.0, 55.0, "{:.1f}°"),
    FactorKey.RAINFALL_24H: (20.0, 200.0, "{:.0f} mm"),
    FactorKey.GROUND_VIBRATION: (0.05, 1.4, "{:.2f} cm/s²"),
}

_WEIGHT_TOLERANCE = 1e-6


def clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (banker's rounding would drift)."""
    return math.floor(value + 0.5)


def as_number(value: object, fallback: float = 0.0) -> float:
    """Return ``value`` as a float if it is a real number, else ``fallback``.

    Booleans, strings, None and NaN are not numbers here.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if math.isnan(value):
        return fallback
    return float(value)


def finite_number(value: object, fallback: float = 0.0) -> float:
    """Like as_number, but infinities (e.g. JSON ``1e400``) also take the fallback."""
    number = as_number(value, fallback)
    return number if math.isfinite(number) else fallback


# --- Metric normalizer -------------------------------------------------------

def normalize(raw_value: float, start_risk: float, danger_threshold: float) -> float:
    """Map a raw reading onto [0, 1] along a linear ramp. Out-of-range clamps."""
    raw = as_number(raw_value)
    return clamp((raw - start_risk) / (danger_threshold - start_risk), 0.0, 1.0)


def risk_levels(
    snapshot: SensorSnapshot,
    ranges: Mapping[FactorKey, tuple[float, float]] = FACTOR_RANGES,
) -> dict[FactorKey, float]:
    return {
        key: normalize(snapshot.value(key), *ranges[key])
        for key in CANONICAL_FACTORS
    }


# --- Weighted aggregator -----------------------------------------------------

def aggregate(levels: Mapping[FactorKey, float], weights: Mapping[FactorKey, float] = WEIGHTS) -> float:
    return sum(levels[key] * weights[key] for key in CANONICAL_FACTORS)


def to_probability(weighted_score: float, baseline: float = BASELINE, gain: float = GAIN) -> float:
    return clamp(baseline + weighted_score * gain, 0.0, 1.0)


# --- Band classifier ---------------------------------------------------------

def classify(probability: float) -> RiskBand:
    for threshold, band in BAND_THRESHOLDS:
        if probability >= threshold:
            return band
    return RiskBand.STABLE


# --- Forecast projector ------------------------------------------------------

def forecast_pressure(
    levels: Mapping[FactorKey, float],
    coefficients: Mapping[FactorKey, float] = FORECAST_PRESSURE,
) -> float:
    return sum(levels.get(key, 0.0) * coeff for key, coeff in coefficients.items())


def project(
    current_probability: float,
    levels: Mapping[FactorKey, float],
    horizons_hours: Iterable[float] = FORECAST_HOURS,
    pressure_coefficients: Mapping[FactorKey, float] = FORECAST_PRESSURE,
) -> list[Forecast]:
    """Linear extrapolation of the probability, one entry per horizon, in order."""
    pressure = forecast_pressure(levels, pressure_coefficients)
    forecasts = []
    for hours in horizons_hours:
        projected = clamp(current_probability + (hours / FORECAST_SPAN_HOURS) * pressure, 0.0, 1.0)
        forecasts.append(Forecast(hours_ahead=hours, projected_probability=projected, band=classify(projected)))
    return forecasts


# --- Dominant factor selector ------------------------------------------------

def select_dominant(
    levels: Mapping[FactorKey, float],
    weights: Mapping[FactorKey, float] = WEIGHTS,
) -> FactorKey:
    """Factor with the largest level * weight; the earliest canonical factor wins ties."""
    top = CANONICAL_FACTORS[0]
    top_score = levels[top] * weights[top]
    for key in CANONICAL_FACTORS[1:]:
        score = levels[key] * weights[key]
        if score > top_score:
            top, top_score = key, score
    return top


# --- Dashboard extras --------------------------------------------------------

def sensor_confidence(levels: Mapping[FactorKey, float]) -> int:
    """Heuristic 40-100 confidence in the station's own readings."""
    raw = (
        60
        + 15 * (1 - levels[FactorKey.GROUND_VIBRATION])
        + 10 * (1 - levels[FactorKey.RAINFALL_24H] * 0.6)
        + 15 * (1 - levels[FactorKey.SOIL_MOISTURE] * 0.4)
    )
    return round_half_up(clamp(raw, 40, 100))


def mitigation_tier(probability: float) -> str:
    if probability >= 0.75:
        return "extreme"
    if probability >= 0.55:
        return "high"
    if probability >= 0.35:
        return "medium"
    return "low"


def format_reading(key: FactorKey, value: float) -> str:
    return FACTOR_DISPLAY[key][2].format(value)


# --- Validation --------------------------------------------------------------

def validate_weights(weights: Mapping[FactorKey, float]) -> None:
    missing = [k.value for k in CANONICAL_FACTORS if k not in weights]
    if missing:
        raise ValueError(f"missing weights for {', '.join(missing)}")
    if any(weights[k] < 0 for k in CANONICAL_FACTORS):
        raise ValueError("weights must be non-negative")
    total = sum(weights[k] for k in CANONICAL_FACTORS)
    if abs(total - 1.0) > _WEIGHT_TOLERANCE:
        raise ValueError(f"weights must sum to 1.0, got {total:.6f}")


def validate_ranges(ranges: Mapping[FactorKey, tuple[float, float]]) -> None:
    for key in CANONICAL_FACTORS:
        if key not in ranges:
            raise ValueError(f"missing range for {key.value}")
        start, danger = ranges[key]
        if start == danger:
            raise ValueError(f"range for {key.value} has danger_threshold == start_risk ({start})")


@dataclass(frozen=True)
class RiskModel:
    """Calibrated scoring pipeline. Defaults reproduce the shipped calibration."""

    weights: dict[FactorKey, float] = field(default_factory=lambda: dict(WEIGHTS))
    ranges: dict[FactorKey, tuple[float, float]] = field(default_factory=lambda: dict(FACTOR_RANGES))
    forecast_hours: tuple[float, ...] = FORECAST_HOURS
    baseline: float = BASELINE
    gain: float = GAIN
    pressure_coefficients: dict[FactorKey, float] = field(default_factory=lambda: dict(FORECAST_PRESSURE))

    def __post_init__(self) -> None:
        validate_weights(self.weights)
        validate_ranges(self.ranges)

    def assess(self, snapshot: SensorSnapshot) -> RiskAssessment:
        levels = risk_levels(snapshot, self.ranges)
        score = aggregate(levels, self.weights)
        probability = to_probability(score, self.baseline, self.gain)
        tier = mitigation_tier(probability)

        factors = tuple(
            FactorReading(
                key=key,
                raw_value=snapshot.value(key),
                normalized_level=levels[key],
                weight=self.weights[key],
                display_value=format_reading(key, snapshot.value(key)),
                gauge_min=FACTOR_DISPLAY[key][0],
                gauge_max=FACTOR_DISPLAY[key][1],
            )
            for key in CANONICAL_FACTORS
        )

        return RiskAssessment(
            snapshot=snapshot,
            levels=levels,
            weighted_score=score,
            probability=probability,
            band=classify(probability),
            forecasts=tuple(project(probability, levels, self.forecast_hours, self.pressure_coefficients)),
            factors=factors,
            dominant_factor=select_dominant(levels, self.weights),
            sensor_confidence=sensor_confidence(levels),
            mitigation_tier=tier,
            probability_percent=round_half_up(probability * 100),
            mitigation_steps=MITIGATION_STEPS[tier],
        )
