"""Service configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: SLIDEWATCH_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from slidewatch.core import scoring
from slidewatch.core.models import FactorKey


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class ScoringConfig:
    # Keyed by factor name ("soilMoisture", ...). Empty means the calibrated defaults.
    weights: dict[str, float] = field(default_factory=dict)
    ranges: dict[str, list[float]] = field(default_factory=dict)
    forecast_hours: list[float] = field(default_factory=lambda: list(scoring.FORECAST_HOURS))
    # Per-factor forecast pressure. Empty means the calibrated defaults; factors not listed add nothing.
    forecast_pressure: dict[str, float] = field(default_factory=dict)
    baseline: float = scoring.BASELINE
    gain: float = scoring.GAIN

    def factor_weights(self) -> dict[FactorKey, float]:
        weights = dict(scoring.WEIGHTS)
        for name, value in self.weights.items():
            weights[_factor(name)] = float(value)
        return weights

    def factor_ranges(self) -> dict[FactorKey, tuple[float, float]]:
        ranges = dict(scoring.FACTOR_RANGES)
        for name, pair in self.ranges.items():
            if len(pair) != 2:
                raise ValueError(f"range for {name} must be [start_risk, danger_threshold]")
            ranges[_factor(name)] = (float(pair[0]), float(pair[1]))
        return ranges

    def pressure_coefficients(self) -> dict[FactorKey, float]:
        if not self.forecast_pressure:
            return dict(scoring.FORECAST_PRESSURE)
        return {_factor(name): float(value) for name, value in self.forecast_pressure.items()}

    def build_model(self) -> scoring.RiskModel:
        return scoring.RiskModel(
            weights=self.factor_weights(),
            ranges=self.factor_ranges(),
            forecast_hours=tuple(float(h) for h in self.forecast_hours),
            pressure_coefficients=self.pressure_coefficients(),
            baseline=float(self.baseline),
            gain=float(self.gain),
        )


@dataclass
class AlertsConfig:
    proximity_threshold_m: float = 100.0
    proximity_hysteresis_m: float = 20.0
    push_risk_threshold: float = 0.70
    push_rearm_margin: float = 0.10
    notifications_enabled: bool = True


@dataclass
class FieldCheckConfig:
    duration_seconds: float = 300.0
    buffer_size: int = 300
    accel_interval_ms: int = 100
    location_interval_ms: int = 2000
    location_distance_m: float = 2.0


@dataclass
class StationConfig:
    static_path: str = "data/station.json"
    refresh_on_startup: bool = True


@dataclass
class FirebaseConfig:
    db_url: str = ""
    auth_token: str = ""
    project_id: str = ""
    path: str = "global"
    timeout_seconds: float = 10.0


@dataclass
class WeatherConfig:
    api_key: str = ""
    base_url: str = "https://api.openweathermap.org"
    timeout_seconds: float = 10.0


@dataclass
class PushConfig:
    endpoint: str = "https://exp.host/--/api/v2/push/send"
    timeout_seconds: float = 10.0


@dataclass
class NotifyConfig:
    max_size: int = 1_000
    outbox_size: int = 50


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    field_check: FieldCheckConfig = field(default_factory=FieldCheckConfig)
    station: StationConfig = field(default_factory=StationConfig)
    firebase: FirebaseConfig = field(default_factory=FirebaseConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    push: PushConfig = field(default_factory=PushConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = ("server", "scoring", "alerts", "field_check", "station",
             "firebase", "weather", "push", "notify", "logging")


def _factor(name: str) -> FactorKey:
    try:
        return FactorKey(name)
    except ValueError:
        raise ValueError(f"unknown factor {name!r}") from None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "SLIDEWATCH_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "SLIDEWATCH_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "SLIDEWATCH_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "SLIDEWATCH_SCORING_BASELINE": lambda v: setattr(config.scoring, "baseline", float(v)),
        "SLIDEWATCH_SCORING_GAIN": lambda v: setattr(config.scoring, "gain", float(v)),
        "SLIDEWATCH_ALERTS_PROXIMITY_THRESHOLD_M":
            lambda v: setattr(config.alerts, "proximity_threshold_m", float(v)),
        "SLIDEWATCH_ALERTS_PUSH_RISK_THRESHOLD":
            lambda v: setattr(config.alerts, "push_risk_threshold", float(v)),
        "SLIDEWATCH_ALERTS_NOTIFICATIONS_ENABLED":
            lambda v: setattr(config.alerts, "notifications_enabled", _parse_bool(v)),
        "SLIDEWATCH_FIELD_CHECK_DURATION_SECONDS":
            lambda v: setattr(config.field_check, "duration_seconds", float(v)),
        "SLIDEWATCH_STATION_STATIC_PATH": lambda v: setattr(config.station, "static_path", v),
        "SLIDEWATCH_STATION_REFRESH_ON_STARTUP":
            lambda v: setattr(config.station, "refresh_on_startup", _parse_bool(v)),
        "SLIDEWATCH_FIREBASE_DB_URL": lambda v: setattr(config.firebase, "db_url", v),
        "SLIDEWATCH_FIREBASE_AUTH_TOKEN": lambda v: setattr(config.firebase, "auth_token", v),
        "SLIDEWATCH_FIREBASE_PROJECT_ID": lambda v: setattr(config.firebase, "project_id", v),
        "SLIDEWATCH_FIREBASE_PATH": lambda v: setattr(config.firebase, "path", v),
        "SLIDEWATCH_WEATHER_API_KEY": lambda v: setattr(config.weather, "api_key", v),
        "SLIDEWATCH_WEATHER_BASE_URL": lambda v: setattr(config.weather, "base_url", v),
        "SLIDEWATCH_PUSH_ENDPOINT": lambda v: setattr(config.push, "endpoint", v),
        "SLIDEWATCH_NOTIFY_MAX_SIZE": lambda v: setattr(config.notify, "max_size", int(v)),
        "SLIDEWATCH_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "SLIDEWATCH_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def validate_config(config: AppConfig) -> None:
    """Raise ValueError if the scoring calibration is unusable."""
    scoring.validate_weights(config.scoring.factor_weights())
    scoring.validate_ranges(config.scoring.factor_ranges())
    config.scoring.pressure_coefficients()


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section_name in _SECTIONS:
            section = getattr(config, section_name)
            for k, v in (raw.get(section_name) or {}).items():
                if hasattr(section, k):
                    setattr(section, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    validate_config(config)
    return config
