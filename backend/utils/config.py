"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    host: str
    port: int

    sensor_api_url: str
    sensor_api_timeout_seconds: float
    sensor_polling_interval_seconds: float
    sensor_polling_enabled: bool

    queue_history_retention_hours: int
    sensor_retention_hours: int
    queue_update_debounce_seconds: float
    queue_default_total_patients: int
    queue_min_patients: int
    queue_max_patients: int
    queue_total_rooms: int

    baseline_staff: int
    capacity_max_patients: int
    forecast_min_points: int
    prediction_min_history_points: int
    forecast_max_hours: int
    basic_forecast_max_hours: int
    history_max_hours: int
    capacity_max_days: int

    synthetic_history_hours: int
    synthetic_random_seed: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants via ``replace``."""
    return Settings(
        app_name=_env_str("APP_NAME", "ER Queue Forecasting API"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        host=_env_str("HOST", "127.0.0.1"),
        port=_env_int("PORT", 8000),
        sensor_api_url=_env_str("SENSOR_API_URL", "http://127.0.0.1:8001"),
        sensor_api_timeout_seconds=_env_float("SENSOR_API_TIMEOUT_SECONDS", 5.0),
        sensor_polling_interval_seconds=_env_float("SENSOR_POLLING_INTERVAL_SECONDS", 30.0),
        sensor_polling_enabled=_env_bool("SENSOR_POLLING_ENABLED", True),
        queue_history_retention_hours=_env_int("QUEUE_HISTORY_RETENTION_HOURS", 168),
        sensor_retention_hours=_env_int("SENSOR_RETENTION_HOURS", 24),
        queue_update_debounce_seconds=_env_float("QUEUE_UPDATE_DEBOUNCE_SECONDS", 2.0),
        queue_default_total_patients=_env_int("QUEUE_DEFAULT_TOTAL_PATIENTS", 10),
        queue_min_patients=_env_int("QUEUE_MIN_PATIENTS", 5),
        queue_max_patients=_env_int("QUEUE_MAX_PATIENTS", 30),
        queue_total_rooms=_env_int("QUEUE_TOTAL_ROOMS", 20),
        baseline_staff=_env_int("BASELINE_STAFF", 5),
        capacity_max_patients=_env_int("CAPACITY_MAX_PATIENTS", 100),
        forecast_min_points=_env_int("FORECAST_MIN_POINTS", 5),
        prediction_min_history_points=_env_int("PREDICTION_MIN_HISTORY_POINTS", 3),
        forecast_max_hours=_env_int("FORECAST_MAX_HOURS", 72),
        basic_forecast_max_hours=_env_int("BASIC_FORECAST_MAX_HOURS", 24),
        history_max_hours=_env_int("HISTORY_MAX_HOURS", 168),
        capacity_max_days=_env_int("CAPACITY_MAX_DAYS", 14),
        synthetic_history_hours=_env_int("SYNTHETIC_HISTORY_HOURS", 24),
        synthetic_random_seed=_env_int("SYNTHETIC_RANDOM_SEED", 42),
    )
