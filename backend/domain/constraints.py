"""Boundary validation rules for forecast horizons and history lookbacks."""

from __future__ import annotations

from dataclasses import dataclass

from backend.domain.errors import InvalidRangeError
from backend.utils.config import Settings


@dataclass(frozen=True)
class RequestBounds:
    forecast_max_hours: int
    basic_forecast_max_hours: int
    history_max_hours: int
    capacity_max_days: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "RequestBounds":
        return cls(
            forecast_max_hours=settings.forecast_max_hours,
            basic_forecast_max_hours=settings.basic_forecast_max_hours,
            history_max_hours=settings.history_max_hours,
            capacity_max_days=settings.capacity_max_days,
        )


def _require_between(name: str, value: int, lower: int, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRangeError(f"{name} must be an integer")
    if not lower <= value <= upper:
        raise InvalidRangeError(f"{name} must be between {lower} and {upper}")
    return value


def validate_forecast_hours(hours: int, bounds: RequestBounds, *, basic: bool = False) -> int:
    upper = bounds.basic_forecast_max_hours if basic else bounds.forecast_max_hours
    return _require_between("forecast hours", hours, 1, upper)


def validate_history_hours(hours: int, bounds: RequestBounds) -> int:
    return _require_between("history hours", hours, 1, bounds.history_max_hours)


def validate_capacity_days(days: int, bounds: RequestBounds) -> int:
    return _require_between("capacity days", days, 1, bounds.capacity_max_days)


def validate_baseline_multiplier(multiplier: float) -> float:
    if multiplier <= 0.0:
        raise InvalidRangeError("baseline multiplier must be > 0")
    return multiplier
