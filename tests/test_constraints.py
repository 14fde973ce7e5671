"""Tests for request boundary validation.

Covers horizon, lookback, capacity-day and multiplier rules in
backend.domain.constraints.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from backend.domain.constraints import (
    RequestBounds,
    validate_baseline_multiplier,
    validate_capacity_days,
    validate_forecast_hours,
    validate_history_hours,
)
from backend.domain.errors import InvalidRangeError
from backend.utils.config import get_settings


def default_bounds(**overrides) -> RequestBounds:
    """Return the default RequestBounds, optionally overriding fields."""
    defaults = {
        "forecast_max_hours": 72,
        "basic_forecast_max_hours": 24,
        "history_max_hours": 168,
        "capacity_max_days": 14,
    }
    defaults.update(overrides)
    return RequestBounds(**defaults)


# --- from_settings ---

def test_bounds_follow_settings() -> None:
    settings = replace(get_settings(), forecast_max_hours=48, capacity_max_days=7)
    bounds = RequestBounds.from_settings(settings)
    assert bounds.forecast_max_hours == 48
    assert bounds.capacity_max_days == 7
    assert bounds.history_max_hours == settings.history_max_hours


# --- forecast hours ---

def test_forecast_hours_zero_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_forecast_hours(0, default_bounds())


def test_forecast_hours_above_max_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_forecast_hours(73, default_bounds())


def test_basic_forecast_hours_above_basic_max_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_forecast_hours(25, default_bounds(), basic=True)


def test_forecast_hours_rejects_bool() -> None:
    with pytest.raises(InvalidRangeError):
        validate_forecast_hours(True, default_bounds())


# --- history hours ---

def test_history_hours_zero_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_history_hours(0, default_bounds())


def test_history_hours_above_max_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_history_hours(169, default_bounds())


# --- capacity days ---

def test_capacity_days_zero_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_capacity_days(0, default_bounds())


def test_capacity_days_above_max_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_capacity_days(15, default_bounds())


# --- baseline multiplier ---

def test_baseline_multiplier_zero_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_baseline_multiplier(0.0)


def test_baseline_multiplier_negative_raises() -> None:
    with pytest.raises(InvalidRangeError):
        validate_baseline_multiplier(-1.5)


# --- Boundary values ---

def test_forecast_hours_bounds_pass() -> None:
    """Exact lower and upper boundaries must pass."""
    assert validate_forecast_hours(1, default_bounds()) == 1
    assert validate_forecast_hours(72, default_bounds()) == 72
    assert validate_forecast_hours(24, default_bounds(), basic=True) == 24


def test_history_hours_upper_bound_passes() -> None:
    assert validate_history_hours(168, default_bounds()) == 168


def test_capacity_days_upper_bound_passes() -> None:
    assert validate_capacity_days(14, default_bounds()) == 14


def test_small_positive_multiplier_passes() -> None:
    assert validate_baseline_multiplier(0.5) == 0.5
