"""Typed failures raised by the forecasting core and its boundary validators."""

from __future__ import annotations


class ForecastingError(Exception):
    """Base exception for forecasting and derived-metrics failures."""


class InsufficientDataError(ForecastingError):
    """Raised when a series is shorter than the algorithm's minimum length.

    This is an expected, transient condition: the caller may retry once more
    history has been collected.
    """


class EmptySeriesError(ForecastingError):
    """Raised when a zero-length series reaches baseline or forecast code."""


class InvalidScenarioError(ForecastingError):
    """Raised when a what-if scenario name is not recognised."""


class InvalidRangeError(ForecastingError):
    """Raised when a horizon, lookback or day count is outside allowed bounds."""
