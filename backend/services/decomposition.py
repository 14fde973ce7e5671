"""Time-series decomposition into trend, calendar patterns and daily seasonality.

All functions are pure: identical inputs always produce identical outputs, and
nothing here logs or touches storage. Timestamps are expected to be sorted and
aligned one-to-one with values; any surplus on either side is ignored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

import numpy as np
import pandas as pd

from backend.domain.errors import EmptySeriesError
from backend.domain.models import DecomposedSeries


MIN_TREND_POINTS = 5
SEASON_LENGTH = 24
MIN_SEASONALITY_POINTS = 2 * SEASON_LENGTH


def sunday_based_weekday(timestamp: datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return timestamp.isoweekday() % 7


def calculate_baseline(values: Sequence[float]) -> float:
    """Median of the series, used as the reference level for deviations."""
    if len(values) == 0:
        raise EmptySeriesError("cannot compute a baseline for an empty series")
    return float(np.median(np.asarray(values, dtype=float)))


def calculate_weighted_trend(values: Sequence[float]) -> float:
    """Weighted least-squares slope per step; later points weigh up to 3x more."""
    n = len(values)
    if n < MIN_TREND_POINTS:
        return 0.0

    x = np.arange(n, dtype=float)
    y = np.asarray(values, dtype=float)
    weights = 1.0 + (x / n) * 2.0

    sum_w = float(np.sum(weights))
    sum_x = float(np.sum(weights * x))
    sum_y = float(np.sum(weights * y))
    sum_xy = float(np.sum(weights * x * y))
    sum_x2 = float(np.sum(weights * x * x))

    denominator = sum_w * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (sum_w * sum_xy - sum_x * sum_y) / denominator


def calculate_linear_trend(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of values against their index."""
    n = len(values)
    if n < 2:
        return 0.0

    y = np.asarray(values, dtype=float)
    sum_x = n * (n - 1) / 2.0
    sum_y = float(np.sum(y))
    sum_xy = float(np.sum(y * np.arange(n, dtype=float)))
    sum_x2 = n * (n - 1) * (2 * n - 1) / 6.0

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def _mean_deviation_by_bucket(
    values: Sequence[float],
    buckets: Sequence[int],
    baseline: float,
) -> dict[int, float]:
    size = min(len(values), len(buckets))
    if size == 0:
        return {}
    frame = pd.DataFrame(
        {
            "bucket": list(buckets[:size]),
            "deviation": np.asarray(values[:size], dtype=float) - baseline,
        }
    )
    means = frame.groupby("bucket", sort=True)["deviation"].mean()
    return {int(bucket): float(deviation) for bucket, deviation in means.items()}


def extract_hourly_pattern(
    values: Sequence[float],
    timestamps: Sequence[datetime],
) -> dict[int, float]:
    """Mean deviation from the median per hour of day; unseen hours are absent."""
    baseline = calculate_baseline(values)
    hours = [timestamp.hour for timestamp in timestamps]
    return _mean_deviation_by_bucket(values, hours, baseline)


def extract_day_of_week_pattern(
    values: Sequence[float],
    timestamps: Sequence[datetime],
) -> dict[int, float]:
    """Mean deviation from the median per weekday (0 = Sunday)."""
    baseline = calculate_baseline(values)
    weekdays = [sunday_based_weekday(timestamp) for timestamp in timestamps]
    return _mean_deviation_by_bucket(values, weekdays, baseline)


def detect_seasonality(values: Sequence[float]) -> tuple[float, ...]:
    """Average 24-step profile over complete cycles, relative to the median.

    Returns an empty tuple for series shorter than two full cycles.
    """
    if len(values) < MIN_SEASONALITY_POINTS:
        return ()

    season_count = len(values) // SEASON_LENGTH
    complete = np.asarray(values[: season_count * SEASON_LENGTH], dtype=float)
    profile = complete.reshape(season_count, SEASON_LENGTH).mean(axis=0)
    baseline = calculate_baseline(values)
    return tuple(float(value) for value in profile - baseline)


def decompose_series(
    values: Sequence[float],
    timestamps: Sequence[datetime],
) -> DecomposedSeries:
    if len(values) == 0:
        raise EmptySeriesError("cannot decompose an empty series")
    return DecomposedSeries(
        trend=calculate_weighted_trend(values),
        hourly_pattern=extract_hourly_pattern(values, timestamps),
        day_of_week_pattern=extract_day_of_week_pattern(values, timestamps),
        seasonality=detect_seasonality(values),
    )
