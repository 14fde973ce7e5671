from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend.domain.errors import EmptySeriesError
from backend.services.decomposition import (
    calculate_baseline,
    calculate_linear_trend,
    calculate_weighted_trend,
    decompose_series,
    detect_seasonality,
    extract_day_of_week_pattern,
    extract_hourly_pattern,
    sunday_based_weekday,
)


START = datetime(2024, 1, 7, 0, 0, tzinfo=timezone.utc)  # a Sunday


def _hourly_timestamps(count: int) -> list[datetime]:
    return [START + timedelta(hours=index) for index in range(count)]


def test_sunday_is_day_zero():
    assert sunday_based_weekday(START) == 0
    assert sunday_based_weekday(START + timedelta(days=1)) == 1
    assert sunday_based_weekday(START + timedelta(days=6)) == 6


def test_baseline_is_median_and_rejects_empty_series():
    assert calculate_baseline([3.0, 1.0, 2.0]) == 2.0
    assert calculate_baseline([1.0, 2.0, 3.0, 10.0]) == 2.5
    with pytest.raises(EmptySeriesError):
        calculate_baseline([])


def test_weighted_trend_recovers_linear_slope():
    values = [2.0 * index + 1.0 for index in range(10)]
    assert calculate_weighted_trend(values) == pytest.approx(2.0)


def test_weighted_trend_is_zero_for_short_or_flat_series():
    assert calculate_weighted_trend([1.0, 5.0, 9.0, 13.0]) == 0.0
    assert calculate_weighted_trend([7.0] * 12) == pytest.approx(0.0, abs=1e-9)


def test_linear_trend_slope():
    assert calculate_linear_trend([1.0, 2.0, 3.0]) == pytest.approx(1.0)
    assert calculate_linear_trend([10.0, 8.0, 6.0, 4.0]) == pytest.approx(-2.0)
    assert calculate_linear_trend([5.0]) == 0.0


def test_hourly_pattern_is_mean_deviation_from_median():
    timestamps = [
        START,
        START + timedelta(days=1),
        START + timedelta(hours=1),
        START + timedelta(days=1, hours=1),
    ]
    pattern = extract_hourly_pattern([10.0, 20.0, 30.0, 40.0], timestamps)

    assert pattern == {0: pytest.approx(-10.0), 1: pytest.approx(10.0)}
    assert 2 not in pattern


def test_day_of_week_pattern_uses_sunday_based_buckets():
    timestamps = [START, START + timedelta(days=1), START + timedelta(days=1, hours=3)]
    pattern = extract_day_of_week_pattern([4.0, 10.0, 12.0], timestamps)

    # median is 10
    assert pattern[0] == pytest.approx(-6.0)
    assert pattern[1] == pytest.approx(1.0)
    assert set(pattern) == {0, 1}


def test_seasonality_requires_two_full_cycles():
    assert detect_seasonality([1.0] * 47) == ()


def test_seasonality_profile_relative_to_median():
    values = [float(index % 24) for index in range(48)]
    seasonality = detect_seasonality(values)

    assert len(seasonality) == 24
    assert seasonality[0] == pytest.approx(-11.5)
    assert seasonality[23] == pytest.approx(11.5)


def test_seasonality_ignores_incomplete_trailing_cycle():
    values = [float(index % 24) for index in range(48)] + [100.0] * 10
    seasonality = detect_seasonality(values)

    assert len(seasonality) == 24
    # the partial cycle moves the median but not the per-phase means
    baseline = calculate_baseline(values)
    assert seasonality[5] == pytest.approx(5.0 - baseline)


def test_decompose_series_is_deterministic():
    values = [float(10 + (index % 5)) for index in range(30)]
    timestamps = _hourly_timestamps(30)

    first = decompose_series(values, timestamps)
    second = decompose_series(values, timestamps)

    assert first == second
    assert first.seasonality == ()


def test_decompose_empty_series_raises():
    with pytest.raises(EmptySeriesError):
        decompose_series([], [])
