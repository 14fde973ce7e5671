from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from backend.domain.errors import EmptySeriesError, InsufficientDataError
from backend.domain.models import MetricType, QueueSnapshot, RoomOccupancy, TimePoint, TriageBreakdown
from backend.repository.data_repository import DataRepository
from backend.services.forecast_service import (
    BATCH_HORIZONS,
    ForecastService,
    backtest_series,
    confidence_factor,
    generate_forecast,
    snapshots_to_series,
)
from backend.utils.config import get_settings


NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _series(values: list[float], end: datetime = NOW) -> list[TimePoint]:
    start = end - timedelta(hours=len(values))
    return [
        TimePoint(timestamp=start + timedelta(hours=index), value=value)
        for index, value in enumerate(values)
    ]


def _snapshot(timestamp: datetime, total: int, wait: float) -> QueueSnapshot:
    return QueueSnapshot(
        timestamp=timestamp,
        total_patients=total,
        waiting_patients=total,
        average_wait_time=wait,
        triage=TriageBreakdown(critical=0, urgent=0, standard=total),
        room_occupancy=RoomOccupancy(total=20, occupied=0, available=20),
    )


def _build_service(hours_of_history: int, total: int = 10, wait: float = 30.0, **overrides):
    settings = replace(get_settings(), sensor_polling_enabled=False, **overrides)
    repository = DataRepository(settings, clock=lambda: NOW)
    for hours_back in range(hours_of_history, 0, -1):
        repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=hours_back), total, wait))
    return ForecastService(repository=repository, settings=settings), repository


# --- generate_forecast ---

def test_empty_series_raises_empty_series_error():
    with pytest.raises(EmptySeriesError):
        generate_forecast([], 6, now=NOW)


@pytest.mark.parametrize("length", [1, 2, 3, 4])
@pytest.mark.parametrize("horizon", [1, 6, 72])
def test_short_series_raises_insufficient_data(length, horizon):
    with pytest.raises(InsufficientDataError):
        generate_forecast(_series([10.0] * length), horizon, now=NOW)


def test_two_point_series_with_six_hour_horizon_is_rejected():
    with pytest.raises(InsufficientDataError):
        generate_forecast(_series([10.0, 12.0]), 6, now=NOW)


def test_flat_series_forecasts_flat_values_with_widening_interval():
    forecast = generate_forecast(_series([10.0] * 5), 3, now=NOW)

    assert [point.forecasted_value for point in forecast] == [10.0, 10.0, 10.0]
    assert forecast[0].confidence_interval.lower == pytest.approx(9.5)
    assert forecast[0].confidence_interval.upper == pytest.approx(10.5)
    assert forecast[2].confidence_interval.lower == pytest.approx(9.3)
    assert forecast[2].confidence_interval.upper == pytest.approx(10.7)


def test_forecast_timestamps_start_one_hour_after_now():
    forecast = generate_forecast(_series([5.0, 6.0, 7.0, 8.0, 9.0]), 4, now=NOW)

    assert len(forecast) == 4
    assert [point.timestamp for point in forecast] == [
        NOW + timedelta(hours=step) for step in range(1, 5)
    ]
    assert [point.horizon_index for point in forecast] == [0, 1, 2, 3]
    assert all(point.metric_type is MetricType.QUEUE_LENGTH for point in forecast)


def test_declining_series_never_goes_negative():
    values = [50.0, 40.0, 30.0, 20.0, 10.0, 0.0, 0.0, 0.0]
    forecast = generate_forecast(_series(values), 24, now=NOW)

    for point in forecast:
        assert point.forecasted_value >= 0.0
        assert point.confidence_interval.lower >= 0.0
        assert point.confidence_interval.upper >= 0.0


def test_interval_brackets_value_and_widens_by_one_point_per_step():
    values = [float(12 + (index % 7) * 3) for index in range(60)]
    forecast = generate_forecast(_series(values), 24, now=NOW)

    for step, point in enumerate(forecast):
        interval = point.confidence_interval
        assert interval.lower <= point.forecasted_value <= interval.upper
        factor = confidence_factor(step)
        assert factor == pytest.approx(0.05 + 0.01 * step)
        assert interval.upper == pytest.approx(point.forecasted_value * (1 + factor), abs=0.02)


def test_forecast_is_deterministic():
    values = [float(8 + (index * 7) % 11) for index in range(72)]
    series = _series(values)

    assert generate_forecast(series, 12, now=NOW) == generate_forecast(series, 12, now=NOW)


def test_snapshots_to_series_picks_metric():
    snapshots = [_snapshot(NOW, 14, 42.5)]
    assert snapshots_to_series(snapshots, MetricType.QUEUE_LENGTH)[0].value == 14.0
    assert snapshots_to_series(snapshots, MetricType.WAIT_TIME)[0].value == 42.5


# --- backtest ---

def test_backtest_needs_more_than_minimum_points():
    assert backtest_series(_series([10.0] * 5), MetricType.QUEUE_LENGTH) is None


def test_backtest_on_flat_series_is_perfect():
    result = backtest_series(_series([10.0] * 20), MetricType.QUEUE_LENGTH)

    assert result is not None
    assert result.evaluated_points == 6
    assert result.mae == 0.0
    assert result.mape == 0.0
    assert result.accuracy == 1.0


def test_backtest_holdout_respects_minimum_points():
    result = backtest_series(_series([10.0] * 10), MetricType.QUEUE_LENGTH, min_points=8)

    assert result is not None
    assert result.evaluated_points == 2


# --- ForecastService ---

def test_service_rejects_history_below_gate():
    service, _ = _build_service(hours_of_history=2)
    with pytest.raises(InsufficientDataError):
        service.forecast_metric(MetricType.QUEUE_LENGTH, 6)


def test_service_uses_configured_minimum_points():
    strict, _ = _build_service(hours_of_history=6, forecast_min_points=8)
    default, _ = _build_service(hours_of_history=6)

    with pytest.raises(InsufficientDataError):
        strict.forecast_metric(MetricType.QUEUE_LENGTH, 6)
    assert len(default.forecast_metric(MetricType.QUEUE_LENGTH, 6).predictions) == 6
    assert strict.evaluate_accuracy().by_metric == []


def test_service_forecasts_metric_from_stored_history():
    service, _ = _build_service(hours_of_history=24)

    result = service.forecast_metric(MetricType.WAIT_TIME, 6)

    assert result.data_points_used == 24
    assert len(result.predictions) == 6
    assert result.predictions[0].timestamp == NOW + timedelta(hours=1)
    assert all(point.forecasted_value == 30.0 for point in result.predictions)
    assert result.insights == []


def test_predict_queue_metrics_forecasts_both_metrics_independently():
    service, _ = _build_service(hours_of_history=24, total=12, wait=35.0)

    bundle = service.predict_queue_metrics(12)

    assert [point.forecasted_value for point in bundle.queue_length] == [12.0] * 12
    assert [point.forecasted_value for point in bundle.wait_times] == [35.0] * 12
    # wait time mean 35 exceeds the 30 minute capacity threshold
    assert [insight.type.value for insight in bundle.insights] == ["capacity_warning"]


def test_batch_predictions_cover_fixed_horizons():
    service, _ = _build_service(hours_of_history=24)

    results, data_points = service.batch_predictions()

    assert [hours for hours, _ in results] == list(BATCH_HORIZONS)
    assert all(len(bundle.queue_length) == hours for hours, bundle in results)
    assert data_points == 24


def test_accuracy_is_unavailable_without_enough_history():
    service, _ = _build_service(hours_of_history=4)

    metrics = service.evaluate_accuracy()
    health = service.get_model_health()

    assert metrics.by_metric == []
    assert metrics.accuracy == 0.0
    assert health.status == "degraded"
    assert health.issues


def test_model_health_is_healthy_for_predictable_history():
    service, repository = _build_service(hours_of_history=24)

    health = service.get_model_health()

    assert health.status == "healthy"
    assert health.metrics.accuracy == 1.0
    assert health.issues == []
    assert health.last_update == repository.get_latest_snapshot().timestamp
