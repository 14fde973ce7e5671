from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from backend.domain.errors import EmptySeriesError
from backend.domain.models import (
    ConfidenceInterval,
    ForecastPoint,
    MetricType,
    QueueSnapshot,
    RoomOccupancy,
    TriageBreakdown,
    Urgency,
)
from backend.repository.data_repository import DataRepository
from backend.services.forecast_service import ForecastService
from backend.services.staffing_service import (
    DAY_NAMES,
    CapacityPlanner,
    StaffingService,
    cost_impact_band,
    hour_of_day_factor,
    recommend_for_slot,
    recommend_staffing,
    reshape_history_for_day,
)
from backend.utils.config import get_settings


NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _point(value: float, step: int = 0) -> ForecastPoint:
    return ForecastPoint(
        timestamp=NOW + timedelta(hours=step + 1),
        forecasted_value=value,
        confidence_interval=ConfidenceInterval(lower=value, upper=value),
        horizon_index=step,
        metric_type=MetricType.QUEUE_LENGTH,
    )


def _snapshot(timestamp: datetime, total: int = 10, wait: float = 30.0) -> QueueSnapshot:
    return QueueSnapshot(
        timestamp=timestamp,
        total_patients=total,
        waiting_patients=total,
        average_wait_time=wait,
        triage=TriageBreakdown(critical=0, urgent=0, standard=total),
        room_occupancy=RoomOccupancy(total=20, occupied=0, available=20),
    )


def _build_repository(hours_of_history: int):
    settings = replace(get_settings(), sensor_polling_enabled=False)
    repository = DataRepository(settings, clock=lambda: NOW)
    for hours_back in range(hours_of_history, 0, -1):
        repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=hours_back)))
    return repository, settings


@pytest.mark.parametrize(
    "expected_patients, staff, urgency",
    [
        (85.0, 9, Urgency.HIGH),
        (55.0, 5, Urgency.MEDIUM),
        (30.0, 5, Urgency.LOW),
    ],
)
def test_slot_tiering(expected_patients, staff, urgency):
    recommendation = recommend_for_slot(_point(expected_patients), baseline_staff=5)

    assert recommendation.recommended_staff == staff
    assert recommendation.urgency is urgency
    assert recommendation.time_slot == NOW + timedelta(hours=1)


def test_recommended_staff_never_drops_below_baseline():
    recommendation = recommend_for_slot(_point(51.0), baseline_staff=8)
    assert recommendation.recommended_staff == 8
    assert recommendation.urgency is Urgency.MEDIUM


def test_plan_summarises_additional_hours_and_peaks():
    forecast = [_point(85.0, 0), _point(55.0, 1), _point(30.0, 2)]

    plan = recommend_staffing(forecast, baseline_staff=5)

    assert [item.recommended_staff for item in plan.recommendations] == [9, 5, 5]
    assert plan.summary.total_additional_staff_hours == 4
    assert [period.severity for period in plan.summary.peak_periods] == [Urgency.HIGH, Urgency.MEDIUM]
    assert plan.summary.peak_periods[0].end - plan.summary.peak_periods[0].start == timedelta(hours=1)
    assert plan.summary.cost_impact == "Low"


def test_cost_impact_bands():
    assert cost_impact_band(51) == "High"
    assert cost_impact_band(50) == "Medium"
    assert cost_impact_band(21) == "Medium"
    assert cost_impact_band(20) == "Low"


def test_sustained_high_volume_is_high_cost():
    forecast = [_point(150.0, step) for step in range(6)]

    plan = recommend_staffing(forecast)

    # ceil(150 / 10) = 15, i.e. 10 extra staff for each of six hours
    assert plan.summary.total_additional_staff_hours == 60
    assert plan.summary.cost_impact == "High"


def test_hour_of_day_factors():
    assert hour_of_day_factor(9) == 1.2
    assert hour_of_day_factor(15) == 0.9
    assert hour_of_day_factor(19) == 1.3
    assert hour_of_day_factor(2) == 0.7
    assert hour_of_day_factor(12) == 1.0


def test_reshape_history_keeps_minimums():
    history = [_snapshot(NOW.replace(hour=3), total=1, wait=1.0)]

    reshaped = reshape_history_for_day(history, weekday=1)

    assert reshaped[0].total_patients == 1
    assert reshaped[0].average_wait_time == 5
    assert history[0].total_patients == 1


def test_staffing_service_uses_queue_forecast():
    repository, settings = _build_repository(hours_of_history=24)
    forecast_service = ForecastService(repository=repository, settings=settings)
    service = StaffingService(forecast_service=forecast_service, settings=settings)

    plan = service.get_staffing_recommendations(6)

    assert len(plan.recommendations) == 6
    assert all(item.urgency is Urgency.LOW for item in plan.recommendations)
    assert all(item.recommended_staff == settings.baseline_staff for item in plan.recommendations)
    assert plan.summary.total_additional_staff_hours == 0


def test_capacity_outlook_covers_each_day_from_midnight():
    repository, settings = _build_repository(hours_of_history=48)
    planner = CapacityPlanner(repository=repository, settings=settings)

    outlook = planner.forecast_capacity(7)

    assert len(outlook.daily_forecasts) == 7
    midnight = NOW.replace(hour=0)
    for offset, day in enumerate(outlook.daily_forecasts):
        assert day.date == midnight + timedelta(days=offset)
        assert day.date <= day.expected_peak_time < day.date + timedelta(days=1)
        assert day.capacity_utilization == pytest.approx(
            day.expected_peak_patients / settings.capacity_max_patients, abs=0.01
        )
        assert day.risk_level is Urgency.LOW
    assert outlook.weekly_trends.peak_day_of_week in DAY_NAMES


def test_capacity_outlook_is_deterministic():
    repository, settings = _build_repository(hours_of_history=48)
    planner = CapacityPlanner(repository=repository, settings=settings)

    assert planner.forecast_capacity(5).to_dict() == planner.forecast_capacity(5).to_dict()


def test_capacity_outlook_without_history_raises():
    repository, settings = _build_repository(hours_of_history=0)
    with pytest.raises(EmptySeriesError):
        CapacityPlanner(repository=repository, settings=settings).forecast_capacity(3)
