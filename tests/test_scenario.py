from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from backend.domain.errors import InvalidRangeError, InvalidScenarioError
from backend.domain.models import (
    ConfidenceInterval,
    ForecastPoint,
    InsightType,
    MetricType,
    Severity,
)
from backend.repository.data_repository import DataRepository
from backend.services.forecast_service import ForecastBundle, ForecastService
from backend.services.scenario_service import ScenarioService, simulate_scenario
from backend.utils.config import get_settings


NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _points(values: list[float], metric_type: MetricType) -> list[ForecastPoint]:
    return [
        ForecastPoint(
            timestamp=NOW + timedelta(hours=index + 1),
            forecasted_value=value,
            confidence_interval=ConfidenceInterval(
                lower=round(value * 0.95, 2),
                upper=round(value * 1.05, 2),
            ),
            horizon_index=index,
            metric_type=metric_type,
        )
        for index, value in enumerate(values)
    ]


def _base(values: list[float]) -> ForecastBundle:
    return ForecastBundle(
        queue_length=_points(values, MetricType.QUEUE_LENGTH),
        wait_times=_points(values, MetricType.WAIT_TIME),
        insights=[],
    )


def test_emergency_doubles_queue_length_and_bounds():
    result = simulate_scenario(_base([20.0, 22.0, 25.0]), "emergency", now=NOW)

    assert [point.forecasted_value for point in result.queue_length] == [40.0, 44.0, 50.0]
    assert [point.confidence_interval.lower for point in result.queue_length] == pytest.approx(
        [38.0, 41.8, 47.5]
    )
    assert [point.confidence_interval.upper for point in result.queue_length] == pytest.approx(
        [42.0, 46.2, 52.5]
    )
    assert result.multiplier == 2.0


def test_wait_time_scales_with_square_root_of_multiplier():
    result = simulate_scenario(_base([20.0]), "emergency", now=NOW)
    assert result.wait_times[0].forecasted_value == pytest.approx(round(20.0 * math.sqrt(2.0), 2))


def test_staff_shortage_scales_wait_time_linearly():
    result = simulate_scenario(_base([20.0]), "staff_shortage", now=NOW)

    assert result.wait_times[0].forecasted_value == pytest.approx(26.0)
    assert result.queue_length[0].forecasted_value == pytest.approx(26.0)


def test_baseline_multiplier_compounds_with_scenario():
    result = simulate_scenario(_base([20.0]), "high_volume", baseline_multiplier=1.5, now=NOW)
    assert result.queue_length[0].forecasted_value == pytest.approx(45.0)


@pytest.mark.parametrize("scenario", ["high_volume", "emergency"])
def test_load_scenarios_never_reduce_queue_length(scenario):
    base = _base([0.0, 3.5, 12.25, 48.0, 99.99])

    result = simulate_scenario(base, scenario, now=NOW)

    for scaled, original in zip(result.queue_length, base.queue_length):
        assert scaled.forecasted_value >= original.forecasted_value


def test_normal_scenario_adds_no_insight():
    result = simulate_scenario(_base([20.0]), "normal", now=NOW)

    assert result.insights == []
    assert result.queue_length[0].forecasted_value == 20.0


def test_emergency_insight_is_critical_and_spans_duration():
    result = simulate_scenario(_base([20.0]), "emergency", duration_hours=6, now=NOW)

    insight = result.insights[-1]
    assert insight.type is InsightType.SCENARIO_ANALYSIS
    assert insight.severity is Severity.CRITICAL
    assert insight.timeframe.start == NOW
    assert insight.timeframe.end == NOW + timedelta(hours=6)
    assert insight.confidence == 0.8
    assert insight.recommended_action


def test_high_volume_insight_is_warning():
    result = simulate_scenario(_base([20.0]), "high_volume", now=NOW)
    assert result.insights[-1].severity is Severity.WARNING


def test_unknown_scenario_raises():
    with pytest.raises(InvalidScenarioError):
        simulate_scenario(_base([20.0]), "alien_invasion", now=NOW)


def test_non_positive_baseline_multiplier_raises():
    with pytest.raises(InvalidRangeError):
        simulate_scenario(_base([20.0]), "normal", baseline_multiplier=0.0, now=NOW)


def test_result_serialises_predictions_together():
    payload = simulate_scenario(_base([20.0]), "emergency", now=NOW).to_dict()

    assert set(payload["predictions"]) == {"queue_length", "wait_times"}
    assert payload["scenario"] == "emergency"
    assert payload["description"] == "Emergency scenario with doubled patient load"


def test_service_validates_scenario_before_forecasting():
    settings = replace(get_settings(), sensor_polling_enabled=False)
    repository = DataRepository(settings, clock=lambda: NOW)
    service = ScenarioService(ForecastService(repository=repository, settings=settings))

    # the repository is empty, so reaching the forecast would raise InsufficientDataError
    with pytest.raises(InvalidScenarioError):
        service.run("unknown")
