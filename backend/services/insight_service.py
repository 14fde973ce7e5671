"""Qualitative alerts derived from a forecast and the recent history."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from backend.domain.models import (
    ForecastPoint,
    Insight,
    InsightType,
    MetricType,
    Severity,
    TimeFrame,
)
from backend.services.decomposition import calculate_linear_trend


PEAK_THRESHOLD = 50.0
CRITICAL_PEAK_THRESHOLD = 80.0
PEAK_CONFIDENCE = 0.8

CAPACITY_THRESHOLDS = {
    MetricType.QUEUE_LENGTH: 60.0,
    MetricType.WAIT_TIME: 30.0,
}
CAPACITY_CONFIDENCE = 0.75

TREND_WINDOW = 6
TREND_SIGNIFICANCE = {
    MetricType.QUEUE_LENGTH: 5.0,
    MetricType.WAIT_TIME: 3.0,
}
TREND_CONFIDENCE = 0.7

_METRIC_LABELS = {
    MetricType.QUEUE_LENGTH: ("queue length", "patients", "patient volume"),
    MetricType.WAIT_TIME: ("wait time", "minutes", "wait times"),
}

_PEAK_ACTIONS = {
    MetricType.QUEUE_LENGTH: "Consider increasing staffing levels during peak hours",
    MetricType.WAIT_TIME: "Consider adjusting appointment schedules to reduce wait times",
}

_CAPACITY_ACTIONS = {
    MetricType.QUEUE_LENGTH: "Review resource allocation and staffing schedules",
    MetricType.WAIT_TIME: "Consider additional resources to process patients more efficiently",
}


def _peak_insight(forecast: Sequence[ForecastPoint], metric_type: MetricType) -> Optional[Insight]:
    # max() keeps the first of equal peaks, i.e. the earliest one.
    peak = max(forecast, key=lambda point: point.forecasted_value)
    if peak.forecasted_value <= PEAK_THRESHOLD:
        return None

    label, unit, _ = _METRIC_LABELS[metric_type]
    severity = (
        Severity.CRITICAL
        if peak.forecasted_value > CRITICAL_PEAK_THRESHOLD
        else Severity.WARNING
    )
    return Insight(
        type=InsightType.PEAK_PREDICTION,
        severity=severity,
        description=(
            f"Peak {label} of {round(peak.forecasted_value)} {unit} predicted at "
            f"{peak.timestamp:%H:%M} UTC"
        ),
        recommended_action=_PEAK_ACTIONS[metric_type],
        timeframe=TimeFrame(start=peak.timestamp, end=peak.timestamp + timedelta(hours=1)),
        confidence=PEAK_CONFIDENCE,
    )


def _capacity_insight(
    forecast: Sequence[ForecastPoint],
    metric_type: MetricType,
) -> Optional[Insight]:
    average = sum(point.forecasted_value for point in forecast) / len(forecast)
    if average <= CAPACITY_THRESHOLDS[metric_type]:
        return None

    label, _, _ = _METRIC_LABELS[metric_type]
    return Insight(
        type=InsightType.CAPACITY_WARNING,
        severity=Severity.WARNING,
        description=f"Average predicted {label} exceeds normal capacity",
        recommended_action=_CAPACITY_ACTIONS[metric_type],
        timeframe=TimeFrame(start=forecast[0].timestamp, end=forecast[-1].timestamp),
        confidence=CAPACITY_CONFIDENCE,
    )


def _trend_insight(
    forecast: Sequence[ForecastPoint],
    historical_values: Sequence[float],
    metric_type: MetricType,
    now: datetime,
) -> Optional[Insight]:
    if len(historical_values) < TREND_WINDOW or len(forecast) < TREND_WINDOW:
        return None

    recent_trend = calculate_linear_trend(list(historical_values[-TREND_WINDOW:]))
    predicted_trend = calculate_linear_trend(
        [point.forecasted_value for point in forecast[:TREND_WINDOW]]
    )
    if abs(predicted_trend - recent_trend) <= TREND_SIGNIFICANCE[metric_type]:
        return None

    _, _, subject = _METRIC_LABELS[metric_type]
    increasing = predicted_trend > recent_trend
    return Insight(
        type=InsightType.TREND_CHANGE,
        severity=Severity.INFO,
        description=f"{'Increasing' if increasing else 'Decreasing'} trend detected in {subject}",
        recommended_action=(
            "Prepare for increased demand in the coming hours"
            if increasing
            else "Opportunity to reallocate resources if the decrease continues"
        ),
        timeframe=TimeFrame(start=now, end=forecast[TREND_WINDOW - 1].timestamp),
        confidence=TREND_CONFIDENCE,
    )


def generate_insights(
    forecast: Sequence[ForecastPoint],
    historical_values: Sequence[float],
    metric_type: MetricType,
    now: Optional[datetime] = None,
) -> list[Insight]:
    """Evaluate peak, capacity and trend rules independently, in that order."""
    if not forecast:
        return []

    reference_time = now or datetime.now(timezone.utc)
    candidates = (
        _peak_insight(forecast, metric_type),
        _capacity_insight(forecast, metric_type),
        _trend_insight(forecast, historical_values, metric_type, reference_time),
    )
    return [insight for insight in candidates if insight is not None]
