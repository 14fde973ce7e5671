"""Hourly forecasting of queue length and wait time from decomposed history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

import numpy as np

from backend.domain.errors import EmptySeriesError, InsufficientDataError, InvalidRangeError
from backend.domain.models import (
    ConfidenceInterval,
    ForecastPoint,
    Insight,
    MetricType,
    QueueSnapshot,
    TimePoint,
)
from backend.repository.data_repository import DataRepository
from backend.services.decomposition import decompose_series, sunday_based_weekday
from backend.services.insight_service import generate_insights
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


MIN_FORECAST_POINTS = 5
CONFIDENCE_BASE = 0.05
CONFIDENCE_STEP = 0.01
MODEL_NAME = "statistical-decomposition"
MODEL_VERSION = "1.0.0"
BATCH_HORIZONS = (1, 3, 6, 12, 24)
INSIGHT_HORIZON_HOURS = 12
BACKTEST_MAX_POINTS = 6


def confidence_factor(step_index: int) -> float:
    """Relative half-width of the interval; grows one point per step from 5%."""
    return CONFIDENCE_BASE + step_index * CONFIDENCE_STEP


def generate_forecast(
    series: Sequence[TimePoint],
    horizon_hours: int,
    metric_type: MetricType = MetricType.QUEUE_LENGTH,
    now: Optional[datetime] = None,
    min_points: int = MIN_FORECAST_POINTS,
) -> list[ForecastPoint]:
    """Forecast ``horizon_hours`` hourly steps after ``now``.

    Each step adds the weighted trend, the hour-of-day and weekday deviations
    and, when at least two days of history exist, the daily seasonal profile to
    the last observed value. Values and interval bounds are clamped at zero and
    rounded to two decimals.

    Raises:
        EmptySeriesError: the series has no points.
        InsufficientDataError: the series has fewer than ``min_points`` points.
    """
    if len(series) == 0:
        raise EmptySeriesError("historical series is empty")
    if len(series) < min_points:
        raise InsufficientDataError(
            f"at least {min_points} historical points are required, got {len(series)}"
        )
    if horizon_hours < 1:
        raise InvalidRangeError("forecast horizon must be at least one hour")

    values = [point.value for point in series]
    timestamps = [point.timestamp for point in series]
    components = decompose_series(values, timestamps)
    start = now or datetime.now(timezone.utc)
    last_value = values[-1]

    forecast: list[ForecastPoint] = []
    for step in range(horizon_hours):
        forecast_time = start + timedelta(hours=step + 1)
        value = last_value + components.trend * (step + 1)
        value += components.hourly_pattern.get(forecast_time.hour, 0.0)
        value += components.day_of_week_pattern.get(sunday_based_weekday(forecast_time), 0.0)
        if components.seasonality:
            value += components.seasonality[step % len(components.seasonality)]
        value = max(0.0, value)

        factor = confidence_factor(step)
        lower = max(0.0, value * (1.0 - factor))
        upper = value * (1.0 + factor)
        forecast.append(
            ForecastPoint(
                timestamp=forecast_time,
                forecasted_value=round(value, 2),
                confidence_interval=ConfidenceInterval(
                    lower=round(lower, 2),
                    upper=round(upper, 2),
                ),
                horizon_index=step,
                metric_type=metric_type,
            )
        )
    return forecast


def snapshots_to_series(
    snapshots: Sequence[QueueSnapshot],
    metric_type: MetricType,
) -> list[TimePoint]:
    return [
        TimePoint(timestamp=snapshot.timestamp, value=snapshot.value_for(metric_type))
        for snapshot in snapshots
    ]


@dataclass(frozen=True)
class MetricForecast:
    metric_type: MetricType
    predictions: list[ForecastPoint]
    insights: list[Insight]
    data_points_used: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric_type": self.metric_type.value,
            "predictions": [point.to_dict() for point in self.predictions],
            "insights": [insight.to_dict() for insight in self.insights],
            "data_points_used": self.data_points_used,
        }


@dataclass(frozen=True)
class ForecastBundle:
    """Independent queue-length and wait-time forecasts with their insights."""

    queue_length: list[ForecastPoint]
    wait_times: list[ForecastPoint]
    insights: list[Insight]

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue_length": [point.to_dict() for point in self.queue_length],
            "wait_times": [point.to_dict() for point in self.wait_times],
            "insights": [insight.to_dict() for insight in self.insights],
        }


@dataclass(frozen=True)
class MetricAccuracy:
    metric_type: MetricType
    mae: float
    rmse: float
    mape: float
    accuracy: float
    evaluated_points: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric_type": self.metric_type.value,
            "mae": self.mae,
            "rmse": self.rmse,
            "mape": self.mape,
            "accuracy": self.accuracy,
            "evaluated_points": self.evaluated_points,
        }


@dataclass(frozen=True)
class ModelMetrics:
    model_name: str
    version: str
    accuracy: float
    data_points_used: int
    by_metric: list[MetricAccuracy]
    evaluated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_name": self.model_name,
            "version": self.version,
            "accuracy": self.accuracy,
            "data_points_used": self.data_points_used,
            "by_metric": [item.to_dict() for item in self.by_metric],
            "evaluated_at": self.evaluated_at,
        }


@dataclass(frozen=True)
class ModelHealth:
    status: str
    last_update: datetime
    metrics: ModelMetrics
    issues: list[str]
    recommendations: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "last_update": self.last_update,
            "metrics": self.metrics.to_dict(),
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
        }


def backtest_series(
    series: Sequence[TimePoint],
    metric_type: MetricType,
    min_points: int = MIN_FORECAST_POINTS,
) -> Optional[MetricAccuracy]:
    """Forecast the most recent points from the history that precedes them."""
    holdout = min(BACKTEST_MAX_POINTS, len(series) - min_points)
    if holdout < 1:
        return None

    training = series[:-holdout]
    actual = np.asarray([point.value for point in series[-holdout:]], dtype=float)
    forecast = generate_forecast(
        training,
        holdout,
        metric_type=metric_type,
        now=training[-1].timestamp,
        min_points=min_points,
    )
    predicted = np.asarray([point.forecasted_value for point in forecast], dtype=float)

    errors = predicted - actual
    mae = float(np.mean(np.abs(errors)))
    rmse = float(np.sqrt(np.mean(errors**2)))
    nonzero = actual != 0
    mape = float(np.mean(np.abs(errors[nonzero] / actual[nonzero])) * 100.0) if nonzero.any() else 0.0
    accuracy = min(1.0, max(0.0, 1.0 - mape / 100.0))
    return MetricAccuracy(
        metric_type=metric_type,
        mae=round(mae, 2),
        rmse=round(rmse, 2),
        mape=round(mape, 2),
        accuracy=round(accuracy, 4),
        evaluated_points=holdout,
    )


class ForecastService:
    """Loads snapshot history and runs the per-metric forecasts over it."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    @property
    def now(self) -> datetime:
        return self._repository.now

    def _load_history(self, history_hours: int) -> list[QueueSnapshot]:
        history = self._repository.get_historical_data(history_hours)
        if len(history) < self._settings.prediction_min_history_points:
            raise InsufficientDataError(
                "Insufficient historical data for predictions "
                f"({len(history)} of {self._settings.prediction_min_history_points} points)"
            )
        return history

    def _forecast_from_history(
        self,
        history: Sequence[QueueSnapshot],
        metric_type: MetricType,
        forecast_hours: int,
        now: datetime,
    ) -> list[ForecastPoint]:
        return generate_forecast(
            snapshots_to_series(history, metric_type),
            forecast_hours,
            metric_type=metric_type,
            now=now,
            min_points=self._settings.forecast_min_points,
        )

    def forecast_metric(
        self,
        metric_type: MetricType,
        forecast_hours: int,
        *,
        history_hours: int = 48,
        include_insights: bool = False,
    ) -> MetricForecast:
        history = self._load_history(history_hours)
        now = self._repository.now
        predictions = self._forecast_from_history(history, metric_type, forecast_hours, now)
        insights: list[Insight] = []
        if include_insights:
            insights = generate_insights(
                predictions,
                [snapshot.value_for(metric_type) for snapshot in history],
                metric_type,
                now=now,
            )
        logger.info(
            "Forecast generated | metric=%s | hours=%s | history_points=%s",
            metric_type.value,
            forecast_hours,
            len(history),
        )
        return MetricForecast(
            metric_type=metric_type,
            predictions=predictions,
            insights=insights,
            data_points_used=len(history),
        )

    def predict_queue_metrics(self, forecast_hours: int) -> ForecastBundle:
        history_hours = min(max(48, forecast_hours * 2), self._settings.history_max_hours)
        return self._bundle_from_history(self._load_history(history_hours), forecast_hours)

    def _bundle_from_history(
        self,
        history: Sequence[QueueSnapshot],
        forecast_hours: int,
    ) -> ForecastBundle:
        now = self._repository.now
        queue_length = self._forecast_from_history(
            history, MetricType.QUEUE_LENGTH, forecast_hours, now
        )
        wait_times = self._forecast_from_history(
            history, MetricType.WAIT_TIME, forecast_hours, now
        )
        insights = generate_insights(
            queue_length,
            [snapshot.value_for(MetricType.QUEUE_LENGTH) for snapshot in history],
            MetricType.QUEUE_LENGTH,
            now=now,
        ) + generate_insights(
            wait_times,
            [snapshot.value_for(MetricType.WAIT_TIME) for snapshot in history],
            MetricType.WAIT_TIME,
            now=now,
        )
        return ForecastBundle(queue_length=queue_length, wait_times=wait_times, insights=insights)

    def generate_current_insights(self) -> tuple[list[Insight], int]:
        history = self._load_history(24)
        bundle = self._bundle_from_history(history, INSIGHT_HORIZON_HOURS)
        return bundle.insights, len(history)

    def batch_predictions(self) -> tuple[list[tuple[int, ForecastBundle]], int]:
        history = self._load_history(48)
        results = [
            (hours, self._bundle_from_history(history, hours))
            for hours in BATCH_HORIZONS
        ]
        return results, len(history)

    def evaluate_accuracy(self) -> ModelMetrics:
        history = self._repository.get_historical_data(self._settings.history_max_hours)
        by_metric = [
            result
            for result in (
                backtest_series(
                    snapshots_to_series(history, metric_type),
                    metric_type,
                    min_points=self._settings.forecast_min_points,
                )
                for metric_type in MetricType
            )
            if result is not None
        ]
        overall = (
            round(sum(item.accuracy for item in by_metric) / len(by_metric), 4)
            if by_metric
            else 0.0
        )
        return ModelMetrics(
            model_name=MODEL_NAME,
            version=MODEL_VERSION,
            accuracy=overall,
            data_points_used=len(history),
            by_metric=by_metric,
            evaluated_at=self._repository.now,
        )

    def get_model_health(self) -> ModelHealth:
        metrics = self.evaluate_accuracy()
        issues: list[str] = []
        recommendations: list[str] = []

        if not metrics.by_metric:
            status = "degraded"
            issues.append("Insufficient history to evaluate forecast accuracy")
            recommendations.append("Collect more queue snapshots before relying on forecasts")
        elif metrics.accuracy < 0.7:
            status = "unhealthy"
            issues.append("Forecast accuracy below acceptable threshold")
            recommendations.append("Review recent data for anomalies or regime changes")
        elif metrics.accuracy < 0.8:
            status = "degraded"
            issues.append("Forecast accuracy could be improved")
            recommendations.append("Consider a longer history window for decomposition")
        else:
            status = "healthy"

        if any(item.mape > 15 for item in metrics.by_metric):
            issues.append("High prediction error rate")
            recommendations.append("Review input data quality and sensor coverage")

        latest = self._repository.get_latest_snapshot()
        return ModelHealth(
            status=status,
            last_update=latest.timestamp if latest else metrics.evaluated_at,
            metrics=metrics,
            issues=issues,
            recommendations=recommendations,
        )
