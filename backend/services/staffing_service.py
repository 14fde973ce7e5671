"""Staffing recommendations and capacity risk derived from queue-length forecasts."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from backend.domain.models import (
    ForecastPoint,
    MetricType,
    PeakPeriod,
    QueueSnapshot,
    StaffingPlan,
    StaffingRecommendation,
    StaffingSummary,
    Urgency,
)
from backend.repository.data_repository import DataRepository
from backend.services.decomposition import sunday_based_weekday
from backend.services.forecast_service import ForecastService, generate_forecast, snapshots_to_series
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


HIGH_VOLUME_THRESHOLD = 80.0
MODERATE_VOLUME_THRESHOLD = 50.0
HIGH_VOLUME_PATIENTS_PER_STAFF = 10
MODERATE_VOLUME_PATIENTS_PER_STAFF = 12
HIGH_COST_HOURS = 50
MEDIUM_COST_HOURS = 20
DEFAULT_BASELINE_STAFF = 5

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

# Relative load per weekday (0 = Sunday) used when projecting future days.
DAY_OF_WEEK_FACTORS = {0: 1.1, 1: 0.95, 2: 1.0, 3: 1.02, 4: 1.05, 5: 1.15, 6: 1.2}


def hour_of_day_factor(hour: int) -> float:
    if 8 <= hour <= 10:
        return 1.2
    if 14 <= hour <= 16:
        return 0.9
    if 18 <= hour <= 20:
        return 1.3
    if hour >= 23 or hour <= 5:
        return 0.7
    return 1.0


def capacity_risk_tier(expected_patients: float) -> Urgency:
    if expected_patients > HIGH_VOLUME_THRESHOLD:
        return Urgency.HIGH
    if expected_patients > MODERATE_VOLUME_THRESHOLD:
        return Urgency.MEDIUM
    return Urgency.LOW


def cost_impact_band(additional_staff_hours: int) -> str:
    if additional_staff_hours > HIGH_COST_HOURS:
        return "High"
    if additional_staff_hours > MEDIUM_COST_HOURS:
        return "Medium"
    return "Low"


def recommend_for_slot(point: ForecastPoint, baseline_staff: int) -> StaffingRecommendation:
    """Apply the volume bands top-down; the first matching band wins."""
    expected = point.forecasted_value
    urgency = capacity_risk_tier(expected)
    if urgency is Urgency.HIGH:
        staff = math.ceil(expected / HIGH_VOLUME_PATIENTS_PER_STAFF)
        reasoning = f"High patient volume ({round(expected)}) requires additional staff"
    elif urgency is Urgency.MEDIUM:
        staff = math.ceil(expected / MODERATE_VOLUME_PATIENTS_PER_STAFF)
        reasoning = "Moderate increase in patient volume requires staff adjustment"
    else:
        staff = baseline_staff
        reasoning = "Normal staffing sufficient"
    return StaffingRecommendation(
        time_slot=point.timestamp,
        recommended_staff=max(staff, baseline_staff),
        reasoning=reasoning,
        urgency=urgency,
    )


def recommend_staffing(
    queue_forecast: Sequence[ForecastPoint],
    baseline_staff: int = DEFAULT_BASELINE_STAFF,
) -> StaffingPlan:
    recommendations: list[StaffingRecommendation] = []
    peak_periods: list[PeakPeriod] = []
    additional_hours = 0

    for point in queue_forecast:
        recommendation = recommend_for_slot(point, baseline_staff)
        recommendations.append(recommendation)
        if recommendation.urgency is Urgency.LOW:
            continue
        additional_hours += max(0, recommendation.recommended_staff - baseline_staff)
        peak_periods.append(
            PeakPeriod(
                start=point.timestamp,
                end=point.timestamp + timedelta(hours=1),
                severity=recommendation.urgency,
            )
        )

    return StaffingPlan(
        recommendations=recommendations,
        summary=StaffingSummary(
            total_additional_staff_hours=additional_hours,
            peak_periods=peak_periods,
            cost_impact=cost_impact_band(additional_hours),
        ),
    )


@dataclass(frozen=True)
class DailyCapacityForecast:
    date: datetime
    expected_peak_patients: int
    expected_peak_time: datetime
    capacity_utilization: float
    risk_level: Urgency

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "expected_peak_patients": self.expected_peak_patients,
            "expected_peak_time": self.expected_peak_time,
            "capacity_utilization": self.capacity_utilization,
            "risk_level": self.risk_level.value,
        }


@dataclass(frozen=True)
class WeeklyTrends:
    average_daily_patients: int
    peak_day_of_week: str
    growth_trend: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_daily_patients": self.average_daily_patients,
            "peak_day_of_week": self.peak_day_of_week,
            "growth_trend": self.growth_trend,
        }


@dataclass(frozen=True)
class CapacityOutlook:
    daily_forecasts: list[DailyCapacityForecast]
    weekly_trends: WeeklyTrends

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_forecasts": [item.to_dict() for item in self.daily_forecasts],
            "weekly_trends": self.weekly_trends.to_dict(),
        }


def reshape_history_for_day(history: Sequence[QueueSnapshot], weekday: int) -> list[QueueSnapshot]:
    """Scale a week of history to the load profile of the target weekday."""
    day_factor = DAY_OF_WEEK_FACTORS[weekday]
    reshaped: list[QueueSnapshot] = []
    for snapshot in history:
        combined = day_factor * hour_of_day_factor(snapshot.timestamp.hour)
        reshaped.append(
            replace(
                snapshot,
                total_patients=max(1, round(snapshot.total_patients * combined)),
                average_wait_time=max(5, round(snapshot.average_wait_time * (0.9 + combined * 0.1))),
            )
        )
    return reshaped


class CapacityPlanner:
    """Projects daily peak load and capacity risk over the coming days."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def forecast_capacity(self, days: int = 7) -> CapacityOutlook:
        history = self._repository.get_historical_data(self._settings.history_max_hours)
        now = self._repository.now
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)

        daily: list[DailyCapacityForecast] = []
        daily_averages: list[float] = []
        for offset in range(days):
            day_start = today + timedelta(days=offset)
            weekday = sunday_based_weekday(day_start)
            series = snapshots_to_series(
                reshape_history_for_day(history, weekday),
                MetricType.QUEUE_LENGTH,
            )
            # The forecast starts one step after the reference time, so step
            # back an hour to cover the day from midnight.
            forecast = generate_forecast(
                series,
                24,
                metric_type=MetricType.QUEUE_LENGTH,
                now=day_start - timedelta(hours=1),
                min_points=self._settings.forecast_min_points,
            )
            peak = max(forecast, key=lambda point: point.forecasted_value)
            daily_averages.append(sum(point.forecasted_value for point in forecast) / len(forecast))
            daily.append(
                DailyCapacityForecast(
                    date=day_start,
                    expected_peak_patients=round(peak.forecasted_value),
                    expected_peak_time=peak.timestamp,
                    capacity_utilization=round(
                        peak.forecasted_value / self._settings.capacity_max_patients, 4
                    ),
                    risk_level=capacity_risk_tier(peak.forecasted_value),
                )
            )

        peak_index = max(range(len(daily)), key=lambda index: daily[index].expected_peak_patients)
        first_average = daily_averages[0]
        growth = (
            (daily_averages[-1] - first_average) / first_average * 100.0
            if first_average > 0
            else 0.0
        )
        logger.info("Capacity outlook generated | days=%s | history_points=%s", days, len(history))
        return CapacityOutlook(
            daily_forecasts=daily,
            weekly_trends=WeeklyTrends(
                average_daily_patients=round(sum(daily_averages) / len(daily_averages)),
                peak_day_of_week=DAY_NAMES[sunday_based_weekday(daily[peak_index].date)],
                growth_trend=round(growth, 2),
            ),
        )


class StaffingService:
    """Turns queue-length forecasts into staffing plans."""

    def __init__(
        self,
        forecast_service: ForecastService,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._forecast_service = forecast_service

    def get_staffing_recommendations(self, forecast_hours: int = 24) -> StaffingPlan:
        bundle = self._forecast_service.predict_queue_metrics(forecast_hours)
        plan = recommend_staffing(bundle.queue_length, self._settings.baseline_staff)
        logger.info(
            "Staffing plan generated | hours=%s | additional_staff_hours=%s | cost_impact=%s",
            forecast_hours,
            plan.summary.total_additional_staff_hours,
            plan.summary.cost_impact,
        )
        return plan
