"""What-if scaling of a base forecast under named operating scenarios.

Simulation never touches the snapshot history: the base forecast is scaled in
memory and the result is discarded after the request.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from backend.domain.constraints import validate_baseline_multiplier
from backend.domain.errors import InvalidScenarioError
from backend.domain.models import (
    ConfidenceInterval,
    ForecastPoint,
    Insight,
    InsightType,
    Severity,
    TimeFrame,
)
from backend.services.forecast_service import ForecastBundle, ForecastService
from backend.utils.logger import get_logger


logger = get_logger(__name__)


SCENARIO_MULTIPLIERS = {
    "normal": 1.0,
    "high_volume": 1.5,
    "emergency": 2.0,
    "staff_shortage": 1.3,
}

SCENARIO_DESCRIPTIONS = {
    "normal": "Normal operational scenario",
    "high_volume": "High volume scenario with 50% increased patient load",
    "emergency": "Emergency scenario with doubled patient load",
    "staff_shortage": "Staff shortage scenario with 30% increased wait times",
}

SCENARIO_ACTIONS = {
    "high_volume": "Prepare for increased patient volume",
    "emergency": "Activate emergency protocols and call additional staff",
    "staff_shortage": "Arrange backup staffing and extend shifts",
}

SCENARIO_CONFIDENCE = 0.8


@dataclass(frozen=True)
class ScenarioResult:
    scenario: str
    description: str
    multiplier: float
    baseline_multiplier: float
    duration_hours: int
    queue_length: list[ForecastPoint]
    wait_times: list[ForecastPoint]
    insights: list[Insight]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "description": self.description,
            "multiplier": self.multiplier,
            "baseline_multiplier": self.baseline_multiplier,
            "duration_hours": self.duration_hours,
            "predictions": {
                "queue_length": [point.to_dict() for point in self.queue_length],
                "wait_times": [point.to_dict() for point in self.wait_times],
            },
            "insights": [insight.to_dict() for insight in self.insights],
        }


def require_known_scenario(scenario: str) -> str:
    if scenario not in SCENARIO_MULTIPLIERS:
        raise InvalidScenarioError(
            f"Unknown scenario '{scenario}'. Expected one of: {', '.join(SCENARIO_MULTIPLIERS)}"
        )
    return scenario


def _scale(points: list[ForecastPoint], factor: float) -> list[ForecastPoint]:
    return [
        replace(
            point,
            forecasted_value=round(point.forecasted_value * factor, 2),
            confidence_interval=ConfidenceInterval(
                lower=round(point.confidence_interval.lower * factor, 2),
                upper=round(point.confidence_interval.upper * factor, 2),
            ),
        )
        for point in points
    ]


def _scenario_insight(scenario: str, duration_hours: int, now: datetime) -> Insight:
    return Insight(
        type=InsightType.SCENARIO_ANALYSIS,
        severity=Severity.CRITICAL if scenario == "emergency" else Severity.WARNING,
        description=f"{SCENARIO_DESCRIPTIONS[scenario]} - immediate action may be required",
        recommended_action=SCENARIO_ACTIONS[scenario],
        timeframe=TimeFrame(start=now, end=now + timedelta(hours=duration_hours)),
        confidence=SCENARIO_CONFIDENCE,
    )


def simulate_scenario(
    base: ForecastBundle,
    scenario: str,
    baseline_multiplier: float = 1.0,
    duration_hours: int = 12,
    now: Optional[datetime] = None,
) -> ScenarioResult:
    """Scale ``base`` by the scenario multiplier.

    Queue length scales linearly. Wait time scales with the square root of the
    multiplier, except under staff shortage where it scales linearly.
    """
    require_known_scenario(scenario)
    validate_baseline_multiplier(baseline_multiplier)

    multiplier = SCENARIO_MULTIPLIERS[scenario]
    wait_factor = multiplier if scenario == "staff_shortage" else math.sqrt(multiplier)

    insights = list(base.insights)
    if scenario != "normal":
        insights.append(
            _scenario_insight(scenario, duration_hours, now or datetime.now(timezone.utc))
        )

    return ScenarioResult(
        scenario=scenario,
        description=SCENARIO_DESCRIPTIONS[scenario],
        multiplier=multiplier,
        baseline_multiplier=baseline_multiplier,
        duration_hours=duration_hours,
        queue_length=_scale(base.queue_length, multiplier * baseline_multiplier),
        wait_times=_scale(base.wait_times, wait_factor * baseline_multiplier),
        insights=insights,
    )


class ScenarioService:
    """Runs scenarios against a fresh forecast of the stored history."""

    def __init__(self, forecast_service: ForecastService) -> None:
        self._forecast_service = forecast_service

    def run(
        self,
        scenario: str,
        duration_hours: int = 12,
        baseline_multiplier: float = 1.0,
        now: Optional[datetime] = None,
    ) -> ScenarioResult:
        require_known_scenario(scenario)
        validate_baseline_multiplier(baseline_multiplier)
        base = self._forecast_service.predict_queue_metrics(duration_hours)
        result = simulate_scenario(
            base,
            scenario,
            baseline_multiplier=baseline_multiplier,
            duration_hours=duration_hours,
            now=now or self._forecast_service.now,
        )
        logger.info(
            "Scenario simulated | scenario=%s | hours=%s | multiplier=%s",
            scenario,
            duration_hours,
            result.multiplier,
        )
        return result
