"""HTTP controller layer for staffing, capacity, scenario and model-health endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    get_capacity_planner,
    get_forecast_service,
    get_request_bounds,
    get_scenario_service,
    get_staffing_service,
)
from backend.controllers.prediction_controller import (
    ForecastBundleResponse,
    ForecastPointResponse,
    InsightResponse,
    ModelMetricsResponse,
)
from backend.domain.constraints import (
    RequestBounds,
    validate_capacity_days,
    validate_forecast_hours,
)
from backend.domain.errors import (
    EmptySeriesError,
    InsufficientDataError,
    InvalidRangeError,
    InvalidScenarioError,
)
from backend.domain.models import Severity, Urgency
from backend.services.forecast_service import ForecastService
from backend.services.scenario_service import ScenarioService
from backend.services.staffing_service import CapacityPlanner, StaffingService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/predictions/advanced", tags=["advanced-predictions"])

SUMMARY_HORIZON_HOURS = 24
SUMMARY_INSIGHT_LIMIT = 3


class AdvancedMetricsResponse(ForecastBundleResponse):
    forecast_hours: int = Field(ge=1)
    generated_at: datetime


class StaffingRecommendationResponse(BaseModel):
    time_slot: datetime
    recommended_staff: int = Field(ge=0)
    reasoning: str
    urgency: Urgency


class PeakPeriodResponse(BaseModel):
    start: datetime
    end: datetime
    severity: Urgency


class StaffingSummaryResponse(BaseModel):
    total_additional_staff_hours: int = Field(ge=0)
    peak_periods: list[PeakPeriodResponse]
    cost_impact: str


class StaffingPlanResponse(BaseModel):
    forecast_hours: int = Field(ge=1)
    recommendations: list[StaffingRecommendationResponse]
    summary: StaffingSummaryResponse
    generated_at: datetime


class DailyCapacityResponse(BaseModel):
    date: datetime
    expected_peak_patients: int = Field(ge=0)
    expected_peak_time: datetime
    capacity_utilization: float = Field(ge=0.0)
    risk_level: Urgency


class WeeklyTrendsResponse(BaseModel):
    average_daily_patients: int = Field(ge=0)
    peak_day_of_week: str
    growth_trend: float


class CapacityResponse(BaseModel):
    forecast_days: int = Field(ge=1)
    daily_forecasts: list[DailyCapacityResponse]
    weekly_trends: WeeklyTrendsResponse
    generated_at: datetime


class ModelHealthResponse(BaseModel):
    status: str
    last_update: datetime
    metrics: ModelMetricsResponse
    issues: list[str]
    recommendations: list[str]


class ScenarioRequest(BaseModel):
    scenario: str = Field(min_length=1)
    baseline_multiplier: float = 1.0
    duration_hours: int = 12


class ScenarioPredictionsResponse(BaseModel):
    queue_length: list[ForecastPointResponse]
    wait_times: list[ForecastPointResponse]


class ScenarioResponse(BaseModel):
    scenario: str
    description: str
    multiplier: float = Field(gt=0.0)
    baseline_multiplier: float = Field(gt=0.0)
    duration_hours: int = Field(ge=1)
    predictions: ScenarioPredictionsResponse
    insights: list[InsightResponse]
    generated_at: datetime


class NextDayOutlookResponse(BaseModel):
    max_expected_queue_length: int = Field(ge=0)
    max_expected_wait_time: int = Field(ge=0)
    critical_alerts_count: int = Field(ge=0)
    high_urgency_staffing_periods: int = Field(ge=0)


class ModelStatusResponse(BaseModel):
    health: str
    accuracy: float = Field(ge=0.0, le=1.0)
    last_update: datetime


class StaffingDigestResponse(BaseModel):
    total_additional_hours: int = Field(ge=0)
    peak_periods: int = Field(ge=0)
    cost_impact: str


class PredictionSummaryResponse(BaseModel):
    next_24_hours: NextDayOutlookResponse
    model_status: ModelStatusResponse
    key_insights: list[InsightResponse]
    staffing_summary: StaffingDigestResponse
    generated_at: datetime


@router.get("/metrics", response_model=AdvancedMetricsResponse, status_code=status.HTTP_200_OK)
async def advanced_metrics(
    hours: int = Query(default=12),
    service: ForecastService = Depends(get_forecast_service),
    bounds: RequestBounds = Depends(get_request_bounds),
) -> AdvancedMetricsResponse:
    try:
        validate_forecast_hours(hours, bounds)
        bundle = service.predict_queue_metrics(hours)
        return AdvancedMetricsResponse(
            forecast_hours=hours,
            generated_at=service.now,
            **bundle.to_dict(),
        )
    except InvalidRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except (InsufficientDataError, EmptySeriesError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected advanced metrics failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate advanced predictions",
        ) from exc


@router.get("/staffing", response_model=StaffingPlanResponse, status_code=status.HTTP_200_OK)
async def staffing_recommendations(
    hours: int = Query(default=24),
    service: StaffingService = Depends(get_staffing_service),
    forecast_service: ForecastService = Depends(get_forecast_service),
    bounds: RequestBounds = Depends(get_request_bounds),
) -> StaffingPlanResponse:
    try:
        validate_forecast_hours(hours, bounds)
        plan = service.get_staffing_recommendations(hours)
        return StaffingPlanResponse(
            forecast_hours=hours,
            generated_at=forecast_service.now,
            **plan.to_dict(),
        )
    except InvalidRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except (InsufficientDataError, EmptySeriesError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected staffing recommendation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate staffing recommendations",
        ) from exc


@router.get("/capacity", response_model=CapacityResponse, status_code=status.HTTP_200_OK)
async def capacity_forecast(
    days: int = Query(default=7),
    planner: CapacityPlanner = Depends(get_capacity_planner),
    forecast_service: ForecastService = Depends(get_forecast_service),
    bounds: RequestBounds = Depends(get_request_bounds),
) -> CapacityResponse:
    try:
        validate_capacity_days(days, bounds)
        outlook = planner.forecast_capacity(days)
        return CapacityResponse(
            forecast_days=days,
            generated_at=forecast_service.now,
            **outlook.to_dict(),
        )
    except InvalidRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except (InsufficientDataError, EmptySeriesError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected capacity forecast failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate capacity forecast",
        ) from exc


@router.get("/accuracy", response_model=ModelMetricsResponse, status_code=status.HTTP_200_OK)
async def prediction_accuracy(
    service: ForecastService = Depends(get_forecast_service),
) -> ModelMetricsResponse:
    return ModelMetricsResponse(**service.evaluate_accuracy().to_dict())


@router.get("/health", response_model=ModelHealthResponse, status_code=status.HTTP_200_OK)
async def model_health(
    service: ForecastService = Depends(get_forecast_service),
) -> ModelHealthResponse:
    return ModelHealthResponse(**service.get_model_health().to_dict())


@router.post("/scenario", response_model=ScenarioResponse, status_code=status.HTTP_200_OK)
async def run_scenario(
    payload: ScenarioRequest,
    service: ScenarioService = Depends(get_scenario_service),
    forecast_service: ForecastService = Depends(get_forecast_service),
    bounds: RequestBounds = Depends(get_request_bounds),
) -> ScenarioResponse:
    try:
        validate_forecast_hours(payload.duration_hours, bounds)
        result = service.run(
            payload.scenario,
            duration_hours=payload.duration_hours,
            baseline_multiplier=payload.baseline_multiplier,
        )
        return ScenarioResponse(generated_at=forecast_service.now, **result.to_dict())
    except (InvalidRangeError, InvalidScenarioError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except (InsufficientDataError, EmptySeriesError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected scenario analysis failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run scenario analysis",
        ) from exc


@router.get("/summary", response_model=PredictionSummaryResponse, status_code=status.HTTP_200_OK)
async def prediction_summary(
    forecast_service: ForecastService = Depends(get_forecast_service),
    staffing_service: StaffingService = Depends(get_staffing_service),
) -> PredictionSummaryResponse:
    try:
        bundle = forecast_service.predict_queue_metrics(SUMMARY_HORIZON_HOURS)
        plan = staffing_service.get_staffing_recommendations(SUMMARY_HORIZON_HOURS)
        health = forecast_service.get_model_health()
    except (InsufficientDataError, EmptySeriesError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc

    max_queue = max(
        (point.forecasted_value for point in bundle.queue_length), default=0.0
    )
    max_wait = max(
        (point.forecasted_value for point in bundle.wait_times), default=0.0
    )
    return PredictionSummaryResponse(
        next_24_hours=NextDayOutlookResponse(
            max_expected_queue_length=round(max_queue),
            max_expected_wait_time=round(max_wait),
            critical_alerts_count=sum(
                1 for insight in bundle.insights if insight.severity is Severity.CRITICAL
            ),
            high_urgency_staffing_periods=sum(
                1 for item in plan.recommendations if item.urgency is Urgency.HIGH
            ),
        ),
        model_status=ModelStatusResponse(
            health=health.status,
            accuracy=health.metrics.accuracy,
            last_update=health.last_update,
        ),
        key_insights=[insight.to_dict() for insight in bundle.insights[:SUMMARY_INSIGHT_LIMIT]],
        staffing_summary=StaffingDigestResponse(
            total_additional_hours=plan.summary.total_additional_staff_hours,
            peak_periods=len(plan.summary.peak_periods),
            cost_impact=plan.summary.cost_impact,
        ),
        generated_at=forecast_service.now,
    )
