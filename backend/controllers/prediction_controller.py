"""HTTP controller layer for queue-length and wait-time forecasts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_forecast_service, get_request_bounds
from backend.domain.constraints import RequestBounds, validate_forecast_hours
from backend.domain.errors import EmptySeriesError, InsufficientDataError, InvalidRangeError
from backend.domain.models import InsightType, MetricType, Severity
from backend.services.forecast_service import INSIGHT_HORIZON_HOURS, ForecastService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


class ConfidenceIntervalModel(BaseModel):
    lower: float = Field(ge=0.0)
    upper: float = Field(ge=0.0)


class ForecastPointResponse(BaseModel):
    timestamp: datetime
    forecasted_value: float = Field(ge=0.0)
    confidence_interval: Optional[ConfidenceIntervalModel] = None
    horizon_index: int = Field(ge=0)
    metric_type: MetricType


class TimeFrameModel(BaseModel):
    start: datetime
    end: datetime


class InsightResponse(BaseModel):
    type: InsightType
    severity: Severity
    description: str
    recommended_action: Optional[str] = None
    timeframe: TimeFrameModel
    confidence: float = Field(ge=0.0, le=1.0)


class MetricForecastResponse(BaseModel):
    metric_type: MetricType
    forecast_hours: int = Field(ge=1)
    predictions: list[ForecastPointResponse]
    insights: list[InsightResponse]
    data_points_used: int = Field(ge=0)
    generated_at: datetime


class CustomForecastRequest(BaseModel):
    metric_type: MetricType
    forecast_hours: int
    include_confidence_interval: bool = True


class CustomForecastResponse(BaseModel):
    metric_type: MetricType
    forecast_hours: int = Field(ge=1)
    include_confidence_interval: bool
    predictions: list[ForecastPointResponse]
    data_points_used: int = Field(ge=0)
    generated_at: datetime


class InsightsResponse(BaseModel):
    insights: list[InsightResponse]
    forecast_horizon_hours: int
    data_points_used: int = Field(ge=0)
    generated_at: datetime


class MetricAccuracyResponse(BaseModel):
    metric_type: MetricType
    mae: float = Field(ge=0.0)
    rmse: float = Field(ge=0.0)
    mape: float = Field(ge=0.0)
    accuracy: float = Field(ge=0.0, le=1.0)
    evaluated_points: int = Field(ge=1)


class ModelMetricsResponse(BaseModel):
    model_name: str
    version: str
    accuracy: float = Field(ge=0.0, le=1.0)
    data_points_used: int = Field(ge=0)
    by_metric: list[MetricAccuracyResponse]
    evaluated_at: datetime


class ForecastBundleResponse(BaseModel):
    queue_length: list[ForecastPointResponse]
    wait_times: list[ForecastPointResponse]
    insights: list[InsightResponse]


class BatchEntryResponse(ForecastBundleResponse):
    forecast_hours: int = Field(ge=1)


class BatchResponse(BaseModel):
    batch_predictions: list[BatchEntryResponse]
    data_points_used: int = Field(ge=0)
    generated_at: datetime


@router.get("", response_model=MetricForecastResponse, status_code=status.HTTP_200_OK)
async def get_predictions(
    metric_type: MetricType = Query(default=MetricType.QUEUE_LENGTH),
    hours: int = Query(default=6),
    include_insights: bool = Query(default=False),
    service: ForecastService = Depends(get_forecast_service),
    bounds: RequestBounds = Depends(get_request_bounds),
) -> MetricForecastResponse:
    try:
        validate_forecast_hours(hours, bounds, basic=True)
        result = service.forecast_metric(
            metric_type,
            hours,
            include_insights=include_insights,
        )
        return MetricForecastResponse(
            forecast_hours=hours,
            generated_at=service.now,
            **result.to_dict(),
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
        logger.exception("Unexpected prediction failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate predictions",
        ) from exc


@router.post("", response_model=CustomForecastResponse, status_code=status.HTTP_200_OK)
async def create_custom_prediction(
    payload: CustomForecastRequest,
    service: ForecastService = Depends(get_forecast_service),
    bounds: RequestBounds = Depends(get_request_bounds),
) -> CustomForecastResponse:
    try:
        validate_forecast_hours(payload.forecast_hours, bounds)
        result = service.forecast_metric(
            payload.metric_type,
            payload.forecast_hours,
            history_hours=min(max(48, payload.forecast_hours * 2), bounds.history_max_hours),
        )
        predictions = [point.to_dict() for point in result.predictions]
        if not payload.include_confidence_interval:
            for point in predictions:
                point["confidence_interval"] = None
        return CustomForecastResponse(
            metric_type=payload.metric_type,
            forecast_hours=payload.forecast_hours,
            include_confidence_interval=payload.include_confidence_interval,
            predictions=predictions,
            data_points_used=result.data_points_used,
            generated_at=service.now,
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
        logger.exception("Unexpected custom prediction failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate predictions",
        ) from exc


@router.get("/insights", response_model=InsightsResponse, status_code=status.HTTP_200_OK)
async def get_insights(
    service: ForecastService = Depends(get_forecast_service),
) -> InsightsResponse:
    try:
        insights, data_points = service.generate_current_insights()
        return InsightsResponse(
            insights=[insight.to_dict() for insight in insights],
            forecast_horizon_hours=INSIGHT_HORIZON_HOURS,
            data_points_used=data_points,
            generated_at=service.now,
        )
    except (InsufficientDataError, EmptySeriesError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected insight generation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate insights",
        ) from exc


@router.get("/model/metrics", response_model=ModelMetricsResponse, status_code=status.HTTP_200_OK)
async def get_model_metrics(
    service: ForecastService = Depends(get_forecast_service),
) -> ModelMetricsResponse:
    return ModelMetricsResponse(**service.evaluate_accuracy().to_dict())


@router.get("/batch", response_model=BatchResponse, status_code=status.HTTP_200_OK)
async def get_batch_predictions(
    service: ForecastService = Depends(get_forecast_service),
) -> BatchResponse:
    try:
        results, data_points = service.batch_predictions()
        return BatchResponse(
            batch_predictions=[
                BatchEntryResponse(forecast_hours=hours, **bundle.to_dict())
                for hours, bundle in results
            ],
            data_points_used=data_points,
            generated_at=service.now,
        )
    except (InsufficientDataError, EmptySeriesError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected batch prediction failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate batch predictions",
        ) from exc
