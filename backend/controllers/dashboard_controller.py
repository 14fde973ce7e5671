"""Controller layer for dashboard payloads and service-level endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_app_settings, get_dashboard_service
from backend.controllers.iot_controller import SystemHealthResponse
from backend.controllers.queue_controller import QueueSnapshotResponse
from backend.services.dashboard_service import DashboardService
from backend.utils.config import Settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["dashboard"])


class RecentAlertResponse(BaseModel):
    id: str
    type: str
    severity: str
    message: str
    timestamp: datetime


class PeakHourTodayResponse(BaseModel):
    hour: int = Field(ge=0, le=23)
    patient_count: int = Field(ge=0)


class KeyMetricsResponse(BaseModel):
    total_patients_today: int = Field(ge=0)
    average_wait_time: int = Field(ge=0)
    peak_hour_today: Optional[PeakHourTodayResponse] = None
    system_uptime: int = Field(ge=0, le=100)


class DashboardOverviewResponse(BaseModel):
    queue_status: Optional[QueueSnapshotResponse] = None
    system_health: SystemHealthResponse
    recent_alerts: list[RecentAlertResponse]
    key_metrics: KeyMetricsResponse


class RealtimeResponse(BaseModel):
    timestamp: datetime
    queue_length: int = Field(ge=0)
    wait_time: float = Field(ge=0.0)
    room_occupancy: float = Field(ge=0.0)
    staff_available: float = Field(ge=0.0)
    active_sensors: int = Field(ge=0)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: datetime
    polling: bool
    snapshots_stored: int = Field(ge=0)


@router.get(
    "/api/dashboard/overview",
    response_model=DashboardOverviewResponse,
    status_code=status.HTTP_200_OK,
)
async def dashboard_overview(
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardOverviewResponse:
    try:
        return DashboardOverviewResponse(**service.get_overview())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected dashboard overview failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build dashboard overview",
        ) from exc


@router.get(
    "/api/dashboard/realtime",
    response_model=RealtimeResponse,
    status_code=status.HTTP_200_OK,
)
async def dashboard_realtime(
    service: DashboardService = Depends(get_dashboard_service),
) -> RealtimeResponse:
    try:
        return RealtimeResponse(**service.get_realtime())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected realtime dashboard failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build realtime dashboard data",
        ) from exc


@router.get("/api/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def service_health(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    poller = getattr(request.app.state, "sensor_poller", None)
    repository = getattr(request.app.state, "repository", None)
    return HealthResponse(
        status="ok",
        service=settings.app_name,
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
        polling=bool(poller is not None and poller.is_running),
        snapshots_stored=repository.count_snapshots() if repository is not None else 0,
    )


@router.get("/", include_in_schema=False)
async def service_root(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "endpoints": {
            "queue": "/api/queue",
            "iot": "/api/iot",
            "predictions": "/api/predictions",
            "advanced_predictions": "/api/predictions/advanced",
            "dashboard": "/api/dashboard",
            "health": "/api/health",
        },
    }
