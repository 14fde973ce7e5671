"""HTTP controller layer for queue status, history and analytics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator, model_validator

from backend.controllers.dependencies import get_queue_status_service
from backend.domain.errors import InvalidRangeError
from backend.domain.models import RoomOccupancy, TriageBreakdown
from backend.services.queue_status_service import QueueDataNotFoundError, QueueStatusService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/queue", tags=["queue"])

TRIAGE_SUM_TOLERANCE = 1


class TriageModel(BaseModel):
    critical: int = Field(ge=0)
    urgent: int = Field(ge=0)
    standard: int = Field(ge=0)


class RoomOccupancyModel(BaseModel):
    total: int = Field(ge=0)
    occupied: int = Field(ge=0)
    available: int = Field(ge=0)


class QueueSnapshotResponse(BaseModel):
    snapshot_id: str
    timestamp: datetime
    total_patients: int = Field(ge=0)
    waiting_patients: int = Field(ge=0)
    average_wait_time: float = Field(ge=0.0)
    triage: TriageModel
    room_occupancy: RoomOccupancyModel


class CreateQueueDataRequest(BaseModel):
    """Manual snapshot entry; the timestamp defaults to the time of receipt."""

    total_patients: int = Field(ge=0)
    waiting_patients: int = Field(ge=0)
    average_wait_time: float = Field(ge=0.0)
    triage: TriageModel
    room_occupancy: RoomOccupancyModel
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def validate_counts(self) -> "CreateQueueDataRequest":
        if self.waiting_patients > self.total_patients:
            raise ValueError("waiting_patients cannot exceed total_patients")
        if self.room_occupancy.occupied > self.room_occupancy.total:
            raise ValueError("room_occupancy.occupied cannot exceed room_occupancy.total")
        rooms = self.room_occupancy
        if rooms.available != rooms.total - rooms.occupied:
            raise ValueError("room_occupancy.available must equal total minus occupied")
        triage = self.triage
        triage_total = triage.critical + triage.urgent + triage.standard
        if abs(triage_total - self.total_patients) > TRIAGE_SUM_TOLERANCE:
            raise ValueError(
                f"triage counts sum to {triage_total}, expected {self.total_patients} (±{TRIAGE_SUM_TOLERANCE})"
            )
        return self


class QueueAlertResponse(BaseModel):
    id: str
    type: str
    severity: str
    message: str
    timestamp: datetime
    acknowledged: bool


class QueueTrendsResponse(BaseModel):
    hourly_change: int
    daily_average: int = Field(ge=0)


class QueueStatusResponse(BaseModel):
    current: QueueSnapshotResponse
    trends: QueueTrendsResponse
    alerts: list[QueueAlertResponse]


class PeakHourResponse(BaseModel):
    hour: int = Field(ge=0, le=23)
    average_patients: int = Field(ge=0)


class BottleneckResponse(BaseModel):
    type: str
    severity: str
    description: str


class AnalyticsTrendsResponse(BaseModel):
    weekly_growth: int
    seasonal_pattern: str


class QueueAnalyticsResponse(BaseModel):
    peak_hours: list[PeakHourResponse]
    average_daily_volume: int = Field(ge=0)
    bottlenecks: list[BottleneckResponse]
    trends: AnalyticsTrendsResponse


@router.get("/current", response_model=QueueSnapshotResponse, status_code=status.HTTP_200_OK)
async def current_queue(
    service: QueueStatusService = Depends(get_queue_status_service),
) -> QueueSnapshotResponse:
    snapshot = service.get_current_status()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No current queue data available",
        )
    return QueueSnapshotResponse(**snapshot.to_dict())


@router.get("/status", response_model=QueueStatusResponse, status_code=status.HTTP_200_OK)
async def queue_status(
    service: QueueStatusService = Depends(get_queue_status_service),
) -> QueueStatusResponse:
    try:
        report = service.get_status_with_trends()
        return QueueStatusResponse(**report.to_dict())
    except QueueDataNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected queue status failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build queue status",
        ) from exc


@router.get(
    "/history/{hours}",
    response_model=list[QueueSnapshotResponse],
    status_code=status.HTTP_200_OK,
)
async def queue_history(
    hours: int,
    service: QueueStatusService = Depends(get_queue_status_service),
) -> list[QueueSnapshotResponse]:
    try:
        history = service.get_historical_data(hours)
        return [QueueSnapshotResponse(**snapshot.to_dict()) for snapshot in history]
    except InvalidRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.get("/analytics", response_model=QueueAnalyticsResponse, status_code=status.HTTP_200_OK)
async def queue_analytics(
    service: QueueStatusService = Depends(get_queue_status_service),
) -> QueueAnalyticsResponse:
    try:
        return QueueAnalyticsResponse(**service.get_analytics().to_dict())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected queue analytics failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute queue analytics",
        ) from exc


@router.post("/data", response_model=QueueSnapshotResponse, status_code=status.HTTP_201_CREATED)
async def create_queue_data(
    payload: CreateQueueDataRequest,
    service: QueueStatusService = Depends(get_queue_status_service),
) -> QueueSnapshotResponse:
    snapshot = service.create_snapshot(
        total_patients=payload.total_patients,
        waiting_patients=payload.waiting_patients,
        average_wait_time=payload.average_wait_time,
        triage=TriageBreakdown(**payload.triage.model_dump()),
        room_occupancy=RoomOccupancy(**payload.room_occupancy.model_dump()),
        timestamp=payload.timestamp,
    )
    logger.info("Queue data recorded manually | total=%s", snapshot.total_patients)
    return QueueSnapshotResponse(**snapshot.to_dict())
