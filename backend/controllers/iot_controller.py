"""HTTP controller layer for sensor ingestion, sensor health and polling control."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.clients.sensor_client import SensorSourceError
from backend.controllers.dependencies import get_iot_service, get_sensor_poller
from backend.domain.errors import InvalidRangeError
from backend.domain.models import SensorType
from backend.services.iot_service import IoTDataService, SensorPoller
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/iot", tags=["iot"])


class SensorDataRequest(BaseModel):
    sensor_id: str = Field(min_length=1)
    sensor_type: SensorType
    value: float = Field(ge=0.0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    location_id: Optional[str] = None


class SensorReadingResponse(BaseModel):
    reading_id: str
    sensor_id: str
    sensor_type: SensorType
    timestamp: datetime
    value: float
    metadata: dict[str, Any]
    location_id: Optional[str] = None


class SensorHealthResponse(BaseModel):
    sensor_id: str
    sensor_type: SensorType
    status: str
    last_reading: datetime
    error_count: int = Field(ge=0)
    location: Optional[str] = None


class RecentValueResponse(BaseModel):
    timestamp: datetime
    value: float


class SensorSummaryResponse(BaseModel):
    sensor_id: str
    sensor_type: SensorType
    status: str
    last_reading: datetime
    location: Optional[str] = None
    recent_values: list[RecentValueResponse]


class SystemHealthResponse(BaseModel):
    total_sensors: int = Field(ge=0)
    online_sensors: int = Field(ge=0)
    offline_sensors: int = Field(ge=0)
    error_sensors: int = Field(ge=0)
    last_data_update: datetime
    data_quality: str


class PollingResponse(BaseModel):
    polling: bool
    message: str


class ResetSensorsResponse(BaseModel):
    message: str


class GenerateHistoryRequest(BaseModel):
    hours: int = 24


class GenerateHistoryResponse(BaseModel):
    message: str
    hours_generated: int = Field(ge=1)


@router.post(
    "/sensor-data",
    response_model=SensorReadingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def ingest_sensor_data(
    payload: SensorDataRequest,
    service: IoTDataService = Depends(get_iot_service),
) -> SensorReadingResponse:
    try:
        reading = service.process_sensor_reading(
            sensor_id=payload.sensor_id,
            sensor_type=payload.sensor_type,
            value=payload.value,
            metadata=payload.metadata,
            location_id=payload.location_id,
        )
        return SensorReadingResponse(**reading.to_dict())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected sensor ingestion failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process sensor reading",
        ) from exc


@router.get("/sensors", response_model=list[SensorSummaryResponse], status_code=status.HTTP_200_OK)
async def list_sensors(
    service: IoTDataService = Depends(get_iot_service),
) -> list[SensorSummaryResponse]:
    return [SensorSummaryResponse(**summary.to_dict()) for summary in service.get_sensor_summaries()]


@router.get(
    "/sensor-status",
    response_model=list[SensorHealthResponse],
    status_code=status.HTTP_200_OK,
)
async def sensor_status(
    service: IoTDataService = Depends(get_iot_service),
) -> list[SensorHealthResponse]:
    return [SensorHealthResponse(**health.to_dict()) for health in service.get_sensor_health()]


@router.get("/system-health", response_model=SystemHealthResponse, status_code=status.HTTP_200_OK)
async def system_health(
    service: IoTDataService = Depends(get_iot_service),
) -> SystemHealthResponse:
    return SystemHealthResponse(**service.get_system_health().to_dict())


@router.get(
    "/readings/{sensor_type}",
    response_model=list[SensorReadingResponse],
    status_code=status.HTTP_200_OK,
)
async def sensor_readings(
    sensor_type: SensorType,
    hours: int = 24,
    service: IoTDataService = Depends(get_iot_service),
) -> list[SensorReadingResponse]:
    try:
        readings = service.get_sensor_readings(sensor_type, hours)
        return [SensorReadingResponse(**reading.to_dict()) for reading in readings]
    except InvalidRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post("/start-polling", response_model=PollingResponse, status_code=status.HTTP_200_OK)
async def start_polling(poller: SensorPoller = Depends(get_sensor_poller)) -> PollingResponse:
    started = poller.start()
    return PollingResponse(
        polling=poller.is_running,
        message="Sensor polling started" if started else "Sensor polling already running",
    )


@router.post("/stop-polling", response_model=PollingResponse, status_code=status.HTTP_200_OK)
async def stop_polling(poller: SensorPoller = Depends(get_sensor_poller)) -> PollingResponse:
    stopped = await poller.stop()
    return PollingResponse(
        polling=poller.is_running,
        message="Sensor polling stopped" if stopped else "Sensor polling was not running",
    )


@router.post(
    "/generate-historical-data",
    response_model=GenerateHistoryResponse,
    status_code=status.HTTP_200_OK,
)
async def generate_historical_data(
    payload: Optional[GenerateHistoryRequest] = None,
    service: IoTDataService = Depends(get_iot_service),
) -> GenerateHistoryResponse:
    hours = payload.hours if payload is not None else GenerateHistoryRequest().hours
    try:
        generated = service.generate_synthetic_history(hours)
        return GenerateHistoryResponse(
            message=f"Generated {generated} hours of synthetic historical data",
            hours_generated=generated,
        )
    except InvalidRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post("/reset-sensors", response_model=ResetSensorsResponse, status_code=status.HTTP_200_OK)
async def reset_sensors(
    service: IoTDataService = Depends(get_iot_service),
) -> ResetSensorsResponse:
    try:
        await service.reset_sensor_source()
        return ResetSensorsResponse(message="Sensor source readings reset")
    except SensorSourceError as exc:
        logger.warning("Sensor source reset failed | error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
