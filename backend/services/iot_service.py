"""Sensor ingestion, background polling of the sensor source and synthetic history."""

from __future__ import annotations

import asyncio
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from backend.clients.sensor_client import SensorSourceClient, SensorSourceError
from backend.domain.constraints import RequestBounds, validate_history_hours
from backend.domain.models import (
    QueueSnapshot,
    RoomOccupancy,
    SensorHealth,
    SensorReading,
    SensorType,
    TriageBreakdown,
)
from backend.repository.data_repository import DataRepository
from backend.services.queue_aggregator import QueueStateAggregator
from backend.services.queue_status_service import QueueStatusService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


AGGREGATION_WINDOW_HOURS = 1
SUMMARY_RECENT_VALUES = 10
GOOD_DATA_QUALITY = 0.8
DEGRADED_DATA_QUALITY = 0.5


@dataclass(frozen=True)
class SensorSummary:
    health: SensorHealth
    recent_values: list[SensorReading]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sensor_id": self.health.sensor_id,
            "sensor_type": self.health.sensor_type.value,
            "status": self.health.status,
            "last_reading": self.health.last_reading,
            "location": self.health.location,
            "recent_values": [
                {"timestamp": reading.timestamp, "value": reading.value}
                for reading in self.recent_values
            ],
        }


@dataclass(frozen=True)
class IoTSystemHealth:
    total_sensors: int
    online_sensors: int
    offline_sensors: int
    error_sensors: int
    last_data_update: datetime
    data_quality: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sensors": self.total_sensors,
            "online_sensors": self.online_sensors,
            "offline_sensors": self.offline_sensors,
            "error_sensors": self.error_sensors,
            "last_data_update": self.last_data_update,
            "data_quality": self.data_quality,
        }


def data_quality_label(online: int, total: int) -> str:
    ratio = online / total if total else 0.0
    if ratio < DEGRADED_DATA_QUALITY:
        return "poor"
    if ratio < GOOD_DATA_QUALITY:
        return "degraded"
    return "good"


def _synthetic_patients(rng: random.Random, hour: int) -> int:
    if 8 <= hour <= 18:
        return rng.randrange(10, 25)
    if 19 <= hour <= 23:
        return rng.randrange(8, 20)
    return rng.randrange(3, 11)


def synthetic_snapshot(rng: random.Random, timestamp: datetime, total_rooms: int) -> QueueSnapshot:
    total = _synthetic_patients(rng, timestamp.hour)
    occupied = min(total + rng.randrange(0, 5), total_rooms)
    critical = math.floor(total * (0.05 + rng.random() * 0.1))
    urgent = math.floor(total * (0.2 + rng.random() * 0.2))
    return QueueSnapshot(
        timestamp=timestamp,
        total_patients=total,
        waiting_patients=max(0, total - occupied),
        average_wait_time=float(rng.randrange(20, 60)),
        triage=TriageBreakdown(
            critical=critical,
            urgent=urgent,
            standard=max(0, total - critical - urgent),
        ),
        room_occupancy=RoomOccupancy(
            total=total_rooms,
            occupied=occupied,
            available=total_rooms - occupied,
        ),
    )


class IoTDataService:
    """Stores sensor readings and folds them into queue snapshots."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        aggregator: Optional[QueueStateAggregator] = None,
        queue_status_service: Optional[QueueStatusService] = None,
        client: Optional[SensorSourceClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._aggregator = aggregator or QueueStateAggregator(self._settings)
        self._queue_status_service = queue_status_service or QueueStatusService(
            repository=self._repository,
            settings=self._settings,
        )
        self._client = client
        self._bounds = RequestBounds.from_settings(self._settings)

    def process_sensor_reading(
        self,
        *,
        sensor_id: str,
        sensor_type: SensorType,
        value: float,
        metadata: Optional[dict[str, Any]] = None,
        location_id: Optional[str] = None,
    ) -> SensorReading:
        """Store a reading stamped with the ingestion time, then try a queue update."""
        reading = self._repository.save_sensor_reading(
            SensorReading(
                sensor_id=sensor_id,
                sensor_type=sensor_type,
                timestamp=self._repository.now,
                value=value,
                metadata=dict(metadata or {}),
                location_id=location_id,
            )
        )
        self.update_queue_from_sensors()
        return reading

    def update_queue_from_sensors(self) -> Optional[QueueSnapshot]:
        readings = {
            sensor_type: self._repository.get_sensor_readings(sensor_type, AGGREGATION_WINDOW_HOURS)
            for sensor_type in SensorType
        }
        snapshot = self._aggregator.aggregate(
            arrivals=readings[SensorType.ARRIVAL],
            wait_times=readings[SensorType.WAIT_TIME],
            occupancy=readings[SensorType.OCCUPANCY],
            staff=readings[SensorType.STAFF],
            current=self._queue_status_service.get_current_status(),
            timestamp=self._repository.now,
        )
        if snapshot is None:
            return None
        return self._queue_status_service.record_snapshot(snapshot)

    def get_sensor_health(self) -> list[SensorHealth]:
        return self._repository.get_sensor_health()

    def get_sensor_summaries(self) -> list[SensorSummary]:
        return [
            SensorSummary(
                health=health,
                recent_values=self._repository.get_recent_readings_for_sensor(
                    health.sensor_id,
                    SUMMARY_RECENT_VALUES,
                ),
            )
            for health in self.get_sensor_health()
        ]

    def get_system_health(self) -> IoTSystemHealth:
        sensors = self.get_sensor_health()
        online = sum(1 for sensor in sensors if sensor.status == "online")
        offline = sum(1 for sensor in sensors if sensor.status == "offline")
        errored = sum(1 for sensor in sensors if sensor.status == "error")
        last_update = (
            max(sensor.last_reading for sensor in sensors) if sensors else self._repository.now
        )
        return IoTSystemHealth(
            total_sensors=len(sensors),
            online_sensors=online,
            offline_sensors=offline,
            error_sensors=errored,
            last_data_update=last_update,
            data_quality=data_quality_label(online, len(sensors)),
        )

    def get_sensor_readings(self, sensor_type: SensorType, hours: int = 24) -> list[SensorReading]:
        validate_history_hours(hours, self._bounds)
        return self._repository.get_sensor_readings(sensor_type, hours)

    async def poll_once(self) -> int:
        """Run one polling cycle; returns the number of readings ingested."""
        if self._client is None:
            logger.warning("Polling cycle skipped | reason=no sensor source configured")
            return 0
        if not await self._client.check_health():
            logger.warning("Polling cycle skipped | reason=sensor source unhealthy")
            return 0

        ingested = 0
        try:
            for sensor_type in SensorType:
                reading = await self._client.fetch_next(sensor_type)
                if reading is None:
                    continue
                self.process_sensor_reading(
                    sensor_id=reading.sensor_id,
                    sensor_type=reading.sensor_type,
                    value=reading.value,
                    metadata=reading.metadata,
                    location_id=reading.location_id,
                )
                ingested += 1
                logger.debug("Processed %s reading | value=%s", sensor_type.value, reading.value)
        except SensorSourceError as exc:
            logger.error("Polling cycle aborted | ingested=%s | error=%s", ingested, exc)
        return ingested

    async def reset_sensor_source(self) -> None:
        """Rewind the sensor source so its replay starts from the first reading."""
        if self._client is None:
            raise SensorSourceError("no sensor source configured")
        await self._client.reset()

    def generate_synthetic_history(self, hours: int, seed: Optional[int] = None) -> int:
        """Backfill one snapshot per hour for the last ``hours`` hours."""
        validate_history_hours(hours, self._bounds)
        rng = random.Random(self._settings.synthetic_random_seed if seed is None else seed)
        now = self._repository.now
        for hours_back in range(hours, 0, -1):
            self._queue_status_service.record_snapshot(
                synthetic_snapshot(
                    rng,
                    now - timedelta(hours=hours_back),
                    self._settings.queue_total_rooms,
                )
            )
        logger.info("Synthetic history generated | hours=%s", hours)
        return hours


class SensorPoller:
    """Background task that polls the sensor source until stopped."""

    def __init__(self, service: IoTDataService, interval_seconds: float) -> None:
        self._service = service
        self._interval = interval_seconds
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        if self.is_running:
            logger.info("Sensor polling already running")
            return False
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))
        logger.info("Sensor polling started | interval_seconds=%s", self._interval)
        return True

    async def stop(self) -> bool:
        if self._stop_event is None or self._task is None or self._task.done():
            return False
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Sensor polling stopped")
        return True

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self._service.poll_once()
            except Exception:  # pragma: no cover - defensive fallback
                logger.exception("Unexpected error during sensor polling cycle")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
