"""Repository layer responsible for all in-memory storage.

Queue snapshots are kept in a bounded rolling window ordered by timestamp;
sensor readings are kept for a shorter window and feed a per-sensor health map.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from backend.domain.models import QueueSnapshot, SensorHealth, SensorReading, SensorType
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SystemHealthRecord:
    """Storage-level view of sensor fleet activity."""

    total_sensors: int
    active_sensors: int
    last_data_update: Optional[datetime]


class DataRepository:
    """Owns the snapshot history and sensor readings for the process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock
        self._snapshots: list[QueueSnapshot] = []
        self._snapshot_keys: list[datetime] = []
        self._readings: list[SensorReading] = []
        self._sensor_health: dict[str, SensorHealth] = {}

    @property
    def now(self) -> datetime:
        return self._clock()

    # --- Queue snapshots ---

    def save_queue_snapshot(self, snapshot: QueueSnapshot) -> QueueSnapshot:
        position = bisect.bisect_right(self._snapshot_keys, snapshot.timestamp)
        self._snapshot_keys.insert(position, snapshot.timestamp)
        self._snapshots.insert(position, snapshot)
        self._evict_snapshots()
        return snapshot

    def _evict_snapshots(self) -> None:
        cutoff = self.now - timedelta(hours=self._settings.queue_history_retention_hours)
        first_kept = bisect.bisect_left(self._snapshot_keys, cutoff)
        if first_kept:
            del self._snapshot_keys[:first_kept]
            del self._snapshots[:first_kept]
            logger.debug("Evicted %s queue snapshots older than %s", first_kept, cutoff)

    def get_latest_snapshot(self) -> Optional[QueueSnapshot]:
        if not self._snapshots:
            return None
        return self._snapshots[-1]

    def get_historical_data(self, hours: int) -> list[QueueSnapshot]:
        cutoff = self.now - timedelta(hours=hours)
        first = bisect.bisect_left(self._snapshot_keys, cutoff)
        return list(self._snapshots[first:])

    def count_snapshots(self) -> int:
        return len(self._snapshots)

    # --- Sensor readings ---

    def save_sensor_reading(self, reading: SensorReading) -> SensorReading:
        self._readings.append(reading)
        self._update_sensor_health(reading)
        cutoff = self.now - timedelta(hours=self._settings.sensor_retention_hours)
        self._readings = [item for item in self._readings if item.timestamp >= cutoff]
        return reading

    def get_sensor_readings(self, sensor_type: SensorType, hours: int) -> list[SensorReading]:
        end = self.now
        start = end - timedelta(hours=hours)
        return [
            reading
            for reading in self._readings
            if reading.sensor_type is sensor_type and start <= reading.timestamp <= end
        ]

    def get_recent_readings_for_sensor(self, sensor_id: str, limit: int) -> list[SensorReading]:
        matching = [reading for reading in self._readings if reading.sensor_id == sensor_id]
        matching.sort(key=lambda reading: reading.timestamp, reverse=True)
        return matching[:limit]

    def count_sensor_readings(self) -> int:
        return len(self._readings)

    def _update_sensor_health(self, reading: SensorReading) -> None:
        existing = self._sensor_health.get(reading.sensor_id)
        self._sensor_health[reading.sensor_id] = SensorHealth(
            sensor_id=reading.sensor_id,
            sensor_type=reading.sensor_type,
            status="online",
            last_reading=reading.timestamp,
            error_count=existing.error_count if existing else 0,
            location=reading.location_id,
        )

    def get_sensor_health(self) -> list[SensorHealth]:
        return list(self._sensor_health.values())

    def get_system_health(self) -> SystemHealthRecord:
        sensors = self.get_sensor_health()
        return SystemHealthRecord(
            total_sensors=len(sensors),
            active_sensors=sum(1 for sensor in sensors if sensor.status == "online"),
            last_data_update=self._readings[-1].timestamp if self._readings else None,
        )
