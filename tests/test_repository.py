from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from backend.domain.models import QueueSnapshot, RoomOccupancy, SensorReading, SensorType, TriageBreakdown
from backend.repository.data_repository import DataRepository
from backend.utils.config import get_settings


NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _build_repository(**overrides) -> DataRepository:
    settings = replace(get_settings(), sensor_polling_enabled=False, **overrides)
    return DataRepository(settings, clock=lambda: NOW)


def _snapshot(timestamp: datetime, total: int = 10) -> QueueSnapshot:
    return QueueSnapshot(
        timestamp=timestamp,
        total_patients=total,
        waiting_patients=total,
        average_wait_time=30.0,
        triage=TriageBreakdown(critical=0, urgent=0, standard=total),
        room_occupancy=RoomOccupancy(total=20, occupied=0, available=20),
    )


def _reading(sensor_id: str, sensor_type: SensorType, timestamp: datetime, value: float = 1.0) -> SensorReading:
    return SensorReading(sensor_id=sensor_id, sensor_type=sensor_type, timestamp=timestamp, value=value)


def test_snapshots_are_kept_in_timestamp_order():
    repository = _build_repository()
    repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=1), total=11))
    repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=3), total=13))
    repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=2), total=12))

    history = repository.get_historical_data(24)

    assert [snapshot.total_patients for snapshot in history] == [13, 12, 11]
    assert repository.get_latest_snapshot().total_patients == 11


def test_latest_snapshot_is_none_when_empty():
    repository = _build_repository()
    assert repository.get_latest_snapshot() is None
    assert repository.get_historical_data(24) == []


def test_history_window_is_relative_to_clock():
    repository = _build_repository()
    for hours_back in (1, 5, 30):
        repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=hours_back)))

    assert len(repository.get_historical_data(6)) == 2
    assert len(repository.get_historical_data(48)) == 3


def test_snapshots_beyond_retention_are_evicted():
    repository = _build_repository(queue_history_retention_hours=24)
    repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=30)))
    repository.save_queue_snapshot(_snapshot(NOW - timedelta(hours=2)))

    assert repository.count_snapshots() == 1


def test_sensor_readings_filter_by_type_and_window():
    repository = _build_repository()
    repository.save_sensor_reading(_reading("a-1", SensorType.ARRIVAL, NOW - timedelta(minutes=10)))
    repository.save_sensor_reading(_reading("a-1", SensorType.ARRIVAL, NOW - timedelta(hours=3)))
    repository.save_sensor_reading(_reading("w-1", SensorType.WAIT_TIME, NOW - timedelta(minutes=5)))

    assert len(repository.get_sensor_readings(SensorType.ARRIVAL, 1)) == 1
    assert len(repository.get_sensor_readings(SensorType.ARRIVAL, 24)) == 2
    assert len(repository.get_sensor_readings(SensorType.WAIT_TIME, 1)) == 1


def test_old_sensor_readings_are_dropped():
    repository = _build_repository(sensor_retention_hours=24)
    repository.save_sensor_reading(_reading("a-1", SensorType.ARRIVAL, NOW - timedelta(hours=25)))
    repository.save_sensor_reading(_reading("a-1", SensorType.ARRIVAL, NOW))

    assert repository.count_sensor_readings() == 1


def test_sensor_health_tracks_latest_reading_per_sensor():
    repository = _build_repository()
    repository.save_sensor_reading(_reading("a-1", SensorType.ARRIVAL, NOW - timedelta(minutes=10)))
    repository.save_sensor_reading(_reading("a-1", SensorType.ARRIVAL, NOW))
    repository.save_sensor_reading(_reading("o-1", SensorType.OCCUPANCY, NOW - timedelta(minutes=1)))

    health = {item.sensor_id: item for item in repository.get_sensor_health()}
    system = repository.get_system_health()

    assert health["a-1"].last_reading == NOW
    assert health["a-1"].status == "online"
    assert system.total_sensors == 2
    assert system.active_sensors == 2
    assert system.last_data_update == NOW - timedelta(minutes=1)


def test_recent_readings_for_sensor_are_newest_first():
    repository = _build_repository()
    for minutes_back in (30, 10, 20):
        repository.save_sensor_reading(
            _reading("a-1", SensorType.ARRIVAL, NOW - timedelta(minutes=minutes_back), float(minutes_back))
        )

    recent = repository.get_recent_readings_for_sensor("a-1", limit=2)

    assert [reading.value for reading in recent] == [10.0, 20.0]
