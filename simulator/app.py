"""
simulator/app.py — Mock ER sensor source.

Replays one fixed hour of sensor readings (5-minute spacing, starting at the
top of the current UTC hour). Each ``/next`` call hands out the following
reading for that sensor type and answers 204 once the hour is exhausted.

Usage:
    uvicorn simulator.app:app --port 8001
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Optional

from fastapi import FastAPI, Response, status


READINGS_PER_HOUR = 12
READING_SPACING_MINUTES = 5
ARRIVAL_PATTERN = (2, 1, 3, 0, 2, 1, 4, 2, 1, 3, 2, 0)

SENSOR_TYPES = ("patientArrivals", "waitTimes", "roomOccupancy", "staffAvailability")


@dataclass(frozen=True)
class ReplayReading:
    timestamp: datetime
    value: float


def _arrival_value(index: int) -> float:
    # Quiet intervals still report a single arrival.
    return float(ARRIVAL_PATTERN[index % len(ARRIVAL_PATTERN)] or 1)


def _wait_value(index: int) -> float:
    return float(45 + index * 3 + math.floor(math.sin(index) * 5))


def _occupancy_value(index: int) -> float:
    return float(min(20, 12 + index // 2))


def _staff_value(index: int) -> float:
    return float(max(5, 8 - index // 3))


_VALUE_RULES: dict[str, Callable[[int], float]] = {
    "patientArrivals": _arrival_value,
    "waitTimes": _wait_value,
    "roomOccupancy": _occupancy_value,
    "staffAvailability": _staff_value,
}


def build_hour_readings(now: Optional[datetime] = None) -> dict[str, list[ReplayReading]]:
    reference = now or datetime.now(timezone.utc)
    hour_start = reference.replace(minute=0, second=0, microsecond=0)
    timestamps = [
        hour_start + timedelta(minutes=READING_SPACING_MINUTES * index)
        for index in range(READINGS_PER_HOUR)
    ]
    return {
        sensor_type: [
            ReplayReading(timestamp=timestamp, value=rule(index))
            for index, timestamp in enumerate(timestamps)
        ]
        for sensor_type, rule in _VALUE_RULES.items()
    }


class ReadingReplay:
    """Hands out the hour's readings one at a time per sensor type."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self._readings = build_hour_readings(now)
        self._positions = {sensor_type: 0 for sensor_type in SENSOR_TYPES}
        self._lock = Lock()

    def next_reading(self, sensor_type: str) -> Optional[dict[str, Any]]:
        with self._lock:
            readings = self._readings[sensor_type]
            index = self._positions[sensor_type]
            if index >= len(readings):
                return None
            self._positions[sensor_type] = index + 1

        reading = readings[index]
        return {
            "sensorId": f"{sensor_type}-sensor-001",
            "sensorType": sensor_type,
            "timestamp": reading.timestamp.isoformat(),
            "value": reading.value,
            "metadata": {
                "readingIndex": index,
                "totalReadings": len(readings),
                "hasMoreReadings": index + 1 < len(readings),
            },
        }

    def reset(self) -> None:
        with self._lock:
            for sensor_type in SENSOR_TYPES:
                self._positions[sensor_type] = 0

    def status(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                sensor_type: {
                    "current_index": self._positions[sensor_type],
                    "total_readings": len(self._readings[sensor_type]),
                    "has_more_readings": self._positions[sensor_type] < len(self._readings[sensor_type]),
                }
                for sensor_type in SENSOR_TYPES
            }


def create_app(replay: Optional[ReadingReplay] = None) -> FastAPI:
    app = FastAPI(title="Mock ER Sensor Source", version="1.0.0")
    app.state.replay = replay or ReadingReplay()

    def _next(sensor_type: str) -> Any:
        reading = app.state.replay.next_reading(sensor_type)
        if reading is None:
            return Response(status_code=status.HTTP_204_NO_CONTENT)
        return reading

    @app.get("/api/sensors/patient-arrivals/next")
    async def next_patient_arrival() -> Any:
        return _next("patientArrivals")

    @app.get("/api/sensors/wait-times/next")
    async def next_wait_time() -> Any:
        return _next("waitTimes")

    @app.get("/api/sensors/room-occupancy/next")
    async def next_room_occupancy() -> Any:
        return _next("roomOccupancy")

    @app.get("/api/sensors/staff-availability/next")
    async def next_staff_availability() -> Any:
        return _next("staffAvailability")

    @app.get("/api/sensors/status")
    async def sensor_status() -> dict[str, Any]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "sensors": app.state.replay.status(),
            "available_sensor_types": list(SENSOR_TYPES),
        }

    @app.post("/api/sensors/reset")
    async def reset_sensors() -> dict[str, Any]:
        app.state.replay.reset()
        return {
            "message": "All sensor readings reset to beginning of current hour",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": app.state.replay.status(),
        }

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {
            "status": "ok",
            "service": "mock-sensor-source",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health")
    async def health_alias() -> dict[str, str]:
        return await health()

    return app


app = create_app()
