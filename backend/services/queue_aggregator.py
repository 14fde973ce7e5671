"""Combines the latest sensor readings into a new queue snapshot."""

from __future__ import annotations

import math
import time
from datetime import datetime
from typing import Callable, Optional, Sequence

from backend.domain.models import QueueSnapshot, RoomOccupancy, SensorReading, TriageBreakdown
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


ARRIVAL_WINDOW = 3
ARRIVAL_RATE_PIVOT = 2.0
ARRIVAL_RATE_GAIN = 0.5
CRITICAL_SHARE = 0.1
URGENT_SHARE = 0.3


class DebounceGate:
    """Rejects updates that arrive sooner than ``min_interval_seconds`` after the last accepted one."""

    def __init__(
        self,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._last_accepted: Optional[float] = None

    def is_open(self) -> bool:
        if self._last_accepted is None:
            return True
        return self._clock() - self._last_accepted >= self._min_interval

    def mark(self) -> None:
        self._last_accepted = self._clock()


def _latest(readings: Sequence[SensorReading]) -> Optional[SensorReading]:
    if not readings:
        return None
    return max(readings, key=lambda reading: reading.timestamp)


class QueueStateAggregator:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        gate: Optional[DebounceGate] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._gate = gate or DebounceGate(self._settings.queue_update_debounce_seconds)

    def aggregate(
        self,
        arrivals: Sequence[SensorReading],
        wait_times: Sequence[SensorReading],
        occupancy: Sequence[SensorReading],
        staff: Sequence[SensorReading],
        current: Optional[QueueSnapshot],
        timestamp: datetime,
    ) -> Optional[QueueSnapshot]:
        """Derive the next snapshot, or ``None`` when debounced or a reading is missing.

        Staff readings are accepted for completeness but do not affect the
        snapshot.
        """
        if not self._gate.is_open():
            logger.debug("Queue update skipped | reason=debounced")
            return None

        latest_wait = _latest(wait_times)
        latest_occupancy = _latest(occupancy)
        if not arrivals or latest_wait is None or latest_occupancy is None:
            logger.info(
                "Queue update skipped | reason=missing readings | arrivals=%s | wait=%s | occupancy=%s",
                len(arrivals),
                len(wait_times),
                len(occupancy),
            )
            return None

        recent_arrivals = sorted(arrivals, key=lambda reading: reading.timestamp)[-ARRIVAL_WINDOW:]
        average_rate = sum(reading.value for reading in recent_arrivals) / len(recent_arrivals)
        delta = math.floor((average_rate - ARRIVAL_RATE_PIVOT) * ARRIVAL_RATE_GAIN)

        current_total = (
            current.total_patients
            if current is not None
            else self._settings.queue_default_total_patients
        )
        total = min(
            self._settings.queue_max_patients,
            max(self._settings.queue_min_patients, current_total + delta),
        )

        total_rooms = self._settings.queue_total_rooms
        occupied = max(0, min(int(latest_occupancy.value), total, total_rooms))
        critical = math.floor(total * CRITICAL_SHARE)
        urgent = math.floor(total * URGENT_SHARE)

        snapshot = QueueSnapshot(
            timestamp=timestamp,
            total_patients=total,
            waiting_patients=max(0, total - occupied),
            average_wait_time=float(latest_wait.value),
            triage=TriageBreakdown(
                critical=critical,
                urgent=urgent,
                standard=total - critical - urgent,
            ),
            room_occupancy=RoomOccupancy(
                total=total_rooms,
                occupied=occupied,
                available=max(0, total_rooms - occupied),
            ),
        )
        self._gate.mark()
        logger.info(
            "Queue snapshot aggregated | total=%s | waiting=%s | occupied=%s | avg_arrival_rate=%.2f",
            total,
            snapshot.waiting_patients,
            occupied,
            average_rate,
        )
        return snapshot
