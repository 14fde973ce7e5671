"""Queue status reads, manual snapshot entry, operational analytics and alerts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence
from uuid import uuid4

import pandas as pd

from backend.domain.constraints import RequestBounds, validate_history_hours
from backend.domain.models import QueueSnapshot, RoomOccupancy, TriageBreakdown
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


ANALYTICS_WINDOW_HOURS = 168
STATUS_WINDOW_HOURS = 24
PEAK_HOUR_COUNT = 3

HIGH_VOLUME_PATIENTS = 50
CRITICAL_VOLUME_PATIENTS = 75
LONG_WAIT_MINUTES = 90
CRITICAL_WAIT_MINUTES = 150
CRITICAL_TRIAGE_PATIENTS = 5
HIGH_OCCUPANCY_RATE = 0.9
CRITICAL_OCCUPANCY_RATE = 0.95

STAFFING_BOTTLENECK_WAIT = 60
HIGH_STAFFING_BOTTLENECK_WAIT = 120


class QueueDataNotFoundError(Exception):
    """Raised when no queue snapshot has been recorded yet."""


@dataclass(frozen=True)
class QueueAlert:
    type: str
    severity: str
    message: str
    timestamp: datetime
    acknowledged: bool = False
    alert_id: str = field(default_factory=lambda: uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.alert_id,
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
            "timestamp": self.timestamp,
            "acknowledged": self.acknowledged,
        }


@dataclass(frozen=True)
class QueueStatusReport:
    current: QueueSnapshot
    hourly_change: int
    daily_average: int
    alerts: list[QueueAlert]

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current.to_dict(),
            "trends": {
                "hourly_change": self.hourly_change,
                "daily_average": self.daily_average,
            },
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


@dataclass(frozen=True)
class QueueAnalytics:
    peak_hours: list[dict[str, int]]
    average_daily_volume: int
    bottlenecks: list[dict[str, str]]
    weekly_growth: int
    seasonal_pattern: str = "Normal"

    def to_dict(self) -> dict[str, Any]:
        return {
            "peak_hours": [dict(item) for item in self.peak_hours],
            "average_daily_volume": self.average_daily_volume,
            "bottlenecks": [dict(item) for item in self.bottlenecks],
            "trends": {
                "weekly_growth": self.weekly_growth,
                "seasonal_pattern": self.seasonal_pattern,
            },
        }


def hourly_averages(snapshots: Sequence[QueueSnapshot]) -> list[dict[str, int]]:
    """Average patients and wait per hour of day, rounded to whole numbers."""
    if not snapshots:
        return []
    frame = pd.DataFrame(
        {
            "hour": [snapshot.timestamp.hour for snapshot in snapshots],
            "patients": [snapshot.total_patients for snapshot in snapshots],
            "wait": [snapshot.average_wait_time for snapshot in snapshots],
        }
    )
    grouped = frame.groupby("hour", sort=True).mean()
    return [
        {
            "hour": int(hour),
            "average_patients": int(round(row["patients"])),
            "average_wait_time": int(round(row["wait"])),
        }
        for hour, row in grouped.iterrows()
    ]


def identify_bottlenecks(snapshots: Sequence[QueueSnapshot]) -> list[dict[str, str]]:
    if not snapshots:
        return []

    average_wait = sum(snapshot.average_wait_time for snapshot in snapshots) / len(snapshots)
    average_occupancy = sum(
        snapshot.room_occupancy.occupied / snapshot.room_occupancy.total
        for snapshot in snapshots
        if snapshot.room_occupancy.total > 0
    ) / len(snapshots)

    bottlenecks: list[dict[str, str]] = []
    if average_wait > STAFFING_BOTTLENECK_WAIT:
        bottlenecks.append(
            {
                "type": "staffing",
                "severity": "high" if average_wait > HIGH_STAFFING_BOTTLENECK_WAIT else "medium",
                "description": f"Average wait time is {round(average_wait)} minutes",
            }
        )
    if average_occupancy > HIGH_OCCUPANCY_RATE:
        bottlenecks.append(
            {
                "type": "rooms",
                "severity": "high" if average_occupancy > CRITICAL_OCCUPANCY_RATE else "medium",
                "description": f"Room occupancy is {round(average_occupancy * 100)}%",
            }
        )
    return bottlenecks


def weekly_growth(snapshots: Sequence[QueueSnapshot]) -> int:
    """Percent change of mean volume between the older and newer half of the window."""
    if len(snapshots) < 2:
        return 0
    ordered = sorted(snapshots, key=lambda snapshot: snapshot.timestamp)
    middle = len(ordered) // 2
    first = sum(item.total_patients for item in ordered[:middle]) / middle
    second = sum(item.total_patients for item in ordered[middle:]) / (len(ordered) - middle)
    if first <= 0:
        return 0
    return round((second - first) / first * 100)


def hourly_change(snapshots: Sequence[QueueSnapshot]) -> int:
    """Patients now minus the newest snapshot at least an hour older."""
    if len(snapshots) < 2:
        return 0
    ordered = sorted(snapshots, key=lambda snapshot: snapshot.timestamp, reverse=True)
    latest = ordered[0]
    for snapshot in ordered[1:]:
        if latest.timestamp - snapshot.timestamp >= timedelta(hours=1):
            return latest.total_patients - snapshot.total_patients
    return 0


def generate_alerts(current: QueueSnapshot, now: datetime) -> list[QueueAlert]:
    alerts: list[QueueAlert] = []

    if current.total_patients > HIGH_VOLUME_PATIENTS:
        alerts.append(
            QueueAlert(
                type="high_volume",
                severity="critical" if current.total_patients > CRITICAL_VOLUME_PATIENTS else "high",
                message=f"High patient volume: {current.total_patients} patients",
                timestamp=now,
            )
        )

    if current.average_wait_time > LONG_WAIT_MINUTES:
        alerts.append(
            QueueAlert(
                type="long_wait",
                severity="critical" if current.average_wait_time > CRITICAL_WAIT_MINUTES else "high",
                message=f"Long wait times: {current.average_wait_time:g} minutes average",
                timestamp=now,
            )
        )

    if current.triage.critical > CRITICAL_TRIAGE_PATIENTS:
        alerts.append(
            QueueAlert(
                type="critical_patient",
                severity="critical",
                message=f"{current.triage.critical} critical patients waiting",
                timestamp=now,
            )
        )

    rooms = current.room_occupancy
    occupancy_rate = rooms.occupied / rooms.total if rooms.total else 0.0
    if occupancy_rate > HIGH_OCCUPANCY_RATE:
        alerts.append(
            QueueAlert(
                type="room_capacity",
                severity="critical" if occupancy_rate > CRITICAL_OCCUPANCY_RATE else "high",
                message=f"Room capacity at {round(occupancy_rate * 100)}%",
                timestamp=now,
            )
        )

    return alerts


class QueueStatusService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._bounds = RequestBounds.from_settings(self._settings)

    def get_current_status(self) -> Optional[QueueSnapshot]:
        return self._repository.get_latest_snapshot()

    def get_historical_data(self, hours: int) -> list[QueueSnapshot]:
        validate_history_hours(hours, self._bounds)
        return self._repository.get_historical_data(hours)

    def record_snapshot(self, snapshot: QueueSnapshot) -> QueueSnapshot:
        saved = self._repository.save_queue_snapshot(snapshot)
        logger.debug(
            "Queue snapshot stored | id=%s | total=%s | timestamp=%s",
            saved.snapshot_id,
            saved.total_patients,
            saved.timestamp.isoformat(),
        )
        return saved

    def create_snapshot(
        self,
        *,
        total_patients: int,
        waiting_patients: int,
        average_wait_time: float,
        triage: TriageBreakdown,
        room_occupancy: RoomOccupancy,
        timestamp: Optional[datetime] = None,
    ) -> QueueSnapshot:
        return self.record_snapshot(
            QueueSnapshot(
                timestamp=timestamp or self._repository.now,
                total_patients=total_patients,
                waiting_patients=waiting_patients,
                average_wait_time=average_wait_time,
                triage=triage,
                room_occupancy=room_occupancy,
            )
        )

    def get_status_with_trends(self) -> QueueStatusReport:
        current = self.get_current_status()
        if current is None:
            raise QueueDataNotFoundError("No current queue data available")

        last_day = self._repository.get_historical_data(STATUS_WINDOW_HOURS)
        daily_average = (
            round(sum(snapshot.total_patients for snapshot in last_day) / len(last_day))
            if last_day
            else 0
        )
        return QueueStatusReport(
            current=current,
            hourly_change=hourly_change(last_day),
            daily_average=daily_average,
            alerts=generate_alerts(current, self._repository.now),
        )

    def get_analytics(self) -> QueueAnalytics:
        last_week = self._repository.get_historical_data(ANALYTICS_WINDOW_HOURS)
        last_day = self._repository.get_historical_data(STATUS_WINDOW_HOURS)

        averages = hourly_averages(last_week)
        peaks = sorted(averages, key=lambda item: item["average_patients"], reverse=True)
        days = ANALYTICS_WINDOW_HOURS // 24
        return QueueAnalytics(
            peak_hours=[
                {"hour": item["hour"], "average_patients": item["average_patients"]}
                for item in peaks[:PEAK_HOUR_COUNT]
            ],
            average_daily_volume=(
                round(sum(snapshot.total_patients for snapshot in last_week) / days)
                if last_week
                else 0
            ),
            bottlenecks=identify_bottlenecks(last_day),
            weekly_growth=weekly_growth(last_week),
        )
