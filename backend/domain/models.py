"""Domain models for queue snapshots, sensor readings and forecasts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


class MetricType(str, Enum):
    QUEUE_LENGTH = "queue-length"
    WAIT_TIME = "wait-time"


class SensorType(str, Enum):
    ARRIVAL = "arrival"
    WAIT_TIME = "wait-time"
    OCCUPANCY = "occupancy"
    STAFF = "staff"


class InsightType(str, Enum):
    PEAK_PREDICTION = "peak_prediction"
    CAPACITY_WARNING = "capacity_warning"
    TREND_CHANGE = "trend_change"
    SCENARIO_ANALYSIS = "scenario_analysis"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class TimePoint:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class TriageBreakdown:
    critical: int
    urgent: int
    standard: int

    def to_dict(self) -> dict[str, int]:
        return {
            "critical": self.critical,
            "urgent": self.urgent,
            "standard": self.standard,
        }


@dataclass(frozen=True)
class RoomOccupancy:
    total: int
    occupied: int
    available: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "occupied": self.occupied,
            "available": self.available,
        }


@dataclass(frozen=True)
class QueueSnapshot:
    """Point-in-time queue status; immutable once stored."""

    timestamp: datetime
    total_patients: int
    waiting_patients: int
    average_wait_time: float
    triage: TriageBreakdown
    room_occupancy: RoomOccupancy
    snapshot_id: str = field(default_factory=_new_id)

    def value_for(self, metric_type: MetricType) -> float:
        if metric_type is MetricType.QUEUE_LENGTH:
            return float(self.total_patients)
        return float(self.average_wait_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "timestamp": self.timestamp,
            "total_patients": self.total_patients,
            "waiting_patients": self.waiting_patients,
            "average_wait_time": self.average_wait_time,
            "triage": self.triage.to_dict(),
            "room_occupancy": self.room_occupancy.to_dict(),
        }


@dataclass(frozen=True)
class DecomposedSeries:
    trend: float
    hourly_pattern: dict[int, float]
    day_of_week_pattern: dict[int, float]
    seasonality: tuple[float, ...]


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float

    def to_dict(self) -> dict[str, float]:
        return {"lower": self.lower, "upper": self.upper}


@dataclass(frozen=True)
class ForecastPoint:
    timestamp: datetime
    forecasted_value: float
    confidence_interval: ConfidenceInterval
    horizon_index: int
    metric_type: MetricType

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "forecasted_value": self.forecasted_value,
            "confidence_interval": self.confidence_interval.to_dict(),
            "horizon_index": self.horizon_index,
            "metric_type": self.metric_type.value,
        }


@dataclass(frozen=True)
class TimeFrame:
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, datetime]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Insight:
    type: InsightType
    severity: Severity
    description: str
    timeframe: TimeFrame
    confidence: float
    recommended_action: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "recommended_action": self.recommended_action,
            "timeframe": self.timeframe.to_dict(),
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class StaffingRecommendation:
    time_slot: datetime
    recommended_staff: int
    reasoning: str
    urgency: Urgency

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_slot": self.time_slot,
            "recommended_staff": self.recommended_staff,
            "reasoning": self.reasoning,
            "urgency": self.urgency.value,
        }


@dataclass(frozen=True)
class PeakPeriod:
    start: datetime
    end: datetime
    severity: Urgency

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "severity": self.severity.value}


@dataclass(frozen=True)
class StaffingSummary:
    total_additional_staff_hours: int
    peak_periods: list[PeakPeriod]
    cost_impact: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_additional_staff_hours": self.total_additional_staff_hours,
            "peak_periods": [period.to_dict() for period in self.peak_periods],
            "cost_impact": self.cost_impact,
        }


@dataclass(frozen=True)
class StaffingPlan:
    recommendations: list[StaffingRecommendation]
    summary: StaffingSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommendations": [item.to_dict() for item in self.recommendations],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class SensorReading:
    sensor_id: str
    sensor_type: SensorType
    timestamp: datetime
    value: float
    metadata: dict[str, Any] = field(default_factory=dict)
    location_id: Optional[str] = None
    reading_id: str = field(default_factory=_new_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reading_id": self.reading_id,
            "sensor_id": self.sensor_id,
            "sensor_type": self.sensor_type.value,
            "timestamp": self.timestamp,
            "value": self.value,
            "metadata": dict(self.metadata),
            "location_id": self.location_id,
        }


@dataclass(frozen=True)
class SensorHealth:
    sensor_id: str
    sensor_type: SensorType
    status: str
    last_reading: datetime
    error_count: int = 0
    location: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "sensor_type": self.sensor_type.value,
            "status": self.status,
            "last_reading": self.last_reading,
            "error_count": self.error_count,
            "location": self.location,
        }
