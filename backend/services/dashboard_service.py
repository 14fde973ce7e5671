"""Dashboard aggregation over queue status and sensor health."""

from __future__ import annotations

from typing import Any, Optional

import pandas as pd

from backend.domain.models import SensorType
from backend.repository.data_repository import DataRepository
from backend.services.iot_service import IoTDataService
from backend.services.queue_status_service import QueueStatusService
from backend.utils.config import Settings, get_settings


RECENT_ALERT_LIMIT = 5
KEY_METRICS_WINDOW_HOURS = 24


class DashboardService:
    """Builds the overview and real-time payloads for the operator dashboard."""

    def __init__(
        self,
        queue_status_service: QueueStatusService,
        iot_service: IoTDataService,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._queue_status_service = queue_status_service
        self._iot_service = iot_service

    def get_overview(self) -> dict[str, Any]:
        current = self._queue_status_service.get_current_status()
        system_health = self._iot_service.get_system_health()

        recent_alerts: list[dict[str, Any]] = []
        if current is not None:
            report = self._queue_status_service.get_status_with_trends()
            recent_alerts = [
                {
                    "id": alert.alert_id,
                    "type": alert.type,
                    "severity": alert.severity,
                    "message": alert.message,
                    "timestamp": alert.timestamp,
                }
                for alert in report.alerts[:RECENT_ALERT_LIMIT]
            ]

        return {
            "queue_status": current.to_dict() if current is not None else None,
            "system_health": system_health.to_dict(),
            "recent_alerts": recent_alerts,
            "key_metrics": self._key_metrics(
                system_health.online_sensors,
                system_health.total_sensors,
            ),
        }

    def _key_metrics(self, online_sensors: int, total_sensors: int) -> dict[str, Any]:
        last_day = self._repository.get_historical_data(KEY_METRICS_WINDOW_HOURS)

        peak_hour: Optional[dict[str, int]] = None
        total_today = 0
        average_wait = 0
        if last_day:
            frame = pd.DataFrame(
                {
                    "hour": [snapshot.timestamp.hour for snapshot in last_day],
                    "patients": [snapshot.total_patients for snapshot in last_day],
                    "wait": [snapshot.average_wait_time for snapshot in last_day],
                }
            )
            total_today = int(frame["patients"].max())
            average_wait = int(round(frame["wait"].mean()))
            hourly_max = frame.groupby("hour", sort=True)["patients"].max()
            if hourly_max.max() > 0:
                # idxmax keeps the earliest hour among ties.
                peak_hour = {
                    "hour": int(hourly_max.idxmax()),
                    "patient_count": int(hourly_max.max()),
                }

        return {
            "total_patients_today": total_today,
            "average_wait_time": average_wait,
            "peak_hour_today": peak_hour,
            "system_uptime": (
                round(online_sensors / total_sensors * 100) if total_sensors else 100
            ),
        }

    def get_realtime(self) -> dict[str, Any]:
        current = self._queue_status_service.get_current_status()
        system_health = self._iot_service.get_system_health()
        occupancy = self._repository.get_sensor_readings(SensorType.OCCUPANCY, 1)
        staff = self._repository.get_sensor_readings(SensorType.STAFF, 1)

        return {
            "timestamp": self._repository.now,
            "queue_length": current.total_patients if current is not None else 0,
            "wait_time": current.average_wait_time if current is not None else 0,
            "room_occupancy": occupancy[-1].value if occupancy else 0,
            "staff_available": staff[-1].value if staff else 0,
            "active_sensors": system_health.online_sensors,
        }
