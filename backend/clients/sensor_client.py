"""HTTP client for the sensor source that replays ER sensor readings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from backend.domain.models import SensorReading, SensorType
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


SENSOR_ENDPOINTS = {
    SensorType.ARRIVAL: "/api/sensors/patient-arrivals/next",
    SensorType.WAIT_TIME: "/api/sensors/wait-times/next",
    SensorType.OCCUPANCY: "/api/sensors/room-occupancy/next",
    SensorType.STAFF: "/api/sensors/staff-availability/next",
}


class SensorSourceError(Exception):
    """Raised when the sensor source cannot be reached or answers with an error."""


def _parse_timestamp(raw: Any) -> datetime:
    if not raw:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_sensor_payload(payload: dict[str, Any], sensor_type: SensorType) -> SensorReading:
    try:
        return SensorReading(
            sensor_id=str(payload["sensorId"]),
            sensor_type=sensor_type,
            timestamp=_parse_timestamp(payload.get("timestamp")),
            value=float(payload["value"]),
            metadata=dict(payload.get("metadata") or {}),
            location_id=payload.get("locationId"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise SensorSourceError(f"Malformed {sensor_type.value} reading: {exc}") from exc


class SensorSourceClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=self._settings.sensor_api_url,
            timeout=self._settings.sensor_api_timeout_seconds,
            transport=transport,
        )

    async def fetch_next(self, sensor_type: SensorType) -> Optional[SensorReading]:
        """Return the next reading, or ``None`` once the source has nothing left for this hour."""
        try:
            response = await self._client.get(SENSOR_ENDPOINTS[sensor_type])
        except httpx.HTTPError as exc:
            raise SensorSourceError(f"Failed to fetch {sensor_type.value} reading: {exc}") from exc

        if response.status_code == httpx.codes.NO_CONTENT:
            return None
        if response.is_error:
            raise SensorSourceError(
                f"Sensor source returned HTTP {response.status_code} for {sensor_type.value}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise SensorSourceError(f"Sensor source returned invalid JSON: {exc}") from exc
        return parse_sensor_payload(payload, sensor_type)

    async def check_health(self) -> bool:
        try:
            response = await self._client.get("/api/health")
        except httpx.HTTPError as exc:
            logger.warning("Sensor source health check failed | error=%s", exc)
            return False
        return response.is_success

    async def reset(self) -> None:
        try:
            response = await self._client.post("/api/sensors/reset")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SensorSourceError(f"Failed to reset sensor source: {exc}") from exc
        logger.info("Sensor source readings reset")

    async def aclose(self) -> None:
        await self._client.aclose()
