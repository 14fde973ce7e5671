"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from backend.domain.constraints import RequestBounds
from backend.services.dashboard_service import DashboardService
from backend.services.forecast_service import ForecastService
from backend.services.iot_service import IoTDataService, SensorPoller
from backend.services.queue_status_service import QueueStatusService
from backend.services.scenario_service import ScenarioService
from backend.services.staffing_service import CapacityPlanner, StaffingService
from backend.utils.config import Settings, get_settings


def _from_state(request: Request, attribute: str, label: str) -> Any:
    value = getattr(request.app.state, attribute, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return value


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_request_bounds(request: Request) -> RequestBounds:
    return RequestBounds.from_settings(get_app_settings(request))


def get_queue_status_service(request: Request) -> QueueStatusService:
    return _from_state(request, "queue_status_service", "Queue status service")


def get_iot_service(request: Request) -> IoTDataService:
    return _from_state(request, "iot_service", "IoT data service")


def get_sensor_poller(request: Request) -> SensorPoller:
    return _from_state(request, "sensor_poller", "Sensor poller")


def get_forecast_service(request: Request) -> ForecastService:
    return _from_state(request, "forecast_service", "Forecast service")


def get_staffing_service(request: Request) -> StaffingService:
    return _from_state(request, "staffing_service", "Staffing service")


def get_capacity_planner(request: Request) -> CapacityPlanner:
    return _from_state(request, "capacity_planner", "Capacity planner")


def get_scenario_service(request: Request) -> ScenarioService:
    return _from_state(request, "scenario_service", "Scenario service")


def get_dashboard_service(request: Request) -> DashboardService:
    return _from_state(request, "dashboard_service", "Dashboard service")
