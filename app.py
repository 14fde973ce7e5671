"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.clients.sensor_client import SensorSourceClient
from backend.controllers.advanced_prediction_controller import router as advanced_prediction_router
from backend.controllers.dashboard_controller import router as dashboard_router
from backend.controllers.iot_controller import router as iot_router
from backend.controllers.prediction_controller import router as prediction_router
from backend.controllers.queue_controller import router as queue_router
from backend.repository.data_repository import DataRepository
from backend.services.dashboard_service import DashboardService
from backend.services.forecast_service import ForecastService
from backend.services.iot_service import IoTDataService, SensorPoller
from backend.services.queue_aggregator import QueueStateAggregator
from backend.services.queue_status_service import QueueStatusService
from backend.services.scenario_service import ScenarioService
from backend.services.staffing_service import CapacityPlanner, StaffingService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[DataRepository] = None,
    sensor_client: Optional[SensorSourceClient] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    No global singletons; every dependency is traceable from this function.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # --- Repository (in-memory snapshot and sensor windows) ---
    repository = repository or DataRepository(settings)

    # --- Services ---
    queue_status_service = QueueStatusService(repository=repository, settings=settings)
    sensor_client = sensor_client or SensorSourceClient(settings=settings)
    iot_service = IoTDataService(
        repository=repository,
        settings=settings,
        aggregator=QueueStateAggregator(settings),
        queue_status_service=queue_status_service,
        client=sensor_client,
    )
    sensor_poller = SensorPoller(iot_service, settings.sensor_polling_interval_seconds)
    forecast_service = ForecastService(repository=repository, settings=settings)
    staffing_service = StaffingService(forecast_service=forecast_service, settings=settings)
    capacity_planner = CapacityPlanner(repository=repository, settings=settings)
    scenario_service = ScenarioService(forecast_service=forecast_service)
    dashboard_service = DashboardService(
        queue_status_service=queue_status_service,
        iot_service=iot_service,
        repository=repository,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Seed history and start polling before accepting requests."""
        _startup(app)
        try:
            yield
        finally:
            await _shutdown(app)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(queue_router)
    app.include_router(iot_router)
    app.include_router(prediction_router)
    app.include_router(advanced_prediction_router)
    app.include_router(dashboard_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.repository = repository
    app.state.queue_status_service = queue_status_service
    app.state.sensor_client = sensor_client
    app.state.iot_service = iot_service
    app.state.sensor_poller = sensor_poller
    app.state.forecast_service = forecast_service
    app.state.staffing_service = staffing_service
    app.state.capacity_planner = capacity_planner
    app.state.scenario_service = scenario_service
    app.state.dashboard_service = dashboard_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Startup sequence.

    Synthetic history is generated first so forecasts have data before the
    first polled reading arrives.
    """
    settings: Settings = app.state.settings
    iot_service: IoTDataService = app.state.iot_service
    sensor_poller: SensorPoller = app.state.sensor_poller

    if settings.synthetic_history_hours > 0:
        logger.info("Startup: generating %s hours of synthetic history", settings.synthetic_history_hours)
        iot_service.generate_synthetic_history(settings.synthetic_history_hours)

    if settings.sensor_polling_enabled:
        logger.info("Startup: starting sensor polling against %s", settings.sensor_api_url)
        sensor_poller.start()
    else:
        logger.info("Startup: sensor polling disabled")

    logger.info("Startup complete, system ready")


async def _shutdown(app: FastAPI) -> None:
    sensor_poller: SensorPoller = app.state.sensor_poller
    sensor_client: SensorSourceClient = app.state.sensor_client
    await sensor_poller.stop()
    await sensor_client.aclose()
    logger.info("Shutdown complete")


# Module-level app object for uvicorn
app = create_app()
