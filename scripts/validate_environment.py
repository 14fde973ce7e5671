#!/usr/bin/env python3
"""Validate local ER queue forecasting environment readiness."""

from __future__ import annotations

import importlib
import sys
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.models import SensorType
from backend.repository.data_repository import DataRepository
from backend.services.forecast_service import ForecastService
from backend.services.iot_service import IoTDataService
from backend.services.staffing_service import StaffingService
from backend.utils.config import get_settings
from simulator.app import SENSOR_TYPES, ReadingReplay

SEPARATOR_LINE = "=" * 44
VALIDATION_HISTORY_HOURS = 48
VALIDATION_FORECAST_HOURS = 12


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("numpy", "numpy"),
        ("pandas", "pandas"),
        ("httpx", "httpx"),
        ("requests", "requests"),
        ("streamlit", "streamlit"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    try:
        from importlib.metadata import version
    except Exception:  # pragma: no cover
        version = None  # type: ignore[assignment]
    for module_name, dist_name in package_specs:
        try:
            module = importlib.import_module(module_name)
            if version is not None:
                _ = version(dist_name)
            else:
                _ = getattr(module, "__version__", "unknown")
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    validation_settings = replace(
        get_settings(),
        sensor_polling_enabled=False,
        synthetic_history_hours=0,
    )
    repository = DataRepository(validation_settings)
    iot_service = IoTDataService(repository=repository, settings=validation_settings)
    forecast_service = ForecastService(repository=repository, settings=validation_settings)

    # CHECK 3: Synthetic history generation
    try:
        generated = iot_service.generate_synthetic_history(VALIDATION_HISTORY_HOURS)
        stored = repository.count_snapshots()
        if stored != generated:
            raise RuntimeError(f"expected {generated} snapshots, got {stored}")
        ok, line = _print_result(
            "Synthetic history",
            True,
            f": {stored} hourly snapshots",
        )
    except Exception as exc:
        ok, line = _print_result("Synthetic history", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 4: Forecast generation
    try:
        bundle = forecast_service.predict_queue_metrics(VALIDATION_FORECAST_HOURS)
        if len(bundle.queue_length) != VALIDATION_FORECAST_HOURS:
            raise RuntimeError(f"expected {VALIDATION_FORECAST_HOURS} points, got {len(bundle.queue_length)}")
        if any(point.forecasted_value < 0 for point in bundle.queue_length + bundle.wait_times):
            raise RuntimeError("negative forecast value")
        peak = max(point.forecasted_value for point in bundle.queue_length)
        ok, line = _print_result(
            "Forecast generation",
            True,
            f": peak queue={peak:.2f} insights={len(bundle.insights)}",
        )
    except Exception as exc:
        ok, line = _print_result("Forecast generation", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 5: Staffing plan
    try:
        plan = StaffingService(forecast_service, validation_settings).get_staffing_recommendations(24)
        ok, line = _print_result(
            "Staffing plan",
            True,
            f": cost impact={plan.summary.cost_impact}",
        )
    except Exception as exc:
        ok, line = _print_result("Staffing plan", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 6: Sensor replay and aggregation
    try:
        replay = ReadingReplay()
        ingested = 0
        for sensor_type, simulator_name in zip(SensorType, SENSOR_TYPES):
            payload = replay.next_reading(simulator_name)
            if payload is None:
                raise RuntimeError(f"no reading available for {simulator_name}")
            iot_service.process_sensor_reading(
                sensor_id=payload["sensorId"],
                sensor_type=sensor_type,
                value=payload["value"],
            )
            ingested += 1
        health = iot_service.get_system_health()
        if health.online_sensors != ingested:
            raise RuntimeError(f"expected {ingested} online sensors, got {health.online_sensors}")
        ok, line = _print_result(
            "Sensor replay",
            True,
            f": {ingested} readings, data quality {health.data_quality}",
        )
    except Exception as exc:
        ok, line = _print_result("Sensor replay", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    print(SEPARATOR_LINE)
    print(" ER Queue Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
