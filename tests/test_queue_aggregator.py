from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from backend.domain.models import QueueSnapshot, RoomOccupancy, SensorReading, SensorType, TriageBreakdown
from backend.services.queue_aggregator import DebounceGate, QueueStateAggregator
from backend.utils.config import get_settings


NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self) -> None:
        self.value = 100.0

    def __call__(self) -> float:
        return self.value


def _readings(sensor_type: SensorType, values: list[float]) -> list[SensorReading]:
    return [
        SensorReading(
            sensor_id=f"{sensor_type.value}-1",
            sensor_type=sensor_type,
            timestamp=NOW - timedelta(minutes=5 * (len(values) - index)),
            value=value,
        )
        for index, value in enumerate(values)
    ]


def _current(total: int) -> QueueSnapshot:
    return QueueSnapshot(
        timestamp=NOW - timedelta(minutes=30),
        total_patients=total,
        waiting_patients=total,
        average_wait_time=30.0,
        triage=TriageBreakdown(critical=0, urgent=0, standard=total),
        room_occupancy=RoomOccupancy(total=20, occupied=0, available=20),
    )


def _aggregate(
    aggregator: QueueStateAggregator,
    arrivals: list[float],
    current: Optional[QueueSnapshot] = None,
    wait: Optional[list[float]] = None,
    occupancy: Optional[list[float]] = None,
) -> Optional[QueueSnapshot]:
    return aggregator.aggregate(
        arrivals=_readings(SensorType.ARRIVAL, arrivals),
        wait_times=_readings(SensorType.WAIT_TIME, [45.0] if wait is None else wait),
        occupancy=_readings(SensorType.OCCUPANCY, [12.0] if occupancy is None else occupancy),
        staff=_readings(SensorType.STAFF, [8.0]),
        current=current,
        timestamp=NOW,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def aggregator(clock: FakeClock) -> QueueStateAggregator:
    settings = replace(get_settings(), sensor_polling_enabled=False)
    return QueueStateAggregator(settings, gate=DebounceGate(2.0, clock=clock))


def test_first_snapshot_starts_from_default_total(aggregator):
    snapshot = _aggregate(aggregator, [2.0, 2.0, 2.0])

    assert snapshot is not None
    assert snapshot.timestamp == NOW
    assert snapshot.total_patients == 10
    assert snapshot.room_occupancy.occupied == 10
    assert snapshot.room_occupancy.total == 20
    assert snapshot.room_occupancy.available == 10
    assert snapshot.waiting_patients == 0
    assert snapshot.triage == TriageBreakdown(critical=1, urgent=3, standard=6)
    assert snapshot.average_wait_time == 45.0


def test_arrival_rate_above_pivot_grows_queue(aggregator):
    snapshot = _aggregate(aggregator, [4.0, 4.0, 4.0], current=_current(12))
    # floor((4 - 2) * 0.5) = 1
    assert snapshot.total_patients == 13


def test_only_the_latest_three_arrivals_count(aggregator):
    snapshot = _aggregate(aggregator, [100.0, 2.0, 2.0, 2.0], current=_current(12))
    assert snapshot.total_patients == 12


def test_latest_wait_time_reading_wins(aggregator):
    snapshot = _aggregate(aggregator, [2.0], wait=[40.0, 55.0])
    assert snapshot.average_wait_time == 55.0


def test_totals_are_clamped_to_bounds(aggregator, clock):
    high = _aggregate(aggregator, [10.0, 10.0, 10.0], current=_current(30))
    clock.value += 2.0
    low = _aggregate(aggregator, [0.0, 0.0, 0.0], current=_current(5))

    assert high.total_patients == 30
    assert low.total_patients == 5


@pytest.mark.parametrize("current_total", [5, 12, 29, 30])
@pytest.mark.parametrize("rate", [0.0, 1.0, 3.0, 9.0, 20.0])
def test_totals_stay_in_range(clock, current_total, rate):
    settings = replace(get_settings(), sensor_polling_enabled=False)
    aggregator = QueueStateAggregator(settings, gate=DebounceGate(2.0, clock=clock))

    snapshot = _aggregate(aggregator, [rate] * 3, current=_current(current_total))

    assert settings.queue_min_patients <= snapshot.total_patients <= settings.queue_max_patients
    triage = snapshot.triage
    assert triage.critical + triage.urgent + triage.standard == snapshot.total_patients


def test_occupancy_is_capped_by_total(aggregator):
    snapshot = _aggregate(aggregator, [2.0], current=_current(6), occupancy=[18.0])

    assert snapshot.room_occupancy.occupied == 6
    assert snapshot.waiting_patients == 0


def test_occupancy_is_capped_by_room_count(aggregator):
    snapshot = _aggregate(aggregator, [2.0], current=_current(28), occupancy=[25.0])

    rooms = snapshot.room_occupancy
    assert rooms.occupied == rooms.total == 20
    assert rooms.available == 0
    assert snapshot.waiting_patients == 8


def test_negative_occupancy_reads_as_empty_rooms(aggregator):
    snapshot = _aggregate(aggregator, [2.0], current=_current(10), occupancy=[-3.0])

    rooms = snapshot.room_occupancy
    assert rooms.occupied == 0
    assert rooms.available == rooms.total
    assert snapshot.waiting_patients == snapshot.total_patients == 10


def test_update_inside_debounce_window_is_skipped(aggregator, clock):
    assert _aggregate(aggregator, [2.0]) is not None

    clock.value += 1.5
    assert _aggregate(aggregator, [2.0]) is None

    clock.value += 0.5
    assert _aggregate(aggregator, [2.0]) is not None


def test_missing_readings_skip_without_marking_gate(aggregator):
    assert _aggregate(aggregator, [], current=_current(10)) is None
    assert _aggregate(aggregator, [2.0], wait=[]) is None
    assert _aggregate(aggregator, [2.0], occupancy=[]) is None

    # no clock advance needed: skipped updates never closed the gate
    assert _aggregate(aggregator, [2.0]) is not None


def test_gate_opens_after_interval(clock):
    gate = DebounceGate(2.0, clock=clock)
    assert gate.is_open()

    gate.mark()
    assert not gate.is_open()

    clock.value += 2.0
    assert gate.is_open()
