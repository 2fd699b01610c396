from __future__ import annotations

from datetime import date, time

import pytest

from backend.domain.errors import ParkingValidationError
from backend.domain.models import LedgerSnapshot
from backend.services.planner_service import AssignmentPlanner, max_slots_for, plan_assignment


TARGET_DATE = date(2030, 1, 7)
START = time(10, 0)
FROM_SLOT = 40


def _snapshot(runs: dict[int, int], width: int = 16) -> LedgerSnapshot:
    """Snapshot of spots 1..100 where ``runs[spot]`` free slots precede an occupied one."""
    occupancy = {}
    for spot in range(1, 101):
        free = runs.get(spot, width)
        occupancy[spot] = tuple(index >= free for index in range(width))
    return LedgerSnapshot(date=TARGET_DATE, from_slot=FROM_SLOT, occupancy=occupancy)


def test_empty_lot_assigns_lowest_spot_for_four_hours():
    assignment = AssignmentPlanner().plan(_snapshot({}), TARGET_DATE, START)

    assert assignment is not None
    assert assignment.spot == 1
    assert assignment.end_time == time(14, 0)
    assert assignment.duration_hours == 4.0


def test_longest_run_wins():
    runs = {spot: 4 for spot in range(1, 101)}
    runs[12] = 8
    runs[7] = 8
    runs[42] = 8

    assignment = AssignmentPlanner().plan(_snapshot(runs), TARGET_DATE, START)

    # Scenario: spots 7, 12, 42 all free for two hours; lowest wins.
    assert assignment.spot == 7
    assert assignment.end_time == time(12, 0)
    assert assignment.duration_hours == 2.0


def test_planning_is_deterministic():
    runs = {spot: (spot * 7) % 17 for spot in range(1, 101)}
    planner = AssignmentPlanner()
    snapshot = _snapshot(runs)

    first = planner.plan(snapshot, TARGET_DATE, START)
    second = planner.plan(snapshot, TARGET_DATE, START)

    assert first == second
    assert first.slot_count == 16


def test_no_free_spot_returns_none():
    runs = {spot: 0 for spot in range(1, 101)}

    assert AssignmentPlanner().plan(_snapshot(runs), TARGET_DATE, START) is None


def test_duration_is_capped_by_max_hours():
    assignment = plan_assignment(_snapshot({}), TARGET_DATE, START, max_duration_hours=1.0)

    assert assignment.slot_count == 4
    assert assignment.end_time == time(11, 0)


def test_rank_orders_by_run_then_spot():
    runs = {spot: 0 for spot in range(1, 101)}
    runs.update({30: 2, 10: 6, 20: 6})

    ranked = AssignmentPlanner().rank(_snapshot(runs), START)

    assert [item.spot for item in ranked] == [10, 20, 30]
    assert ranked[0].free_until == time(11, 30)
    assert ranked[2].duration_hours == 0.5


def test_unaligned_or_missing_start_is_rejected():
    planner = AssignmentPlanner()
    with pytest.raises(ParkingValidationError):
        planner.plan(_snapshot({}), TARGET_DATE, time(10, 7))
    with pytest.raises(ParkingValidationError):
        planner.plan(_snapshot({}), TARGET_DATE, None)


def test_snapshot_for_other_date_is_rejected():
    with pytest.raises(ParkingValidationError):
        AssignmentPlanner().plan(_snapshot({}), date(2030, 1, 8), START)


def test_max_duration_bounds():
    assert max_slots_for(4) == 16
    with pytest.raises(ParkingValidationError):
        max_slots_for(0)
    with pytest.raises(ParkingValidationError):
        max_slots_for(4.5)
