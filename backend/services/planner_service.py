"""Assignment planning: pick the spot with the longest free run from a start slot.

Planning is a pure function of a ledger snapshot. Ties on run length go to the
lowest spot number on every path, so the same snapshot always yields the same
assignment and a retried request is reproducible.
"""

from __future__ import annotations

from datetime import date, time
from typing import Optional

from backend.domain.constraints import MAX_BOOKING_HOURS
from backend.domain.errors import ParkingValidationError
from backend.domain.models import Assignment, LedgerSnapshot, SpotAvailability
from backend.domain.slot_clock import (
    hours_to_slots,
    is_aligned,
    is_valid_duration,
    slot_end_at,
    slot_index,
    slots_to_hours,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def max_slots_for(max_duration_hours: float) -> int:
    if not is_valid_duration(max_duration_hours):
        raise ParkingValidationError(
            f"max duration must be in (0, {MAX_BOOKING_HOURS}] hours"
        )
    return hours_to_slots(max_duration_hours)


def _validated_start(start_time: Optional[time]) -> int:
    if start_time is None:
        raise ParkingValidationError("start time is required")
    if not is_aligned(start_time):
        raise ParkingValidationError(
            f"start time {start_time.strftime('%H:%M')} is not on a 15-minute boundary"
        )
    return slot_index(start_time)


def rank_spots(
    snapshot: LedgerSnapshot,
    start_time: time,
    max_duration_hours: float = MAX_BOOKING_HOURS,
) -> list[SpotAvailability]:
    """Every spot with a positive free run, best first."""
    from_slot = _validated_start(start_time)
    max_slots = max_slots_for(max_duration_hours)

    runs: list[tuple[int, int]] = []
    for spot in snapshot.spots:
        run = snapshot.free_run_length(spot, from_slot, max_slots)
        if run > 0:
            runs.append((spot, run))
    runs.sort(key=lambda item: (-item[1], item[0]))

    return [
        SpotAvailability(
            spot=spot,
            duration_hours=slots_to_hours(run),
            available_from=start_time,
            free_until=slot_end_at(snapshot.date, start_time, run).time(),
        )
        for spot, run in runs
    ]


def plan_assignment(
    snapshot: LedgerSnapshot,
    target_date: date,
    start_time: time,
    max_duration_hours: float = MAX_BOOKING_HOURS,
) -> Optional[Assignment]:
    """Return the best assignment from ``start_time`` or ``None`` if nothing is free."""
    if snapshot.date != target_date:
        raise ParkingValidationError("snapshot date does not match the planned date")
    from_slot = _validated_start(start_time)
    max_slots = max_slots_for(max_duration_hours)

    best_spot: Optional[int] = None
    best_run = 0
    for spot in snapshot.spots:
        run = snapshot.free_run_length(spot, from_slot, max_slots)
        # Strict comparison over ascending spots keeps the lowest number on ties.
        if run > best_run:
            best_spot, best_run = spot, run

    if best_spot is None:
        logger.info(
            "No assignment possible | date=%s | start=%s",
            target_date.isoformat(),
            start_time.strftime("%H:%M"),
        )
        return None

    assignment = Assignment(
        spot=best_spot,
        date=target_date,
        start_time=start_time,
        end_time=slot_end_at(target_date, start_time, best_run).time(),
        slot_count=best_run,
    )
    logger.debug(
        "Assignment planned | date=%s | start=%s | spot=%s | slots=%s",
        target_date.isoformat(),
        start_time.strftime("%H:%M"),
        assignment.spot,
        assignment.slot_count,
    )
    return assignment


class AssignmentPlanner:
    """Planner bound to an upper duration bound; stateless apart from that bound."""

    def __init__(self, max_duration_hours: float = MAX_BOOKING_HOURS) -> None:
        self._max_slots = max_slots_for(max_duration_hours)
        self._max_duration_hours = max_duration_hours

    @property
    def max_slots(self) -> int:
        return self._max_slots

    def plan(self, snapshot: LedgerSnapshot, target_date: date, start_time: time) -> Optional[Assignment]:
        return plan_assignment(snapshot, target_date, start_time, self._max_duration_hours)

    def rank(self, snapshot: LedgerSnapshot, start_time: time) -> list[SpotAvailability]:
        return rank_spots(snapshot, start_time, self._max_duration_hours)
