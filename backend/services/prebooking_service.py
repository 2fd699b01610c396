"""Prebooking: assign the best spot for a caller-chosen future date and slot."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from backend.domain.constraints import SLOTS_PER_DAY
from backend.domain.errors import ParkingValidationError
from backend.domain.models import Confirmation, TimeFrame
from backend.domain.slot_clock import (
    ceil_to_slot,
    format_time_range,
    is_aligned,
    is_in_past,
    slot_index,
    slot_time,
)
from backend.services.ledger_service import AvailabilityLedger
from backend.services.planner_service import AssignmentPlanner
from backend.services.reservation_workflow import (
    BookingAttempt,
    build_reservation_config,
    normalize_customer_id,
    plan_and_commit,
    resolve_timeout,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class PrebookingService:
    """Validates a requested (date, start) and books it through the shared workflow."""

    def __init__(
        self,
        ledger: Optional[AvailabilityLedger] = None,
        planner: Optional[AssignmentPlanner] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings or get_settings()
        self._ledger = ledger or AvailabilityLedger(settings=self._settings)
        self._planner = planner or AssignmentPlanner()
        self._clock = clock
        self._config = build_reservation_config(self._settings)

    def _validate_date(self, target_date: Optional[date], now: datetime) -> date:
        if target_date is None:
            raise ParkingValidationError("Date is required for prebooking")
        if target_date < now.date():
            raise ParkingValidationError("Cannot prebook a date in the past")
        latest = now.date() + timedelta(days=self._config.max_advance_booking_days)
        if target_date > latest:
            raise ParkingValidationError(
                f"Prebooking is limited to {self._config.max_advance_booking_days} days ahead"
            )
        return target_date

    def _validate_request(
        self,
        target_date: Optional[date],
        start_time: Optional[time],
        now: datetime,
    ) -> tuple[date, time]:
        checked_date = self._validate_date(target_date, now)
        if start_time is None:
            raise ParkingValidationError("Start time is required for prebooking")
        if start_time.tzinfo is not None:
            raise ParkingValidationError(
                "Start time must be a local wall-clock time without a UTC offset"
            )
        if not is_aligned(start_time):
            raise ParkingValidationError(
                f"Start time {start_time.strftime('%H:%M')} is not on a 15-minute boundary"
            )
        if is_in_past(checked_date, start_time, now):
            raise ParkingValidationError("Cannot prebook a start time in the past")
        return checked_date, start_time

    def pre_book(
        self,
        customer_id: Optional[str],
        target_date: Optional[date],
        start_time: Optional[time],
        timeout: Optional[float] = None,
    ) -> Confirmation:
        customer = normalize_customer_id(customer_id)
        now = self._clock()
        checked_date, checked_start = self._validate_request(target_date, start_time, now)
        attempt = BookingAttempt(
            customer_id=customer,
            target_date=checked_date,
            start_time=checked_start,
            placed_on=now.date(),
            max_attempts=self._config.max_commit_attempts,
            timeout=resolve_timeout(self._config, timeout),
        )
        confirmation = plan_and_commit(self._ledger, self._planner, attempt)
        logger.info(
            "Prebooking confirmed | customer_id=%s | spot=%s | window=%s | hours=%.2f",
            confirmation.customer_id,
            confirmation.spot,
            format_time_range(confirmation.date, confirmation.start_time, confirmation.end_time),
            confirmation.duration_hours,
        )
        return confirmation

    def available_time_frames(self, target_date: Optional[date]) -> list[TimeFrame]:
        """Offer the best window from every bookable slot of ``target_date``.

        Slots already in the past are skipped when ``target_date`` is today.
        """
        now = self._clock()
        checked_date = self._validate_date(target_date, now)
        first_slot = 0
        if checked_date == now.date():
            upcoming = ceil_to_slot(now.time())
            # Rounding up past 23:45 wraps to 00:00; nothing is left today.
            if upcoming < now.time():
                return []
            first_slot = slot_index(upcoming)

        snapshot = self._ledger.snapshot(checked_date, first_slot, SLOTS_PER_DAY - first_slot)
        free_by_slot = {
            aggregate.slot_index: aggregate.free_spots
            for aggregate in self._ledger.repository.list_aggregates(checked_date)
        }

        frames: list[TimeFrame] = []
        for index in range(first_slot, SLOTS_PER_DAY):
            free_spots = free_by_slot.get(index, 0)
            if free_spots <= 0:
                continue
            assignment = self._planner.plan(snapshot, checked_date, slot_time(index))
            if assignment is None:
                continue
            frames.append(
                TimeFrame(
                    date=checked_date,
                    start_time=assignment.start_time,
                    end_time=assignment.end_time,
                    duration_hours=assignment.duration_hours,
                    free_spots=free_spots,
                    assigned_spot=assignment.spot,
                )
            )
        return frames
