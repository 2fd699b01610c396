"""Immediate parking: assign the best spot starting at the current slot."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from backend.domain.errors import NoAvailabilityError
from backend.domain.models import AvailabilityCheck, Confirmation
from backend.domain.slot_clock import floor_to_slot, slot_index
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


class ParkNowService:
    """Wraps the planner with start = floor(now) on today's ledger."""

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

    def check_available_now(self) -> AvailabilityCheck:
        """Best spot for parking right now, with the number of spots free now."""
        now = self._clock()
        start_time = floor_to_slot(now.time())
        snapshot = self._ledger.snapshot(now.date(), slot_index(start_time), self._planner.max_slots)
        ranked = self._planner.rank(snapshot, start_time)
        if not ranked:
            raise NoAvailabilityError("No spots available right now")
        return AvailabilityCheck(best_spot=ranked[0], available_spots=len(ranked))

    def park_now(self, customer_id: Optional[str], timeout: Optional[float] = None) -> Confirmation:
        customer = normalize_customer_id(customer_id)
        deadline = resolve_timeout(self._config, timeout)
        now = self._clock()
        attempt = BookingAttempt(
            customer_id=customer,
            target_date=now.date(),
            start_time=floor_to_slot(now.time()),
            placed_on=now.date(),
            max_attempts=self._config.max_commit_attempts,
            timeout=deadline,
        )
        confirmation = plan_and_commit(self._ledger, self._planner, attempt)
        logger.info(
            "Park now confirmed | customer_id=%s | spot=%s | start=%s | end=%s | hours=%.2f",
            confirmation.customer_id,
            confirmation.spot,
            confirmation.start_time.strftime("%H:%M"),
            confirmation.end_time.strftime("%H:%M"),
            confirmation.duration_hours,
        )
        return confirmation
