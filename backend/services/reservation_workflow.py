"""Plan-then-commit loop shared by the park-now and prebooking services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from backend.domain.constraints import ReservationConfig, validate_reservation_config
from backend.domain.errors import ConflictError, NoAvailabilityError, ParkingValidationError
from backend.domain.models import Assignment, Confirmation
from backend.domain.slot_clock import slot_index
from backend.services.ledger_service import AvailabilityLedger
from backend.services.planner_service import AssignmentPlanner
from backend.utils.config import Settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def build_reservation_config(settings: Settings) -> ReservationConfig:
    config = ReservationConfig(
        max_commit_attempts=settings.max_commit_attempts,
        commit_timeout_seconds=settings.commit_timeout_seconds,
        ledger_lookahead_days=settings.ledger_lookahead_days,
        max_advance_booking_days=settings.max_advance_booking_days,
    )
    validate_reservation_config(config)
    return config


def resolve_timeout(config: ReservationConfig, timeout: Optional[float]) -> float:
    if timeout is None:
        return config.commit_timeout_seconds
    if timeout <= 0:
        raise ParkingValidationError("timeout must be positive")
    return timeout


def normalize_customer_id(customer_id: Optional[str]) -> str:
    if customer_id is None or not customer_id.strip():
        raise ParkingValidationError("Customer ID is required")
    return customer_id.strip()


@dataclass(frozen=True)
class BookingAttempt:
    customer_id: str
    target_date: date
    start_time: time
    placed_on: date
    max_attempts: int
    timeout: Optional[float]


def plan(
    ledger: AvailabilityLedger,
    planner: AssignmentPlanner,
    target_date: date,
    start_time: time,
) -> Optional[Assignment]:
    snapshot = ledger.snapshot(target_date, slot_index(start_time), planner.max_slots)
    return planner.plan(snapshot, target_date, start_time)


def plan_and_commit(
    ledger: AvailabilityLedger,
    planner: AssignmentPlanner,
    attempt: BookingAttempt,
) -> Confirmation:
    """Plan against the current ledger and commit, re-planning after a conflict.

    ``NoAvailabilityError`` ends the loop immediately; a conflict on the last
    permitted attempt is re-raised to the caller.
    """
    for attempt_number in range(1, attempt.max_attempts + 1):
        assignment = plan(ledger, planner, attempt.target_date, attempt.start_time)
        if assignment is None:
            raise NoAvailabilityError(
                f"No spots available on {attempt.target_date.isoformat()} "
                f"from {attempt.start_time.strftime('%H:%M')}"
            )
        try:
            order = ledger.reserve(
                target_date=assignment.date,
                spot=assignment.spot,
                from_slot=slot_index(assignment.start_time),
                slot_count=assignment.slot_count,
                customer_id=attempt.customer_id,
                placed_on=attempt.placed_on,
                timeout=attempt.timeout,
            )
        except ConflictError:
            logger.warning(
                "Reservation conflict | customer_id=%s | spot=%s | attempt=%s/%s",
                attempt.customer_id,
                assignment.spot,
                attempt_number,
                attempt.max_attempts,
            )
            if attempt_number == attempt.max_attempts:
                raise
            continue
        return Confirmation.from_order(order)

    raise ConflictError("Reservation attempts exhausted")  # pragma: no cover
