"""Availability ledger: the single authority on spot occupancy per slot."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Optional

from backend.domain.constraints import (
    MAX_SLOTS_PER_BOOKING,
    SLOTS_PER_DAY,
    TOTAL_SPOTS,
    is_valid_spot_number,
)
from backend.domain.errors import ParkingValidationError, PersistenceError
from backend.domain.models import AggregateCount, LedgerSnapshot, ParkingOrder
from backend.repository.ledger_repository import LedgerRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def _validate_slot_window(from_slot: int, slot_count: int) -> None:
    if not 0 <= from_slot < SLOTS_PER_DAY:
        raise ParkingValidationError(f"slot index must be in [0, {SLOTS_PER_DAY - 1}]")
    if slot_count < 0:
        raise ParkingValidationError("slot count must not be negative")


class AvailabilityLedger:
    """Reads snapshots for planning and performs atomic reservations."""

    def __init__(
        self,
        repository: Optional[LedgerRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or LedgerRepository(self._settings)

    @property
    def repository(self) -> LedgerRepository:
        return self._repository

    def ensure_horizon(self, today: date) -> int:
        """Populate today plus the configured lookahead days."""
        dates = [
            today + timedelta(days=offset)
            for offset in range(self._settings.ledger_lookahead_days + 1)
        ]
        populated = self._repository.ensure_ledger_dates(dates)
        logger.info(
            "Ledger horizon ready | start=%s | days=%s | newly_populated=%s",
            today.isoformat(),
            len(dates),
            populated,
        )
        return populated

    def snapshot(self, target_date: date, from_slot: int, max_slots: int) -> LedgerSnapshot:
        """Read every spot's occupancy for the window in one query.

        The window is clipped at the end of the day; a booking never spans
        two ledger dates.
        """
        _validate_slot_window(from_slot, max_slots)
        self._repository.ensure_ledger_dates([target_date])
        count = min(max_slots, SLOTS_PER_DAY - from_slot)
        entries = self._repository.load_ledger_window(target_date, from_slot, count)

        rows: dict[int, list[bool]] = defaultdict(list)
        for entry in entries:
            rows[entry.spot].append(entry.occupied)
        if count > 0 and len(rows) != TOTAL_SPOTS:
            raise PersistenceError(
                f"Ledger rows incomplete for {target_date.isoformat()}: "
                f"expected {TOTAL_SPOTS} spots, found {len(rows)}"
            )
        return LedgerSnapshot(
            date=target_date,
            from_slot=from_slot,
            occupancy={spot: tuple(flags) for spot, flags in rows.items()},
        )

    def free_run_length(
        self,
        target_date: date,
        spot: int,
        from_slot: int,
        max_slots: int,
    ) -> int:
        """Count contiguous free slots for ``spot`` from ``from_slot``, up to ``max_slots``."""
        if not is_valid_spot_number(spot):
            raise ParkingValidationError(f"spot number {spot} is outside the fleet")
        _validate_slot_window(from_slot, max_slots)
        self._repository.ensure_ledger_dates([target_date])
        count = min(max_slots, SLOTS_PER_DAY - from_slot)
        entries = self._repository.load_ledger_window(target_date, from_slot, count, spot=spot)
        run = 0
        for entry in entries:
            if entry.occupied:
                break
            run += 1
        return run

    def aggregate(self, target_date: date, slot_index: int) -> AggregateCount:
        """Cached free/occupied counts, falling back to a scan of ledger rows."""
        _validate_slot_window(slot_index, 0)
        cached = self._repository.read_aggregate(target_date, slot_index)
        if cached is not None:
            return cached
        scanned = self._repository.count_slot_occupancy(target_date, slot_index)
        if scanned is not None:
            logger.warning(
                "Aggregate row missing; served from scan | date=%s | slot=%s",
                target_date.isoformat(),
                slot_index,
            )
            return scanned
        # Untouched dates have no rows yet; everything is free.
        return AggregateCount(
            date=target_date,
            slot_index=slot_index,
            free_spots=TOTAL_SPOTS,
            occupied_spots=0,
        )

    def reserve(
        self,
        *,
        target_date: date,
        spot: int,
        from_slot: int,
        slot_count: int,
        customer_id: str,
        placed_on: date,
        timeout: Optional[float] = None,
    ) -> ParkingOrder:
        """Mark ``slot_count`` slots occupied for ``spot`` and record the order.

        Raises ``ConflictError`` if any slot was taken since planning.
        """
        if not is_valid_spot_number(spot):
            raise ParkingValidationError(f"spot number {spot} is outside the fleet")
        if not 0 < slot_count <= MAX_SLOTS_PER_BOOKING:
            raise ParkingValidationError(
                f"slot count must be in [1, {MAX_SLOTS_PER_BOOKING}]"
            )
        _validate_slot_window(from_slot, slot_count)
        if from_slot + slot_count > SLOTS_PER_DAY:
            raise ParkingValidationError("reservation must end within its ledger day")
        if not customer_id or not customer_id.strip():
            raise ParkingValidationError("customer id is required")

        self._repository.ensure_ledger_dates([target_date])
        return self._repository.write_reservation(
            target_date=target_date,
            spot=spot,
            from_slot=from_slot,
            slot_count=slot_count,
            customer_id=customer_id.strip(),
            placed_on=placed_on,
            timeout=timeout if timeout is not None else self._settings.commit_timeout_seconds,
        )
