"""Read-only occupancy summary for a date and slot."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Callable, Optional

from backend.domain.constraints import (
    NEARLY_EMPTY_OCCUPIED_PERCENT,
    NEARLY_FULL_FREE_PERCENT,
)
from backend.domain.errors import ParkingValidationError
from backend.domain.models import AvailabilitySummary
from backend.domain.slot_clock import floor_to_slot, is_aligned, slot_index
from backend.services.ledger_service import AvailabilityLedger
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


STATUS_FULL = "FULL"
STATUS_NEARLY_FULL = "NEARLY_FULL"
STATUS_NEARLY_EMPTY = "NEARLY_EMPTY"
STATUS_NORMAL = "NORMAL"

STATUS_DESCRIPTIONS = {
    STATUS_FULL: "Parking lot is full",
    STATUS_NEARLY_FULL: "Limited spots available",
    STATUS_NEARLY_EMPTY: "Plenty of spots available",
    STATUS_NORMAL: "Spots available",
}


def _rate(part: int, total: int) -> float:
    return part / total * 100 if total > 0 else 0.0


def status_label(free_spots: int, total_spots: int) -> str:
    """Classify occupancy with fixed thresholds; full wins over nearly-full."""
    if free_spots == 0:
        return STATUS_FULL
    if _rate(free_spots, total_spots) < NEARLY_FULL_FREE_PERCENT:
        return STATUS_NEARLY_FULL
    if _rate(total_spots - free_spots, total_spots) < NEARLY_EMPTY_OCCUPIED_PERCENT:
        return STATUS_NEARLY_EMPTY
    return STATUS_NORMAL


class SummaryAggregator:
    def __init__(
        self,
        ledger: Optional[AvailabilityLedger] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings or get_settings()
        self._ledger = ledger or AvailabilityLedger(settings=self._settings)
        self._clock = clock

    def summary(
        self,
        target_date: Optional[date] = None,
        slot: Optional[time] = None,
    ) -> AvailabilitySummary:
        now = self._clock()
        resolved_date = target_date or now.date()
        resolved_slot = slot if slot is not None else floor_to_slot(now.time())
        if not is_aligned(resolved_slot):
            raise ParkingValidationError("summary slot must be on a 15-minute boundary")

        counts = self._ledger.aggregate(resolved_date, slot_index(resolved_slot))
        total = counts.total_spots
        label = status_label(counts.free_spots, total)
        summary = AvailabilitySummary(
            total_spots=total,
            free_spots=counts.free_spots,
            occupied_spots=counts.occupied_spots,
            occupancy_rate=_rate(counts.occupied_spots, total),
            availability_rate=_rate(counts.free_spots, total),
            status_label=label,
            status_description=STATUS_DESCRIPTIONS[label],
            date=resolved_date,
            as_of_time=resolved_slot,
        )
        logger.debug(
            "Summary computed | date=%s | slot=%s | %s | available=%.1f%% | status=%s",
            resolved_date.isoformat(),
            resolved_slot.strftime("%H:%M"),
            summary.formatted_occupancy,
            summary.availability_rate,
            label,
        )
        return summary
