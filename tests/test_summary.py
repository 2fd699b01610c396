from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time

import pytest

from backend.domain.errors import ParkingValidationError
from backend.repository.ledger_repository import LedgerRepository
from backend.services.ledger_service import AvailabilityLedger
from backend.services.summary_service import (
    STATUS_FULL,
    STATUS_NEARLY_EMPTY,
    STATUS_NEARLY_FULL,
    STATUS_NORMAL,
    SummaryAggregator,
    status_label,
)
from backend.utils.config import get_settings


NOW = datetime(2030, 1, 7, 10, 5)
TODAY = NOW.date()


def _build_aggregator(tmp_path, filename: str) -> tuple[SummaryAggregator, AvailabilityLedger]:
    settings = replace(get_settings(), database_path=tmp_path / filename)
    repository = LedgerRepository(settings)
    repository.initialize_database()
    ledger = AvailabilityLedger(repository=repository, settings=settings)
    return SummaryAggregator(ledger=ledger, settings=settings, clock=lambda: NOW), ledger


@pytest.mark.parametrize(
    ("free_spots", "expected"),
    [
        (0, STATUS_FULL),
        (5, STATUS_NEARLY_FULL),
        (9, STATUS_NEARLY_FULL),
        (10, STATUS_NORMAL),
        (90, STATUS_NORMAL),
        (95, STATUS_NEARLY_EMPTY),
        (100, STATUS_NEARLY_EMPTY),
    ],
)
def test_status_label_thresholds(free_spots, expected):
    assert status_label(free_spots, 100) == expected


def test_summary_defaults_to_current_slot(tmp_path):
    aggregator, ledger = _build_aggregator(tmp_path, "summary_now.db")
    for spot in range(1, 31):
        ledger.reserve(
            target_date=TODAY,
            spot=spot,
            from_slot=40,
            slot_count=1,
            customer_id=f"holder-{spot}",
            placed_on=TODAY,
        )

    summary = aggregator.summary()

    assert summary.date == TODAY
    assert summary.as_of_time == time(10, 0)
    assert summary.occupied_spots == 30
    assert summary.free_spots == 70
    assert summary.occupancy_rate == pytest.approx(30.0)
    assert summary.availability_rate == pytest.approx(70.0)
    assert summary.status_label == STATUS_NORMAL
    assert summary.formatted_occupancy == "30/100 spots occupied (30.0%)"


def test_summary_for_explicit_slot_and_untouched_date(tmp_path):
    aggregator, _ = _build_aggregator(tmp_path, "summary_explicit.db")

    summary = aggregator.summary(target_date=date(2030, 3, 1), slot=time(18, 30))

    assert summary.free_spots == 100
    assert summary.status_label == STATUS_NEARLY_EMPTY
    assert summary.status_description == "Plenty of spots available"


def test_summary_rejects_unaligned_slot(tmp_path):
    aggregator, _ = _build_aggregator(tmp_path, "summary_unaligned.db")

    with pytest.raises(ParkingValidationError):
        aggregator.summary(slot=time(18, 31))
