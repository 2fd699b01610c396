from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, time

import pytest

from backend.domain.errors import ConflictError, NoAvailabilityError, ParkingValidationError
from backend.repository.ledger_repository import LedgerRepository
from backend.services.ledger_service import AvailabilityLedger
from backend.services.park_now_service import ParkNowService
from backend.services.planner_service import AssignmentPlanner
from backend.utils.config import get_settings


NOW = datetime(2030, 1, 7, 10, 5)
TODAY = NOW.date()


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, max_commit_attempts=2)


def _build_service(tmp_path, filename: str) -> tuple[ParkNowService, AvailabilityLedger]:
    settings = _build_test_settings(tmp_path, filename)
    repository = LedgerRepository(settings)
    repository.initialize_database()
    ledger = AvailabilityLedger(repository=repository, settings=settings)
    service = ParkNowService(
        ledger=ledger,
        planner=AssignmentPlanner(),
        settings=settings,
        clock=lambda: NOW,
    )
    return service, ledger


def _occupy_all_but(ledger: AvailabilityLedger, free_spot: int, slot: int = 40) -> None:
    for spot in range(1, 101):
        if spot == free_spot:
            continue
        ledger.reserve(
            target_date=TODAY,
            spot=spot,
            from_slot=slot,
            slot_count=1,
            customer_id=f"holder-{spot}",
            placed_on=TODAY,
        )


def test_park_now_on_empty_lot_takes_spot_one_for_four_hours(tmp_path):
    service, ledger = _build_service(tmp_path, "empty_lot.db")

    confirmation = service.park_now("C1")

    assert confirmation.spot == 1
    assert confirmation.date == TODAY
    assert confirmation.start_time == time(10, 0)
    assert confirmation.end_time == time(14, 0)
    assert confirmation.duration_hours == 4.0
    assert ledger.repository.get_order(confirmation.order_id).customer_id == "C1"
    assert ledger.free_run_length(TODAY, 1, 40, 16) == 0


def test_second_customer_gets_next_spot(tmp_path):
    service, _ = _build_service(tmp_path, "next_spot.db")

    first = service.park_now("C1")
    second = service.park_now("C2")

    assert (first.spot, second.spot) == (1, 2)


def test_blank_customer_is_rejected(tmp_path):
    service, ledger = _build_service(tmp_path, "blank_customer.db")

    with pytest.raises(ParkingValidationError):
        service.park_now("   ")
    with pytest.raises(ParkingValidationError):
        service.park_now(None)
    with pytest.raises(ParkingValidationError):
        service.park_now("C1", timeout=0)

    assert ledger.repository.count_orders() == 0


def test_full_lot_raises_no_availability(tmp_path):
    service, ledger = _build_service(tmp_path, "full_lot.db")
    _occupy_all_but(ledger, free_spot=0)

    with pytest.raises(NoAvailabilityError):
        service.park_now("C1")
    with pytest.raises(NoAvailabilityError):
        service.check_available_now()


def test_check_available_now_reports_best_spot(tmp_path):
    service, ledger = _build_service(tmp_path, "check_now.db")
    ledger.reserve(
        target_date=TODAY,
        spot=1,
        from_slot=44,
        slot_count=4,
        customer_id="holder",
        placed_on=TODAY,
    )

    check = service.check_available_now()

    assert check.best_spot.spot == 2
    assert check.best_spot.available_from == time(10, 0)
    assert check.best_spot.free_until == time(14, 0)
    assert check.available_spots == 100
    assert ledger.repository.count_orders() == 1


def test_longer_run_beats_lower_occupied_spots(tmp_path):
    service, ledger = _build_service(tmp_path, "longer_run.db")
    for spot in range(1, 51):
        ledger.reserve(
            target_date=TODAY,
            spot=spot,
            from_slot=40,
            slot_count=2,
            customer_id=f"holder-{spot}",
            placed_on=TODAY,
        )

    check = service.check_available_now()

    assert check.best_spot.spot == 51
    assert check.best_spot.duration_hours == 4.0
    assert check.available_spots == 50


def test_concurrent_requests_for_last_range_commit_once(tmp_path):
    service, ledger = _build_service(tmp_path, "race.db")
    _occupy_all_but(ledger, free_spot=77)

    barrier = threading.Barrier(2)
    outcomes: list[object] = []
    lock = threading.Lock()

    def _park(customer_id: str) -> None:
        barrier.wait()
        try:
            result: object = service.park_now(customer_id)
        except (ConflictError, NoAvailabilityError) as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=_park, args=(name,)) for name in ("A", "B")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    confirmations = [item for item in outcomes if not isinstance(item, Exception)]
    failures = [item for item in outcomes if isinstance(item, Exception)]
    assert len(confirmations) == 1
    assert len(failures) == 1
    assert confirmations[0].spot == 77
    assert ledger.repository.count_spot_order_overlaps(TODAY) == 0
    assert ledger.repository.find_aggregate_drift(TODAY) == []
    assert ledger.aggregate(TODAY, 40).free_spots == 0


def test_end_of_day_window_is_clipped(tmp_path):
    settings = _build_test_settings(tmp_path, "late.db")
    repository = LedgerRepository(settings)
    repository.initialize_database()
    ledger = AvailabilityLedger(repository=repository, settings=settings)
    service = ParkNowService(
        ledger=ledger,
        settings=settings,
        clock=lambda: datetime(2030, 1, 7, 23, 20),
    )

    confirmation = service.park_now("late")

    assert confirmation.start_time == time(23, 15)
    assert confirmation.end_time == time(0, 0)
    assert confirmation.duration_hours == 0.75
    assert confirmation.date == date(2030, 1, 7)
