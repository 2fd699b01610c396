"""Domain models for the occupancy ledger and spot assignment."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Mapping, Sequence

from backend.domain.constraints import HOURS_PER_SLOT


@dataclass(frozen=True)
class LedgerEntry:
    date: date
    slot_index: int
    spot: int
    occupied: bool
    reserved_by: str | None = None


@dataclass(frozen=True)
class AggregateCount:
    date: date
    slot_index: int
    free_spots: int
    occupied_spots: int

    @property
    def total_spots(self) -> int:
        return self.free_spots + self.occupied_spots


@dataclass(frozen=True)
class LedgerSnapshot:
    """Read-only view of spot occupancy for a window of consecutive slots.

    ``occupancy[spot][i]`` is the occupied flag of slot ``from_slot + i``.
    Spots missing from the mapping, and slots past the end of a spot's row,
    count as unavailable.
    """

    date: date
    from_slot: int
    occupancy: Mapping[int, Sequence[bool]]

    def free_run_length(self, spot: int, from_slot: int, max_slots: int) -> int:
        row = self.occupancy.get(spot)
        if row is None or max_slots <= 0:
            return 0
        offset = from_slot - self.from_slot
        if offset < 0:
            return 0
        run = 0
        for occupied in row[offset:offset + max_slots]:
            if occupied:
                break
            run += 1
        return run

    @property
    def spots(self) -> list[int]:
        return sorted(self.occupancy)


@dataclass(frozen=True)
class Assignment:
    """A planned, not yet committed (spot, interval) candidate."""

    spot: int
    date: date
    start_time: time
    end_time: time
    slot_count: int

    @property
    def duration_hours(self) -> float:
        return self.slot_count * HOURS_PER_SLOT


@dataclass(frozen=True)
class SpotAvailability:
    spot: int
    duration_hours: float
    available_from: time
    free_until: time


@dataclass(frozen=True)
class ParkingOrder:
    order_id: int
    spot: int
    customer_id: str
    date: date
    start_time: time
    end_time: time
    slot_count: int
    placed_on: date

    @property
    def duration_hours(self) -> float:
        return self.slot_count * HOURS_PER_SLOT


@dataclass(frozen=True)
class Confirmation:
    order_id: int
    spot: int
    customer_id: str
    date: date
    start_time: time
    end_time: time
    duration_hours: float

    @classmethod
    def from_order(cls, order: ParkingOrder) -> "Confirmation":
        return cls(
            order_id=order.order_id,
            spot=order.spot,
            customer_id=order.customer_id,
            date=order.date,
            start_time=order.start_time,
            end_time=order.end_time,
            duration_hours=order.duration_hours,
        )


@dataclass(frozen=True)
class AvailabilityCheck:
    best_spot: SpotAvailability
    available_spots: int


@dataclass(frozen=True)
class AvailabilitySummary:
    total_spots: int
    free_spots: int
    occupied_spots: int
    occupancy_rate: float
    availability_rate: float
    status_label: str
    status_description: str
    date: date
    as_of_time: time

    @property
    def formatted_occupancy(self) -> str:
        return (
            f"{self.occupied_spots}/{self.total_spots} spots occupied "
            f"({self.occupancy_rate:.1f}%)"
        )


@dataclass(frozen=True)
class TimeFrame:
    date: date
    start_time: time
    end_time: time
    duration_hours: float
    free_spots: int
    assigned_spot: int
