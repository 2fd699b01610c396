"""Pure conversions between wall-clock times and 15-minute ledger slots.

Every function is stateless. A ``None`` time yields a sentinel (``None``,
``0``, ``0.0`` or ``False``) instead of raising, so callers validate first.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional

from backend.domain.constraints import (
    HOURS_PER_SLOT,
    MAX_BOOKING_HOURS,
    SLOT_INTERVAL_MINUTES,
    SLOTS_PER_DAY,
)


_MINUTES_PER_DAY = 24 * 60


def _minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def floor_to_slot(value: Optional[time]) -> Optional[time]:
    """Round down to the slot boundary: 14:32 -> 14:30."""
    if value is None:
        return None
    minute = (value.minute // SLOT_INTERVAL_MINUTES) * SLOT_INTERVAL_MINUTES
    return time(value.hour, minute)


def ceil_to_slot(value: Optional[time]) -> Optional[time]:
    """Round up to the next boundary: 14:32 -> 14:45; aligned input is returned as-is."""
    if value is None:
        return None
    if is_aligned(value):
        return value
    minutes = (_minutes_of_day(value) // SLOT_INTERVAL_MINUTES + 1) * SLOT_INTERVAL_MINUTES
    minutes %= _MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def is_aligned(value: Optional[time]) -> bool:
    return (
        value is not None
        and value.minute % SLOT_INTERVAL_MINUTES == 0
        and value.second == 0
        and value.microsecond == 0
    )


def slots_between(start: Optional[time], end: Optional[time]) -> int:
    if start is None or end is None or end <= start:
        return 0
    return (_minutes_of_day(end) - _minutes_of_day(start)) // SLOT_INTERVAL_MINUTES


def duration_hours(start: Optional[time], end: Optional[time]) -> float:
    if start is None or end is None or end <= start:
        return 0.0
    return (_minutes_of_day(end) - _minutes_of_day(start)) / 60.0


def slot_index(value: Optional[time]) -> Optional[int]:
    """Position of the slot containing ``value`` within its day (0..95)."""
    if value is None:
        return None
    return _minutes_of_day(value) // SLOT_INTERVAL_MINUTES


def slot_time(index: int) -> time:
    if not 0 <= index < SLOTS_PER_DAY:
        raise ValueError(f"slot index must be in [0, {SLOTS_PER_DAY - 1}]")
    minutes = index * SLOT_INTERVAL_MINUTES
    return time(minutes // 60, minutes % 60)


def slot_label(index: int) -> str:
    return format_time_slot(slot_time(index))


def slot_end_at(target_date: date, start: time, slot_count: int) -> datetime:
    return datetime.combine(target_date, start) + timedelta(
        minutes=slot_count * SLOT_INTERVAL_MINUTES
    )


def slots_to_hours(slot_count: int) -> float:
    return slot_count * HOURS_PER_SLOT


def hours_to_slots(hours: float) -> int:
    return int(hours / HOURS_PER_SLOT)


def is_valid_duration(hours: float) -> bool:
    return 0 < hours <= MAX_BOOKING_HOURS


def is_in_past(target_date: Optional[date], value: Optional[time], now: datetime) -> bool:
    if target_date is None or value is None:
        return False
    if target_date < now.date():
        return True
    if target_date == now.date():
        return value < now.time()
    return False


def format_time_slot(value: Optional[time]) -> str:
    if value is None:
        return "??:??"
    return value.strftime("%H:%M")


def format_duration(hours: float) -> str:
    if hours >= 1:
        return f"{hours:.1f} hours"
    return f"{int(hours * 60)} minutes"


def format_time_range(target_date: Optional[date], start: Optional[time], end: Optional[time]) -> str:
    prefix = f"{target_date.strftime('%b %d, %Y')} " if target_date is not None else ""
    return f"{prefix}{format_time_slot(start)} - {format_time_slot(end)}"
