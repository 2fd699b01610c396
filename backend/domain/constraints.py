"""Fleet constants and domain-level validation rules for reservations."""

from __future__ import annotations

from dataclasses import dataclass


TOTAL_SPOTS = 100
FIRST_SPOT = 1
LAST_SPOT = TOTAL_SPOTS

SLOT_INTERVAL_MINUTES = 15
HOURS_PER_SLOT = SLOT_INTERVAL_MINUTES / 60
SLOTS_PER_DAY = 24 * 60 // SLOT_INTERVAL_MINUTES

MAX_BOOKING_HOURS = 4
MAX_SLOTS_PER_BOOKING = int(MAX_BOOKING_HOURS / HOURS_PER_SLOT)

# Occupancy status thresholds, in percent.
NEARLY_FULL_FREE_PERCENT = 10.0
NEARLY_EMPTY_OCCUPIED_PERCENT = 10.0


@dataclass(frozen=True)
class ReservationConfig:
    max_commit_attempts: int
    commit_timeout_seconds: float
    ledger_lookahead_days: int
    max_advance_booking_days: int


def validate_reservation_config(config: ReservationConfig) -> None:
    if config.max_commit_attempts <= 0:
        raise ValueError("max_commit_attempts must be > 0")
    if config.commit_timeout_seconds <= 0.0:
        raise ValueError("commit_timeout_seconds must be > 0")
    if config.ledger_lookahead_days < 0:
        raise ValueError("ledger_lookahead_days must be >= 0")
    if config.max_advance_booking_days < 0:
        raise ValueError("max_advance_booking_days must be >= 0")
    if config.ledger_lookahead_days > config.max_advance_booking_days:
        raise ValueError("ledger_lookahead_days must not exceed max_advance_booking_days")


def is_valid_spot_number(spot: int) -> bool:
    return FIRST_SPOT <= spot <= LAST_SPOT
