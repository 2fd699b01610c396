"""Tests for reservation config validation and fleet constants."""

from __future__ import annotations

import pytest

from backend.domain.constraints import (
    MAX_SLOTS_PER_BOOKING,
    SLOTS_PER_DAY,
    ReservationConfig,
    is_valid_spot_number,
    validate_reservation_config,
)


def valid_config(**overrides) -> ReservationConfig:
    """Return a valid baseline ReservationConfig, optionally overriding fields."""
    defaults = {
        "max_commit_attempts": 2,
        "commit_timeout_seconds": 5.0,
        "ledger_lookahead_days": 1,
        "max_advance_booking_days": 7,
    }
    defaults.update(overrides)
    return ReservationConfig(**defaults)


def test_valid_config_passes() -> None:
    validate_reservation_config(valid_config())


# --- max_commit_attempts ---

def test_max_commit_attempts_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_reservation_config(valid_config(max_commit_attempts=0))


# --- commit_timeout_seconds ---

def test_commit_timeout_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_reservation_config(valid_config(commit_timeout_seconds=0.0))


def test_commit_timeout_negative_raises() -> None:
    with pytest.raises(ValueError):
        validate_reservation_config(valid_config(commit_timeout_seconds=-1.0))


# --- horizon ---

def test_negative_lookahead_raises() -> None:
    with pytest.raises(ValueError):
        validate_reservation_config(valid_config(ledger_lookahead_days=-1))


def test_negative_advance_booking_raises() -> None:
    with pytest.raises(ValueError):
        validate_reservation_config(valid_config(max_advance_booking_days=-1))


def test_lookahead_beyond_advance_booking_raises() -> None:
    with pytest.raises(ValueError):
        validate_reservation_config(
            valid_config(ledger_lookahead_days=8, max_advance_booking_days=7)
        )


def test_zero_horizon_passes() -> None:
    """Same-day only operation is valid."""
    validate_reservation_config(valid_config(ledger_lookahead_days=0, max_advance_booking_days=0))


# --- Fleet constants ---

def test_slot_grid_constants() -> None:
    assert SLOTS_PER_DAY == 96
    assert MAX_SLOTS_PER_BOOKING == 16


def test_spot_number_bounds() -> None:
    assert is_valid_spot_number(1)
    assert is_valid_spot_number(100)
    assert not is_valid_spot_number(0)
    assert not is_valid_spot_number(101)
