"""Failure taxonomy shared by the ledger, planner and booking services."""

from __future__ import annotations


class ParkingError(Exception):
    """Base exception for parking workflow failures."""

    code = "PARKING_ERROR"


class ParkingValidationError(ParkingError):
    """Raised when request input is malformed or missing."""

    code = "VALIDATION_ERROR"


class NoAvailabilityError(ParkingError):
    """Raised when planning finds no spot with a free run at the start slot."""

    code = "NO_AVAILABILITY"


class ConflictError(ParkingError):
    """Raised when a competing commit took the planned slot range first."""

    code = "CONFLICT"


class ReservationTimeoutError(ParkingError):
    """Raised when the commit transaction misses the caller's deadline."""

    code = "TIMEOUT"


class PersistenceError(ParkingError):
    """Raised when the ledger store is unreachable or misbehaves."""

    code = "PERSISTENCE_ERROR"
