"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from backend.domain.errors import (
    ConflictError,
    NoAvailabilityError,
    ParkingError,
    ParkingValidationError,
    PersistenceError,
    ReservationTimeoutError,
)
from backend.services.ledger_service import AvailabilityLedger
from backend.services.park_now_service import ParkNowService
from backend.services.prebooking_service import PrebookingService
from backend.services.summary_service import SummaryAggregator


_STATUS_BY_ERROR: tuple[tuple[type[ParkingError], int], ...] = (
    (ParkingValidationError, status.HTTP_400_BAD_REQUEST),
    (NoAvailabilityError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ReservationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: ParkingError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc),
    )


def _require_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_ledger(request: Request) -> AvailabilityLedger:
    return _require_state(request, "ledger", "Availability ledger")


def get_park_now_service(request: Request) -> ParkNowService:
    return _require_state(request, "park_now_service", "Park now service")


def get_prebooking_service(request: Request) -> PrebookingService:
    return _require_state(request, "prebooking_service", "Prebooking service")


def get_summary_aggregator(request: Request) -> SummaryAggregator:
    return _require_state(request, "summary_aggregator", "Summary aggregator")
