"""HTTP controller layer for park-now, prebooking, availability and summary."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.controllers.dependencies import (
    get_ledger,
    get_park_now_service,
    get_prebooking_service,
    get_summary_aggregator,
    to_http_exception,
)
from backend.controllers.schemas import (
    ConfirmationPayload,
    OrderResponse,
    ParkNowRequest,
    PreBookRequest,
    SpotAvailabilityPayload,
    SummaryPayload,
    TimeFramesResponse,
    availability_payload,
    confirmation_payload,
    order_response,
    summary_payload,
    time_frame_row,
)
from backend.domain.errors import ParkingError
from backend.services.ledger_service import AvailabilityLedger
from backend.services.park_now_service import ParkNowService
from backend.services.prebooking_service import PrebookingService
from backend.services.summary_service import SummaryAggregator
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["parking"])


@router.post(
    "/park_now",
    response_model=ConfirmationPayload,
    status_code=status.HTTP_201_CREATED,
)
def park_now(
    payload: ParkNowRequest,
    service: ParkNowService = Depends(get_park_now_service),
) -> ConfirmationPayload:
    """Assign and commit the best spot starting at the current slot."""
    try:
        confirmation = service.park_now(payload.customer_id, timeout=payload.timeout_seconds)
        return confirmation_payload(confirmation)
    except ParkingError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected park now failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to park now",
        ) from exc


@router.get(
    "/availability",
    response_model=SpotAvailabilityPayload,
    status_code=status.HTTP_200_OK,
)
def check_availability(
    service: ParkNowService = Depends(get_park_now_service),
) -> SpotAvailabilityPayload:
    """Best spot for parking right now; read-only."""
    try:
        return availability_payload(service.check_available_now())
    except ParkingError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected availability check failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check availability",
        ) from exc


@router.post(
    "/prebook",
    response_model=ConfirmationPayload,
    status_code=status.HTTP_201_CREATED,
)
def pre_book(
    payload: PreBookRequest,
    service: PrebookingService = Depends(get_prebooking_service),
) -> ConfirmationPayload:
    try:
        confirmation = service.pre_book(
            payload.customer_id,
            payload.date,
            payload.start_time,
            timeout=payload.timeout_seconds,
        )
        return confirmation_payload(confirmation)
    except ParkingError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected prebooking failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to prebook",
        ) from exc


@router.get(
    "/time_frames",
    response_model=TimeFramesResponse,
    status_code=status.HTTP_200_OK,
)
def time_frames(
    target_date: date = Query(alias="date"),
    service: PrebookingService = Depends(get_prebooking_service),
) -> TimeFramesResponse:
    """Bookable windows for a date, one per start slot."""
    try:
        frames = service.available_time_frames(target_date)
        return TimeFramesResponse(
            date=target_date,
            time_frames=[time_frame_row(frame) for frame in frames],
        )
    except ParkingError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/summary",
    response_model=SummaryPayload,
    status_code=status.HTTP_200_OK,
)
def get_summary(
    target_date: Optional[date] = Query(default=None, alias="date"),
    service: SummaryAggregator = Depends(get_summary_aggregator),
) -> SummaryPayload:
    try:
        return summary_payload(service.summary(target_date=target_date))
    except ParkingError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    status_code=status.HTTP_200_OK,
)
def get_order(
    order_id: int,
    ledger: AvailabilityLedger = Depends(get_ledger),
) -> OrderResponse:
    try:
        order = ledger.repository.get_order(order_id)
    except ParkingError as exc:
        raise to_http_exception(exc) from exc
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order {order_id} not found",
        )
    return order_response(order)
