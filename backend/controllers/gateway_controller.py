"""Tagged request gateway: one endpoint that dispatches every command type."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from backend.controllers.dependencies import (
    get_park_now_service,
    get_prebooking_service,
    get_summary_aggregator,
)
from backend.controllers.schemas import (
    CheckAvailabilityCommand,
    ErrorPayload,
    GetSummaryCommand,
    ParkNowCommand,
    PreBookCommand,
    RequestEnvelope,
    ResponseEnvelope,
    availability_payload,
    confirmation_payload,
    summary_payload,
)
from backend.domain.errors import ParkingError
from backend.domain.slot_clock import format_duration, format_time_slot
from backend.services.park_now_service import ParkNowService
from backend.services.prebooking_service import PrebookingService
from backend.services.summary_service import SummaryAggregator
from backend.utils.logger import get_request_logger


router = APIRouter(tags=["gateway"])


@router.post(
    "/requests",
    response_model=ResponseEnvelope,
    status_code=status.HTTP_200_OK,
)
def handle_request(
    envelope: RequestEnvelope,
    park_now_service: ParkNowService = Depends(get_park_now_service),
    prebooking_service: PrebookingService = Depends(get_prebooking_service),
    summary_aggregator: SummaryAggregator = Depends(get_summary_aggregator),
) -> ResponseEnvelope:
    """Handle one tagged command and echo its correlation id.

    Domain failures come back as an ``error`` payload rather than an HTTP
    error status so that the caller can always match the correlation id.
    """
    log = get_request_logger(__name__, envelope.correlation_id)
    command = envelope.request
    log.info("Request received | type=%s", command.type)

    try:
        if isinstance(command, ParkNowCommand):
            confirmation = park_now_service.park_now(
                command.customer_id,
                timeout=envelope.timeout_seconds,
            )
            message = "Parking confirmed"
            payload = confirmation_payload(confirmation)
        elif isinstance(command, PreBookCommand):
            confirmation = prebooking_service.pre_book(
                command.customer_id,
                command.date,
                command.start_time,
                timeout=envelope.timeout_seconds,
            )
            message = "Prebooking confirmed"
            payload = confirmation_payload(confirmation)
        elif isinstance(command, CheckAvailabilityCommand):
            check = park_now_service.check_available_now()
            message = (
                f"Best spot: #{check.best_spot.spot} available for "
                f"{format_duration(check.best_spot.duration_hours)} "
                f"until {format_time_slot(check.best_spot.free_until)}"
            )
            payload = availability_payload(check)
        elif isinstance(command, GetSummaryCommand):
            message = "Summary retrieved"
            payload = summary_payload(summary_aggregator.summary())
        else:  # pragma: no cover - the discriminated union is exhaustive
            raise TypeError(f"Unsupported command type: {type(command).__name__}")
    except ParkingError as exc:
        log.warning("Request failed | type=%s | code=%s | reason=%s", command.type, exc.code, exc)
        return ResponseEnvelope(
            correlation_id=envelope.correlation_id,
            success=False,
            message=str(exc),
            response=ErrorPayload(code=exc.code, reason=str(exc)),
        )
    except Exception:
        log.exception("Unexpected request failure | type=%s", command.type)
        return ResponseEnvelope(
            correlation_id=envelope.correlation_id,
            success=False,
            message="Internal error",
            response=ErrorPayload(code="INTERNAL_ERROR", reason="Internal error"),
        )

    log.info("Request completed | type=%s", command.type)
    return ResponseEnvelope(
        correlation_id=envelope.correlation_id,
        success=True,
        message=message,
        response=payload,
    )


@router.get("/health", status_code=status.HTTP_200_OK)
def health(request: Request) -> dict[str, str]:
    settings = request.app.state.settings
    return {"status": "ok", "app": settings.app_name, "version": settings.app_version}
