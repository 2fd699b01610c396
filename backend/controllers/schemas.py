"""Wire DTOs shared by the HTTP controllers and the HTTP client.

Requests and responses are tagged unions: ``type`` discriminates incoming
commands and ``kind`` discriminates outgoing payloads, so consumers can match
every shape exhaustively.
"""

from __future__ import annotations

from datetime import date, time
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from backend.domain.constraints import MAX_BOOKING_HOURS, TOTAL_SPOTS
from backend.domain.models import (
    AvailabilityCheck,
    AvailabilitySummary,
    Confirmation,
    ParkingOrder,
    TimeFrame,
)


def new_correlation_id() -> str:
    return uuid4().hex


class ParkNowRequest(BaseModel):
    customer_id: str
    timeout_seconds: float | None = Field(default=None, gt=0.0)


class PreBookRequest(BaseModel):
    customer_id: str
    date: date
    start_time: time
    timeout_seconds: float | None = Field(default=None, gt=0.0)


class ConfirmationPayload(BaseModel):
    kind: Literal["confirmation"] = "confirmation"
    order_id: int = Field(gt=0)
    spot: int = Field(ge=1, le=TOTAL_SPOTS)
    customer_id: str = Field(min_length=1)
    date: date
    start_time: time
    end_time: time
    duration_hours: float = Field(gt=0.0, le=MAX_BOOKING_HOURS)


class SpotAvailabilityPayload(BaseModel):
    kind: Literal["spot_availability"] = "spot_availability"
    spot: int = Field(ge=1, le=TOTAL_SPOTS)
    duration_hours: float = Field(gt=0.0, le=MAX_BOOKING_HOURS)
    available_from: time
    free_until: time
    available_spots: int = Field(ge=1, le=TOTAL_SPOTS)


class SummaryPayload(BaseModel):
    kind: Literal["summary"] = "summary"
    date: date
    total: int = Field(ge=0)
    free: int = Field(ge=0)
    occupied: int = Field(ge=0)
    occupancy_rate: float = Field(ge=0.0, le=100.0)
    status_label: str
    status_description: str
    as_of_time: time


class ErrorPayload(BaseModel):
    kind: Literal["error"] = "error"
    code: str
    reason: str


ParkingPayload = Annotated[
    Union[ConfirmationPayload, SpotAvailabilityPayload, SummaryPayload, ErrorPayload],
    Field(discriminator="kind"),
]


class ParkNowCommand(BaseModel):
    type: Literal["PARK_NOW"]
    customer_id: str


class CheckAvailabilityCommand(BaseModel):
    type: Literal["CHECK_AVAILABILITY"]


class PreBookCommand(BaseModel):
    type: Literal["PREBOOKING"]
    customer_id: str
    date: date
    start_time: time


class GetSummaryCommand(BaseModel):
    type: Literal["GET_SUMMARY"]


ParkingCommand = Annotated[
    Union[ParkNowCommand, CheckAvailabilityCommand, PreBookCommand, GetSummaryCommand],
    Field(discriminator="type"),
]


class RequestEnvelope(BaseModel):
    correlation_id: str = Field(default_factory=new_correlation_id, min_length=1)
    timeout_seconds: float | None = Field(default=None, gt=0.0)
    request: ParkingCommand


class ResponseEnvelope(BaseModel):
    correlation_id: str
    success: bool
    message: str
    response: ParkingPayload


class TimeFrameRow(BaseModel):
    date: date
    start_time: time
    end_time: time
    duration_hours: float = Field(gt=0.0, le=MAX_BOOKING_HOURS)
    free_spots: int = Field(ge=1, le=TOTAL_SPOTS)
    assigned_spot: int = Field(ge=1, le=TOTAL_SPOTS)


class TimeFramesResponse(BaseModel):
    date: date
    time_frames: list[TimeFrameRow]


class OrderResponse(BaseModel):
    order_id: int = Field(gt=0)
    spot: int = Field(ge=1, le=TOTAL_SPOTS)
    customer_id: str
    date: date
    start_time: time
    end_time: time
    duration_hours: float = Field(gt=0.0, le=MAX_BOOKING_HOURS)
    placed_on: date


def confirmation_payload(confirmation: Confirmation) -> ConfirmationPayload:
    return ConfirmationPayload(
        order_id=confirmation.order_id,
        spot=confirmation.spot,
        customer_id=confirmation.customer_id,
        date=confirmation.date,
        start_time=confirmation.start_time,
        end_time=confirmation.end_time,
        duration_hours=confirmation.duration_hours,
    )


def availability_payload(check: AvailabilityCheck) -> SpotAvailabilityPayload:
    return SpotAvailabilityPayload(
        spot=check.best_spot.spot,
        duration_hours=check.best_spot.duration_hours,
        available_from=check.best_spot.available_from,
        free_until=check.best_spot.free_until,
        available_spots=check.available_spots,
    )


def summary_payload(summary: AvailabilitySummary) -> SummaryPayload:
    return SummaryPayload(
        date=summary.date,
        total=summary.total_spots,
        free=summary.free_spots,
        occupied=summary.occupied_spots,
        occupancy_rate=summary.occupancy_rate,
        status_label=summary.status_label,
        status_description=summary.status_description,
        as_of_time=summary.as_of_time,
    )


def time_frame_row(frame: TimeFrame) -> TimeFrameRow:
    return TimeFrameRow(
        date=frame.date,
        start_time=frame.start_time,
        end_time=frame.end_time,
        duration_hours=frame.duration_hours,
        free_spots=frame.free_spots,
        assigned_spot=frame.assigned_spot,
    )


def order_response(order: ParkingOrder) -> OrderResponse:
    return OrderResponse(
        order_id=order.order_id,
        spot=order.spot,
        customer_id=order.customer_id,
        date=order.date,
        start_time=order.start_time,
        end_time=order.end_time,
        duration_hours=order.duration_hours,
        placed_on=order.placed_on,
    )
