"""HTTP client for the tagged ``/requests`` gateway."""

from __future__ import annotations

from datetime import date, time
from typing import Any, Optional

import requests
from pydantic import ValidationError

from backend.controllers.schemas import (
    CheckAvailabilityCommand,
    GetSummaryCommand,
    ParkNowCommand,
    PreBookCommand,
    RequestEnvelope,
    ResponseEnvelope,
    new_correlation_id,
)
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class ParkingClientError(Exception):
    """Base exception for client-side failures."""


class ClientTransportError(ParkingClientError):
    """Raised when the server cannot be reached or answers with an HTTP error."""


class InvalidResponseError(ParkingClientError):
    """Raised when the response body is not a valid response envelope."""


class CorrelationMismatchError(ParkingClientError):
    """Raised when the response belongs to a different request."""


class ParkingClient:
    """Sends one command per call, each with a fresh correlation id."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.client_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.client_timeout_seconds
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def send(self, command: Any, timeout_seconds: Optional[float] = None) -> ResponseEnvelope:
        """POST ``command`` and return the validated response envelope.

        ``timeout_seconds`` is forwarded as the server-side commit deadline;
        the HTTP timeout is the client's own setting.
        """
        envelope = RequestEnvelope(
            correlation_id=new_correlation_id(),
            timeout_seconds=timeout_seconds,
            request=command,
        )
        try:
            response = self._session.post(
                f"{self._base_url}/requests",
                json=envelope.model_dump(mode="json"),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.warning(
                "Request transport failed | correlation_id=%s | error=%s",
                envelope.correlation_id,
                exc,
            )
            raise ClientTransportError(f"Parking service request failed: {exc}") from exc

        try:
            result = ResponseEnvelope.model_validate(response.json())
        except ValidationError as exc:
            raise InvalidResponseError(f"Malformed response envelope: {exc}") from exc
        except ValueError as exc:
            # requests' JSONDecodeError is a ValueError.
            raise InvalidResponseError("Parking service returned a non-JSON body") from exc

        if result.correlation_id != envelope.correlation_id:
            raise CorrelationMismatchError(
                f"Expected correlation id {envelope.correlation_id}, "
                f"received {result.correlation_id}"
            )
        return result

    def park_now(self, customer_id: str, timeout_seconds: Optional[float] = None) -> ResponseEnvelope:
        return self.send(
            ParkNowCommand(type="PARK_NOW", customer_id=customer_id),
            timeout_seconds=timeout_seconds,
        )

    def check_availability(self) -> ResponseEnvelope:
        return self.send(CheckAvailabilityCommand(type="CHECK_AVAILABILITY"))

    def pre_book(
        self,
        customer_id: str,
        target_date: date,
        start_time: time,
        timeout_seconds: Optional[float] = None,
    ) -> ResponseEnvelope:
        return self.send(
            PreBookCommand(
                type="PREBOOKING",
                customer_id=customer_id,
                date=target_date,
                start_time=start_time,
            ),
            timeout_seconds=timeout_seconds,
        )

    def summary(self) -> ResponseEnvelope:
        return self.send(GetSummaryCommand(type="GET_SUMMARY"))

    def close(self) -> None:
        self._session.close()
