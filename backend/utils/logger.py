"""Structured logging utilities for the parking ledger."""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, Optional

from backend.utils.config import get_settings


_LOGGER_INITIALIZED = False

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    Ledger commits, planner decisions and HTTP failures share one handler so a
    single reservation can be followed end to end in the stream.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)


class CorrelationAdapter(logging.LoggerAdapter):
    """Prefix every message with the request correlation id."""

    def process(
        self,
        msg: Any,
        kwargs: MutableMapping[str, Any],
    ) -> tuple[Any, MutableMapping[str, Any]]:
        correlation_id = (self.extra or {}).get("correlation_id", "-")
        return f"correlation_id={correlation_id} | {msg}", kwargs


def get_request_logger(name: str, correlation_id: str) -> CorrelationAdapter:
    return CorrelationAdapter(get_logger(name), {"correlation_id": correlation_id})
