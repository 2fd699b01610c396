"""Runtime settings loaded once from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    log_level: str
    ledger_lookahead_days: int
    max_advance_booking_days: int
    max_commit_attempts: int
    commit_timeout_seconds: float
    seed_ledger_on_startup: bool
    client_base_url: str
    client_timeout_seconds: float


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from `PARKING_*` environment variables."""
    return Settings(
        app_name=_env_str("PARKING_APP_NAME", "Parking Spot Assignment Ledger"),
        app_version=_env_str("PARKING_APP_VERSION", "1.0.0"),
        database_path=Path(
            _env_str(
                "PARKING_DATABASE_PATH",
                str(_PROJECT_ROOT / "data" / "parking.db"),
            )
        ),
        log_level=_env_str("PARKING_LOG_LEVEL", "INFO"),
        ledger_lookahead_days=_env_int("PARKING_LEDGER_LOOKAHEAD_DAYS", 1),
        max_advance_booking_days=_env_int("PARKING_MAX_ADVANCE_BOOKING_DAYS", 7),
        max_commit_attempts=_env_int("PARKING_MAX_COMMIT_ATTEMPTS", 2),
        commit_timeout_seconds=_env_float("PARKING_COMMIT_TIMEOUT_SECONDS", 5.0),
        seed_ledger_on_startup=_env_bool("PARKING_SEED_LEDGER_ON_STARTUP", True),
        client_base_url=_env_str("PARKING_CLIENT_BASE_URL", "http://127.0.0.1:8000"),
        client_timeout_seconds=_env_float("PARKING_CLIENT_TIMEOUT_SECONDS", 5.0),
    )
