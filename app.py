"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the ledger, planner and booking services, registers routers, and
prepares the ledger store at startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI

from backend.controllers.gateway_controller import router as gateway_router
from backend.controllers.parking_controller import router as parking_router
from backend.repository.ledger_repository import LedgerRepository
from backend.services.ledger_service import AvailabilityLedger
from backend.services.park_now_service import ParkNowService
from backend.services.planner_service import AssignmentPlanner
from backend.services.prebooking_service import PrebookingService
from backend.services.summary_service import SummaryAggregator
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one ledger so all commits go through the same
    repository. Services are exposed on app.state for dependency resolution.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite connection factory) ---
    repository = LedgerRepository(settings)

    # --- Ledger and planner ---
    ledger = AvailabilityLedger(repository=repository, settings=settings)
    planner = AssignmentPlanner()

    # --- Services ---
    park_now_service = ParkNowService(
        ledger=ledger,
        planner=planner,
        settings=settings,
        clock=clock,
    )
    prebooking_service = PrebookingService(
        ledger=ledger,
        planner=planner,
        settings=settings,
        clock=clock,
    )
    summary_aggregator = SummaryAggregator(
        ledger=ledger,
        settings=settings,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(parking_router)
    app.include_router(gateway_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.clock = clock
    app.state.repository = repository
    app.state.ledger = ledger
    app.state.planner = planner
    app.state.park_now_service = park_now_service
    app.state.prebooking_service = prebooking_service
    app.state.summary_aggregator = summary_aggregator

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before ledger rows are populated. Populating is
    optional because untouched dates are filled lazily on first use.
    """
    settings: Settings = app.state.settings
    repository: LedgerRepository = app.state.repository
    ledger: AvailabilityLedger = app.state.ledger

    logger.info("Startup: initializing database schema | path=%s", settings.database_path)
    repository.initialize_database()

    if settings.seed_ledger_on_startup:
        today = app.state.clock().date()
        logger.info("Startup: populating ledger horizon from %s", today.isoformat())
        ledger.ensure_horizon(today)

    logger.info("Startup complete, ledger ready")


# Module-level app object for uvicorn
app = create_app()
