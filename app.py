"""
app.py: FastAPI application factory.

This is the ASGI application object imported by uvicorn. It wires the
session workflow service and registers routers.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from fastapi import FastAPI

from labops.controllers.reservation_controller import router as reservation_router
from labops.controllers.statistics_controller import router as statistics_router
from labops.services.conflict_service import ConflictService
from labops.services.statistics_service import StatisticsEngine
from labops.services.workflow_service import ReservationWorkflowService
from labops.utils.config import get_settings
from labops.utils.logger import get_logger


logger = get_logger(__name__)


def create_app() -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services are created here and injected through app.state; the statistics
    cache is owned by the engine instance, not held in a module global.
    """
    settings = get_settings()

    conflict_service = ConflictService(settings=settings)
    statistics_engine = StatisticsEngine(settings=settings)
    workflow_service = ReservationWorkflowService(
        settings=settings,
        conflict_service=conflict_service,
        statistics_engine=statistics_engine,
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
    )

    app.include_router(reservation_router)
    app.include_router(statistics_router)

    app.state.conflict_service = conflict_service
    app.state.statistics_engine = statistics_engine
    app.state.workflow_service = workflow_service

    logger.info(
        "Application wired (grouping=%s, buffer_days=%d)",
        conflict_service.detector.grouping_mode,
        conflict_service.resolver.buffer_days,
    )
    return app


# Module-level app object for uvicorn
app = create_app()
