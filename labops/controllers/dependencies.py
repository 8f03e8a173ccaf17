"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from labops.services.workflow_service import ReservationWorkflowService
from labops.utils.config import get_settings


def get_workflow_service(request: Request) -> ReservationWorkflowService:
    service = getattr(request.app.state, "workflow_service", None)
    if service is None:
        conflict_service = getattr(request.app.state, "conflict_service", None)
        statistics_engine = getattr(request.app.state, "statistics_engine", None)
        if conflict_service is not None and statistics_engine is not None:
            service = ReservationWorkflowService(
                settings=get_settings(),
                conflict_service=conflict_service,
                statistics_engine=statistics_engine,
            )
            request.app.state.workflow_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workflow service is not initialized",
        )
    return service
