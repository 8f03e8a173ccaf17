"""Controller layer for statistics and cache control endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from labops.controllers.dependencies import get_workflow_service
from labops.services.statistics_service import StatisticsValidationError
from labops.services.workflow_service import ReservationWorkflowService
from labops.utils.config import get_settings
from labops.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(tags=["statistics"])


class StatisticsResponse(BaseModel):
    reference_date: date
    rankings: dict[str, Any]
    utilization: list[dict[str, Any]]
    heatmap: dict[str, Any]
    efficiency: dict[str, Any]
    summary: dict[str, Any]
    device_trends: dict[str, dict[str, int]]
    regional_comparison: list[dict[str, Any]]


class CacheInfoResponse(BaseModel):
    size: int = Field(ge=0)
    keys: list[str]
    hits: int = Field(ge=0)
    misses: int = Field(ge=0)


@router.get(
    "/statistics",
    response_model=StatisticsResponse,
    status_code=status.HTTP_200_OK,
)
async def get_statistics(
    months_back: int = Query(default=settings.statistics_default_months_back, ge=0),
    reference_date: Optional[date] = Query(default=None),
    workflow_service: ReservationWorkflowService = Depends(get_workflow_service),
) -> StatisticsResponse:
    """Statistics over the loaded batch; ``months_back=0`` means all time."""
    try:
        report = workflow_service.compute_statistics(
            months_back=months_back,
            reference_date=reference_date,
        )
        return StatisticsResponse(**report.to_dict())
    except StatisticsValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected statistics failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute statistics",
        ) from exc


@router.post("/statistics/cache/clear", status_code=status.HTTP_200_OK)
async def clear_statistics_cache(
    workflow_service: ReservationWorkflowService = Depends(get_workflow_service),
) -> dict[str, str]:
    workflow_service.clear_cache()
    return {"status": "CLEARED"}


@router.get(
    "/statistics/cache",
    response_model=CacheInfoResponse,
    status_code=status.HTTP_200_OK,
)
async def statistics_cache_info(
    workflow_service: ReservationWorkflowService = Depends(get_workflow_service),
) -> CacheInfoResponse:
    return CacheInfoResponse(**workflow_service.get_cache_info())
