"""Controller layer for batch loading and conflict resolution endpoints."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from labops.controllers.dependencies import get_workflow_service
from labops.domain.models import normalize_key
from labops.services.conflict_service import ConflictValidationError
from labops.services.workflow_service import ReservationWorkflowService
from labops.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["reservations"])


class ReservationRow(BaseModel):
    """One row handed over by the ingestion collaborator.

    Rows are not rejected here: ``valid`` carries the upstream verdict and the
    workflow drops anything that does not form a valid reservation.
    """

    id: str = ""
    device: str = ""
    region: str = ""
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    requestedBy: str = ""
    status: str = ""
    valid: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> str:
        return str(value).strip() if value is not None else ""

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: str) -> str:
        return normalize_key(value)


class LoadReservationsRequest(BaseModel):
    reservations: list[ReservationRow]


class LoadReservationsResponse(BaseModel):
    total_rows: int = Field(ge=0)
    valid_rows: int = Field(ge=0)
    skipped_rows: int = Field(ge=0)


class DataSummaryResponse(BaseModel):
    data_loaded: bool
    total_reservations: int = Field(ge=0)
    new_reservations: int = Field(ge=0)
    acknowledged_reservations: int = Field(ge=0)
    resolved_reservations: int = Field(ge=0)
    cancelled_reservations: int = Field(ge=0)
    unique_devices: int = Field(ge=0)
    unique_regions: int = Field(ge=0)
    unique_users: int = Field(ge=0)


class ReservationOut(BaseModel):
    id: str
    device: str
    region: str
    start_date: date
    end_date: date
    requested_by: str
    status: str
    duration: str


class ConflictReservationOut(ReservationOut):
    suggestion: Optional[str] = None


class ConflictGroupOut(BaseModel):
    id: str
    device: str
    region: str
    conflict_count: int = Field(ge=2)
    primary_id: Optional[str] = None
    reservations: list[ConflictReservationOut]


class ConflictSummaryOut(BaseModel):
    total_new: int = Field(ge=0)
    conflict_groups: int = Field(ge=0)
    total_conflicted: int = Field(ge=0)
    total_valid: int = Field(ge=0)


class ConflictReportResponse(BaseModel):
    conflict_groups: list[ConflictGroupOut]
    valid_reservations: list[ReservationOut]
    summary: ConflictSummaryOut


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post(
    "/reservations",
    response_model=LoadReservationsResponse,
    status_code=status.HTTP_200_OK,
)
async def load_reservations(
    payload: LoadReservationsRequest,
    workflow_service: ReservationWorkflowService = Depends(get_workflow_service),
) -> LoadReservationsResponse:
    try:
        result = workflow_service.load_reservations(
            [row.model_dump() for row in payload.reservations]
        )
        return LoadReservationsResponse(**result.to_dict())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reservation load failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load reservations",
        ) from exc


@router.delete("/reservations", status_code=status.HTTP_200_OK)
async def reset_reservations(
    workflow_service: ReservationWorkflowService = Depends(get_workflow_service),
) -> dict[str, str]:
    workflow_service.reset()
    return {"status": "RESET"}


@router.get(
    "/reservations/summary",
    response_model=DataSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def reservations_summary(
    workflow_service: ReservationWorkflowService = Depends(get_workflow_service),
) -> DataSummaryResponse:
    return DataSummaryResponse(**workflow_service.get_data_summary())


@router.post(
    "/conflicts",
    response_model=ConflictReportResponse,
    status_code=status.HTTP_200_OK,
)
async def detect_conflicts(
    workflow_service: ReservationWorkflowService = Depends(get_workflow_service),
) -> ConflictReportResponse:
    """Detect and resolve conflicts across the loaded batch."""
    if not workflow_service.is_loaded:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No reservations loaded. POST /reservations first.",
        )
    try:
        report = workflow_service.detect_and_resolve_conflicts()
        return ConflictReportResponse(**report.to_dict())
    except ConflictValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected conflict detection failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to detect conflicts",
        ) from exc
