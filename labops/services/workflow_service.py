"""Session workflow over one in-memory reservation batch."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from threading import RLock
from typing import Any, Iterable, Mapping, Optional, Sequence

from labops.domain.models import (
    STATUS_ACKNOWLEDGED,
    STATUS_CANCELLED,
    STATUS_NEW,
    STATUS_RESOLVED,
    ConflictReport,
    Reservation,
    ReservationValidationError,
)
from labops.services.conflict_service import ConflictService
from labops.services.statistics_service import StatisticsEngine, StatisticsReport
from labops.utils.config import Settings, get_settings
from labops.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadResult:
    total_rows: int
    valid_rows: int
    skipped_rows: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "skipped_rows": self.skipped_rows,
        }


class ReservationWorkflowService:
    """Coordinates load -> detect/resolve -> statistics for a session."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        conflict_service: Optional[ConflictService] = None,
        statistics_engine: Optional[StatisticsEngine] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._conflict_service = conflict_service or ConflictService(settings=self._settings)
        self._statistics_engine = statistics_engine or StatisticsEngine(settings=self._settings)
        self._lock = RLock()
        self._reservations: list[Reservation] = []
        self._loaded = False
        self._latest_report: ConflictReport | None = None

    @property
    def statistics_engine(self) -> StatisticsEngine:
        return self._statistics_engine

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return self._loaded

    def load_reservations(self, rows: Iterable[Mapping[str, Any]]) -> LoadResult:
        """Replace the session batch with rows from the ingestion collaborator.

        Rows flagged ``valid: false`` upstream, rows that cannot be parsed into a
        reservation and rows that fail the entity validity check are skipped and
        counted in ``skipped_rows``.
        """
        loaded: list[Reservation] = []
        total = 0
        for row in rows:
            total += 1
            if not row.get("valid", True):
                continue
            try:
                reservation = Reservation.from_row(row)
            except ReservationValidationError as exc:
                logger.warning("Skipping row %d: %s", total, exc)
                continue
            if reservation.is_valid():
                loaded.append(reservation)

        with self._lock:
            self._reservations = loaded
            self._loaded = True
            self._latest_report = None
        self._statistics_engine.clear_cache()

        result = LoadResult(
            total_rows=total,
            valid_rows=len(loaded),
            skipped_rows=total - len(loaded),
        )
        logger.info(
            "Loaded %d valid reservations from %d rows", result.valid_rows, result.total_rows
        )
        return result

    def reset(self) -> None:
        with self._lock:
            self._reservations = []
            self._loaded = False
            self._latest_report = None
        self._statistics_engine.clear_cache()

    def get_all_reservations(self) -> list[Reservation]:
        with self._lock:
            return list(self._reservations)

    def get_reservations_by_status(self, status: str) -> list[Reservation]:
        with self._lock:
            return [item for item in self._reservations if item.has_status(status)]

    def get_data_summary(self) -> dict[str, Any]:
        with self._lock:
            reservations = list(self._reservations)
            loaded = self._loaded
        return {
            "data_loaded": loaded,
            "total_reservations": len(reservations),
            "new_reservations": sum(1 for item in reservations if item.has_status(STATUS_NEW)),
            "acknowledged_reservations": sum(
                1 for item in reservations if item.has_status(STATUS_ACKNOWLEDGED)
            ),
            "resolved_reservations": sum(
                1 for item in reservations if item.has_status(STATUS_RESOLVED)
            ),
            "cancelled_reservations": sum(
                1 for item in reservations if item.has_status(STATUS_CANCELLED)
            ),
            "unique_devices": len({item.device for item in reservations}),
            "unique_regions": len({item.region for item in reservations}),
            "unique_users": len({item.requested_by for item in reservations}),
        }

    def detect_and_resolve_conflicts(
        self,
        new_reservations: Optional[Sequence[Reservation]] = None,
        acknowledged_reservations: Optional[Sequence[Reservation]] = None,
        resolved_reservations: Optional[Sequence[Reservation]] = None,
    ) -> ConflictReport:
        """Run one detection/resolution pass; defaults to the loaded batch."""
        if new_reservations is None:
            new_reservations = self.get_reservations_by_status(STATUS_NEW)
        if acknowledged_reservations is None:
            acknowledged_reservations = self.get_reservations_by_status(STATUS_ACKNOWLEDGED)
        if resolved_reservations is None:
            resolved_reservations = self.get_reservations_by_status(STATUS_RESOLVED)

        report = self._conflict_service.detect_and_resolve(
            new_reservations,
            acknowledged_reservations,
            resolved_reservations,
        )
        # Published only once resolution has finished for every group.
        with self._lock:
            self._latest_report = report
        return report

    def get_latest_conflict_report(self) -> ConflictReport | None:
        with self._lock:
            return self._latest_report

    def compute_statistics(
        self,
        reservations: Optional[Sequence[Reservation]] = None,
        months_back: Optional[int] = None,
        reference_date: Optional[date] = None,
    ) -> StatisticsReport:
        if reservations is None:
            reservations = self.get_all_reservations()
        return self._statistics_engine.compute_statistics(
            reservations,
            months_back=months_back,
            reference_date=reference_date,
        )

    def clear_cache(self) -> None:
        self._statistics_engine.clear_cache()

    def get_cache_info(self) -> dict[str, Any]:
        return self._statistics_engine.cache.info()
