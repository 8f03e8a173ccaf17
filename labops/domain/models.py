"""Domain models for equipment reservations and conflict resolution."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from labops.domain.intervals import ranges_overlap_strict


STATUS_NEW = "new"
STATUS_ACKNOWLEDGED = "acknowledged"
STATUS_RESOLVED = "resolved"
STATUS_CANCELLED = "cancelled"

_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")


class ReservationValidationError(Exception):
    """Raised when an ingested row cannot be turned into a reservation."""


def normalize_key(value: Any) -> str:
    """Trim and lowercase a value for case-insensitive comparison."""
    if value is None:
        return ""
    return str(value).strip().lower()


def parse_numeric_id(raw_id: str) -> float:
    """Parse the leading integer of an id; non-numeric ids become ``nan``."""
    match = _LEADING_INTEGER.match(raw_id or "")
    if match is None:
        return math.nan
    return float(int(match.group(1)))


def id_sort_key(raw_id: str) -> tuple[int, float]:
    """Ascending numeric order with non-numeric ids placed last."""
    numeric = parse_numeric_id(raw_id)
    if math.isnan(numeric):
        return (1, 0.0)
    return (0, numeric)


def format_duration(days: int) -> str:
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 30:
        weeks, remaining = divmod(days, 7)
        head = "1 week" if weeks == 1 else f"{weeks} weeks"
        return f"{head} {remaining} days" if remaining > 0 else head
    months, remaining = divmod(days, 30)
    head = "1 month" if months == 1 else f"{months} months"
    return f"{head} {remaining} days" if remaining > 0 else head


def _coerce_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise ReservationValidationError(
                f"{field_name} must follow YYYY-MM-DD format"
            ) from exc
    raise ReservationValidationError(f"{field_name} is missing or not a date")


@dataclass(frozen=True)
class Reservation:
    """One equipment booking on a (device, region) key with inclusive dates."""

    id: str
    device: str
    region: str
    start: date
    end: date
    requested_by: str
    status: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Reservation":
        """Build a reservation from an ingestion row (camelCase keys)."""
        return cls(
            id=str(row.get("id") or "").strip(),
            device=str(row.get("device") or "").strip(),
            region=str(row.get("region") or "").strip(),
            start=_coerce_date(row.get("startDate"), "startDate"),
            end=_coerce_date(row.get("endDate"), "endDate"),
            requested_by=str(row.get("requestedBy") or "").strip(),
            status=normalize_key(row.get("status")),
        )

    @property
    def duration_days(self) -> int:
        days = abs((self.end - self.start).days)
        return 1 if days == 0 else days

    @property
    def duration_label(self) -> str:
        return format_duration(self.duration_days)

    @property
    def device_key(self) -> tuple[str, str]:
        return (normalize_key(self.device), normalize_key(self.region))

    def is_valid(self) -> bool:
        return bool(self.id and self.device and self.region) and self.start <= self.end

    def has_status(self, status: str) -> bool:
        return self.status == normalize_key(status)

    def conflicts_with(self, other: "Reservation") -> bool:
        """Same device and region with strictly overlapping dates."""
        if self.device_key != other.device_key:
            return False
        return ranges_overlap_strict(self.start, self.end, other.start, other.end)

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "device": self.device,
            "region": self.region,
            "start_date": self.start.isoformat(),
            "end_date": self.end.isoformat(),
            "requested_by": self.requested_by,
            "status": self.status,
            "duration": self.duration_label,
        }


@dataclass(frozen=True)
class RescheduleSuggestion:
    reservation_id: str
    anchor_id: str
    new_start: date
    new_end: date
    duration_label: str

    @property
    def text(self) -> str:
        return (
            f"Reschedule: {self.new_start.isoformat()} → {self.new_end.isoformat()} "
            f"(Duration: {self.duration_label})"
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "reservation_id": self.reservation_id,
            "anchor_id": self.anchor_id,
            "new_start": self.new_start.isoformat(),
            "new_end": self.new_end.isoformat(),
            "duration": self.duration_label,
            "text": self.text,
        }


@dataclass(frozen=True)
class ConflictGroup:
    """Reservations on one (device, region) found together by a detection pass."""

    group_id: str
    device: str
    region: str
    reservations: tuple[Reservation, ...]

    @property
    def conflict_count(self) -> int:
        return len(self.reservations)

    @property
    def reservation_ids(self) -> frozenset[str]:
        return frozenset(reservation.id for reservation in self.reservations)


@dataclass(frozen=True)
class ResolvedConflictGroup:
    """A conflict group after priority ordering.

    ``members`` is sorted by numeric id. ``suggestions`` is a read-only side-table
    keyed by reservation id; the primary never appears in it. ``primary`` is
    ``None`` when the group has no honored reservation.
    """

    group: ConflictGroup
    members: tuple[Reservation, ...]
    primary: Optional[Reservation]
    suggestions: Mapping[str, RescheduleSuggestion] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def group_id(self) -> str:
        return self.group.group_id

    @property
    def conflict_count(self) -> int:
        return len(self.members)

    def suggestion_for(self, reservation_id: str) -> Optional[RescheduleSuggestion]:
        return self.suggestions.get(reservation_id)

    def to_dict(self) -> dict[str, Any]:
        rows: list[dict[str, Any]] = []
        for member in self.members:
            row: dict[str, Any] = member.to_dict()
            suggestion = self.suggestions.get(member.id)
            row["suggestion"] = suggestion.text if suggestion is not None else None
            rows.append(row)
        return {
            "id": self.group.group_id,
            "device": self.group.device,
            "region": self.group.region,
            "conflict_count": self.conflict_count,
            "primary_id": self.primary.id if self.primary is not None else None,
            "reservations": rows,
        }


@dataclass(frozen=True)
class ConflictSummary:
    total_new: int
    conflict_groups: int
    total_conflicted: int
    total_valid: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_new": self.total_new,
            "conflict_groups": self.conflict_groups,
            "total_conflicted": self.total_conflicted,
            "total_valid": self.total_valid,
        }


@dataclass(frozen=True)
class ConflictReport:
    conflict_groups: list[ResolvedConflictGroup]
    valid_reservations: list[Reservation]
    summary: ConflictSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "conflict_groups": [group.to_dict() for group in self.conflict_groups],
            "valid_reservations": [item.to_dict() for item in self.valid_reservations],
            "summary": self.summary.to_dict(),
        }
