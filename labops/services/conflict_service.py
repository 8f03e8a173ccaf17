"""Conflict detection and stability-mode resolution for reservation batches."""

from __future__ import annotations

from datetime import timedelta
from types import MappingProxyType
from typing import Iterable, Optional, Sequence

from labops.domain.models import (
    ConflictGroup,
    ConflictReport,
    ConflictSummary,
    RescheduleSuggestion,
    Reservation,
    ResolvedConflictGroup,
    id_sort_key,
)
from labops.utils.config import Settings, get_settings
from labops.utils.logger import get_logger


logger = get_logger(__name__)

GROUPING_SEQUENTIAL = "sequential"
GROUPING_TRANSITIVE = "transitive"
GROUPING_MODES = (GROUPING_SEQUENTIAL, GROUPING_TRANSITIVE)

RESOLUTION_STABILITY = "STABILITY"
RESOLUTION_MODES = (RESOLUTION_STABILITY,)


class ConflictValidationError(Exception):
    """Raised when conflict detection or resolution is misconfigured."""


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, index: int) -> int:
        root = index
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[index] != root:
            self._parent[index], index = root, self._parent[index]
        return root

    def union(self, left: int, right: int) -> None:
        left_root, right_root = self.find(left), self.find(right)
        if left_root == right_root:
            return
        # Keep the earliest index as root so components order by first candidate.
        if left_root < right_root:
            self._parent[right_root] = left_root
        else:
            self._parent[left_root] = right_root


class ConflictDetector:
    """Groups candidate reservations that overlap on the same device and region.

    The default ``sequential`` mode is a single greedy pass: each unconsumed
    candidate collects the later candidates and fixed commitments that overlap
    *it*, so overlap chains are not followed. ``transitive`` builds connected
    components instead.
    """

    def __init__(
        self,
        grouping_mode: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        mode = (grouping_mode or self._settings.conflict_grouping_mode).strip().lower()
        if mode not in GROUPING_MODES:
            raise ConflictValidationError(
                f"grouping_mode must be one of: {', '.join(GROUPING_MODES)}"
            )
        self._grouping_mode = mode

    @property
    def grouping_mode(self) -> str:
        return self._grouping_mode

    def find_conflicts(
        self,
        new_reservations: Sequence[Reservation],
        acknowledged_reservations: Sequence[Reservation],
        resolved_reservations: Sequence[Reservation],
    ) -> list[ConflictGroup]:
        fixed = list(acknowledged_reservations) + list(resolved_reservations)
        if self._grouping_mode == GROUPING_TRANSITIVE:
            member_lists = self._transitive_groups(new_reservations, fixed)
        else:
            member_lists = self._sequential_groups(new_reservations, fixed)

        groups = [
            ConflictGroup(
                group_id=f"cg-{position}",
                device=members[0].device,
                region=members[0].region,
                reservations=tuple(members),
            )
            for position, members in enumerate(member_lists, start=1)
        ]
        logger.info(
            "Detected %d conflict groups among %d candidates (mode=%s, fixed=%d)",
            len(groups),
            len(new_reservations),
            self._grouping_mode,
            len(fixed),
        )
        return groups

    def _sequential_groups(
        self,
        candidates: Sequence[Reservation],
        fixed: Sequence[Reservation],
    ) -> list[list[Reservation]]:
        consumed: set[int] = set()
        groups: list[list[Reservation]] = []

        for index, current in enumerate(candidates):
            if index in consumed:
                continue

            members = [current]
            for other_index in range(index + 1, len(candidates)):
                if other_index in consumed:
                    continue
                other = candidates[other_index]
                if current.conflicts_with(other):
                    members.append(other)
                    consumed.add(other_index)

            members.extend(item for item in fixed if current.conflicts_with(item))

            if len(members) > 1:
                consumed.add(index)
                groups.append(members)
        return groups

    def _transitive_groups(
        self,
        candidates: Sequence[Reservation],
        fixed: Sequence[Reservation],
    ) -> list[list[Reservation]]:
        components = _DisjointSet(len(candidates))
        for index, current in enumerate(candidates):
            for other_index in range(index + 1, len(candidates)):
                if current.conflicts_with(candidates[other_index]):
                    components.union(index, other_index)

        by_root: dict[int, list[int]] = {}
        for index in range(len(candidates)):
            by_root.setdefault(components.find(index), []).append(index)

        groups: list[list[Reservation]] = []
        for root in sorted(by_root):
            component = [candidates[index] for index in by_root[root]]
            # Fixed commitments attach to the candidate component only; they never chain.
            members = component + [
                item
                for item in fixed
                if any(member.conflicts_with(item) for member in component)
            ]
            if len(members) > 1:
                groups.append(members)
        return groups


class ConflictResolver:
    """Stability mode: the lowest id keeps its slot, later ids get reschedules.

    Each suggestion is anchored to the *original* end date of the member just
    before it in id order. Suggested dates never feed the next anchor, so a
    chain of three or more can produce a suggestion that still overlaps the
    previous member's suggested range.
    """

    def __init__(
        self,
        buffer_days: Optional[int] = None,
        resolution_mode: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._buffer_days = (
            self._settings.conflict_buffer_days if buffer_days is None else buffer_days
        )
        if self._buffer_days < 0:
            raise ConflictValidationError("buffer_days must be >= 0")
        mode = (resolution_mode or self._settings.conflict_resolution_mode).strip().upper()
        if mode not in RESOLUTION_MODES:
            raise ConflictValidationError(
                f"resolution_mode must be one of: {', '.join(RESOLUTION_MODES)}"
            )
        self._resolution_mode = mode

    @property
    def buffer_days(self) -> int:
        return self._buffer_days

    def resolve(self, groups: Iterable[ConflictGroup]) -> list[ResolvedConflictGroup]:
        return [self.resolve_group(group) for group in groups]

    def resolve_group(self, group: ConflictGroup) -> ResolvedConflictGroup:
        members = tuple(sorted(group.reservations, key=lambda item: id_sort_key(item.id)))
        primary = members[0] if members else None

        suggestions: dict[str, RescheduleSuggestion] = {}
        for position in range(1, len(members)):
            current = members[position]
            # Duplicate ids share one entry; the primary never gets one.
            if current.id in suggestions or current.id == members[0].id:
                continue
            suggestions[current.id] = self.generate_reschedule_suggestion(
                members[position - 1],
                current,
            )

        return ResolvedConflictGroup(
            group=group,
            members=members,
            primary=primary,
            suggestions=MappingProxyType(suggestions),
        )

    def generate_reschedule_suggestion(
        self,
        previous: Reservation,
        current: Reservation,
    ) -> RescheduleSuggestion:
        new_start = previous.end + timedelta(days=self._buffer_days)
        new_end = new_start + timedelta(days=current.duration_days - 1)
        return RescheduleSuggestion(
            reservation_id=current.id,
            anchor_id=previous.id,
            new_start=new_start,
            new_end=new_end,
            duration_label=current.duration_label,
        )


def get_valid_reservations(
    new_reservations: Sequence[Reservation],
    groups: Iterable[ConflictGroup],
) -> list[Reservation]:
    """Candidates whose id does not appear in any conflict group."""
    conflicted_ids: set[str] = set()
    for group in groups:
        conflicted_ids.update(group.reservation_ids)
    return [item for item in new_reservations if item.id not in conflicted_ids]


def summarize_conflicts(
    new_reservations: Sequence[Reservation],
    groups: Sequence[ConflictGroup],
    valid_reservations: Sequence[Reservation],
) -> ConflictSummary:
    return ConflictSummary(
        total_new=len(new_reservations),
        conflict_groups=len(groups),
        total_conflicted=sum(group.conflict_count for group in groups),
        total_valid=len(valid_reservations),
    )


class ConflictService:
    """Runs detection, resolution and the valid/invalid partition as one pass."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        detector: Optional[ConflictDetector] = None,
        resolver: Optional[ConflictResolver] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._detector = detector or ConflictDetector(settings=self._settings)
        self._resolver = resolver or ConflictResolver(settings=self._settings)

    @property
    def detector(self) -> ConflictDetector:
        return self._detector

    @property
    def resolver(self) -> ConflictResolver:
        return self._resolver

    def detect_and_resolve(
        self,
        new_reservations: Sequence[Reservation],
        acknowledged_reservations: Sequence[Reservation],
        resolved_reservations: Sequence[Reservation],
    ) -> ConflictReport:
        groups = self._detector.find_conflicts(
            new_reservations,
            acknowledged_reservations,
            resolved_reservations,
        )
        resolved_groups = self._resolver.resolve(groups)
        valid = get_valid_reservations(new_reservations, groups)
        summary = summarize_conflicts(new_reservations, groups, valid)
        logger.info(
            "Conflict pass complete: %d new, %d groups, %d conflicted, %d valid",
            summary.total_new,
            summary.conflict_groups,
            summary.total_conflicted,
            summary.total_valid,
        )
        return ConflictReport(
            conflict_groups=resolved_groups,
            valid_reservations=valid,
            summary=summary,
        )


def detect_and_resolve_conflicts(
    new_reservations: Sequence[Reservation],
    acknowledged_reservations: Sequence[Reservation],
    resolved_reservations: Sequence[Reservation],
    settings: Optional[Settings] = None,
) -> ConflictReport:
    return ConflictService(settings=settings).detect_and_resolve(
        new_reservations,
        acknowledged_reservations,
        resolved_reservations,
    )
