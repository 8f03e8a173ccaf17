"""Calendar-date interval primitives shared by conflict detection and statistics.

Two boundary rules coexist:

* conflict detection uses the strict test ``s1 < e2 and s2 < e1``, so a booking
  ending on the day another starts is not a conflict;
* usage aggregation merges inclusively (``next.start <= current.end``), so the
  same two bookings collapse into one continuous run of days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Protocol


class HasDateRange(Protocol):
    start: date
    end: date


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @property
    def days(self) -> int:
        """Inclusive calendar days covered by the range."""
        return (self.end - self.start).days + 1


def ranges_overlap_strict(start1: date, end1: date, start2: date, end2: date) -> bool:
    return start1 < end2 and start2 < end1


def ranges_overlap_inclusive(start1: date, end1: date, start2: date, end2: date) -> bool:
    return start1 <= end2 and start2 <= end1


def clip_range(value: DateRange, boundary: Optional[DateRange]) -> Optional[DateRange]:
    """Clip ``value`` into ``boundary``; ``None`` when nothing is left."""
    if boundary is None:
        return value if value.start <= value.end else None
    start = max(value.start, boundary.start)
    end = min(value.end, boundary.end)
    if start > end:
        return None
    return DateRange(start=start, end=end)


def merge_ranges(ranges: Iterable[DateRange]) -> list[DateRange]:
    """Merge overlapping or touching ranges into disjoint runs sorted by start."""
    ordered = sorted(ranges, key=lambda item: (item.start, item.end))
    if not ordered:
        return []

    merged: list[DateRange] = []
    current = ordered[0]
    for candidate in ordered[1:]:
        if candidate.start <= current.end:
            if candidate.end > current.end:
                current = DateRange(start=current.start, end=candidate.end)
            continue
        merged.append(current)
        current = candidate
    merged.append(current)
    return merged


def count_unique_days(
    items: Iterable[HasDateRange],
    boundary: Optional[DateRange] = None,
) -> int:
    """Count calendar days in use across ``items`` without double counting."""
    ranges: list[DateRange] = []
    for item in items:
        clipped = clip_range(DateRange(start=item.start, end=item.end), boundary)
        if clipped is not None:
            ranges.append(clipped)
    return sum(run.days for run in merge_ranges(ranges))
