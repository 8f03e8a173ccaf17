"""Interval-aware reservation statistics.

Every view here is derived from an immutable reservation list. Usage days are
computed with the inclusive merge in ``labops.domain.intervals`` so overlapping
or back-to-back bookings of the same bucket are never double counted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd

from labops.domain.constraints import (
    StatisticsConfig,
    resolve_timeframe_days,
    validate_statistics_config,
)
from labops.domain.intervals import DateRange, count_unique_days, ranges_overlap_inclusive
from labops.domain.models import Reservation
from labops.services.result_cache import ResultCache, build_cache_key
from labops.utils.config import Settings, get_settings
from labops.utils.logger import get_logger


logger = get_logger(__name__)

_FRAME_COLUMNS = ["id", "device", "region", "user", "duration", "month", "reservation"]

RANKING_WEIGHTS = {
    "reservations": 0.4,
    "total_days": 0.3,
    "device_diversity": 0.2,
    "duration_efficiency": 0.1,
}


class StatisticsValidationError(Exception):
    """Raised when a statistics query or configuration is invalid."""


def round_half_up(value: float, digits: int = 1) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _round_int(value: float) -> int:
    return int(math.floor(value + 0.5))


def _ratio(value: float, maximum: float) -> float:
    return value / maximum if maximum > 0 else 0.0


@dataclass(frozen=True)
class DeviceUsage:
    device: str
    count: int
    total_days: int
    unique_users: int
    avg_duration: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "device": self.device,
            "count": self.count,
            "total_days": self.total_days,
            "unique_users": self.unique_users,
            "avg_duration": self.avg_duration,
        }


@dataclass(frozen=True)
class UserRanking:
    user: str
    reservation_count: int
    total_days: int
    unique_devices: int
    avg_duration: float
    ranking_score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "reservation_count": self.reservation_count,
            "total_days": self.total_days,
            "unique_devices": self.unique_devices,
            "avg_duration": self.avg_duration,
            "ranking_score": self.ranking_score,
        }


@dataclass(frozen=True)
class UserRegionActivity:
    user: str
    reservation_count: int
    total_days: int
    unique_devices: int
    avg_duration: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "reservation_count": self.reservation_count,
            "total_days": self.total_days,
            "unique_devices": self.unique_devices,
            "avg_duration": self.avg_duration,
        }


@dataclass(frozen=True)
class UserDiversity:
    user: str
    unique_devices: int
    unique_regions: int
    reservation_count: int
    diversity_score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "unique_devices": self.unique_devices,
            "unique_regions": self.unique_regions,
            "reservation_count": self.reservation_count,
            "diversity_score": self.diversity_score,
        }


@dataclass(frozen=True)
class BookingPattern:
    user: str
    total_reservations: int
    avg_duration: float
    short_term_percent: int
    medium_term_percent: int
    long_term_percent: int
    pattern: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "total_reservations": self.total_reservations,
            "avg_duration": self.avg_duration,
            "short_term_percent": self.short_term_percent,
            "medium_term_percent": self.medium_term_percent,
            "long_term_percent": self.long_term_percent,
            "pattern": self.pattern,
        }


@dataclass(frozen=True)
class DeviceUtilization:
    device: str
    reserved_days: int
    reservation_count: int
    utilization_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "device": self.device,
            "reserved_days": self.reserved_days,
            "reservation_count": self.reservation_count,
            "utilization_rate": self.utilization_rate,
        }


@dataclass(frozen=True)
class RegionUtilization:
    region: str
    device_count: int
    reserved_days: int
    average_utilization_rate: float
    devices: list[DeviceUtilization]

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region,
            "device_count": self.device_count,
            "reserved_days": self.reserved_days,
            "average_utilization_rate": self.average_utilization_rate,
            "devices": [item.to_dict() for item in self.devices],
        }


@dataclass(frozen=True)
class HeatmapMonth:
    month: str
    label: str
    reservation_count: int
    conflict_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "label": self.label,
            "reservation_count": self.reservation_count,
            "conflict_count": self.conflict_count,
        }


@dataclass(frozen=True)
class ConflictHeatmap:
    window_start: date
    window_end: date
    months: list[HeatmapMonth]
    total_conflicts: int
    peak_month: Optional[str]
    low_month: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "months": [item.to_dict() for item in self.months],
            "total_conflicts": self.total_conflicts,
            "peak_month": self.peak_month,
            "low_month": self.low_month,
        }


@dataclass(frozen=True)
class EfficiencyMetrics:
    average_duration: float
    short_booking_count: int
    short_booking_rate: float
    medium_booking_count: int
    long_booking_count: int
    estimated_lead_time_days: float
    last_minute_booking_rate: float
    estimated: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_duration": self.average_duration,
            "short_booking_count": self.short_booking_count,
            "short_booking_rate": self.short_booking_rate,
            "early_termination_proxy": self.short_booking_rate,
            "medium_booking_count": self.medium_booking_count,
            "long_booking_count": self.long_booking_count,
            "estimated_lead_time_days": self.estimated_lead_time_days,
            "last_minute_booking_rate": self.last_minute_booking_rate,
            "estimated": self.estimated,
        }


@dataclass(frozen=True)
class RegionComparison:
    region: str
    total_reservations: int
    total_days: int
    unique_devices: int
    unique_users: int
    avg_duration: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region,
            "total_reservations": self.total_reservations,
            "total_days": self.total_days,
            "unique_devices": self.unique_devices,
            "unique_users": self.unique_users,
            "avg_duration": self.avg_duration,
        }


@dataclass(frozen=True)
class StatisticsSummary:
    total_reservations: int
    total_days: int
    avg_duration: float
    unique_devices: int
    unique_users: int
    unique_regions: int
    earliest_start: Optional[date]
    latest_start: Optional[date]
    months_back: int
    timeframe_days: Optional[int]
    excluded_count: int

    def to_dict(self) -> dict[str, Any]:
        date_range = None
        if self.earliest_start is not None and self.latest_start is not None:
            date_range = {
                "earliest": self.earliest_start.isoformat(),
                "latest": self.latest_start.isoformat(),
            }
        return {
            "total_reservations": self.total_reservations,
            "total_days": self.total_days,
            "avg_duration": self.avg_duration,
            "unique_devices": self.unique_devices,
            "unique_users": self.unique_users,
            "unique_regions": self.unique_regions,
            "date_range": date_range,
            "months_back": self.months_back,
            "timeframe_days": self.timeframe_days,
            "excluded_count": self.excluded_count,
        }


@dataclass(frozen=True)
class Rankings:
    top_devices: dict[str, list[DeviceUsage]] = field(default_factory=dict)
    least_reserved_devices: dict[str, list[DeviceUsage]] = field(default_factory=dict)
    top_users: list[UserRanking] = field(default_factory=list)
    user_activity_by_region: dict[str, list[UserRegionActivity]] = field(default_factory=dict)
    user_device_diversity: list[UserDiversity] = field(default_factory=list)
    user_booking_patterns: list[BookingPattern] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "top_devices": {
                region: [item.to_dict() for item in items]
                for region, items in self.top_devices.items()
            },
            "least_reserved_devices": {
                region: [item.to_dict() for item in items]
                for region, items in self.least_reserved_devices.items()
            },
            "top_users": [item.to_dict() for item in self.top_users],
            "user_activity_by_region": {
                region: [item.to_dict() for item in items]
                for region, items in self.user_activity_by_region.items()
            },
            "user_device_diversity": [item.to_dict() for item in self.user_device_diversity],
            "user_booking_patterns": [item.to_dict() for item in self.user_booking_patterns],
        }


@dataclass(frozen=True)
class StatisticsReport:
    reference_date: date
    rankings: Rankings
    utilization: list[RegionUtilization]
    heatmap: ConflictHeatmap
    efficiency: EfficiencyMetrics
    summary: StatisticsSummary
    device_trends: dict[str, dict[str, int]]
    regional_comparison: list[RegionComparison]

    def to_dict(self) -> dict[str, Any]:
        return {
            "reference_date": self.reference_date.isoformat(),
            "rankings": self.rankings.to_dict(),
            "utilization": [item.to_dict() for item in self.utilization],
            "heatmap": self.heatmap.to_dict(),
            "efficiency": self.efficiency.to_dict(),
            "summary": self.summary.to_dict(),
            "device_trends": self.device_trends,
            "regional_comparison": [item.to_dict() for item in self.regional_comparison],
        }


def calculate_duration_score(
    avg_duration: float,
    max_avg_duration: float,
    optimal_min: float = 2.0,
    optimal_max: float = 14.0,
) -> float:
    """Score an average stay: 1.0 inside the optimal range, lower outside it."""
    if optimal_min <= avg_duration <= optimal_max:
        return 1.0
    if avg_duration < optimal_min:
        return max(0.3, avg_duration / optimal_min * 0.8)
    penalty = min(avg_duration / optimal_max, max_avg_duration / optimal_max)
    return max(0.2, 1.0 - (penalty - 1.0) * 0.5)


def classify_booking_pattern(short_count: int, long_count: int, total: int) -> str:
    if total <= 0:
        return "Balanced User"
    if short_count / total * 100 >= 70:
        return "Quick User"
    if long_count / total * 100 >= 50:
        return "Long-term User"
    return "Balanced User"


def _shift_month(value: date, offset: int) -> date:
    index = value.year * 12 + (value.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def trailing_month_starts(reference_date: date, months: int) -> list[date]:
    """First day of each of the ``months`` calendar months ending at the reference month."""
    current = reference_date.replace(day=1)
    return [_shift_month(current, -offset) for offset in range(months - 1, -1, -1)]


def count_overlapping_pairs(reservations: Sequence[Reservation]) -> int:
    """Unique unordered pairs on the same device and region with inclusive overlap."""
    by_key: dict[tuple[str, str], list[tuple[int, Reservation]]] = {}
    for position, reservation in enumerate(reservations):
        by_key.setdefault(reservation.device_key, []).append((position, reservation))

    pairs: set[tuple[int, int]] = set()
    for entries in by_key.values():
        for left_index, (left_position, left) in enumerate(entries):
            for right_position, right in entries[left_index + 1:]:
                if ranges_overlap_inclusive(left.start, left.end, right.start, right.end):
                    pairs.add((min(left_position, right_position), max(left_position, right_position)))
    return len(pairs)


def build_conflict_heatmap(
    reservations: Sequence[Reservation],
    reference_date: date,
    window_days: int = 365,
    months: int = 12,
) -> ConflictHeatmap:
    """Monthly overlap counts over a trailing window, independent of any report timeframe.

    Pairs are deduplicated inside each month bucket only, so a pair spanning
    two months is counted once in each.
    """
    window_start = reference_date - timedelta(days=window_days)
    in_window = [
        item
        for item in reservations
        if ranges_overlap_inclusive(item.start, item.end, window_start, reference_date)
    ]

    buckets: list[HeatmapMonth] = []
    for month_start in trailing_month_starts(reference_date, months):
        month_end = _shift_month(month_start, 1) - timedelta(days=1)
        in_month = [
            item
            for item in in_window
            if ranges_overlap_inclusive(item.start, item.end, month_start, month_end)
        ]
        buckets.append(
            HeatmapMonth(
                month=month_start.strftime("%Y-%m"),
                label=month_start.strftime("%b %Y"),
                reservation_count=len(in_month),
                conflict_count=count_overlapping_pairs(in_month),
            )
        )

    active = [bucket for bucket in buckets if bucket.reservation_count > 0]
    peak_month: Optional[str] = None
    low_month: Optional[str] = None
    if active:
        counts = np.array([bucket.conflict_count for bucket in active])
        peak_month = active[int(np.argmax(counts))].month
        low_month = active[int(np.argmin(counts))].month

    return ConflictHeatmap(
        window_start=window_start,
        window_end=reference_date,
        months=buckets,
        total_conflicts=sum(bucket.conflict_count for bucket in buckets),
        peak_month=peak_month,
        low_month=low_month,
    )


class StatisticsEngine:
    """Builds statistics reports and memoizes them in an owned ``ResultCache``."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[ResultCache[StatisticsReport]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = StatisticsConfig.from_settings(self._settings)
        try:
            validate_statistics_config(self._config)
        except ValueError as exc:
            raise StatisticsValidationError(str(exc)) from exc
        self._cache: ResultCache[StatisticsReport] = cache if cache is not None else ResultCache()

    @property
    def cache(self) -> ResultCache[StatisticsReport]:
        return self._cache

    def clear_cache(self) -> None:
        self._cache.clear()

    def compute_statistics(
        self,
        reservations: Sequence[Reservation],
        months_back: Optional[int] = None,
        reference_date: Optional[date] = None,
    ) -> StatisticsReport:
        resolved_months_back = (
            self._settings.statistics_default_months_back if months_back is None else months_back
        )
        try:
            timeframe_days = resolve_timeframe_days(resolved_months_back)
        except ValueError as exc:
            raise StatisticsValidationError(str(exc)) from exc

        today = reference_date or date.today()
        statuses = tuple(self._settings.statistics_statuses)
        cache_key = build_cache_key(
            (item.id for item in reservations),
            {
                "months_back": resolved_months_back,
                "reference_date": today.isoformat(),
                "statuses": list(statuses),
            },
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Statistics cache hit for %s", cache_key)
            return cached

        eligible = [item for item in reservations if item.status in statuses]
        boundary: Optional[DateRange] = None
        if timeframe_days is None:
            selected = eligible
        else:
            cutoff = today - timedelta(days=timeframe_days)
            selected = [item for item in eligible if item.start >= cutoff]
            boundary = DateRange(start=cutoff, end=today)

        report = self._build_report(
            selected=selected,
            eligible=eligible,
            boundary=boundary,
            today=today,
            months_back=resolved_months_back,
            timeframe_days=timeframe_days,
            excluded_count=len(reservations) - len(eligible),
        )
        self._cache.put(cache_key, report)
        logger.info(
            "Computed statistics for %d reservations (months_back=%d, selected=%d)",
            len(reservations),
            resolved_months_back,
            len(selected),
        )
        return report

    # ------------------------------------------------------------------
    # Report assembly
    # ------------------------------------------------------------------

    def _build_report(
        self,
        *,
        selected: list[Reservation],
        eligible: list[Reservation],
        boundary: Optional[DateRange],
        today: date,
        months_back: int,
        timeframe_days: Optional[int],
        excluded_count: int,
    ) -> StatisticsReport:
        frame = self._build_frame(selected)
        device_usage = self._device_usage_by_region(frame, boundary)
        limit = self._config.top_items_limit

        rankings = Rankings(
            top_devices={
                region: sorted(items, key=lambda item: -item.count)[:limit]
                for region, items in device_usage.items()
            },
            least_reserved_devices={
                region: sorted(items, key=lambda item: item.count)[:limit]
                for region, items in device_usage.items()
            },
            top_users=self._top_users(frame, boundary),
            user_activity_by_region=self._user_activity_by_region(frame, boundary),
            user_device_diversity=self._user_device_diversity(frame),
            user_booking_patterns=self._user_booking_patterns(frame),
        )

        return StatisticsReport(
            reference_date=today,
            rankings=rankings,
            utilization=self._utilization(frame, boundary),
            heatmap=build_conflict_heatmap(
                eligible,
                reference_date=today,
                window_days=self._config.heatmap_window_days,
                months=self._config.heatmap_months,
            ),
            efficiency=self._efficiency(frame),
            summary=self._summary(
                selected,
                frame,
                months_back=months_back,
                timeframe_days=timeframe_days,
                excluded_count=excluded_count,
            ),
            device_trends=self._device_trends(frame),
            regional_comparison=self._regional_comparison(frame),
        )

    def _build_frame(self, reservations: Sequence[Reservation]) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "id": item.id,
                    "device": item.device,
                    "region": item.region,
                    "user": item.requested_by,
                    "duration": item.duration_days,
                    "month": item.start.strftime("%Y-%m"),
                    "reservation": item,
                }
                for item in reservations
            ],
            columns=_FRAME_COLUMNS,
        )

    def _device_usage_by_region(
        self,
        frame: pd.DataFrame,
        boundary: Optional[DateRange],
    ) -> dict[str, list[DeviceUsage]]:
        usage: dict[str, list[DeviceUsage]] = {}
        if frame.empty:
            return usage
        for (region, device), group in frame.groupby(["region", "device"], sort=False):
            count = int(len(group))
            usage.setdefault(str(region), []).append(
                DeviceUsage(
                    device=str(device),
                    count=count,
                    total_days=count_unique_days(group["reservation"].tolist(), boundary),
                    unique_users=int(group["user"].nunique()),
                    avg_duration=round_half_up(float(group["duration"].sum()) / count),
                )
            )
        return usage

    def _top_users(
        self,
        frame: pd.DataFrame,
        boundary: Optional[DateRange],
    ) -> list[UserRanking]:
        if frame.empty:
            return []

        rows: list[dict[str, Any]] = []
        for user, group in frame.groupby("user", sort=False):
            count = int(len(group))
            rows.append(
                {
                    "user": str(user),
                    "reservation_count": count,
                    "total_days": count_unique_days(group["reservation"].tolist(), boundary),
                    "unique_devices": int(group["device"].nunique()),
                    "avg_duration": round_half_up(float(group["duration"].sum()) / count),
                }
            )

        max_reservations = max(row["reservation_count"] for row in rows)
        max_total_days = max(row["total_days"] for row in rows)
        max_unique_devices = max(row["unique_devices"] for row in rows)
        max_avg_duration = max(row["avg_duration"] for row in rows)

        rankings: list[UserRanking] = []
        for row in rows:
            duration_score = calculate_duration_score(
                row["avg_duration"],
                max_avg_duration,
                optimal_min=self._config.optimal_duration_min_days,
                optimal_max=self._config.optimal_duration_max_days,
            )
            weighted = (
                _ratio(row["reservation_count"], max_reservations) * RANKING_WEIGHTS["reservations"]
                + _ratio(row["total_days"], max_total_days) * RANKING_WEIGHTS["total_days"]
                + _ratio(row["unique_devices"], max_unique_devices)
                * RANKING_WEIGHTS["device_diversity"]
                + duration_score * RANKING_WEIGHTS["duration_efficiency"]
            )
            rankings.append(UserRanking(ranking_score=_round_int(weighted * 100), **row))

        rankings.sort(key=lambda item: -item.ranking_score)
        return rankings[: self._config.top_items_limit]

    def _user_activity_by_region(
        self,
        frame: pd.DataFrame,
        boundary: Optional[DateRange],
    ) -> dict[str, list[UserRegionActivity]]:
        activity: dict[str, list[UserRegionActivity]] = {}
        if frame.empty:
            return activity
        for (region, user), group in frame.groupby(["region", "user"], sort=False):
            count = int(len(group))
            activity.setdefault(str(region), []).append(
                UserRegionActivity(
                    user=str(user),
                    reservation_count=count,
                    total_days=count_unique_days(group["reservation"].tolist(), boundary),
                    unique_devices=int(group["device"].nunique()),
                    avg_duration=round_half_up(float(group["duration"].sum()) / count),
                )
            )
        limit = self._config.top_items_limit
        return {
            region: sorted(items, key=lambda item: -item.reservation_count)[:limit]
            for region, items in activity.items()
        }

    def _user_device_diversity(self, frame: pd.DataFrame) -> list[UserDiversity]:
        if frame.empty:
            return []
        diversity: list[UserDiversity] = []
        for user, group in frame.groupby("user", sort=False):
            count = int(len(group))
            unique_devices = int(group["device"].nunique())
            diversity.append(
                UserDiversity(
                    user=str(user),
                    unique_devices=unique_devices,
                    unique_regions=int(group["region"].nunique()),
                    reservation_count=count,
                    diversity_score=_round_int(unique_devices / count * 100),
                )
            )
        diversity.sort(key=lambda item: -item.diversity_score)
        return diversity[: self._config.top_items_limit]

    def _user_booking_patterns(self, frame: pd.DataFrame) -> list[BookingPattern]:
        if frame.empty:
            return []
        short_max = self._config.short_booking_max_days
        medium_max = self._config.optimal_duration_max_days
        patterns: list[BookingPattern] = []
        for user, group in frame.groupby("user", sort=False):
            total = int(len(group))
            durations = group["duration"]
            short_count = int((durations <= short_max).sum())
            long_count = int((durations > medium_max).sum())
            medium_count = total - short_count - long_count
            patterns.append(
                BookingPattern(
                    user=str(user),
                    total_reservations=total,
                    avg_duration=round_half_up(float(durations.sum()) / total),
                    short_term_percent=_round_int(short_count / total * 100),
                    medium_term_percent=_round_int(medium_count / total * 100),
                    long_term_percent=_round_int(long_count / total * 100),
                    pattern=classify_booking_pattern(short_count, long_count, total),
                )
            )
        patterns.sort(key=lambda item: -item.total_reservations)
        return patterns[: self._config.top_items_limit]

    def _utilization(
        self,
        frame: pd.DataFrame,
        boundary: Optional[DateRange],
    ) -> list[RegionUtilization]:
        if frame.empty:
            return []
        capacity = self._config.utilization_capacity_days
        devices_by_region: dict[str, list[DeviceUtilization]] = {}
        for (region, device), group in frame.groupby(["region", "device"], sort=False):
            reserved_days = count_unique_days(group["reservation"].tolist(), boundary)
            devices_by_region.setdefault(str(region), []).append(
                DeviceUtilization(
                    device=str(device),
                    reserved_days=reserved_days,
                    reservation_count=int(len(group)),
                    utilization_rate=round_half_up(reserved_days / capacity * 100),
                )
            )

        regions: list[RegionUtilization] = []
        for region, devices in devices_by_region.items():
            devices.sort(key=lambda item: -item.utilization_rate)
            raw_rates = [item.reserved_days / capacity * 100 for item in devices]
            regions.append(
                RegionUtilization(
                    region=region,
                    device_count=len(devices),
                    reserved_days=sum(item.reserved_days for item in devices),
                    average_utilization_rate=round_half_up(float(np.mean(raw_rates))),
                    devices=devices,
                )
            )
        return regions

    def _efficiency(self, frame: pd.DataFrame) -> EfficiencyMetrics:
        estimated_lead_time = float(self._settings.estimated_lead_time_days)
        last_minute_rate = float(self._settings.estimated_last_minute_rate)
        if frame.empty:
            return EfficiencyMetrics(
                average_duration=0.0,
                short_booking_count=0,
                short_booking_rate=0.0,
                medium_booking_count=0,
                long_booking_count=0,
                estimated_lead_time_days=estimated_lead_time,
                last_minute_booking_rate=last_minute_rate,
            )

        durations = frame["duration"]
        total = int(len(frame))
        short_count = int((durations <= self._config.short_booking_max_days).sum())
        long_count = int((durations > self._config.optimal_duration_max_days).sum())
        return EfficiencyMetrics(
            average_duration=round_half_up(float(durations.mean())),
            short_booking_count=short_count,
            short_booking_rate=round_half_up(short_count / total * 100),
            medium_booking_count=total - short_count - long_count,
            long_booking_count=long_count,
            estimated_lead_time_days=estimated_lead_time,
            last_minute_booking_rate=last_minute_rate,
        )

    def _summary(
        self,
        selected: Sequence[Reservation],
        frame: pd.DataFrame,
        *,
        months_back: int,
        timeframe_days: Optional[int],
        excluded_count: int,
    ) -> StatisticsSummary:
        if frame.empty:
            return StatisticsSummary(
                total_reservations=0,
                total_days=0,
                avg_duration=0.0,
                unique_devices=0,
                unique_users=0,
                unique_regions=0,
                earliest_start=None,
                latest_start=None,
                months_back=months_back,
                timeframe_days=timeframe_days,
                excluded_count=excluded_count,
            )

        total = int(len(frame))
        total_days = int(frame["duration"].sum())
        starts = [item.start for item in selected]
        return StatisticsSummary(
            total_reservations=total,
            total_days=total_days,
            avg_duration=round_half_up(total_days / total),
            unique_devices=int(frame["device"].nunique()),
            unique_users=int(frame["user"].nunique()),
            unique_regions=int(frame["region"].nunique()),
            earliest_start=min(starts),
            latest_start=max(starts),
            months_back=months_back,
            timeframe_days=timeframe_days,
            excluded_count=excluded_count,
        )

    def _device_trends(self, frame: pd.DataFrame) -> dict[str, dict[str, int]]:
        if frame.empty:
            return {}
        counts = frame.groupby(["month", "device"], sort=True).size()
        trends: dict[str, dict[str, int]] = {}
        for (month, device), value in counts.items():
            trends.setdefault(str(month), {})[str(device)] = int(value)
        return trends

    def _regional_comparison(self, frame: pd.DataFrame) -> list[RegionComparison]:
        if frame.empty:
            return []
        comparison: list[RegionComparison] = []
        for region, group in frame.groupby("region", sort=False):
            total = int(len(group))
            total_days = int(group["duration"].sum())
            comparison.append(
                RegionComparison(
                    region=str(region),
                    total_reservations=total,
                    total_days=total_days,
                    unique_devices=int(group["device"].nunique()),
                    unique_users=int(group["user"].nunique()),
                    avg_duration=round_half_up(total_days / total),
                )
            )
        return comparison


def compute_statistics(
    reservations: Sequence[Reservation],
    months_back: int,
    reference_date: Optional[date] = None,
    settings: Optional[Settings] = None,
) -> StatisticsReport:
    """One-shot statistics without a shared cache."""
    return StatisticsEngine(settings=settings).compute_statistics(
        reservations,
        months_back=months_back,
        reference_date=reference_date,
    )
