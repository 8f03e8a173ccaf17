"""Domain-level validation rules for statistics queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from labops.utils.config import Settings


MONTHS_BACK_TO_DAYS: dict[int, Optional[int]] = {
    0: None,
    1: 30,
    3: 90,
    6: 180,
    12: 365,
}


@dataclass(frozen=True)
class StatisticsConfig:
    top_items_limit: int
    utilization_capacity_days: int
    heatmap_window_days: int
    heatmap_months: int
    short_booking_max_days: int
    optimal_duration_min_days: float
    optimal_duration_max_days: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "StatisticsConfig":
        return cls(
            top_items_limit=settings.statistics_top_items_limit,
            utilization_capacity_days=settings.utilization_capacity_days,
            heatmap_window_days=settings.heatmap_window_days,
            heatmap_months=settings.heatmap_months,
            short_booking_max_days=settings.short_booking_max_days,
            optimal_duration_min_days=settings.optimal_duration_min_days,
            optimal_duration_max_days=settings.optimal_duration_max_days,
        )


def validate_statistics_config(config: StatisticsConfig) -> None:
    if config.top_items_limit <= 0:
        raise ValueError("top_items_limit must be > 0")
    if config.utilization_capacity_days <= 0:
        raise ValueError("utilization_capacity_days must be > 0")
    if config.heatmap_window_days <= 0:
        raise ValueError("heatmap_window_days must be > 0")
    if not 1 <= config.heatmap_months <= 24:
        raise ValueError("heatmap_months must be between 1 and 24")
    if config.short_booking_max_days < 1:
        raise ValueError("short_booking_max_days must be >= 1")
    if not 0.0 < config.optimal_duration_min_days <= config.optimal_duration_max_days:
        raise ValueError("optimal duration range must satisfy 0 < min <= max")


def resolve_timeframe_days(months_back: int) -> Optional[int]:
    """Map a months-back selector to its fixed day window; ``None`` is all time."""
    if months_back not in MONTHS_BACK_TO_DAYS:
        allowed = ", ".join(str(value) for value in MONTHS_BACK_TO_DAYS)
        raise ValueError(f"months_back must be one of: {allowed}")
    return MONTHS_BACK_TO_DAYS[months_back]
