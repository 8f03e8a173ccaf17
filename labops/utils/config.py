"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_tuple(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str

    conflict_buffer_days: int
    conflict_grouping_mode: str
    conflict_resolution_mode: str

    statistics_default_months_back: int
    statistics_top_items_limit: int
    statistics_statuses: tuple[str, ...]
    utilization_capacity_days: int
    heatmap_window_days: int
    heatmap_months: int
    short_booking_max_days: int
    optimal_duration_min_days: float
    optimal_duration_max_days: float
    estimated_lead_time_days: float
    estimated_last_minute_rate: float


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; call ``cache_clear`` to re-read env."""
    return Settings(
        app_name=os.getenv("LABOPS_APP_NAME", "Lab Equipment Reservation Analytics"),
        app_version=os.getenv("LABOPS_APP_VERSION", "1.0.0"),
        log_level=os.getenv("LABOPS_LOG_LEVEL", "INFO"),
        conflict_buffer_days=_env_int("LABOPS_CONFLICT_BUFFER_DAYS", 1),
        conflict_grouping_mode=os.getenv("LABOPS_CONFLICT_GROUPING_MODE", "sequential"),
        conflict_resolution_mode=os.getenv("LABOPS_CONFLICT_RESOLUTION_MODE", "STABILITY"),
        statistics_default_months_back=_env_int("LABOPS_STATS_MONTHS_BACK", 6),
        statistics_top_items_limit=_env_int("LABOPS_STATS_TOP_ITEMS_LIMIT", 10),
        statistics_statuses=_env_tuple("LABOPS_STATS_STATUSES", ("resolved",)),
        utilization_capacity_days=_env_int("LABOPS_UTILIZATION_CAPACITY_DAYS", 180),
        heatmap_window_days=_env_int("LABOPS_HEATMAP_WINDOW_DAYS", 365),
        heatmap_months=_env_int("LABOPS_HEATMAP_MONTHS", 12),
        short_booking_max_days=_env_int("LABOPS_SHORT_BOOKING_MAX_DAYS", 3),
        optimal_duration_min_days=_env_float("LABOPS_OPTIMAL_DURATION_MIN_DAYS", 2.0),
        optimal_duration_max_days=_env_float("LABOPS_OPTIMAL_DURATION_MAX_DAYS", 14.0),
        estimated_lead_time_days=_env_float("LABOPS_ESTIMATED_LEAD_TIME_DAYS", 14.0),
        estimated_last_minute_rate=_env_float("LABOPS_ESTIMATED_LAST_MINUTE_RATE", 15.0),
    )
