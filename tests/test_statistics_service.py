from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from labops.domain.models import Reservation
from labops.services.statistics_service import (
    StatisticsEngine,
    StatisticsValidationError,
    build_conflict_heatmap,
    calculate_duration_score,
    classify_booking_pattern,
    compute_statistics,
    round_half_up,
    trailing_month_starts,
)
from labops.utils.config import get_settings


REFERENCE_DATE = date(2024, 6, 15)


def _reservation(
    reservation_id: str,
    start: date,
    end: date,
    device: str = "scope-1",
    region: str = "lab-a",
    user: str = "alice",
    status: str = "resolved",
) -> Reservation:
    return Reservation(
        id=reservation_id,
        device=device,
        region=region,
        start=start,
        end=end,
        requested_by=user,
        status=status,
    )


def _usage_fixture() -> list[Reservation]:
    return [
        _reservation("1", date(2024, 6, 1), date(2024, 6, 5), device="X"),
        _reservation("2", date(2024, 6, 3), date(2024, 6, 8), device="X"),
        _reservation("3", date(2024, 6, 10), date(2024, 6, 13), device="Y", user="bob"),
    ]


def test_empty_input_returns_empty_report() -> None:
    report = compute_statistics([], 6)

    assert report.rankings.top_devices == {}
    assert report.rankings.top_users == []
    assert report.utilization == []
    assert report.summary.total_reservations == 0
    assert report.summary.earliest_start is None
    assert len(report.heatmap.months) == 12
    assert report.heatmap.total_conflicts == 0
    assert report.heatmap.peak_month is None
    assert report.heatmap.low_month is None
    assert report.efficiency.average_duration == 0.0
    assert report.to_dict()["summary"]["date_range"] is None


def test_unsupported_months_back_raises() -> None:
    with pytest.raises(StatisticsValidationError):
        compute_statistics([], 2)


def test_invalid_settings_rejected_at_engine_construction() -> None:
    settings = replace(get_settings(), utilization_capacity_days=0)
    with pytest.raises(StatisticsValidationError):
        StatisticsEngine(settings=settings)


def test_top_devices_count_unique_days() -> None:
    report = compute_statistics(_usage_fixture(), 0, reference_date=REFERENCE_DATE)

    devices = report.rankings.top_devices["lab-a"]
    assert [item.device for item in devices] == ["X", "Y"]
    assert devices[0].count == 2
    assert devices[0].total_days == 8
    assert devices[0].avg_duration == 4.5
    assert devices[1].total_days == 4

    least = report.rankings.least_reserved_devices["lab-a"]
    assert [item.device for item in least] == ["Y", "X"]


def test_top_users_weighted_score() -> None:
    report = compute_statistics(_usage_fixture(), 0, reference_date=REFERENCE_DATE)

    users = report.rankings.top_users
    assert [item.user for item in users] == ["alice", "bob"]
    assert users[0].ranking_score == 100
    assert users[1].ranking_score == 65
    assert users[1].total_days == 4


def test_utilization_against_capacity() -> None:
    report = compute_statistics(_usage_fixture(), 0, reference_date=REFERENCE_DATE)

    region = report.utilization[0]
    assert region.region == "lab-a"
    assert region.device_count == 2
    assert [item.utilization_rate for item in region.devices] == [4.4, 2.2]
    assert region.average_utilization_rate == 3.3


def test_timeframe_filters_by_start_and_clips_to_reference_date() -> None:
    reservations = [
        _reservation("1", date(2024, 5, 20), date(2024, 6, 25)),
        _reservation("2", date(2024, 5, 1), date(2024, 5, 10)),
    ]

    report = compute_statistics(reservations, 1, reference_date=REFERENCE_DATE)

    assert report.summary.total_reservations == 1
    assert report.summary.timeframe_days == 30
    assert report.rankings.top_devices["lab-a"][0].total_days == 27


def test_only_resolved_reservations_are_counted() -> None:
    reservations = _usage_fixture() + [
        _reservation("9", date(2024, 6, 1), date(2024, 6, 2), status="new"),
        _reservation("10", date(2024, 6, 1), date(2024, 6, 2), status="cancelled"),
    ]

    report = compute_statistics(reservations, 0, reference_date=REFERENCE_DATE)

    assert report.summary.total_reservations == 3
    assert report.summary.excluded_count == 2


def test_statuses_come_from_settings() -> None:
    settings = replace(get_settings(), statistics_statuses=("resolved", "new"))
    reservations = [
        _reservation("1", date(2024, 6, 1), date(2024, 6, 2)),
        _reservation("2", date(2024, 6, 1), date(2024, 6, 2), status="new"),
    ]

    report = compute_statistics(reservations, 0, reference_date=REFERENCE_DATE, settings=settings)

    assert report.summary.total_reservations == 2


def test_efficiency_buckets_durations() -> None:
    reservations = [
        _reservation("1", date(2024, 3, 1), date(2024, 3, 1)),
        _reservation("2", date(2024, 3, 1), date(2024, 3, 4)),
        _reservation("3", date(2024, 3, 1), date(2024, 3, 11)),
        _reservation("4", date(2024, 3, 1), date(2024, 3, 21)),
    ]

    efficiency = compute_statistics(reservations, 0, reference_date=REFERENCE_DATE).efficiency

    assert efficiency.average_duration == 8.5
    assert efficiency.short_booking_count == 2
    assert efficiency.short_booking_rate == 50.0
    assert efficiency.medium_booking_count == 1
    assert efficiency.long_booking_count == 1
    assert efficiency.estimated is True


def test_summary_and_regional_comparison() -> None:
    reservations = _usage_fixture() + [
        _reservation("4", date(2024, 4, 2), date(2024, 4, 4), device="Z", region="lab-b", user="carol"),
    ]

    report = compute_statistics(reservations, 0, reference_date=REFERENCE_DATE)

    summary = report.summary
    assert summary.total_reservations == 4
    assert summary.unique_devices == 3
    assert summary.unique_regions == 2
    assert summary.earliest_start == date(2024, 4, 2)
    assert summary.latest_start == date(2024, 6, 10)
    assert {item.region for item in report.regional_comparison} == {"lab-a", "lab-b"}
    assert report.device_trends["2024-04"] == {"Z": 1}
    assert report.device_trends["2024-06"] == {"X": 2, "Y": 1}


def test_booking_pattern_classification() -> None:
    reservations = [
        _reservation("1", date(2024, 5, 1), date(2024, 5, 2)),
        _reservation("2", date(2024, 5, 3), date(2024, 5, 4)),
        _reservation("3", date(2024, 5, 5), date(2024, 5, 6)),
        _reservation("4", date(2024, 5, 7), date(2024, 5, 17)),
    ]

    patterns = compute_statistics(reservations, 0, reference_date=REFERENCE_DATE).rankings.user_booking_patterns

    assert patterns[0].short_term_percent == 75
    assert patterns[0].pattern == "Quick User"
    assert classify_booking_pattern(0, 2, 4) == "Long-term User"
    assert classify_booking_pattern(1, 1, 4) == "Balanced User"
    assert classify_booking_pattern(0, 0, 0) == "Balanced User"


@pytest.mark.parametrize(
    ("avg_duration", "max_avg", "expected"),
    [
        (2.0, 14.0, 1.0),
        (14.0, 14.0, 1.0),
        (1.0, 14.0, 0.4),
        (0.5, 14.0, 0.3),
        (28.0, 28.0, 0.5),
        (60.0, 60.0, 0.2),
    ],
)
def test_duration_score(avg_duration: float, max_avg: float, expected: float) -> None:
    assert calculate_duration_score(avg_duration, max_avg) == pytest.approx(expected)


def test_round_half_up_matches_away_from_even() -> None:
    assert round_half_up(2.25) == 2.3
    assert round_half_up(0.05) == 0.1
    assert round_half_up(4.444) == 4.4


def test_trailing_months_cross_year_boundary() -> None:
    months = trailing_month_starts(date(2024, 2, 10), 3)
    assert months == [date(2023, 12, 1), date(2024, 1, 1), date(2024, 2, 1)]


def test_heatmap_single_month_peak_equals_low() -> None:
    reservations = [
        _reservation("1", date(2024, 3, 5), date(2024, 3, 10)),
        _reservation("2", date(2024, 3, 8), date(2024, 3, 12)),
    ]

    heatmap = build_conflict_heatmap(reservations, REFERENCE_DATE)

    assert len(heatmap.months) == 12
    assert heatmap.months[0].month == "2023-07"
    assert heatmap.months[-1].month == "2024-06"
    assert heatmap.total_conflicts == 1
    assert heatmap.peak_month == "2024-03"
    assert heatmap.low_month == "2024-03"


def test_heatmap_counts_pair_once_per_month_bucket() -> None:
    reservations = [
        _reservation("1", date(2024, 4, 25), date(2024, 5, 5)),
        _reservation("2", date(2024, 4, 28), date(2024, 5, 3)),
    ]

    heatmap = build_conflict_heatmap(reservations, REFERENCE_DATE)

    by_month = {item.month: item.conflict_count for item in heatmap.months}
    assert by_month["2024-04"] == 1
    assert by_month["2024-05"] == 1
    assert heatmap.total_conflicts == 2


def test_heatmap_counts_touching_pairs() -> None:
    reservations = [
        _reservation("1", date(2024, 3, 1), date(2024, 3, 5)),
        _reservation("2", date(2024, 3, 5), date(2024, 3, 9)),
        _reservation("3", date(2024, 3, 1), date(2024, 3, 9), device="other"),
    ]

    heatmap = build_conflict_heatmap(reservations, REFERENCE_DATE)

    assert heatmap.total_conflicts == 1


def test_heatmap_ignores_report_timeframe() -> None:
    reservations = [
        _reservation("1", date(2024, 1, 5), date(2024, 1, 10)),
        _reservation("2", date(2024, 1, 8), date(2024, 1, 12)),
    ]

    report = compute_statistics(reservations, 1, reference_date=REFERENCE_DATE)

    assert report.summary.total_reservations == 0
    assert report.heatmap.total_conflicts == 1


def test_engine_caches_until_cleared() -> None:
    engine = StatisticsEngine()
    reservations = _usage_fixture()

    first = engine.compute_statistics(reservations, months_back=0, reference_date=REFERENCE_DATE)
    second = engine.compute_statistics(list(reversed(reservations)), months_back=0, reference_date=REFERENCE_DATE)
    assert first is second
    assert len(engine.cache) == 1

    engine.compute_statistics(reservations, months_back=6, reference_date=REFERENCE_DATE)
    assert len(engine.cache) == 2

    engine.clear_cache()
    assert len(engine.cache) == 0
    third = engine.compute_statistics(reservations, months_back=0, reference_date=REFERENCE_DATE)
    assert third is not first
    assert third.to_dict() == first.to_dict()
