from __future__ import annotations

import datetime as dt

import pytest

from practice_metrics.models.metrics import (
    ClarityMetric,
    GA4Metric,
    GBPMetric,
    GSCMetric,
    ProviderName,
)
from practice_metrics.services.aggregation import (
    aggregate,
    rank_dimension,
    summarize_ux_issues,
    trend,
)

START = dt.date(2024, 5, 1)


def _ga4_series(users: list[int], scores: list[int] | None = None) -> list[GA4Metric]:
    scores = scores or [0] * len(users)
    return [
        GA4Metric(
            client_id="c1",
            date=START + dt.timedelta(days=offset),
            total_users=value,
            calculated_score=score,
        )
        for offset, (value, score) in enumerate(zip(users, scores))
    ]


def test_empty_input_yields_zero_window() -> None:
    window = aggregate(ProviderName.GA4, [])

    assert window.record_count == 0
    assert window.trend == "stable"
    assert window.change_percent == 0
    assert window.average_score == 0
    assert set(window.totals) == set(GA4Metric.numeric_fields())
    assert all(value == 0 for value in window.totals.values())
    assert all(value == 0 for value in window.averages.values())


def test_six_percent_rise_is_up() -> None:
    window = aggregate(ProviderName.GA4, _ga4_series([100, 100, 106, 106]))

    assert window.trend == "up"
    assert window.change_percent == 6.0
    assert window.primary_field == "total_users"


def test_five_percent_boundary_is_stable() -> None:
    window = aggregate(ProviderName.GA4, _ga4_series([100, 105]))

    assert window.trend == "stable"
    assert window.change_percent == 5.0


@pytest.mark.parametrize(
    "values",
    [
        [140, 0, 0, 147, 0, 0],
        [60] + [0] * 6 + [63] + [0] * 6,
        [20] + [0] * 8 + [21] + [0] * 8,
        [0, 0, 140, 0, 0, 133],
    ],
)
def test_five_percent_with_repeating_half_means_is_stable(values) -> None:
    direction, change = trend(values)

    assert direction == "stable"
    assert abs(change) == 5.0


def test_drop_is_down_with_signed_change() -> None:
    window = aggregate(ProviderName.GA4, _ga4_series([100, 90]))

    assert window.trend == "down"
    assert window.change_percent == -10.0


def test_odd_count_puts_extra_record_in_second_half() -> None:
    direction, change = trend([10, 20, 30])

    assert direction == "up"
    assert change == 150.0


def test_zero_first_half_reports_no_change() -> None:
    assert trend([0, 0, 50, 60]) == ("stable", 0.0)
    assert trend([42]) == ("stable", 0.0)


def test_records_are_ordered_by_date_before_splitting() -> None:
    records = list(reversed(_ga4_series([100, 100, 106, 106])))

    assert aggregate(ProviderName.GA4, records).trend == "up"


def test_totals_averages_and_score() -> None:
    window = aggregate(ProviderName.GA4, _ga4_series([10, 20, 30], scores=[90, 91, 91]))

    assert window.record_count == 3
    assert window.totals["total_users"] == 60
    assert window.averages["total_users"] == 20.0
    # (90 + 91 + 91) / 3 = 90.67
    assert window.average_score == 91


def test_average_score_rounds_half_up() -> None:
    window = aggregate(ProviderName.GA4, _ga4_series([1, 1], scores=[90, 91]))

    assert window.average_score == 91


def test_monotonic_counters_use_running_maximum() -> None:
    records = [
        GBPMetric(client_id="c1", date=START, total_views=100, total_reviews=10, total_photos=5),
        GBPMetric(
            client_id="c1",
            date=START + dt.timedelta(days=1),
            total_views=50,
            total_reviews=12,
            total_photos=5,
        ),
        GBPMetric(
            client_id="c1",
            date=START + dt.timedelta(days=2),
            total_views=70,
            total_reviews=11,
            total_photos=6,
        ),
    ]

    window = aggregate(ProviderName.GBP, records)

    assert window.totals["total_reviews"] == 12
    assert window.totals["total_photos"] == 6
    assert window.totals["total_views"] == 220
    assert window.averages["total_reviews"] == 11.0


def test_rank_dimension_groups_and_sorts_by_clicks() -> None:
    records = [
        GSCMetric(client_id="c1", date=START, query="dentist", clicks=5, impressions=100,
                  position=2.0),
        GSCMetric(client_id="c1", date=START, query="implants", clicks=9, impressions=300,
                  position=6.0),
        GSCMetric(client_id="c1", date=START, query="dentist", clicks=3, impressions=100,
                  position=4.0),
        GSCMetric(client_id="c1", date=START, query=None, clicks=50, impressions=500),
        GSCMetric(client_id="c1", date=START, query="braces", clicks=0, impressions=0),
    ]

    ranked = rank_dimension(records, "query", limit=10)

    assert [item.value for item in ranked] == ["implants", "dentist", "braces"]
    dentist = ranked[1]
    assert dentist.clicks == 8
    assert dentist.impressions == 200
    assert dentist.ctr == 0.04
    assert dentist.average_position == 3.0
    assert ranked[2].ctr == 0.0
    assert len(rank_dimension(records, "query", limit=1)) == 1


def test_rank_dimension_rejects_other_fields() -> None:
    from practice_metrics.core.errors import ValidationError

    with pytest.raises(ValidationError):
        rank_dimension([], "device")


def test_ux_issue_summary_and_severity() -> None:
    records = [
        ClarityMetric(client_id="c1", date=START, dead_clicks=100, rage_clicks=50,
                      quick_backs=50, excessive_scrolling=40, javascript_errors=10),
        ClarityMetric(client_id="c1", date=START + dt.timedelta(days=1), dead_clicks=45),
    ]

    summary = summarize_ux_issues(records)

    assert summary.dead_clicks == 145
    assert summary.total_issues == 295
    # 100 - 29.5 = 70.5
    assert summary.severity_score == 71


def test_ux_issue_severity_never_negative() -> None:
    records = [ClarityMetric(client_id="c1", date=START, dead_clicks=5000)]

    assert summarize_ux_issues(records).severity_score == 0
    assert summarize_ux_issues([]).severity_score == 100
