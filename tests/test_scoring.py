from __future__ import annotations

import datetime as dt

import pytest

from practice_metrics.models.metrics import ClarityMetric, GA4Metric, GBPMetric, GSCMetric
from practice_metrics.services.scoring import (
    round_half_up,
    score_clarity,
    score_ga4,
    score_gbp,
    score_gsc,
)

DAY = dt.date(2024, 5, 1)


def test_business_profile_reference_record_scores_ninety() -> None:
    record = GBPMetric(
        client_id="c1",
        date=DAY,
        total_views=500,
        phone_calls=10,
        website_clicks=20,
        direction_requests=5,
        average_rating=4.8,
        total_reviews=50,
        total_photos=30,
        posts_created=2,
    )

    assert score_gbp(record) == 90


def test_web_analytics_score_components() -> None:
    record = GA4Metric(
        client_id="c1",
        date=DAY,
        engagement_rate=0.5,
        conversions=5,
        bounce_rate=0.4,
        pages_per_session=2.0,
    )

    # 20 + 10 + 12 + 6
    assert score_ga4(record) == 48


def test_web_analytics_bounce_above_one_does_not_go_negative() -> None:
    record = GA4Metric(client_id="c1", date=DAY, bounce_rate=1.5)

    assert score_ga4(record) == 0


def test_search_position_zero_means_not_ranking() -> None:
    unranked = GSCMetric(client_id="c1", date=DAY, position=0)
    first = GSCMetric(client_id="c1", date=DAY, position=1)
    fifth = GSCMetric(client_id="c1", date=DAY, position=5)

    assert score_gsc(unranked) == 0
    assert score_gsc(first) == 25
    assert score_gsc(fifth) == 15


def test_search_score_caps_each_component() -> None:
    record = GSCMetric(
        client_id="c1",
        date=DAY,
        impressions=50_000,
        clicks=5_000,
        ctr=3.0,
        position=1,
    )

    assert score_gsc(record) == 100


def test_behavioral_score_deductions_and_bonus() -> None:
    record = ClarityMetric(
        client_id="c1",
        date=DAY,
        bounce_rate=0.5,
        dead_clicks=3,
        rage_clicks=1,
        quick_backs=1,
        javascript_errors=1,
        avg_session_duration=180,
    )

    # 100 - 15 - 10 - 5 + 5
    assert score_clarity(record) == 75


def test_behavioral_deductions_are_capped() -> None:
    record = ClarityMetric(
        client_id="c1",
        date=DAY,
        bounce_rate=1.0,
        dead_clicks=100,
        javascript_errors=100,
    )

    assert score_clarity(record) == 10


@pytest.mark.parametrize(
    "value, expected", [(89.5, 90), (90.4, 90), (0.5, 1), (0.49, 0), (100.0, 100)]
)
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


@pytest.mark.parametrize("scorer, record_type", [
    (score_ga4, GA4Metric),
    (score_gsc, GSCMetric),
    (score_gbp, GBPMetric),
    (score_clarity, ClarityMetric),
])
def test_scores_stay_in_range_for_extremes(scorer, record_type) -> None:
    empty = record_type(client_id="c1", date=DAY)
    huge = record_type(
        client_id="c1",
        date=DAY,
        **{name: 10**6 for name in record_type.numeric_fields()},
    )
    negative = record_type(
        client_id="c1",
        date=DAY,
        **{name: -(10**6) for name in record_type.numeric_fields()},
    )

    for record in (empty, huge, negative):
        score = scorer(record)
        assert isinstance(score, int)
        assert 0 <= score <= 100
