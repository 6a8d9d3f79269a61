"""
Deterministic 0-100 performance scores for normalized metric records.
"""

from __future__ import annotations

import math

from practice_metrics.models.metrics import (
    ClarityMetric,
    GA4Metric,
    GBPMetric,
    GSCMetric,
)


def _capped(value: float, cap: float) -> float:
    """Clamp a sub-score into ``[0, cap]``."""
    return min(max(value, 0.0), cap)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _finish(raw: float) -> int:
    return round_half_up(_capped(raw, 100.0))


def score_ga4(record: GA4Metric) -> int:
    engagement = _capped(record.engagement_rate * 40, 40)
    conversions = _capped(record.conversions * 2, 30)
    retention = _capped(20 - record.bounce_rate * 20, 20)
    depth = _capped(record.pages_per_session * 3, 10)
    return _finish(engagement + conversions + retention + depth)


def score_gsc(record: GSCMetric) -> int:
    visibility = _capped(record.impressions / 1000 * 20, 20)
    traffic = _capped(record.clicks / 100 * 30, 30)
    ctr = _capped(record.ctr * 25, 25)
    # Position 0 (or less) means the page is not ranking at all.
    if record.position <= 0:
        ranking = 0.0
    else:
        ranking = _capped(25 - (record.position - 1) * 2.5, 25)
    return _finish(visibility + traffic + ctr + ranking)


def score_gbp(record: GBPMetric) -> int:
    views = _capped(record.total_views / 100 * 25, 25)
    actions = record.phone_calls + record.website_clicks + record.direction_requests
    engagement = _capped(actions / 50 * 30, 30)
    reviews = _capped(record.average_rating / 5 * 15, 15) + _capped(
        record.total_reviews / 20 * 10, 10
    )
    content = _capped(record.total_photos / 10 * 10, 10) + _capped(
        record.posts_created * 5, 10
    )
    return _finish(views + engagement + reviews + content)


def score_clarity(record: ClarityMetric) -> int:
    ux_issues = record.dead_clicks + record.rage_clicks + record.quick_backs
    score = 100.0
    score -= _capped(record.bounce_rate * 30, 30)
    score -= _capped(ux_issues * 2, 40)
    score -= _capped(record.javascript_errors * 5, 20)
    if record.avg_session_duration > 120:
        score += _capped((record.avg_session_duration - 120) / 60 * 5, 10)
    return _finish(score)


__all__ = [
    "round_half_up",
    "score_clarity",
    "score_ga4",
    "score_gbp",
    "score_gsc",
]
