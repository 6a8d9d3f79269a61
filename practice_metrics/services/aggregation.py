"""
Totals, averages and first-half vs second-half trends over metric records.
"""

from __future__ import annotations

from fractions import Fraction
from typing import Dict, List, Optional, Sequence

from practice_metrics.core.errors import ValidationError
from practice_metrics.models.metrics import (
    ClarityMetric,
    GSCMetric,
    MetricRecord,
    ProviderName,
)
from practice_metrics.schemas.metrics import (
    AggregateWindow,
    DimensionSummary,
    UXIssueSummary,
)
from practice_metrics.services.providers import get_profile
from practice_metrics.services.scoring import round_half_up

TREND_THRESHOLD_PERCENT = 5.0


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _tidy(value: float, kind: type) -> float:
    return int(value) if kind is int else round(value, 4)


def _exact_mean(values: Sequence[float]) -> Fraction:
    if not values:
        return Fraction(0)
    return sum((Fraction(value) for value in values), Fraction(0)) / len(values)


def trend(values: Sequence[float]) -> tuple[str, float]:
    """Classify date-ordered ``values`` as up, down or stable.

    The series is split at ``floor(n / 2)``; the mean of the second half is
    compared with the mean of the first. A first-half mean of zero yields 0%.
    """
    midpoint = len(values) // 2
    first = _exact_mean(values[:midpoint])
    second = _exact_mean(values[midpoint:])
    # Exact: a 5% change must compare equal to the threshold.
    change = (second - first) * 100 / first if first else Fraction(0)
    if change > TREND_THRESHOLD_PERCENT:
        direction = "up"
    elif change < -TREND_THRESHOLD_PERCENT:
        direction = "down"
    else:
        direction = "stable"
    return direction, round(float(change), 2)


def aggregate(provider: ProviderName, records: Sequence[MetricRecord]) -> AggregateWindow:
    profile = get_profile(provider)
    record_type = profile.record_type
    fields = record_type.numeric_fields()
    kinds = {name: record_type.model_fields[name].annotation for name in fields}

    ordered = sorted(records, key=lambda record: record.date)
    count = len(ordered)

    totals: Dict[str, float] = {}
    averages: Dict[str, float] = {}
    for name in fields:
        values = [getattr(record, name) for record in ordered]
        raw_total = sum(values)
        if name in profile.max_fields:
            totals[name] = _tidy(max(values, default=0), kinds[name])
        else:
            totals[name] = _tidy(raw_total, kinds[name])
        averages[name] = round(raw_total / count, 4) if count else 0.0

    direction, change = trend([getattr(record, profile.primary_field) for record in ordered])
    scores = [record.calculated_score for record in ordered]
    return AggregateWindow(
        provider=profile.name.value,
        record_count=count,
        primary_field=profile.primary_field,
        totals=totals,
        averages=averages,
        average_score=round_half_up(_mean(scores)),
        trend=direction,
        change_percent=change,
    )


def rank_dimension(
    records: Sequence[GSCMetric], dimension: str, *, limit: Optional[int] = 10
) -> List[DimensionSummary]:
    """Group search records by ``query`` or ``page``, most clicks first."""
    if dimension not in ("query", "page"):
        raise ValidationError(
            f"Cannot rank by {dimension!r}; expected 'query' or 'page'.",
            provider=ProviderName.GSC.value,
        )
    groups: Dict[str, Dict[str, list]] = {}
    for record in records:
        value = getattr(record, dimension)
        if not value:
            continue
        group = groups.setdefault(value, {"impressions": [], "clicks": [], "positions": []})
        group["impressions"].append(record.impressions)
        group["clicks"].append(record.clicks)
        group["positions"].append(record.position)

    summaries = []
    for value, group in groups.items():
        impressions = sum(group["impressions"])
        clicks = sum(group["clicks"])
        summaries.append(
            DimensionSummary(
                value=value,
                impressions=impressions,
                clicks=clicks,
                ctr=round(clicks / impressions, 4) if impressions else 0.0,
                average_position=round(_mean(group["positions"]), 2),
            )
        )
    summaries.sort(key=lambda summary: summary.clicks, reverse=True)
    return summaries[:limit] if limit else summaries


def summarize_ux_issues(records: Sequence[ClarityMetric]) -> UXIssueSummary:
    counts = {
        name: sum(getattr(record, name) for record in records)
        for name in (
            "dead_clicks",
            "rage_clicks",
            "quick_backs",
            "excessive_scrolling",
            "javascript_errors",
        )
    }
    total = sum(counts.values())
    severity = round_half_up(max(100 - total / 10, 0))
    return UXIssueSummary(**counts, total_issues=total, severity_score=severity)


__all__ = [
    "TREND_THRESHOLD_PERCENT",
    "aggregate",
    "rank_dimension",
    "summarize_ux_issues",
    "trend",
]
