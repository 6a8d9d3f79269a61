"""
Map provider rows onto canonical metric records.

Each provider has a fixed field map. Missing or unparseable numbers become 0,
never None.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from practice_metrics.models.metrics import (
    ClarityMetric,
    GA4Metric,
    GBPMetric,
    GSCMetric,
    RawRows,
)

logger = logging.getLogger(__name__)


def to_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_int(value: Any) -> int:
    return int(round(to_float(value)))


def _parse_day(value: Any) -> Optional[dt.date]:
    if value is None:
        return None
    raw = str(value).strip()
    # GA4 reports dates as YYYYMMDD.
    if len(raw) == 8 and raw.isdigit():
        raw = f"{raw[:4]}-{raw[4:6]}-{raw[6:]}"
    try:
        return dt.date.fromisoformat(raw[:10])
    except ValueError:
        return None


def normalize_ga4(raw: RawRows, client_id: str) -> List[GA4Metric]:
    by_date: "OrderedDict[dt.date, GA4Metric]" = OrderedDict()
    for row in raw.rows:
        day = _parse_day(row.get("date"))
        if day is None:
            logger.debug("Skipping GA4 row without a usable date: %s", row)
            continue
        # Properties created after March 2024 only expose keyEvents.
        conversions = row.get("keyEvents", row.get("conversions"))
        by_date[day] = GA4Metric(
            client_id=client_id,
            date=day,
            new_users=to_int(row.get("newUsers")),
            total_users=to_int(row.get("totalUsers")),
            sessions=to_int(row.get("sessions")),
            engagement_rate=to_float(row.get("engagementRate")),
            conversions=to_int(conversions),
            avg_session_duration=to_float(row.get("averageSessionDuration")),
            bounce_rate=to_float(row.get("bounceRate")),
            pages_per_session=to_float(row.get("screenPageViewsPerSession")),
        )
    return list(by_date.values())


def normalize_gsc(raw: RawRows, client_id: str) -> List[GSCMetric]:
    merged: "OrderedDict[Tuple[Any, ...], Dict[str, Any]]" = OrderedDict()
    for row in raw.rows:
        day = _parse_day(row.get("date"))
        if day is None:
            continue
        dimensions = {name: row.get(name) for name in GSCMetric.dimension_fields}
        key = (day, *dimensions.values())
        clicks = to_int(row.get("clicks"))
        impressions = to_int(row.get("impressions"))
        position = to_float(row.get("position"))

        current = merged.get(key)
        if current is None:
            merged[key] = {
                "date": day,
                **dimensions,
                "clicks": clicks,
                "impressions": impressions,
                "ctr": to_float(row.get("ctr")),
                "position": position,
            }
            continue
        # Same key twice: combine counts, impression-weight the position.
        total_impressions = current["impressions"] + impressions
        if total_impressions:
            current["position"] = (
                current["position"] * current["impressions"] + position * impressions
            ) / total_impressions
        current["clicks"] += clicks
        current["impressions"] = total_impressions
        current["ctr"] = current["clicks"] / total_impressions if total_impressions else 0.0

    return [GSCMetric(client_id=client_id, **values) for values in merged.values()]


_GBP_DAILY_FIELDS = {
    "BUSINESS_IMPRESSIONS_DESKTOP_SEARCH": "search_views",
    "BUSINESS_IMPRESSIONS_MOBILE_SEARCH": "search_views",
    "BUSINESS_IMPRESSIONS_DESKTOP_MAPS": "maps_views",
    "BUSINESS_IMPRESSIONS_MOBILE_MAPS": "maps_views",
    "CALL_CLICKS": "phone_calls",
    "WEBSITE_CLICKS": "website_clicks",
    "BUSINESS_DIRECTION_REQUESTS": "direction_requests",
    "REVIEW_CREATED": "new_reviews",
    "POST_CREATED": "posts_created",
    "PHOTO_CREATED": "new_photos",
    "QUESTION_ANSWERED": "questions_answered",
}

_GBP_SNAPSHOT_FIELDS = {
    "AVERAGE_RATING": "average_rating",
    "TOTAL_REVIEWS": "total_reviews",
    "TOTAL_PHOTOS": "total_photos",
}


def normalize_gbp(raw: RawRows, client_id: str) -> List[GBPMetric]:
    daily: "OrderedDict[Tuple[dt.date, str], Dict[str, float]]" = OrderedDict()
    snapshots: Dict[str, Dict[str, float]] = {}

    for row in raw.rows:
        location = str(row.get("location") or "")
        metric = row.get("metric")
        if metric in _GBP_SNAPSHOT_FIELDS:
            snapshots.setdefault(location, {})[_GBP_SNAPSHOT_FIELDS[metric]] = to_float(
                row.get("value")
            )
            continue
        field = _GBP_DAILY_FIELDS.get(metric)
        day = _parse_day(row.get("date"))
        if field is None or day is None:
            continue
        bucket = daily.setdefault((day, location), {})
        bucket[field] = bucket.get(field, 0) + to_float(row.get("value"))

    records: List[GBPMetric] = []
    for (day, location), values in sorted(daily.items(), key=lambda item: item[0]):
        values.update(snapshots.get(location, {}))
        search_views = to_int(values.get("search_views"))
        maps_views = to_int(values.get("maps_views"))
        records.append(
            GBPMetric(
                client_id=client_id,
                date=day,
                location_name=location,
                total_views=search_views + maps_views,
                search_views=search_views,
                maps_views=maps_views,
                phone_calls=to_int(values.get("phone_calls")),
                website_clicks=to_int(values.get("website_clicks")),
                direction_requests=to_int(values.get("direction_requests")),
                total_reviews=to_int(values.get("total_reviews")),
                average_rating=to_float(values.get("average_rating")),
                new_reviews=to_int(values.get("new_reviews")),
                total_photos=to_int(values.get("total_photos")),
                new_photos=to_int(values.get("new_photos")),
                questions_answered=to_int(values.get("questions_answered")),
                posts_created=to_int(values.get("posts_created")),
            )
        )
    return records


_CLARITY_COUNT_FIELDS = {
    "DeadClickCount": "dead_clicks",
    "RageClickCount": "rage_clicks",
    "QuickbackClick": "quick_backs",
    "ExcessiveScroll": "excessive_scrolling",
    "ScriptErrorCount": "javascript_errors",
}


def normalize_clarity(raw: RawRows, client_id: str) -> List[ClarityMetric]:
    by_date: "OrderedDict[dt.date, Dict[str, Any]]" = OrderedDict()
    for row in raw.rows:
        day = _parse_day(row.get("date"))
        if day is None:
            continue
        values = by_date.setdefault(day, {})
        metric = row.get("metric")
        if metric == "Traffic":
            sessions = to_int(row.get("totalSessionCount"))
            values["total_sessions"] = sessions
            values["unique_users"] = to_int(row.get("distinctUserCount"))
            values["page_views"] = to_int(
                sessions * to_float(row.get("pagesPerSessionPercentage"))
            )
        elif metric in _CLARITY_COUNT_FIELDS:
            values[_CLARITY_COUNT_FIELDS[metric]] = to_int(row.get("subTotal"))
        elif metric == "EngagementTime":
            values["avg_session_duration"] = to_float(row.get("activeTime"))
        if "bounceRate" in row:
            values["bounce_rate"] = to_float(row.get("bounceRate"))

    return [
        ClarityMetric(client_id=client_id, date=day, **values)
        for day, values in by_date.items()
    ]


__all__ = [
    "normalize_clarity",
    "normalize_ga4",
    "normalize_gbp",
    "normalize_gsc",
    "to_float",
    "to_int",
]
