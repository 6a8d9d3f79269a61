"""
Canonical metric records and the value types used to request them.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, model_validator

from practice_metrics.core.errors import ValidationError


class ProviderName(str, Enum):
    """Identifiers of the integrated analytics providers."""

    GA4 = "ga4"
    GSC = "gsc"
    GBP = "gbp"
    CLARITY = "clarity"

    @classmethod
    def coerce(cls, value: Union[str, "ProviderName"]) -> "ProviderName":
        """Resolve a provider name, rejecting unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            known = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unknown provider {value!r}; expected one of: {known}."
            ) from exc


def _parse_date(value: Union[str, dt.date], label: str) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {label} {value!r}; expected YYYY-MM-DD."
        ) from exc


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar date range."""

    start: dt.date
    end: dt.date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValidationError(
                f"start_date {self.start.isoformat()} is after end_date "
                f"{self.end.isoformat()}."
            )

    @classmethod
    def parse(
        cls, start: Union[str, dt.date], end: Union[str, dt.date]
    ) -> "DateRange":
        return cls(_parse_date(start, "start_date"), _parse_date(end, "end_date"))

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def dates(self) -> Iterator[dt.date]:
        for offset in range(self.days):
            yield self.start + dt.timedelta(days=offset)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, dt.date) and self.start <= day <= self.end


@dataclass(slots=True)
class RawRows:
    """Rows returned by a provider adapter, still in provider field naming."""

    provider: ProviderName
    rows: List[Dict[str, Any]] = field(default_factory=list)
    dimensions: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.rows)


class MetricRecord(BaseModel):
    """Common shape of a normalized, scored metric row."""

    dimension_fields: ClassVar[Tuple[str, ...]] = ()
    BASE_FIELDS: ClassVar[frozenset] = frozenset(
        {"client_id", "date", "calculated_score", "created_at", "updated_at"}
    )

    client_id: str
    date: dt.date
    calculated_score: int = 0
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _zero_missing_numbers(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = dict(data)
        for name in cls.numeric_fields():
            if cleaned.get(name) in (None, ""):
                cleaned[name] = 0
        return cleaned

    @classmethod
    def numeric_fields(cls) -> Tuple[str, ...]:
        """Provider metric columns, in declaration order."""
        return tuple(
            name
            for name, info in cls.model_fields.items()
            if name not in cls.BASE_FIELDS and info.annotation in (int, float)
        )

    @classmethod
    def column_types(cls) -> Dict[str, str]:
        """SQLite column affinity for every persisted field."""
        columns: Dict[str, str] = {"client_id": "TEXT NOT NULL", "date": "TEXT NOT NULL"}
        for name in cls.dimension_fields:
            default = cls.model_fields[name].default
            columns[name] = "TEXT NOT NULL DEFAULT ''" if default == "" else "TEXT"
        for name in cls.numeric_fields():
            kind = cls.model_fields[name].annotation
            columns[name] = "INTEGER NOT NULL DEFAULT 0" if kind is int else "REAL NOT NULL DEFAULT 0"
        columns["calculated_score"] = "INTEGER NOT NULL DEFAULT 0"
        columns["created_at"] = "TEXT NOT NULL"
        columns["updated_at"] = "TEXT NOT NULL"
        return columns

    def to_row(self) -> Dict[str, Any]:
        """Flatten into a column → value mapping with ISO-formatted dates."""
        return self.model_dump(mode="json")


class GA4Metric(MetricRecord):
    """Daily web-analytics totals for a GA4 property."""

    new_users: int = 0
    total_users: int = 0
    sessions: int = 0
    engagement_rate: float = 0.0
    conversions: int = 0
    avg_session_duration: float = 0.0
    bounce_rate: float = 0.0
    pages_per_session: float = 0.0


class GSCMetric(MetricRecord):
    """Search Console performance for one (date, query, page, device, country)."""

    dimension_fields: ClassVar[Tuple[str, ...]] = ("query", "page", "device", "country")

    query: Optional[str] = None
    page: Optional[str] = None
    device: Optional[str] = None
    country: Optional[str] = None
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    position: float = 0.0


class GBPMetric(MetricRecord):
    """Business Profile activity for one location on one day."""

    dimension_fields: ClassVar[Tuple[str, ...]] = ("location_name",)

    location_name: str = ""
    total_views: int = 0
    search_views: int = 0
    maps_views: int = 0
    phone_calls: int = 0
    website_clicks: int = 0
    direction_requests: int = 0
    total_reviews: int = 0
    average_rating: float = 0.0
    new_reviews: int = 0
    total_photos: int = 0
    new_photos: int = 0
    questions_answered: int = 0
    posts_created: int = 0


class ClarityMetric(MetricRecord):
    """Behavioral-analytics session quality for one day."""

    total_sessions: int = 0
    unique_users: int = 0
    page_views: int = 0
    avg_session_duration: float = 0.0
    bounce_rate: float = 0.0
    dead_clicks: int = 0
    rage_clicks: int = 0
    quick_backs: int = 0
    excessive_scrolling: int = 0
    javascript_errors: int = 0


__all__ = [
    "ClarityMetric",
    "DateRange",
    "GA4Metric",
    "GBPMetric",
    "GSCMetric",
    "MetricRecord",
    "ProviderName",
    "RawRows",
]
