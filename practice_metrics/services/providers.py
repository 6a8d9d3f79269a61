"""
Per-provider strategy table.

Everything that differs between providers after the fetch (field map, score
formula, storage key policy, trend field) is resolved here once at import
time, keyed by :class:`ProviderName`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Type

from practice_metrics.models.metrics import (
    ClarityMetric,
    GA4Metric,
    GBPMetric,
    GSCMetric,
    MetricRecord,
    ProviderName,
    RawRows,
)
from practice_metrics.services.normalizer import (
    normalize_clarity,
    normalize_ga4,
    normalize_gbp,
    normalize_gsc,
)
from practice_metrics.services.scoring import (
    score_clarity,
    score_ga4,
    score_gbp,
    score_gsc,
)


class KeyPolicy(str, Enum):
    UPSERT = "upsert"
    INSERT = "insert"


@dataclass(frozen=True)
class ProviderProfile:
    """Static description of one provider's records and how they are stored."""

    name: ProviderName
    table: str
    record_type: Type[MetricRecord]
    normalize: Callable[[RawRows, str], List[MetricRecord]]
    score: Callable[..., int]
    key_policy: KeyPolicy
    conflict_columns: Tuple[str, ...]
    primary_field: str
    # Monotonic counters aggregated by running maximum instead of sum.
    max_fields: Tuple[str, ...] = ()
    # Query filter name -> (column, match mode) where mode is "equals" or "contains".
    filters: Optional[Dict[str, Tuple[str, str]]] = None
    # Credential metadata key naming the provider-side resource.
    target_key: Optional[str] = None
    # Credential metadata key naming a dimension list to request.
    dimensions_key: Optional[str] = None
    # Whether access tokens come from the Google OAuth flow and can be refreshed.
    oauth: bool = True


PROVIDERS: Dict[ProviderName, ProviderProfile] = {
    ProviderName.GA4: ProviderProfile(
        name=ProviderName.GA4,
        table="ga4_metrics",
        record_type=GA4Metric,
        normalize=normalize_ga4,
        score=score_ga4,
        key_policy=KeyPolicy.UPSERT,
        conflict_columns=("client_id", "date"),
        primary_field="total_users",
        target_key="property_id",
    ),
    ProviderName.GSC: ProviderProfile(
        name=ProviderName.GSC,
        table="gsc_metrics",
        record_type=GSCMetric,
        normalize=normalize_gsc,
        score=score_gsc,
        key_policy=KeyPolicy.INSERT,
        # Insert-only: the natural key is informational, used in failure reports.
        conflict_columns=("client_id", "date", "query", "page", "device", "country"),
        primary_field="clicks",
        filters={
            "query": ("query", "contains"),
            "page": ("page", "contains"),
            "device": ("device", "equals"),
        },
        target_key="site_url",
    ),
    ProviderName.GBP: ProviderProfile(
        name=ProviderName.GBP,
        table="gbp_metrics",
        record_type=GBPMetric,
        normalize=normalize_gbp,
        score=score_gbp,
        key_policy=KeyPolicy.UPSERT,
        conflict_columns=("client_id", "date", "location_name"),
        primary_field="total_views",
        max_fields=("total_reviews", "total_photos"),
        filters={"location": ("location_name", "equals")},
        target_key="account",
        dimensions_key="locations",
    ),
    ProviderName.CLARITY: ProviderProfile(
        name=ProviderName.CLARITY,
        table="clarity_metrics",
        record_type=ClarityMetric,
        normalize=normalize_clarity,
        score=score_clarity,
        key_policy=KeyPolicy.UPSERT,
        conflict_columns=("client_id", "date"),
        primary_field="total_sessions",
        target_key="project_id",
        oauth=False,
    ),
}


def get_profile(provider: ProviderName | str) -> ProviderProfile:
    return PROVIDERS[ProviderName.coerce(provider)]


__all__ = ["KeyPolicy", "PROVIDERS", "ProviderProfile", "get_profile"]
