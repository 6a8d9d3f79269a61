"""
Pydantic models for metric fetch requests, aggregate views and integration status.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class FetchRequest(BaseModel):
    """Request to pull provider data for a date range and store it."""

    client_id: str = Field(..., min_length=1, description="Verified client identifier.")
    start_date: date = Field(..., description="First day to fetch (inclusive).")
    end_date: date = Field(..., description="Last day to fetch (inclusive).")
    dimensions: Optional[List[str]] = Field(
        None,
        description="Breakdown dimensions (search console) or locations (business profile).",
    )


class FetchResult(BaseModel):
    """Outcome of a fetch-and-store run for one provider."""

    provider: str
    records_stored: int = 0
    error: Optional[Dict[str, Any]] = Field(
        None, description="Error payload when the provider failed in a multi-provider run."
    )


class AggregateWindow(BaseModel):
    """Transient totals, averages and trend over a set of records."""

    provider: str
    record_count: int = 0
    primary_field: str
    totals: Dict[str, float] = Field(default_factory=dict)
    averages: Dict[str, float] = Field(default_factory=dict)
    average_score: int = 0
    trend: Literal["up", "down", "stable"] = "stable"
    change_percent: float = Field(
        0.0, description="Signed percent change of the primary field, second half vs first."
    )


class AggregatedMetrics(BaseModel):
    """Aggregate window plus the records it was computed from."""

    aggregate: AggregateWindow
    records: List[Dict[str, Any]] = Field(default_factory=list)


class DimensionSummary(BaseModel):
    """Search Console performance grouped by a single query or page."""

    value: str
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    average_position: float = 0.0


class UXIssueSummary(BaseModel):
    """Clarity usability issue counts and derived severity score."""

    dead_clicks: int = 0
    rage_clicks: int = 0
    quick_backs: int = 0
    excessive_scrolling: int = 0
    javascript_errors: int = 0
    total_issues: int = 0
    severity_score: int = 100


class CredentialStatus(BaseModel):
    """Connection state of one provider integration."""

    provider: str
    connected: bool
    expires_at: Optional[datetime] = None
    has_refresh_token: bool = False


class TokenConnectRequest(BaseModel):
    """Bearer API token supplied directly instead of through OAuth."""

    client_id: str = Field(..., min_length=1)
    api_token: str = Field(..., min_length=1, description="Provider-issued API token.")
    expires_at: Optional[datetime] = Field(
        None, description="Token expiry, if the provider issued one."
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Provider target, e.g. project_id."
    )


__all__ = [
    "AggregateWindow",
    "AggregatedMetrics",
    "CredentialStatus",
    "DimensionSummary",
    "FetchRequest",
    "FetchResult",
    "TokenConnectRequest",
    "UXIssueSummary",
]
