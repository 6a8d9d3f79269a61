"""Public schema exports."""

from .auth import OAuthCallbackPayload, OAuthConnection
from .metrics import (
    AggregatedMetrics,
    AggregateWindow,
    CredentialStatus,
    DimensionSummary,
    FetchRequest,
    FetchResult,
    TokenConnectRequest,
    UXIssueSummary,
)

__all__ = [
    "OAuthCallbackPayload",
    "OAuthConnection",
    "AggregateWindow",
    "AggregatedMetrics",
    "CredentialStatus",
    "DimensionSummary",
    "FetchRequest",
    "FetchResult",
    "TokenConnectRequest",
    "UXIssueSummary",
]
