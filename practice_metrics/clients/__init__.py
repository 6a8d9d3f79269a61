"""Expose constructed client wrappers."""

from .oauth import GoogleOAuthClient, OAuthStateEncoder, OAuthTokenExchangeError
from .providers import (
    BusinessProfileAdapter,
    ClarityAdapter,
    GA4Adapter,
    ProviderAdapter,
    SearchConsoleAdapter,
)
from .sqlite_store import SQLiteStore

__all__ = [
    "BusinessProfileAdapter",
    "ClarityAdapter",
    "GA4Adapter",
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "ProviderAdapter",
    "SQLiteStore",
    "SearchConsoleAdapter",
]
