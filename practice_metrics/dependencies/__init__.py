"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_vault,
    get_google_oauth_client,
    get_metric_persistence,
    get_metrics_service,
    get_oauth_state_encoder,
    get_provider_adapters,
    get_sqlite_store,
    get_token_cipher_service,
    get_token_refresh_coordinator,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_credential_vault",
    "get_google_oauth_client",
    "get_metric_persistence",
    "get_metrics_service",
    "get_oauth_state_encoder",
    "get_provider_adapters",
    "get_sqlite_store",
    "get_token_cipher_service",
    "get_token_refresh_coordinator",
]
