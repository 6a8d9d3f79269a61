"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache
from itertools import chain

from practice_metrics.clients import (
    BusinessProfileAdapter,
    ClarityAdapter,
    GA4Adapter,
    GoogleOAuthClient,
    OAuthStateEncoder,
    SQLiteStore,
    SearchConsoleAdapter,
)
from practice_metrics.clients.oauth import PROVIDER_SCOPES
from practice_metrics.core.config import get_settings
from practice_metrics.models.metrics import ProviderName
from practice_metrics.services import (
    CredentialVault,
    MetricPersistence,
    MetricsService,
    TokenCipherService,
    TokenRefreshCoordinator,
)
from practice_metrics.utils.http import RetryConfig


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Google client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.google.client_secret)


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client covering every Google provider scope."""
    settings = _settings()
    scopes = tuple(dict.fromkeys(chain.from_iterable(PROVIDER_SCOPES.values())))
    return GoogleOAuthClient(
        settings.google,
        scopes,
        timeout_seconds=settings.http.request_timeout_seconds,
    )


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide shared SQLite record store."""
    settings = _settings()
    return SQLiteStore(settings.storage.database_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_credential_vault() -> CredentialVault:
    """Provide the encrypted credential vault."""
    return CredentialVault(get_sqlite_store(), get_token_cipher_service())


@lru_cache()
def get_token_refresh_coordinator() -> TokenRefreshCoordinator:
    """Provide the process-wide refresh coordinator so its locks are shared."""
    return TokenRefreshCoordinator(get_credential_vault(), get_google_oauth_client())


@lru_cache()
def get_metric_persistence() -> MetricPersistence:
    """Provide metric table access, creating tables on first use."""
    return MetricPersistence(get_sqlite_store())


@lru_cache()
def get_provider_adapters() -> dict:
    """Provide one data adapter per provider."""
    settings = _settings()
    timeout = settings.http.request_timeout_seconds
    return {
        ProviderName.GA4: GA4Adapter(timeout_seconds=timeout),
        ProviderName.GSC: SearchConsoleAdapter(timeout_seconds=timeout),
        ProviderName.GBP: BusinessProfileAdapter(timeout_seconds=timeout),
        ProviderName.CLARITY: ClarityAdapter(
            base_url=settings.clarity.api_base_url, timeout_seconds=timeout
        ),
    }


@lru_cache()
def get_metrics_service() -> MetricsService:
    """Build the metrics engine facade from the shared components."""
    settings = _settings()
    return MetricsService(
        vault=get_credential_vault(),
        refresher=get_token_refresh_coordinator(),
        oauth_client=get_google_oauth_client(),
        persistence=get_metric_persistence(),
        adapters=get_provider_adapters(),
        retry_config=RetryConfig(
            attempts=settings.http.retry_attempts,
            backoff_seconds=settings.http.retry_backoff_seconds,
        ),
    )


__all__ = [
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
