"""Service layer exports."""

from .credential_vault import CredentialVault
from .metrics_service import MetricsService
from .persistence import MetricPersistence
from .providers import PROVIDERS, KeyPolicy, ProviderProfile, get_profile
from .token_cipher import TokenCipherService
from .token_refresh import TokenRefreshCoordinator

__all__ = [
    "CredentialVault",
    "KeyPolicy",
    "MetricPersistence",
    "MetricsService",
    "PROVIDERS",
    "ProviderProfile",
    "TokenCipherService",
    "TokenRefreshCoordinator",
    "get_profile",
]
