"""
Error taxonomy shared by the credential, provider and persistence layers.

Every error carries an HTTP status and a stable machine-readable code so the
API layer can render it without knowing where it was raised.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, List, Optional


class MetricsEngineError(Exception):
    """Base class for all engine errors."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    code: str = "engine_error"

    def __init__(self, message: str, *, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.provider:
            payload["provider"] = self.provider
        return payload


class ValidationError(MetricsEngineError):
    """Malformed date range, unknown provider or unsupported dimension."""

    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    code = "validation_error"


class CredentialNotFoundError(MetricsEngineError):
    """No credential stored for the client/provider pair."""

    status_code = HTTPStatus.NOT_FOUND
    code = "credential_not_found"


class ReauthenticationRequiredError(MetricsEngineError):
    """The refresh token is missing or was rejected by the provider."""

    status_code = HTTPStatus.UNAUTHORIZED
    code = "reauthentication_required"


class RefreshFailedError(MetricsEngineError):
    """The refresh exchange failed transiently; the stored token is unchanged."""

    status_code = HTTPStatus.BAD_GATEWAY
    code = "refresh_failed"


class CredentialInvalidError(MetricsEngineError):
    """The provider rejected the access token (HTTP 401/403)."""

    status_code = HTTPStatus.UNAUTHORIZED
    code = "credential_invalid"


class ProviderUnavailableError(MetricsEngineError):
    """Network failure, timeout or non-2xx response other than auth/rate-limit."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    code = "provider_unavailable"

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(message, provider=provider)
        self.upstream_status = upstream_status

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.upstream_status is not None:
            payload["upstream_status"] = self.upstream_status
        return payload


class RateLimitedError(MetricsEngineError):
    """The provider throttled the request (HTTP 429)."""

    status_code = HTTPStatus.TOO_MANY_REQUESTS
    code = "rate_limited"

    def __init__(
        self, message: str, *, retry_after: int, provider: Optional[str] = None
    ) -> None:
        super().__init__(message, provider=provider)
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["retry_after"] = self.retry_after
        return payload


class PersistenceError(MetricsEngineError):
    """Some rows of a batch could not be written."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    code = "persistence_failed"

    def __init__(
        self,
        message: str,
        *,
        stored: int,
        failed: List[Dict[str, Any]],
        provider: Optional[str] = None,
    ) -> None:
        super().__init__(message, provider=provider)
        self.stored = stored
        self.failed = failed

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["stored"] = self.stored
        payload["failed"] = self.failed
        return payload


__all__ = [
    "CredentialInvalidError",
    "CredentialNotFoundError",
    "MetricsEngineError",
    "PersistenceError",
    "ProviderUnavailableError",
    "RateLimitedError",
    "ReauthenticationRequiredError",
    "RefreshFailedError",
    "ValidationError",
]
