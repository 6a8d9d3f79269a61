"""
Google OAuth utilities.

These helpers manage the connect flow and the token refresh exchange for the
Google-hosted providers (Analytics, Search Console, Business Profile).
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
from hashlib import sha256
from http import HTTPStatus
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import urlencode

import httpx

from practice_metrics.core.config import GoogleSettings
from practice_metrics.core.errors import ValidationError

PROVIDER_SCOPES: Dict[str, Tuple[str, ...]] = {
    "ga4": (
        "https://www.googleapis.com/auth/analytics.readonly",
        "https://www.googleapis.com/auth/analytics.manage.users.readonly",
    ),
    "gsc": ("https://www.googleapis.com/auth/webmasters.readonly",),
    "gbp": ("https://www.googleapis.com/auth/business.manage",),
}


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("Malformed OAuth state token.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise ValidationError("Invalid OAuth state signature.")
        return json.loads(serialized)


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint rejects or fails a code/refresh exchange."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code

    @property
    def grant_rejected(self) -> bool:
        """True when the provider says the refresh token itself is no longer valid."""
        return self.error_code in {"invalid_grant", "unauthorized_client"}


class GoogleOAuthClient:
    """Build Google authorization URLs and run code and refresh exchanges."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        google_settings: GoogleSettings,
        scopes: Sequence[str],
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._google = google_settings
        self._scopes = tuple(scopes)
        self._timeout = timeout_seconds
        self._transport = transport

    def build_authorization_url(
        self,
        state: str,
        access_type: str = "offline",
        scopes: Optional[Sequence[str]] = None,
    ) -> str:
        """Construct the Google OAuth consent URL, optionally narrowed to ``scopes``."""
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(scopes or self._scopes),
            "access_type": access_type,
            "include_granted_scopes": "true",
            # Forces a refresh token to be issued on re-consent.
            "prompt": "consent",
            "state": state,
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> Tuple[str, str, int]:
        """
        Exchange an authorization code for tokens.

        Returns a tuple of (access_token, refresh_token, expires_in_seconds).
        """
        token_payload = await self._post_token_request(
            {
                "code": code,
                "client_id": self._google.client_id,
                "client_secret": self._google.client_secret,
                "redirect_uri": str(self._google.redirect_uri),
                "grant_type": "authorization_code",
            }
        )
        access_token = token_payload.get("access_token")
        refresh_token = token_payload.get("refresh_token")
        expires_in = token_payload.get("expires_in")

        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Google.")
        if not refresh_token:
            raise OAuthTokenExchangeError(
                "No refresh token received; revoke access and connect again."
            )
        return access_token, refresh_token, int(expires_in)

    async def refresh_token(self, refresh_token: str) -> Tuple[str, int]:
        """Refresh the access token using a stored refresh token."""
        token_payload = await self._post_token_request(
            {
                "client_id": self._google.client_id,
                "client_secret": self._google.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")

        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned from Google.")
        return access_token, int(expires_in)

    async def _post_token_request(self, payload: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"Token endpoint unreachable: {exc}") from exc

        if response.status_code != HTTPStatus.OK:
            try:
                body = response.json()
            except ValueError:
                body = {}
            error_code = body.get("error") if isinstance(body, dict) else None
            raise OAuthTokenExchangeError(
                response.text,
                status_code=response.status_code,
                error_code=error_code,
            )
        return response.json()


__all__ = [
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "PROVIDER_SCOPES",
]
