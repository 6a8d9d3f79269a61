"""
Refresh-before-expiry for stored OAuth access tokens.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from practice_metrics.clients.oauth import GoogleOAuthClient, OAuthTokenExchangeError
from practice_metrics.core.errors import (
    ReauthenticationRequiredError,
    RefreshFailedError,
)
from practice_metrics.models.credentials import StoredCredential, TokenBundle
from practice_metrics.services.credential_vault import CredentialVault

logger = logging.getLogger(__name__)


class TokenRefreshCoordinator:
    """Hand out usable access tokens, refreshing those close to expiry.

    Refreshes are serialized per (client_id, provider) so two concurrent
    callers that both see an expiring token trigger a single exchange. The
    write is a compare-and-swap on the access token that was read.
    """

    REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        vault: CredentialVault,
        oauth_client: GoogleOAuthClient,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._vault = vault
        self._oauth = oauth_client
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, client_id: str, provider: str) -> asyncio.Lock:
        key = (client_id, provider)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def needs_refresh(self, credential: StoredCredential) -> bool:
        remaining = credential.remaining(self._clock())
        return remaining is not None and remaining < self.REFRESH_WINDOW

    async def ensure_valid(self, *, client_id: str, provider: str) -> str:
        """Return an access token that is valid for at least the refresh window.

        Raises:
            CredentialNotFoundError: nothing stored for the pair.
            ReauthenticationRequiredError: expired with no usable refresh token.
            RefreshFailedError: the refresh exchange failed; nothing was written.
        """
        credential = self._vault.retrieve(client_id=client_id, provider=provider)
        if not self.needs_refresh(credential):
            return credential.access_token

        if not credential.refresh_token:
            if credential.is_expired(self._clock()):
                raise ReauthenticationRequiredError(
                    f"{provider} token expired and no refresh token is stored.",
                    provider=provider,
                )
            return credential.access_token

        async with self._lock_for(client_id, provider):
            # Another caller may have refreshed while this one waited.
            credential = self._vault.retrieve(client_id=client_id, provider=provider)
            if not self.needs_refresh(credential):
                return credential.access_token
            return await self._refresh(credential)

    async def _refresh(self, credential: StoredCredential) -> str:
        provider = credential.provider
        refreshed_at = self._clock()
        try:
            access_token, expires_in = await self._oauth.refresh_token(
                credential.refresh_token or ""
            )
        except OAuthTokenExchangeError as exc:
            if exc.grant_rejected:
                logger.warning(
                    "Refresh token rejected for client %s provider %s",
                    credential.client_id,
                    provider,
                )
                raise ReauthenticationRequiredError(
                    f"{provider} refresh token was rejected; reconnect the integration.",
                    provider=provider,
                ) from exc
            logger.error(
                "Token refresh failed for client %s provider %s: %s",
                credential.client_id,
                provider,
                exc,
            )
            raise RefreshFailedError(
                f"{provider} token refresh failed.", provider=provider
            ) from exc

        tokens = TokenBundle.from_expires_in(
            access_token,
            expires_in,
            refresh_token=credential.refresh_token,
            issued_at=refreshed_at,
        )
        written = self._vault.store(
            client_id=credential.client_id,
            provider=provider,
            tokens=tokens,
            expected_access_token=credential.access_token,
        )
        if not written:
            # Someone else replaced the token (e.g. a reconnect); theirs wins.
            current = self._vault.retrieve(
                client_id=credential.client_id, provider=provider
            )
            return current.access_token

        logger.info(
            "Refreshed %s access token for client %s (expires %s)",
            provider,
            credential.client_id,
            tokens.expires_at.isoformat() if tokens.expires_at else "never",
        )
        return access_token


__all__ = ["TokenRefreshCoordinator"]
