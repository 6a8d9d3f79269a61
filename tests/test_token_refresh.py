from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from practice_metrics.clients.oauth import OAuthTokenExchangeError
from practice_metrics.core.errors import (
    CredentialNotFoundError,
    ReauthenticationRequiredError,
    RefreshFailedError,
)
from practice_metrics.models.credentials import TokenBundle
from practice_metrics.services.credential_vault import CredentialVault
from practice_metrics.services.token_refresh import TokenRefreshCoordinator


class DummyOAuthClient:
    def __init__(
        self,
        *,
        refreshed_token: str = "refreshed-access",
        error: OAuthTokenExchangeError | None = None,
    ) -> None:
        self.refreshed_token = refreshed_token
        self.error = error
        self.calls: list[str] = []

    async def refresh_token(self, refresh_token: str) -> tuple[str, int]:
        self.calls.append(refresh_token)
        # Yield so concurrent callers interleave.
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        return self.refreshed_token, 3600


def _seed(vault: CredentialVault, *, minutes: float, refresh: str | None = "refresh-token") -> None:
    vault.store(
        client_id="c1",
        provider="ga4",
        tokens=TokenBundle(
            access_token="initial-token",
            refresh_token=refresh,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes),
        ),
        metadata={"property_id": "123"},
    )


@pytest.mark.asyncio
async def test_valid_token_is_returned_without_refresh(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth_client = DummyOAuthClient()
    _seed(vault, minutes=30)

    token = await TokenRefreshCoordinator(vault, oauth_client).ensure_valid(
        client_id="c1", provider="ga4"
    )

    assert token == "initial-token"
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_and_stored(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth_client = DummyOAuthClient()
    _seed(vault, minutes=3)

    token = await TokenRefreshCoordinator(vault, oauth_client).ensure_valid(
        client_id="c1", provider="ga4"
    )

    assert token == "refreshed-access"
    assert oauth_client.calls == ["refresh-token"]
    stored = vault.retrieve(client_id="c1", provider="ga4")
    assert stored.access_token == "refreshed-access"
    assert stored.refresh_token == "refresh-token"
    assert stored.metadata == {"property_id": "123"}
    assert stored.remaining() > timedelta(minutes=50)


@pytest.mark.asyncio
async def test_concurrent_callers_trigger_single_refresh(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth_client = DummyOAuthClient()
    _seed(vault, minutes=3)
    coordinator = TokenRefreshCoordinator(vault, oauth_client)

    first, second = await asyncio.gather(
        coordinator.ensure_valid(client_id="c1", provider="ga4"),
        coordinator.ensure_valid(client_id="c1", provider="ga4"),
    )

    assert oauth_client.calls == ["refresh-token"]
    assert first == second == "refreshed-access"
    assert vault.retrieve(client_id="c1", provider="ga4").access_token == "refreshed-access"


@pytest.mark.asyncio
async def test_expired_without_refresh_token_requires_reauthentication(
    sqlite_store, cipher
) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    _seed(vault, minutes=-1, refresh=None)

    with pytest.raises(ReauthenticationRequiredError):
        await TokenRefreshCoordinator(vault, DummyOAuthClient()).ensure_valid(
            client_id="c1", provider="ga4"
        )


@pytest.mark.asyncio
async def test_expiring_without_refresh_token_returns_current(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth_client = DummyOAuthClient()
    _seed(vault, minutes=2, refresh=None)

    token = await TokenRefreshCoordinator(vault, oauth_client).ensure_valid(
        client_id="c1", provider="ga4"
    )

    assert token == "initial-token"
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_token_without_expiry_never_refreshes(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth_client = DummyOAuthClient()
    vault.store(
        client_id="c1",
        provider="clarity",
        tokens=TokenBundle(access_token="api-token"),
    )

    token = await TokenRefreshCoordinator(vault, oauth_client).ensure_valid(
        client_id="c1", provider="clarity"
    )

    assert token == "api-token"
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_transient_refresh_failure_leaves_token_untouched(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth_client = DummyOAuthClient(
        error=OAuthTokenExchangeError("boom", status_code=500, error_code="internal_failure")
    )
    _seed(vault, minutes=-10)

    with pytest.raises(RefreshFailedError):
        await TokenRefreshCoordinator(vault, oauth_client).ensure_valid(
            client_id="c1", provider="ga4"
        )

    stored = vault.retrieve(client_id="c1", provider="ga4")
    assert stored.access_token == "initial-token"
    assert stored.refresh_token == "refresh-token"


@pytest.mark.asyncio
async def test_rejected_refresh_token_requires_reauthentication(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth_client = DummyOAuthClient(
        error=OAuthTokenExchangeError("revoked", status_code=400, error_code="invalid_grant")
    )
    _seed(vault, minutes=1)

    with pytest.raises(ReauthenticationRequiredError):
        await TokenRefreshCoordinator(vault, oauth_client).ensure_valid(
            client_id="c1", provider="ga4"
        )


@pytest.mark.asyncio
async def test_missing_credential_raises(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)

    with pytest.raises(CredentialNotFoundError):
        await TokenRefreshCoordinator(vault, DummyOAuthClient()).ensure_valid(
            client_id="c1", provider="gsc"
        )


@pytest.mark.asyncio
async def test_reconnect_during_refresh_wins(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    _seed(vault, minutes=1)

    class ReconnectingOAuthClient(DummyOAuthClient):
        async def refresh_token(self, refresh_token: str) -> tuple[str, int]:
            vault.store(
                client_id="c1",
                provider="ga4",
                tokens=TokenBundle(
                    access_token="reconnected",
                    refresh_token="new-refresh",
                    expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
                ),
            )
            return await super().refresh_token(refresh_token)

    token = await TokenRefreshCoordinator(vault, ReconnectingOAuthClient()).ensure_valid(
        client_id="c1", provider="ga4"
    )

    assert token == "reconnected"
    assert vault.retrieve(client_id="c1", provider="ga4").access_token == "reconnected"
