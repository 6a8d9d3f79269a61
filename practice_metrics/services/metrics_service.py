"""
Orchestration facade for the credential and metrics engine.

Each public operation is invoked per request; nothing here schedules work in
the background.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from practice_metrics.clients.oauth import (
    PROVIDER_SCOPES,
    GoogleOAuthClient,
    OAuthTokenExchangeError,
)
from practice_metrics.clients.providers import ProviderAdapter, SearchConsoleAdapter
from practice_metrics.core.errors import (
    CredentialInvalidError,
    CredentialNotFoundError,
    MetricsEngineError,
    ValidationError,
)
from practice_metrics.models.credentials import TokenBundle
from practice_metrics.models.metrics import DateRange, ProviderName
from practice_metrics.schemas.metrics import (
    AggregatedMetrics,
    CredentialStatus,
    DimensionSummary,
    FetchResult,
    UXIssueSummary,
)
from practice_metrics.services.aggregation import (
    aggregate,
    rank_dimension,
    summarize_ux_issues,
)
from practice_metrics.services.credential_vault import CredentialVault
from practice_metrics.services.persistence import MetricPersistence
from practice_metrics.services.providers import ProviderProfile, get_profile
from practice_metrics.services.token_refresh import TokenRefreshCoordinator
from practice_metrics.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class MetricsService:
    """Fetch, score, store and summarize provider metrics for a client."""

    def __init__(
        self,
        *,
        vault: CredentialVault,
        refresher: TokenRefreshCoordinator,
        oauth_client: GoogleOAuthClient,
        persistence: MetricPersistence,
        adapters: Mapping[ProviderName, ProviderAdapter],
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._vault = vault
        self._refresher = refresher
        self._oauth = oauth_client
        self._persistence = persistence
        self._adapters = dict(adapters)
        self._retry = retry_config or RetryConfig()

    async def fetch_and_store(
        self,
        client_id: str,
        provider: ProviderName | str,
        date_range: DateRange,
        dimensions: Optional[Sequence[str]] = None,
    ) -> FetchResult:
        """Pull ``date_range`` from the provider and persist scored records.

        Raises:
            ValidationError: bad provider, dimension or missing target.
            CredentialNotFoundError, ReauthenticationRequiredError,
            RefreshFailedError: credential problems.
            CredentialInvalidError, RateLimitedError,
            ProviderUnavailableError: provider failures.
            PersistenceError: some records could not be stored.
        """
        profile = get_profile(provider)
        name = profile.name.value
        self._validate_dimensions(profile, dimensions)

        credential = self._vault.retrieve(client_id=client_id, provider=name)
        adapter = self._adapters[profile.name]
        target = credential.metadata.get(profile.target_key) if profile.target_key else None
        if adapter.requires_target and not target:
            raise ValidationError(
                f"No {profile.target_key} stored for the {name} integration.",
                provider=name,
            )
        if dimensions is None and profile.dimensions_key:
            dimensions = credential.metadata.get(profile.dimensions_key) or None

        access_token = await self._refresher.ensure_valid(client_id=client_id, provider=name)
        raw = await request_with_retry(
            lambda: adapter.fetch(
                access_token, date_range, target=target, dimensions=dimensions
            ),
            retry_config=self._retry,
        )
        records = profile.normalize(raw, client_id)
        logger.info(
            "Fetched %s %s rows for client %s (%s to %s) -> %s records",
            len(raw),
            name,
            client_id,
            date_range.start,
            date_range.end,
            len(records),
        )
        stored = self._persistence.persist(profile.name, records)
        return FetchResult(provider=name, records_stored=stored)

    async def fetch_and_store_many(
        self,
        client_id: str,
        providers: Sequence[ProviderName | str],
        date_range: DateRange,
    ) -> List[FetchResult]:
        """Run independent providers concurrently; one failure does not stop the rest."""
        names = [ProviderName.coerce(provider) for provider in providers]

        async def run(provider: ProviderName) -> FetchResult:
            try:
                return await self.fetch_and_store(client_id, provider, date_range)
            except MetricsEngineError as exc:
                logger.warning(
                    "Fetch failed for client %s provider %s: %s",
                    client_id,
                    provider.value,
                    exc.message,
                )
                return FetchResult(provider=provider.value, error=exc.to_dict())

        return list(await asyncio.gather(*(run(name) for name in names)))

    def get_aggregated(
        self,
        client_id: str,
        provider: ProviderName | str,
        date_range: DateRange,
        filters: Optional[Mapping[str, Optional[str]]] = None,
    ) -> AggregatedMetrics:
        profile = get_profile(provider)
        records = self._persistence.load(profile.name, client_id, date_range, filters)
        return AggregatedMetrics(
            aggregate=aggregate(profile.name, records),
            records=[record.to_row() for record in records],
        )

    def top_dimension(
        self,
        client_id: str,
        dimension: str,
        date_range: DateRange,
        limit: int = 10,
    ) -> List[DimensionSummary]:
        if limit < 1:
            raise ValidationError("limit must be at least 1.", provider=ProviderName.GSC.value)
        records = self._persistence.load(ProviderName.GSC, client_id, date_range)
        return rank_dimension(records, dimension, limit=limit)

    def list_locations(self, client_id: str) -> List[str]:
        return self._persistence.distinct(ProviderName.GBP, "location_name", client_id)

    def ux_issues(self, client_id: str, date_range: DateRange) -> UXIssueSummary:
        records = self._persistence.load(ProviderName.CLARITY, client_id, date_range)
        return summarize_ux_issues(records)

    def get_credential_status(
        self, client_id: str, provider: ProviderName | str
    ) -> CredentialStatus:
        return self._vault.status(client_id=client_id, provider=get_profile(provider).name.value)

    async def connect(
        self,
        client_id: str,
        provider: ProviderName | str,
        code: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CredentialStatus:
        """Exchange an authorization code and store the resulting token pair."""
        profile = get_profile(provider)
        name = profile.name.value
        if not profile.oauth:
            raise ValidationError(f"{name} does not use the OAuth connect flow.", provider=name)

        issued_at = datetime.now(timezone.utc)
        try:
            access_token, refresh_token, expires_in = await self._oauth.exchange_authorization_code(
                code
            )
        except OAuthTokenExchangeError as exc:
            logger.warning("Authorization code exchange failed for %s: %s", name, exc)
            raise CredentialInvalidError(
                "Failed to exchange authorization code.", provider=name
            ) from exc

        self._vault.store(
            client_id=client_id,
            provider=name,
            tokens=TokenBundle.from_expires_in(
                access_token, expires_in, refresh_token=refresh_token, issued_at=issued_at
            ),
            metadata=metadata or {},
        )
        return self._vault.status(client_id=client_id, provider=name)

    def connect_with_token(
        self,
        client_id: str,
        provider: ProviderName | str,
        api_token: str,
        *,
        expires_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CredentialStatus:
        """Store a provider-issued bearer token that has no OAuth refresh flow."""
        profile = get_profile(provider)
        name = profile.name.value
        if profile.oauth:
            raise ValidationError(
                f"{name} must be connected through the OAuth flow.", provider=name
            )
        if not api_token.strip():
            raise ValidationError("api_token must not be empty.", provider=name)
        self._vault.store(
            client_id=client_id,
            provider=name,
            tokens=TokenBundle(access_token=api_token.strip(), expires_at=expires_at),
            metadata=metadata or {},
        )
        return self._vault.status(client_id=client_id, provider=name)

    def disconnect(self, client_id: str, provider: ProviderName | str) -> None:
        name = get_profile(provider).name.value
        if not self._vault.delete(client_id=client_id, provider=name):
            raise CredentialNotFoundError(
                f"No {name} credential stored for client {client_id}.", provider=name
            )

    @staticmethod
    def scopes_for(provider: ProviderName | str) -> Sequence[str]:
        profile = get_profile(provider)
        if not profile.oauth:
            raise ValidationError(
                f"{profile.name.value} does not use the OAuth connect flow.",
                provider=profile.name.value,
            )
        return PROVIDER_SCOPES[profile.name.value]

    @staticmethod
    def _validate_dimensions(
        profile: ProviderProfile, dimensions: Optional[Sequence[str]]
    ) -> None:
        if not dimensions:
            return
        if profile.name is ProviderName.GSC:
            SearchConsoleAdapter.resolve_dimensions(dimensions)
        elif profile.name is not ProviderName.GBP:
            raise ValidationError(
                f"{profile.name.value} does not accept dimensions.",
                provider=profile.name.value,
            )


__all__ = ["MetricsService"]
