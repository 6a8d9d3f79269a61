from __future__ import annotations

import datetime as dt
from datetime import datetime, timedelta, timezone

import pytest

from practice_metrics.clients.oauth import OAuthTokenExchangeError
from practice_metrics.core.errors import (
    CredentialInvalidError,
    CredentialNotFoundError,
    ProviderUnavailableError,
    ValidationError,
)
from practice_metrics.models.credentials import TokenBundle
from practice_metrics.models.metrics import DateRange, ProviderName, RawRows
from practice_metrics.services.credential_vault import CredentialVault
from practice_metrics.services.metrics_service import MetricsService
from practice_metrics.services.persistence import MetricPersistence
from practice_metrics.services.token_refresh import TokenRefreshCoordinator
from practice_metrics.utils.http import RetryConfig

MAY = DateRange(dt.date(2024, 5, 1), dt.date(2024, 5, 2))


class FakeAdapter:
    def __init__(self, provider: ProviderName, rows: list[dict], *, requires_target=True) -> None:
        self.provider = provider
        self.rows = rows
        self.requires_target = requires_target
        self.calls: list[dict] = []
        self.errors: list[Exception] = []

    async def fetch(self, access_token, date_range, *, target=None, dimensions=None):
        self.calls.append(
            {"token": access_token, "target": target, "dimensions": dimensions}
        )
        if self.errors:
            raise self.errors.pop(0)
        return RawRows(provider=self.provider, rows=list(self.rows))


class DummyOAuthClient:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.codes: list[str] = []

    async def exchange_authorization_code(self, code: str):
        self.codes.append(code)
        if self.error:
            raise self.error
        return "access-from-code", "refresh-from-code", 3600

    async def refresh_token(self, refresh_token: str):  # pragma: no cover
        raise AssertionError("refresh not expected")


GA4_ROWS = [
    {"date": "20240501", "totalUsers": "100", "sessions": "140", "keyEvents": "3"},
    {"date": "20240502", "totalUsers": "120", "sessions": "150", "keyEvents": "4"},
]
GSC_ROWS = [
    {
        "date": "2024-05-01",
        "query": "dentist near me",
        "page": "https://example.com/",
        "device": "MOBILE",
        "clicks": 5,
        "impressions": 100,
        "ctr": 0.05,
        "position": 3.0,
    }
]


@pytest.fixture
def engine(sqlite_store, cipher):
    vault = CredentialVault(sqlite_store, cipher)
    oauth = DummyOAuthClient()
    adapters = {
        ProviderName.GA4: FakeAdapter(ProviderName.GA4, GA4_ROWS),
        ProviderName.GSC: FakeAdapter(ProviderName.GSC, GSC_ROWS),
        ProviderName.GBP: FakeAdapter(ProviderName.GBP, []),
        ProviderName.CLARITY: FakeAdapter(
            ProviderName.CLARITY, [], requires_target=False
        ),
    }
    service = MetricsService(
        vault=vault,
        refresher=TokenRefreshCoordinator(vault, oauth),
        oauth_client=oauth,
        persistence=MetricPersistence(sqlite_store),
        adapters=adapters,
        retry_config=RetryConfig(attempts=2, backoff_seconds=0),
    )
    return service, vault, oauth, adapters


def _connect(vault: CredentialVault, provider: str, metadata: dict) -> None:
    vault.store(
        client_id="practice-1",
        provider=provider,
        tokens=TokenBundle(
            access_token=f"{provider}-access",
            refresh_token=f"{provider}-refresh",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        ),
        metadata=metadata,
    )


@pytest.mark.anyio
async def test_ga4_refetch_is_idempotent(engine) -> None:
    service, vault, _, adapters = engine
    _connect(vault, "ga4", {"property_id": "123"})

    first = await service.fetch_and_store("practice-1", "ga4", MAY)
    second = await service.fetch_and_store("practice-1", "ga4", MAY)

    assert first.records_stored == second.records_stored == 2
    assert adapters[ProviderName.GA4].calls[0] == {
        "token": "ga4-access",
        "target": "123",
        "dimensions": None,
    }
    aggregated = service.get_aggregated("practice-1", "ga4", MAY)
    assert len(aggregated.records) == 2
    assert aggregated.aggregate.totals["total_users"] == 220
    assert aggregated.aggregate.totals["conversions"] == 7
    assert all(row["calculated_score"] > 0 for row in aggregated.records)


@pytest.mark.anyio
async def test_gsc_refetch_appends_rows(engine) -> None:
    service, vault, _, _ = engine
    _connect(vault, "gsc", {"site_url": "https://example.com/"})

    await service.fetch_and_store("practice-1", "gsc", MAY)
    await service.fetch_and_store("practice-1", "gsc", MAY)

    aggregated = service.get_aggregated("practice-1", "gsc", MAY, {"query": "dentist"})
    assert len(aggregated.records) == 2
    top = service.top_dimension("practice-1", "query", MAY)
    assert top[0].value == "dentist near me"
    assert top[0].clicks == 10


@pytest.mark.anyio
async def test_missing_target_is_validation_error(engine) -> None:
    service, vault, _, adapters = engine
    _connect(vault, "ga4", {})

    with pytest.raises(ValidationError):
        await service.fetch_and_store("practice-1", "ga4", MAY)
    assert adapters[ProviderName.GA4].calls == []


@pytest.mark.anyio
async def test_unknown_dimension_is_rejected_before_fetch(engine) -> None:
    service, vault, _, adapters = engine
    _connect(vault, "gsc", {"site_url": "https://example.com/"})

    with pytest.raises(ValidationError):
        await service.fetch_and_store("practice-1", "gsc", MAY, ["searchAppearance"])
    with pytest.raises(ValidationError):
        await service.fetch_and_store("practice-1", "ga4", MAY, ["country"])
    assert adapters[ProviderName.GSC].calls == []


@pytest.mark.anyio
async def test_unavailable_provider_is_retried(engine) -> None:
    service, vault, _, adapters = engine
    _connect(vault, "ga4", {"property_id": "123"})
    adapters[ProviderName.GA4].errors.append(ProviderUnavailableError("blip", provider="ga4"))

    result = await service.fetch_and_store("practice-1", "ga4", MAY)

    assert result.records_stored == 2
    assert len(adapters[ProviderName.GA4].calls) == 2


@pytest.mark.anyio
async def test_fetch_many_reports_failures_per_provider(engine) -> None:
    service, vault, _, _ = engine
    _connect(vault, "ga4", {"property_id": "123"})

    results = await service.fetch_and_store_many("practice-1", ["ga4", "gsc"], MAY)

    by_provider = {result.provider: result for result in results}
    assert by_provider["ga4"].records_stored == 2
    assert by_provider["ga4"].error is None
    assert by_provider["gsc"].error["error"] == "credential_not_found"


@pytest.mark.anyio
async def test_connect_stores_exchanged_tokens(engine) -> None:
    service, vault, oauth, _ = engine

    status = await service.connect("practice-1", "gbp", "auth-code", {"account": "9"})

    assert status.connected and status.has_refresh_token
    stored = vault.retrieve(client_id="practice-1", provider="gbp")
    assert stored.access_token == "access-from-code"
    assert stored.metadata == {"account": "9"}
    assert oauth.codes == ["auth-code"]


@pytest.mark.anyio
async def test_connect_maps_exchange_failure(sqlite_store, cipher) -> None:
    vault = CredentialVault(sqlite_store, cipher)
    oauth = DummyOAuthClient(error=OAuthTokenExchangeError("bad code"))
    service = MetricsService(
        vault=vault,
        refresher=TokenRefreshCoordinator(vault, oauth),
        oauth_client=oauth,
        persistence=MetricPersistence(sqlite_store),
        adapters={},
    )

    with pytest.raises(CredentialInvalidError):
        await service.connect("practice-1", "ga4", "bad")
    with pytest.raises(CredentialNotFoundError):
        vault.retrieve(client_id="practice-1", provider="ga4")


@pytest.mark.anyio
async def test_clarity_uses_token_connect_only(engine) -> None:
    service, _, _, adapters = engine

    with pytest.raises(ValidationError):
        await service.connect("practice-1", "clarity", "code")
    with pytest.raises(ValidationError):
        service.connect_with_token("practice-1", "ga4", "token")

    status = service.connect_with_token("practice-1", "clarity", " api-token ")
    assert status.connected and not status.has_refresh_token

    result = await service.fetch_and_store("practice-1", "clarity", MAY)
    assert result.records_stored == 0
    assert adapters[ProviderName.CLARITY].calls[0]["token"] == "api-token"


def test_disconnect_missing_pair_raises(engine) -> None:
    service, vault, _, _ = engine
    _connect(vault, "gsc", {"site_url": "x"})

    service.disconnect("practice-1", "gsc")

    assert not service.get_credential_status("practice-1", "gsc").connected
    with pytest.raises(CredentialNotFoundError):
        service.disconnect("practice-1", "gsc")


def test_unknown_provider_is_validation_error(engine) -> None:
    service, _, _, _ = engine

    with pytest.raises(ValidationError):
        service.get_aggregated("practice-1", "facebook", MAY)
    with pytest.raises(ValidationError):
        service.scopes_for("clarity")
