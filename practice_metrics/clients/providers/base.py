"""
Base adapter interface for provider data APIs.

Every adapter translates a canonical request (access token, date range,
target resource, optional dimensions) into one provider's query shape and
returns the provider's rows untouched apart from flattening them into dicts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Sequence

import httpx

from practice_metrics.core.errors import ProviderUnavailableError, ValidationError
from practice_metrics.models.metrics import DateRange, ProviderName, RawRows
from practice_metrics.utils.http import raise_for_provider_status


class ProviderAdapter(ABC):
    """Abstract base class for provider data adapters."""

    provider: ClassVar[ProviderName]
    requires_target: ClassVar[bool] = True

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    @abstractmethod
    async def fetch(
        self,
        access_token: str,
        date_range: DateRange,
        *,
        target: Optional[str] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> RawRows:
        """
        Fetch raw rows for ``date_range``.

        Returns:
            RawRows in provider field naming; zero rows is a valid result.

        Raises:
            CredentialInvalidError: the provider answered 401/403.
            RateLimitedError: the provider answered 429.
            ProviderUnavailableError: any other failure, including timeouts.
        """

    def _require_target(self, target: Optional[str]) -> str:
        if self.requires_target and not (target and target.strip()):
            raise ValidationError(
                f"No {self.provider.value} target configured for this client.",
                provider=self.provider.value,
            )
        return (target or "").strip()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        access_token: str,
        **kwargs: Any,
    ) -> Any:
        """Send one authorized request and decode the JSON body."""
        name = self.provider.value
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProviderUnavailableError(
                f"{name} request timed out after {self._timeout:g}s.", provider=name
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                f"{name} request failed: {exc}", provider=name
            ) from exc

        raise_for_provider_status(response, provider=name)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailableError(
                f"{name} returned a non-JSON body.", provider=name
            ) from exc


__all__ = ["ProviderAdapter"]
