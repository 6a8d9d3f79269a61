"""HTTP utilities: provider status classification and retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx

from practice_metrics.core.errors import (
    CredentialInvalidError,
    ProviderUnavailableError,
    RateLimitedError,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


class RetryConfig:
    def __init__(self, *, attempts: int = 1, backoff_seconds: float = 1.0) -> None:
        self.attempts = max(attempts, 1)
        self.backoff_seconds = backoff_seconds


def _retry_after_seconds(response: httpx.Response) -> int:
    raw = response.headers.get("retry-after", "").strip()
    if raw.isdigit():
        return int(raw)
    return DEFAULT_RETRY_AFTER_SECONDS


def raise_for_provider_status(response: httpx.Response, *, provider: str) -> None:
    """Translate a non-2xx provider response into the engine error taxonomy."""
    status = response.status_code
    if 200 <= status < 300:
        return
    snippet = response.text[:300]
    if status in (401, 403):
        raise CredentialInvalidError(
            f"{provider} rejected the access token ({status}): {snippet}",
            provider=provider,
        )
    if status == 429:
        raise RateLimitedError(
            f"{provider} rate limit exceeded.",
            retry_after=_retry_after_seconds(response),
            provider=provider,
        )
    raise ProviderUnavailableError(
        f"{provider} returned HTTP {status}: {snippet}",
        provider=provider,
        upstream_status=status,
    )


async def request_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    retry_config: RetryConfig | None = None,
) -> T:
    """Await ``func``, retrying only when the provider was unavailable.

    Credential, rate-limit and validation errors propagate on the first
    occurrence.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        try:
            return await func()
        except ProviderUnavailableError as exc:
            attempt += 1
            if attempt >= config.attempts:
                raise
            delay = config.backoff_seconds * attempt
            logger.warning(
                "Provider %s unavailable (attempt %s/%s); retrying in %.1fs",
                exc.provider,
                attempt,
                config.attempts,
                delay,
            )
            await asyncio.sleep(delay)


__all__ = ["RetryConfig", "raise_for_provider_status", "request_with_retry"]
