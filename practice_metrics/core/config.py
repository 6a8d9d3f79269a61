"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the metrics engine and
the operations scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GoogleSettings(BaseSettings):
    """OAuth client shared by the Analytics, Search Console and Business Profile providers."""

    client_id: str = Field(..., validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="GOOGLE_REDIRECT_URI")


class ClaritySettings(BaseSettings):
    """Microsoft Clarity data export configuration."""

    api_base_url: str = Field(
        "https://www.clarity.ms/export-data/api/v1",
        validation_alias="CLARITY_API_BASE_URL",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class OAuthSettings(BaseSettings):
    """OAuth connect flow configuration."""

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")


class StorageSettings(BaseSettings):
    """Location of the relational metrics store."""

    database_path: str = Field(
        "data/practice_metrics.db", validation_alias="METRICS_DB_PATH"
    )


class HTTPSettings(BaseSettings):
    """Timeouts and retry policy for provider data requests."""

    request_timeout_seconds: float = Field(
        10.0, validation_alias="PROVIDER_TIMEOUT_SECONDS", gt=0
    )
    retry_attempts: int = Field(
        1,
        validation_alias="PROVIDER_RETRY_ATTEMPTS",
        ge=1,
        description="Total attempts for a provider fetch that fails as unavailable.",
    )
    retry_backoff_seconds: float = Field(
        1.0, validation_alias="PROVIDER_RETRY_BACKOFF_SECONDS", ge=0
    )


class AppSettings(BaseSettings):
    """Root settings object for the metrics engine."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    clarity: ClaritySettings = Field(default_factory=ClaritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "ClaritySettings",
    "GoogleSettings",
    "HTTPSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
