"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class CredentialType(str, Enum):
    """Row kinds stored for a client/provider pair."""

    ACCESS = "access_token"
    REFRESH = "refresh_token"


class TokenBundle(BaseModel):
    """Plaintext token pair as returned by a provider token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = Field(
        None, description="Absolute access token expiry; None means no expiry."
    )

    @classmethod
    def from_expires_in(
        cls,
        access_token: str,
        expires_in: Optional[int],
        *,
        refresh_token: Optional[str] = None,
        issued_at: Optional[datetime] = None,
    ) -> "TokenBundle":
        issued = issued_at or datetime.now(timezone.utc)
        expires_at = issued + timedelta(seconds=expires_in) if expires_in else None
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )


class StoredCredential(TokenBundle):
    """Decrypted view of a client's credential pair, as read from the vault."""

    client_id: str
    provider: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None

    def remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Time left before the access token expires, or None when it never does."""
        if self.expires_at is None:
            return None
        current = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at - current

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        remaining = self.remaining(now)
        return remaining is not None and remaining <= timedelta(0)


__all__ = ["CredentialType", "StoredCredential", "TokenBundle"]
