"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by Google OAuth.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class OAuthConnection(BaseModel):
    """Result of a completed connect flow."""

    status: str = "connected"
    provider: str
    client_id: str
    redirect_to: str | None = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


__all__ = ["OAuthCallbackPayload", "OAuthConnection"]
