"""
FastAPI routes for the practice metrics engine.

``client_id`` arrives already verified by the upstream auth layer; these
routes only validate input and delegate to :class:`MetricsService`.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from practice_metrics.dependencies import (
    get_app_settings,
    get_google_oauth_client,
    get_metrics_service,
    get_oauth_state_encoder,
)
from practice_metrics.models.metrics import DateRange, ProviderName
from practice_metrics.schemas import (
    AggregatedMetrics,
    CredentialStatus,
    DimensionSummary,
    FetchRequest,
    FetchResult,
    OAuthCallbackPayload,
    OAuthConnection,
    TokenConnectRequest,
    UXIssueSummary,
)
from practice_metrics.services.providers import get_profile

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_redirect(request: Request, redirect: bool) -> bool:
    accept_header = request.headers.get("accept", "")
    return redirect or "text/html" in accept_header.lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/{provider}/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    provider: str,
    request: Request,
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(..., description="Client practice connecting the integration."),
    target: str | None = Query(
        default=None,
        description="Provider resource: GA4 property id, GSC site URL or GBP account.",
    ),
    locations: List[str] | None = Query(
        default=None, description="Business Profile locations to collect."
    ),
    redirect_to: str | None = Query(
        default=None,
        description="Optional URL to redirect back to on successful authentication.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Google consent screen.",
    ),
) -> Any:
    """
    Kick off the OAuth flow by generating a state token and authorization URL.
    """
    profile = get_profile(provider)
    scopes = service.scopes_for(profile.name)

    metadata: dict = {}
    if target and profile.target_key:
        metadata[profile.target_key] = target
    if locations and profile.dimensions_key:
        metadata[profile.dimensions_key] = locations

    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "provider": profile.name.value,
            "client_id": client_id,
            "metadata": metadata,
            "redirect_to": redirect_to,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = oauth_client.build_authorization_url(state=state, scopes=scopes)

    if _wants_redirect(request, redirect):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url, "state": state}


@router.post("/auth/{provider}/callback", response_model=OAuthConnection)
async def handle_oauth_callback(
    provider: str,
    payload: OAuthCallbackPayload,
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    service: Annotated[Any, Depends(get_metrics_service)],
) -> OAuthConnection:
    """Validate the state token, exchange the code and store the credential."""
    profile = get_profile(provider)
    state_data = state_encoder.decode(payload.state)

    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing issued_at in state token.",
        )
    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    now = datetime.now(timezone.utc)
    if now - issued_at > timedelta(seconds=settings.oauth.state_ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    if state_data.get("provider") != profile.name.value:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="OAuth state token was issued for a different provider.",
        )
    client_id = state_data.get("client_id")
    if not client_id:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing client identifier in state token.",
        )

    metadata = state_data.get("metadata") or {}
    await service.connect(client_id, profile.name, payload.code, metadata)
    logger.info("Connected %s for client %s", profile.name.value, client_id)
    return OAuthConnection(
        provider=profile.name.value,
        client_id=client_id,
        redirect_to=state_data.get("redirect_to"),
        metadata=metadata,
    )


@router.get("/auth/{provider}/callback")
async def handle_oauth_callback_get(
    provider: str,
    request: Request,
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    service: Annotated[Any, Depends(get_metrics_service)],
    state: str = Query(..., description="OAuth state token."),
    code: str = Query(..., description="Authorization code returned by Google."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    result = await handle_oauth_callback(
        provider=provider,
        payload=OAuthCallbackPayload(state=state, code=code),
        state_encoder=state_encoder,
        settings=settings,
        service=service,
    )
    if result.redirect_to and _wants_redirect(request, redirect):
        return RedirectResponse(
            url=result.redirect_to, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    return JSONResponse(content=result.model_dump())


@router.put("/integrations/{provider}/token", response_model=CredentialStatus)
async def connect_with_token(
    provider: str,
    payload: TokenConnectRequest,
    service: Annotated[Any, Depends(get_metrics_service)],
) -> CredentialStatus:
    """Store a provider API token (Clarity) for a client."""
    return service.connect_with_token(
        payload.client_id,
        provider,
        payload.api_token,
        expires_at=payload.expires_at,
        metadata=payload.metadata,
    )


@router.get("/integrations/{provider}/status", response_model=CredentialStatus)
async def integration_status(
    provider: str,
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(...),
) -> CredentialStatus:
    return service.get_credential_status(client_id, provider)


@router.delete("/integrations/{provider}", status_code=HTTPStatus.NO_CONTENT)
async def disconnect_integration(
    provider: str,
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(...),
) -> Response:
    service.disconnect(client_id, provider)
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.get("/metrics/gsc/top-queries", response_model=List[DimensionSummary])
async def gsc_top_queries(
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(...),
    start_date: str = Query(...),
    end_date: str = Query(...),
    limit: int = Query(10, ge=1, le=1000),
) -> List[DimensionSummary]:
    date_range = DateRange.parse(start_date, end_date)
    return service.top_dimension(client_id, "query", date_range, limit)


@router.get("/metrics/gsc/top-pages", response_model=List[DimensionSummary])
async def gsc_top_pages(
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(...),
    start_date: str = Query(...),
    end_date: str = Query(...),
    limit: int = Query(10, ge=1, le=1000),
) -> List[DimensionSummary]:
    date_range = DateRange.parse(start_date, end_date)
    return service.top_dimension(client_id, "page", date_range, limit)


@router.get("/metrics/gbp/locations")
async def gbp_locations(
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(...),
) -> dict:
    return {"locations": service.list_locations(client_id)}


@router.get("/metrics/clarity/ux-issues", response_model=UXIssueSummary)
async def clarity_ux_issues(
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(...),
    start_date: str = Query(...),
    end_date: str = Query(...),
) -> UXIssueSummary:
    return service.ux_issues(client_id, DateRange.parse(start_date, end_date))


@router.post("/metrics/{provider}/fetch", response_model=FetchResult)
async def fetch_metrics(
    provider: str,
    payload: FetchRequest,
    service: Annotated[Any, Depends(get_metrics_service)],
) -> FetchResult:
    """Pull a date range from the provider and store scored records."""
    date_range = DateRange(payload.start_date, payload.end_date)
    return await service.fetch_and_store(
        payload.client_id, ProviderName.coerce(provider), date_range, payload.dimensions
    )


@router.get("/metrics/{provider}", response_model=AggregatedMetrics)
async def get_metrics(
    provider: str,
    service: Annotated[Any, Depends(get_metrics_service)],
    client_id: str = Query(...),
    start_date: str = Query(...),
    end_date: str = Query(...),
    query: str | None = Query(None, description="Search query substring (gsc)."),
    page: str | None = Query(None, description="Page URL substring (gsc)."),
    device: str | None = Query(None, description="Device type (gsc)."),
    location: str | None = Query(None, description="Location name (gbp)."),
) -> AggregatedMetrics:
    """Stored records for a date range with totals, averages and trend."""
    date_range = DateRange.parse(start_date, end_date)
    filters = {
        name: value
        for name, value in (
            ("query", query),
            ("page", page),
            ("device", device),
            ("location", location),
        )
        if value
    }
    return service.get_aggregated(client_id, provider, date_range, filters)


__all__ = ["router"]
