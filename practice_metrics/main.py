"""
FastAPI application entrypoint for the practice metrics engine.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from practice_metrics.api.routes import router as api_router
from practice_metrics.core.config import get_settings
from practice_metrics.core.errors import MetricsEngineError, RateLimitedError
from practice_metrics.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def handle_engine_error(request: Request, exc: MetricsEngineError) -> JSONResponse:
    """Render engine errors as JSON with their mapped HTTP status."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=int(exc.status_code), content=exc.to_dict(), headers=headers
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Practice Metrics Engine",
        version="0.1.0",
        description="Credential lifecycle and marketing metrics for client practices.",
    )
    app.add_exception_handler(MetricsEngineError, handle_engine_error)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
