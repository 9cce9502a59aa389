"""Application factory for the FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from authguard.api.routes import admin_router, health_router, login_router
from authguard.core.config import settings
from authguard.core.exception_handlers import setup_exception_handlers
from authguard.core.logging import configure_logging
from authguard.core.middleware import request_id_middleware
from authguard.core.openapi import apply_openapi_customizations
from authguard.core.rate_limit import get_sweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the expired-entry sweeper for the lifetime of the app."""
    sweeper = get_sweeper() if settings.rate_limit.enabled else None
    if sweeper is not None:
        sweeper.start()
    logger.info("app.started", extra={"rate_limit_enabled": settings.rate_limit.enabled})
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="AuthGuard",
        description=(
            "Login attempt throttling with progressive penalties. Call "
            "/v1/auth/login/check before verifying credentials and report the "
            "outcome to /v1/auth/login/attempts. Administrative endpoints "
            "require X-API-Key."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(login_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
