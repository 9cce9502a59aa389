from __future__ import annotations

from fastapi import APIRouter

from authguard.core.config import settings
from authguard.core.rate_limit import get_sweeper

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems. Reports whether login
    throttling is enabled and whether the expired-entry sweeper is running.
    """

    return {
        "status": "ok",
        "rate_limit_enabled": settings.rate_limit.enabled,
        "sweeper_running": get_sweeper().is_running,
    }
