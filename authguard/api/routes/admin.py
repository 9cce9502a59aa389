"""Rate limit administration endpoints (API key protected)."""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, status

from authguard.adapters.rate_limit.base import AbstractLoginRateLimiter, RateLimitResult
from authguard.core.auth import verify_api_key
from authguard.core.rate_limit import get_rate_limiter
from authguard.schemas.login import (
    BlockIdentifierRequest,
    RateLimitStatisticsResponse,
    RateLimitStatusResponse,
)

router = APIRouter(
    prefix="/admin/rate-limit",
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)],
)

Limiter = Annotated[AbstractLoginRateLimiter, Depends(get_rate_limiter)]


def _status_response(identifier: str, result: RateLimitResult) -> RateLimitStatusResponse:
    return RateLimitStatusResponse(identifier=identifier, **asdict(result))


@router.get("/statistics", response_model=RateLimitStatisticsResponse)
def get_statistics(limiter: Limiter) -> RateLimitStatisticsResponse:
    """Summarize the identifiers currently tracked by the limiter."""
    return RateLimitStatisticsResponse(**asdict(limiter.get_statistics()))


@router.post("/block", response_model=RateLimitStatusResponse)
def block_identifier(payload: BlockIdentifierRequest, limiter: Limiter) -> RateLimitStatusResponse:
    """Block a namespaced identifier (``ip:...`` or ``email:...``) for a fixed duration."""
    limiter.block_identifier(payload.identifier, payload.duration_seconds)
    return _status_response(payload.identifier, limiter.get_status(payload.identifier))


@router.get("/{identifier}", response_model=RateLimitStatusResponse)
def get_identifier_status(identifier: str, limiter: Limiter) -> RateLimitStatusResponse:
    return _status_response(identifier, limiter.get_status(identifier))


@router.delete("/{identifier}", status_code=status.HTTP_204_NO_CONTENT)
def reset_identifier(identifier: str, limiter: Limiter) -> None:
    """Clear all throttling state for an identifier (e.g. after support verification)."""
    limiter.reset_limit(identifier)
