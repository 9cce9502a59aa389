"""Pydantic schemas for login throttling and rate limit administration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoginCheckRequest(BaseModel):
    """Admission check issued before verifying credentials."""

    email: str | None = Field(
        default=None,
        description="Target account email. When omitted only the client IP is checked.",
        max_length=320,
    )
    request_type: str | None = Field(
        default=None,
        description="Kind of request, e.g. 'login' or 'password_reset_request' (exempt).",
        max_length=64,
    )


class LoginAttemptRequest(LoginCheckRequest):
    """Outcome of a credential verification."""

    success: bool = Field(..., description="Whether the credentials were accepted.")


class LoginDecisionResponse(BaseModel):
    """Throttling decision for the current client and account."""

    allowed: bool = Field(..., description="Whether a login attempt may proceed.")
    limit: int = Field(..., description="Maximum failed attempts per window.")
    remaining_attempts: int = Field(..., description="Failures left before blocking.")
    wait_time: int | None = Field(
        default=None, description="Seconds until the block lifts (only when denied)."
    )
    reset_time: float | None = Field(
        default=None, description="UNIX time the block lifts (only when denied)."
    )
    bypassed: bool = Field(
        default=False, description="True when the request type is exempt from throttling."
    )


class RateLimitStatusResponse(BaseModel):
    """Current limiter state for one identifier."""

    identifier: str
    allowed: bool
    limit: int
    remaining_attempts: int
    wait_time: int | None = None
    reset_time: float | None = None


class RateLimitStatisticsResponse(BaseModel):
    total_tracked_identifiers: int
    blocked_identifiers: int
    average_attempts: float


class BlockIdentifierRequest(BaseModel):
    """Administrative block of a namespaced identifier (``ip:...`` / ``email:...``)."""

    identifier: str = Field(..., min_length=1, max_length=400)
    duration_seconds: int = Field(
        ..., gt=0, le=30 * 24 * 60 * 60, description="Block duration in seconds."
    )
