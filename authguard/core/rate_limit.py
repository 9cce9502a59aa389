"""Login rate limiting wiring for the HTTP layer.

This module owns the process-wide limiter, its sweeper and the ``LoginGuard``
built on top of them, and translates guard decisions into HTTP concerns:

- client IP resolution (proxy headers first, then the socket peer)
- ``X-RateLimit-*`` / ``Retry-After`` headers
- ``RateLimitedAppError`` for denied attempts (rendered as 429 by the global
  exception handlers)

Routes depend on the functions here only, so the in-memory backend can be
replaced by a shared store behind ``AbstractLoginRateLimiter``.
"""

from __future__ import annotations

import logging
import math

from fastapi import Request

from authguard.adapters.rate_limit.base import AbstractLoginRateLimiter
from authguard.adapters.rate_limit.in_memory import InMemoryProgressiveRateLimiter
from authguard.adapters.rate_limit.sweeper import RateLimitSweeper
from authguard.core.config import settings
from authguard.core.errors import RateLimitedAppError
from authguard.services.login_guard import LoginDecision, LoginGuard
from authguard.utils.identifiers import client_ip_from_headers

logger = logging.getLogger(__name__)


_limiter: AbstractLoginRateLimiter | None = None
_limiter_config: tuple | None = None
_sweeper: RateLimitSweeper | None = None


def _current_config() -> tuple:
    cfg = settings.rate_limit
    return (
        cfg.max_attempts,
        cfg.window_seconds,
        tuple(cfg.progressive_delays),
        tuple(cfg.bypass_request_types),
    )


def get_rate_limiter() -> AbstractLoginRateLimiter:
    """Return the process-wide login rate limiter.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.

    Returns:
        AbstractLoginRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = _current_config()
    if _limiter is None or _limiter_config != config:
        max_attempts, window_seconds, delays, bypass = config
        _limiter = InMemoryProgressiveRateLimiter(
            max_attempts=max_attempts,
            window_seconds=window_seconds,
            progressive_delays=delays,
            bypass_request_types=bypass,
        )
        _limiter_config = config

    return _limiter


def get_sweeper() -> RateLimitSweeper:
    """Return the sweeper bound to the current limiter (not started)."""

    global _sweeper

    limiter = get_rate_limiter()
    if _sweeper is None or _sweeper.limiter is not limiter:
        if _sweeper is not None:
            _sweeper.stop()
        _sweeper = RateLimitSweeper(
            limiter,
            interval_seconds=settings.rate_limit.cleanup_interval_seconds,
        )
    return _sweeper


def get_login_guard() -> LoginGuard:
    """FastAPI dependency returning a guard over the process-wide limiter."""
    return LoginGuard(get_rate_limiter())


def reset_rate_limiting() -> None:
    """Stop the sweeper and drop the cached limiter (shutdown and tests)."""

    global _limiter, _limiter_config, _sweeper

    if _sweeper is not None:
        _sweeper.stop()
    _sweeper = None
    _limiter = None
    _limiter_config = None


def resolve_client_ip(request: Request) -> str:
    """Resolve the client IP from proxy headers or the socket peer."""
    peer_host = request.client.host if request.client else None
    return client_ip_from_headers(
        request.headers,
        settings.rate_limit.ip_header_names,
        peer_host,
    )


def build_rate_limit_headers(decision: LoginDecision) -> dict[str, str]:
    """Build ``X-RateLimit-*`` headers for a decision.

    Returns an empty dict when headers are disabled or the request was exempt.
    """
    if not settings.rate_limit.include_headers or decision.bypassed:
        return {}

    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining_attempts),
    }
    if decision.reset_time is not None:
        headers["X-RateLimit-Reset"] = str(math.ceil(decision.reset_time))
    if not decision.allowed and decision.wait_time is not None:
        headers["Retry-After"] = str(decision.wait_time)
    return headers


def raise_if_denied(decision: LoginDecision) -> None:
    """Raise ``RateLimitedAppError`` when the guard denied the attempt.

    Raises:
        RateLimitedAppError: Rendered as HTTP 429 with ``Retry-After``.
    """
    if decision.allowed:
        return

    wait_time = decision.wait_time or 0
    minutes = max(1, math.ceil(wait_time / 60))
    raise RateLimitedAppError(
        code="too_many_login_attempts",
        message=f"Too many login attempts. Please try again in {minutes} minute(s).",
        details={
            "retry_after": wait_time,
            "remaining_attempts": 0,
            "reset_at": decision.reset_time,
            "limit": decision.limit,
        },
    )
