"""Login throttling endpoints.

The login flow calls ``/check`` before verifying credentials and reports the
outcome to ``/attempts`` afterwards. Both are keyed on the client IP and, when
provided, the target account email.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from authguard.core.config import settings
from authguard.core.rate_limit import (
    build_rate_limit_headers,
    get_login_guard,
    raise_if_denied,
    resolve_client_ip,
)
from authguard.schemas.login import (
    LoginAttemptRequest,
    LoginCheckRequest,
    LoginDecisionResponse,
)
from authguard.services.login_guard import LoginDecision, LoginGuard

router = APIRouter(prefix="/auth/login", tags=["Login"])


def _unthrottled_decision() -> LoginDecision:
    limit = settings.rate_limit.max_attempts
    return LoginDecision(allowed=True, limit=limit, remaining_attempts=limit, bypassed=True)


@router.post("/check", response_model=LoginDecisionResponse)
def check_login(
    payload: LoginCheckRequest,
    request: Request,
    response: Response,
    guard: Annotated[LoginGuard, Depends(get_login_guard)],
) -> LoginDecisionResponse:
    """Decide whether the caller may attempt to log in.

    Returns:
        LoginDecisionResponse with the remaining attempt budget.

    Raises:
        RateLimitedAppError: 429 with Retry-After when the IP or the account
            is currently blocked.
    """
    if not settings.rate_limit.enabled:
        return LoginDecisionResponse(**asdict(_unthrottled_decision()))

    decision = guard.check(
        resolve_client_ip(request),
        payload.email,
        request_type=payload.request_type,
    )
    raise_if_denied(decision)

    response.headers.update(build_rate_limit_headers(decision))
    return LoginDecisionResponse(**asdict(decision))


@router.post("/attempts", response_model=LoginDecisionResponse)
def record_login_attempt(
    payload: LoginAttemptRequest,
    request: Request,
    response: Response,
    guard: Annotated[LoginGuard, Depends(get_login_guard)],
) -> LoginDecisionResponse:
    """Record the outcome of a credential check.

    A success clears the IP and account counters. A failure counts against
    both; when it trips the limit the response reports the block (``allowed``
    false, ``wait_time`` set) rather than failing the request.
    """
    if not settings.rate_limit.enabled:
        return LoginDecisionResponse(**asdict(_unthrottled_decision()))

    decision = guard.record(
        resolve_client_ip(request),
        payload.email,
        payload.success,
        request_type=payload.request_type,
    )

    response.headers.update(build_rate_limit_headers(decision))
    return LoginDecisionResponse(**asdict(decision))
