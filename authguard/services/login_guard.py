"""Login attempt admission over both throttling keys.

A login attempt is identified twice: by the client IP (credential stuffing
from one host) and by the target account email (distributed guessing against
one account). ``LoginGuard`` checks and records both against a single limiter
and folds the two results into one decision:

- denied if either key is denied; the wait is the longest of the waits
- remaining attempts is the smaller of the two budgets
- exempt request types (e.g. password reset requests) skip throttling entirely
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from authguard.adapters.rate_limit.base import AbstractLoginRateLimiter, RateLimitResult
from authguard.core.logging import identifier_log_fields
from authguard.utils.identifiers import email_identifier, ip_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginDecision:
    """Combined admission decision for one login attempt.

    Attributes:
        allowed: Whether the attempt may proceed.
        limit: Configured maximum attempts per window.
        remaining_attempts: Smallest remaining budget across the checked keys.
        wait_time: Seconds until the longest active block lifts (denied only).
        reset_time: UNIX time that block lifts (denied only).
        blocked_by: ``"ip"`` or ``"email"`` for the key imposing the wait.
        bypassed: True when the request type is exempt from throttling.
    """

    allowed: bool
    limit: int
    remaining_attempts: int
    wait_time: int | None = None
    reset_time: float | None = None
    blocked_by: str | None = None
    bypassed: bool = False


class LoginGuard:
    """Applies the login rate limiter to an (IP, email) pair."""

    def __init__(self, limiter: AbstractLoginRateLimiter) -> None:
        self._limiter = limiter

    @property
    def limiter(self) -> AbstractLoginRateLimiter:
        return self._limiter

    def check(
        self,
        ip_address: str,
        email: str | None = None,
        *,
        request_type: str | None = None,
    ) -> LoginDecision:
        """Decide whether a login attempt may proceed.

        Args:
            ip_address: Client IP (already resolved and sanitized).
            email: Target account email, when known.
            request_type: Kind of request; exempt kinds are always allowed.

        Returns:
            LoginDecision combining the IP and email results.
        """
        keys = self._keys(ip_address, email)

        if self._is_bypassed(keys, request_type):
            return LoginDecision(
                allowed=True,
                limit=self._limiter.max_attempts,
                remaining_attempts=self._limiter.max_attempts,
                bypassed=True,
            )

        results = [(kind, self._limiter.check_limit(key)) for kind, key in keys]
        decision = self._combine(results)

        if not decision.allowed:
            blocked_key = dict(keys)[decision.blocked_by]
            logger.warning(
                "login_guard.denied",
                extra={
                    **identifier_log_fields(blocked_key),
                    "wait_s": decision.wait_time,
                    "request_type": request_type,
                },
            )
        return decision

    def record(
        self,
        ip_address: str,
        email: str | None,
        success: bool,
        *,
        request_type: str | None = None,
    ) -> LoginDecision:
        """Record a login outcome against both keys and return the new decision.

        A success clears both keys; a failure counts against both.
        """
        keys = self._keys(ip_address, email)

        if self._is_bypassed(keys, request_type):
            logger.debug("login_guard.record_bypassed", extra={"request_type": request_type})
        else:
            for _, key in keys:
                self._limiter.record_attempt(key, success)

        return self.check(ip_address, email, request_type=request_type)

    def reset(self, ip_address: str, email: str | None = None) -> None:
        """Forget the throttling state of both keys."""
        for _, key in self._keys(ip_address, email):
            self._limiter.reset_limit(key)

    @staticmethod
    def _keys(ip_address: str, email: str | None) -> list[tuple[str, str]]:
        keys = [("ip", ip_identifier(ip_address))]
        if email and email.strip():
            keys.append(("email", email_identifier(email)))
        return keys

    def _is_bypassed(self, keys: list[tuple[str, str]], request_type: str | None) -> bool:
        if not request_type:
            return False
        return all(self._limiter.should_bypass(key, request_type) for _, key in keys)

    def _combine(self, results: list[tuple[str, RateLimitResult]]) -> LoginDecision:
        limit = results[0][1].limit
        denied = [(kind, result) for kind, result in results if not result.allowed]

        if not denied:
            return LoginDecision(
                allowed=True,
                limit=limit,
                remaining_attempts=min(result.remaining_attempts for _, result in results),
            )

        kind, longest = max(denied, key=lambda item: item[1].wait_time or 0)
        return LoginDecision(
            allowed=False,
            limit=limit,
            remaining_attempts=0,
            wait_time=longest.wait_time,
            reset_time=longest.reset_time,
            blocked_by=kind,
        )
