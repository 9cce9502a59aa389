"""Login rate limiter interfaces.

The API and services depend on this abstraction (not the concrete
implementation) so the in-process entry table can later be swapped for an
external store exposing the same operations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    """Throttling state for one identifier.

    Attributes:
        identifier: Throttling key (namespaced IP address or normalized email).
        attempts: Failed attempts since the window started.
        first_attempt: UNIX time of the first failure in this window.
        last_attempt: UNIX time of the most recent failure.
        reset_time: UNIX time after which the entry is expired or unblocked.
        is_blocked: Whether a penalty window is active.
    """

    identifier: str
    attempts: int
    first_attempt: float
    last_attempt: float
    reset_time: float
    is_blocked: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.reset_time


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a limit check.

    Attributes:
        allowed: Whether the attempt may proceed.
        limit: Configured maximum attempts per window.
        remaining_attempts: Failures left before blocking (0 when blocked).
        reset_time: UNIX time the block lifts (only set when denied).
        wait_time: Whole seconds to wait before retrying (only set when denied).
    """

    allowed: bool
    limit: int
    remaining_attempts: int
    reset_time: float | None = None
    wait_time: int | None = None


@dataclass(frozen=True)
class RateLimitStatistics:
    """Aggregate view of the entry table for monitoring."""

    total_tracked_identifiers: int
    blocked_identifiers: int
    average_attempts: float


class AbstractLoginRateLimiter(ABC):
    """Interface for login attempt limiters.

    Implementations never raise for throttling decisions: every abnormal
    condition resolves to a ``RateLimitResult`` value.
    """

    @property
    @abstractmethod
    def max_attempts(self) -> int:
        """Failed attempts allowed per window before blocking."""
        raise NotImplementedError

    @abstractmethod
    def check_limit(self, identifier: str) -> RateLimitResult:
        """Decide whether an attempt for ``identifier`` may proceed."""
        raise NotImplementedError

    @abstractmethod
    def record_attempt(self, identifier: str, success: bool) -> None:
        """Report the outcome of an authentication attempt."""
        raise NotImplementedError

    @abstractmethod
    def reset_limit(self, identifier: str) -> None:
        """Forget all state for ``identifier``."""
        raise NotImplementedError

    @abstractmethod
    def get_status(self, identifier: str) -> RateLimitResult:
        """Same result as ``check_limit``; used for read-only status queries."""
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Evict expired entries and return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def block_identifier(self, identifier: str, duration_seconds: float) -> None:
        """Force ``identifier`` into the blocked state for ``duration_seconds``."""
        raise NotImplementedError

    @abstractmethod
    def should_bypass(self, identifier: str, request_type: str) -> bool:
        """Return whether ``request_type`` is exempt from throttling."""
        raise NotImplementedError

    @abstractmethod
    def get_statistics(self) -> RateLimitStatistics:
        """Summarize the tracked identifiers."""
        raise NotImplementedError
