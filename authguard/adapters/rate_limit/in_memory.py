"""In-memory progressive login rate limiter.

Notes:
- Per-process only: running multiple workers gives each worker its own table.
- Thread-safe: a single lock guards the entry table, so operations on one
  identifier are observed in invocation order.
- Expired entries are removed lazily on access and eagerly by ``cleanup()``
  (driven by ``RateLimitSweeper``).

Progressive penalty:
    Once an identifier's failed attempts reach ``max_attempts`` it is blocked
    for ``progressive_delays[attempts - max_attempts]`` seconds, clamped to the
    last delay. Every further failure while blocked re-evaluates the index, so
    persistent attackers climb the delay ladder until it saturates. A
    successful login clears the entry completely.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Iterable, Sequence

from authguard.adapters.rate_limit.base import (
    AbstractLoginRateLimiter,
    RateLimitEntry,
    RateLimitResult,
    RateLimitStatistics,
)
from authguard.core.logging import identifier_log_fields

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_SECONDS = 15 * 60
DEFAULT_PROGRESSIVE_DELAYS: tuple[int, ...] = (60, 300, 900, 1800, 3600)
PASSWORD_RESET_REQUEST = "password_reset_request"


class InMemoryProgressiveRateLimiter(AbstractLoginRateLimiter):
    """Login limiter with per-identifier windows and escalating block durations."""

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        progressive_delays: Sequence[float] = DEFAULT_PROGRESSIVE_DELAYS,
        bypass_request_types: Iterable[str] = (PASSWORD_RESET_REQUEST,),
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_attempts: Failures allowed before an identifier is blocked.
            window_seconds: How long failures accumulate before auto-reset.
            progressive_delays: Ordered block durations in seconds.
            bypass_request_types: Request types exempt from throttling.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If any limit is invalid.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if not progressive_delays:
            raise ValueError("progressive_delays must not be empty")
        if any(delay <= 0 for delay in progressive_delays):
            raise ValueError("progressive_delays must be positive")

        self._max_attempts = max_attempts
        self._window_seconds = window_seconds
        self._delays: tuple[float, ...] = tuple(progressive_delays)
        self._bypass_request_types = frozenset(bypass_request_types)
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def progressive_delays(self) -> tuple[float, ...]:
        return self._delays

    def check_limit(self, identifier: str) -> RateLimitResult:
        """Decide whether a login attempt for ``identifier`` may proceed.

        An entry that has reached ``max_attempts`` without being flagged yet is
        blocked here, which makes the penalty effective even if the caller
        never records another failure.

        Args:
            identifier: Throttling key.

        Returns:
            RateLimitResult with the decision and, when denied, the wait time.
            An empty identifier is never tracked and always gets the full budget.
        """
        if not identifier:
            return self._allowed(self._max_attempts)

        now = self._clock()

        with self._lock:
            entry = self._live_entry_locked(identifier, now)
            if entry is None:
                return self._allowed(self._max_attempts)

            if entry.is_blocked:
                return self._denied(entry, now)

            if entry.attempts >= self._max_attempts:
                block_seconds = self._apply_penalty_locked(entry, now)
                return self._denied(entry, now, wait_time=math.ceil(block_seconds))

            return self._allowed(self._max_attempts - entry.attempts)

    def record_attempt(self, identifier: str, success: bool) -> None:
        """Report the outcome of an authentication attempt.

        A success wipes the identifier's state. A failure opens a window for
        an unseen (or expired) identifier, otherwise increments the counter,
        and blocks once the counter reaches ``max_attempts``. An empty
        identifier is ignored.
        """
        if not identifier:
            return

        if success:
            self.reset_limit(identifier)
            return

        now = self._clock()
        with self._lock:
            entry = self._live_entry_locked(identifier, now)
            if entry is None:
                entry = RateLimitEntry(
                    identifier=identifier,
                    attempts=1,
                    first_attempt=now,
                    last_attempt=now,
                    reset_time=now + self._window_seconds,
                )
                self._entries[identifier] = entry
            else:
                entry.attempts += 1
                entry.last_attempt = now

            if entry.attempts >= self._max_attempts:
                self._apply_penalty_locked(entry, now)

    def reset_limit(self, identifier: str) -> None:
        """Remove all state for ``identifier``; no-op when untracked."""
        with self._lock:
            removed = self._entries.pop(identifier, None)

        if removed is not None:
            logger.info("rate_limit.reset", extra=identifier_log_fields(identifier))

    def get_status(self, identifier: str) -> RateLimitResult:
        """Read the current decision for ``identifier``.

        Interchangeable with ``check_limit`` (including its lazy expiry and
        block flagging), so status queries and admission checks never disagree.
        """
        return self.check_limit(identifier)

    def cleanup(self) -> int:
        """Evict every entry whose reset time has passed.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)

        if expired:
            logger.debug(
                "rate_limit.cleanup",
                extra={"removed": len(expired), "tracked": remaining},
            )
        return len(expired)

    def block_identifier(self, identifier: str, duration_seconds: float) -> None:
        """Administratively block ``identifier`` for ``duration_seconds``.

        The attempt counter is raised to at least ``max_attempts`` so a blocked
        entry always satisfies the blocking threshold.

        An empty identifier is ignored.

        Raises:
            ValueError: If duration is not positive.
        """
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be > 0")
        if not identifier:
            return

        now = self._clock()
        with self._lock:
            entry = self._live_entry_locked(identifier, now)
            self._entries[identifier] = RateLimitEntry(
                identifier=identifier,
                attempts=max(entry.attempts if entry else 0, self._max_attempts),
                first_attempt=entry.first_attempt if entry else now,
                last_attempt=now,
                reset_time=now + duration_seconds,
                is_blocked=True,
            )

        logger.warning(
            "rate_limit.manual_block",
            extra={**identifier_log_fields(identifier), "block_s": duration_seconds},
        )

    def should_bypass(self, identifier: str, request_type: str) -> bool:
        """Return whether ``request_type`` is exempt from throttling.

        Pure predicate; ``identifier`` is accepted so per-identifier policies
        (trusted IPs, service accounts) can be added without changing callers.
        """
        return request_type in self._bypass_request_types

    def get_statistics(self) -> RateLimitStatistics:
        """Summarize live (non-expired) entries without mutating the table."""
        now = self._clock()
        with self._lock:
            live = [entry for entry in self._entries.values() if not entry.is_expired(now)]

        total = len(live)
        return RateLimitStatistics(
            total_tracked_identifiers=total,
            blocked_identifiers=sum(1 for entry in live if entry.is_blocked),
            average_attempts=(sum(entry.attempts for entry in live) / total) if total else 0.0,
        )

    def clear_all(self) -> None:
        """Drop every entry (shutdown and tests)."""
        with self._lock:
            self._entries.clear()

    def _live_entry_locked(self, identifier: str, now: float) -> RateLimitEntry | None:
        """Return the entry for identifier, deleting it first if it has expired."""
        entry = self._entries.get(identifier)
        if entry is not None and entry.is_expired(now):
            del self._entries[identifier]
            return None
        return entry

    def _penalty_seconds(self, attempts: int) -> float:
        index = min(max(attempts - self._max_attempts, 0), len(self._delays) - 1)
        return self._delays[index]

    def _apply_penalty_locked(self, entry: RateLimitEntry, now: float) -> float:
        block_seconds = self._penalty_seconds(entry.attempts)
        entry.reset_time = now + block_seconds
        entry.is_blocked = True

        logger.warning(
            "rate_limit.blocked",
            extra={
                **identifier_log_fields(entry.identifier),
                "attempts": entry.attempts,
                "max_attempts": self._max_attempts,
                "block_s": block_seconds,
            },
        )
        return block_seconds

    def _allowed(self, remaining: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=self._max_attempts,
            remaining_attempts=remaining,
        )

    def _denied(
        self,
        entry: RateLimitEntry,
        now: float,
        *,
        wait_time: int | None = None,
    ) -> RateLimitResult:
        if wait_time is None:
            # Round first so float noise in reset_time - now cannot add a second
            wait_time = max(0, math.ceil(round(entry.reset_time - now, 6)))
        return RateLimitResult(
            allowed=False,
            limit=self._max_attempts,
            remaining_attempts=0,
            reset_time=entry.reset_time,
            wait_time=wait_time,
        )
