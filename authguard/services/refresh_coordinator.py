"""Credential refresh coordination.

``RefreshCoordinator`` keeps one session's credential fresh:

- Single-flight: at most one provider refresh sequence runs at a time. Callers
  arriving while one is in flight await the same task and receive the same
  ``RefreshResult``. The in-flight handle is installed under an asyncio lock,
  so "is one running?" and "start one" cannot interleave.
- Retry: a sequence makes up to ``max_retry_attempts`` provider calls, backing
  off exponentially (capped) with random jitter between retryable failures and
  stopping at once on a non-retryable one.
- Proactive scheduling: ``schedule_refresh(expires_at)`` arms a one-shot timer
  ahead of expiry. When it fires the coordinator refreshes and, on success,
  re-arms itself from the new session's expiry.
- Observation: lifecycle transitions are published on an ``EventBus``.

The coordinator is bound to one asyncio event loop and is not thread-safe.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from authguard.adapters.auth_provider.base import AbstractRefreshProvider, Session
from authguard.core.clock import Clock, SystemClock, TimerHandle
from authguard.core.config import TokenRefreshSettings, settings as app_settings
from authguard.core.errors import RefreshError, RefreshErrorType
from authguard.core.events import EventBus, Listener

logger = logging.getLogger(__name__)


class RefreshEventType(StrEnum):
    """Event types published by the coordinator."""

    REFRESH_NEEDED_IMMEDIATELY = "refresh_needed_immediately"
    REFRESH_SCHEDULED = "refresh_scheduled"
    REFRESH_TIMER_CLEARED = "refresh_timer_cleared"
    SCHEDULED_REFRESH_STARTED = "scheduled_refresh_started"
    SCHEDULED_REFRESH_SUCCESS = "scheduled_refresh_success"
    SCHEDULED_REFRESH_FAILED = "scheduled_refresh_failed"
    SCHEDULED_REFRESH_ERROR = "scheduled_refresh_error"
    REFRESH_ATTEMPT_STARTED = "refresh_attempt_started"
    REFRESH_ATTEMPT_SUCCESS = "refresh_attempt_success"
    REFRESH_ATTEMPT_FAILED = "refresh_attempt_failed"
    REFRESH_ATTEMPT_ERROR = "refresh_attempt_error"
    REFRESH_FAILED_FINAL = "refresh_failed_final"


class RefreshState(StrEnum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class RefreshResult:
    """Final outcome of a refresh sequence.

    Attributes:
        success: Whether a new session was obtained.
        new_session: The new session on success.
        error: The last observed failure otherwise.
        attempts: Provider calls made by the sequence.
    """

    success: bool
    new_session: Session | None = None
    error: RefreshError | None = None
    attempts: int = 0


class RefreshCoordinator:
    """Single-flight, retrying, self-scheduling credential refresher."""

    def __init__(
        self,
        provider: AbstractRefreshProvider,
        *,
        threshold_seconds: float = 5 * 60,
        safety_buffer_seconds: float = 30,
        max_retry_attempts: int = 3,
        base_retry_delay_seconds: float = 1.0,
        max_retry_delay_seconds: float = 10.0,
        backoff_factor: float = 2.0,
        max_jitter_seconds: float = 1.0,
        clock: Clock | None = None,
        events: EventBus | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            provider: Identity provider performing the actual refresh.
            threshold_seconds: Refresh this long before expiry.
            safety_buffer_seconds: Extra margin on top of the threshold.
            max_retry_attempts: Provider calls per sequence.
            base_retry_delay_seconds: Backoff after the first failure.
            max_retry_delay_seconds: Cap for the exponential backoff.
            backoff_factor: Multiplier applied per failed attempt.
            max_jitter_seconds: Jitter drawn from ``[0, max_jitter_seconds)``.
            clock: Time source and timer factory (defaults to ``SystemClock``).
            events: Event bus to publish on (a private one by default).
            rng: Random source for jitter.

        Raises:
            ValueError: If any timing or retry parameter is invalid.
        """
        if max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be >= 1")
        if backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if min(
            threshold_seconds,
            safety_buffer_seconds,
            base_retry_delay_seconds,
            max_retry_delay_seconds,
            max_jitter_seconds,
        ) < 0:
            raise ValueError("delays, threshold and buffer must be >= 0")

        self._provider = provider
        self._threshold = threshold_seconds
        self._buffer = safety_buffer_seconds
        self._max_attempts = max_retry_attempts
        self._base_delay = base_retry_delay_seconds
        self._max_delay = max_retry_delay_seconds
        self._factor = backoff_factor
        self._max_jitter = max_jitter_seconds
        self._clock: Clock = clock or SystemClock()
        self._events = events or EventBus()
        self._rng = rng or random.Random()

        self._lock = asyncio.Lock()
        self._in_flight: asyncio.Task[RefreshResult] | None = None
        self._timer: TimerHandle | None = None
        self._timer_token: object | None = None
        self._timer_fires_at: float | None = None
        self._background: set[asyncio.Task[None]] = set()
        # Bumped by cleanup() so sequences started earlier do not re-arm timers
        self._generation = 0

        # Meaningful only while a sequence is running
        self.attempt_count = 0
        self.last_error: RefreshError | None = None

    @property
    def state(self) -> RefreshState:
        if self.is_refreshing():
            return RefreshState.REFRESHING
        if self._timer is not None:
            return RefreshState.SCHEDULED
        return RefreshState.IDLE

    @property
    def events(self) -> EventBus:
        return self._events

    def is_refreshing(self) -> bool:
        """True while a refresh sequence is in flight."""
        return self._in_flight is not None

    async def refresh(self) -> RefreshResult:
        """Refresh the session, joining the in-flight sequence if there is one.

        Never raises for provider failures; the outcome is in the result.
        Cancelling one waiting caller does not cancel the shared sequence.
        """
        async with self._lock:
            task = self._in_flight
            if task is None:
                task = asyncio.get_running_loop().create_task(self._run_sequence())
                self._in_flight = task
        return await asyncio.shield(task)

    def schedule_refresh(self, expires_at: float) -> bool:
        """Arm a proactive refresh ahead of ``expires_at``.

        Any previously armed timer is cancelled first. When the refresh time
        (expiry minus threshold and safety buffer) has already passed, a
        ``refresh_needed_immediately`` event is emitted, nothing is armed and
        the caller decides whether to ``refresh()`` now.

        Must be called from within the coordinator's event loop.

        Args:
            expires_at: Session expiry as UNIX time in seconds.

        Returns:
            True if a timer was armed.
        """
        self.clear_refresh_timer()

        now = self._clock.now()
        refresh_at = expires_at - self._threshold - self._buffer
        if refresh_at <= now:
            logger.info(
                "refresh.needed_immediately",
                extra={"expires_in_s": round(expires_at - now, 3)},
            )
            self._events.emit(
                RefreshEventType.REFRESH_NEEDED_IMMEDIATELY,
                {"expires_at": expires_at, "now": now},
            )
            return False

        delay = refresh_at - now
        token = object()
        self._timer_token = token
        self._timer_fires_at = refresh_at
        self._timer = self._clock.after(delay, lambda: self._on_timer_fired(token, expires_at))

        logger.debug("refresh.scheduled", extra={"delay_s": round(delay, 3)})
        self._events.emit(
            RefreshEventType.REFRESH_SCHEDULED,
            {"expires_at": expires_at, "refresh_at": refresh_at, "delay_s": delay},
        )
        return True

    def clear_refresh_timer(self) -> bool:
        """Cancel a pending proactive refresh.

        Emits ``refresh_timer_cleared`` only when a timer was actually
        cancelled. Has no effect on a refresh that is already running.

        Returns:
            True if a timer was cancelled.
        """
        timer = self._timer
        if timer is None:
            return False

        timer.cancel()
        self._timer = None
        self._timer_token = None
        self._timer_fires_at = None
        self._events.emit(RefreshEventType.REFRESH_TIMER_CLEARED, {})
        return True

    def time_until_refresh(self) -> float | None:
        """Seconds until the armed timer fires, or None when nothing is armed."""
        if self._timer_fires_at is None:
            return None
        return max(0.0, self._timer_fires_at - self._clock.now())

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._events.add_listener(event_type, listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        self._events.remove_listener(event_type, listener)

    def cleanup(self) -> None:
        """Return to a dormant idle state: no timer, no listeners, no bookkeeping.

        An in-flight sequence is not cancelled and stays the one that new
        ``refresh()`` calls join until it finishes; it will not re-arm a timer
        afterwards. Idempotent.
        """
        self._generation += 1
        self.clear_refresh_timer()
        self._events.clear()
        self.attempt_count = 0
        self.last_error = None

    def compute_retry_delay(self, attempt: int) -> float:
        """Backoff before retrying after failed attempt number ``attempt`` (1-based)."""
        exponential = self._base_delay * (self._factor ** (attempt - 1))
        jitter = self._rng.random() * self._max_jitter
        return min(exponential, self._max_delay) + jitter

    async def _run_sequence(self) -> RefreshResult:
        try:
            return await self._refresh_with_retry()
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None
            # Bookkeeping only describes the sequence while it runs
            self.attempt_count = 0
            self.last_error = None

    async def _refresh_with_retry(self) -> RefreshResult:
        last_error: RefreshError | None = None
        attempt = 0

        for attempt in range(1, self._max_attempts + 1):
            self.attempt_count = attempt
            self._events.emit(RefreshEventType.REFRESH_ATTEMPT_STARTED, {"attempt": attempt})

            outcome, raised = await self._attempt_once()
            if isinstance(outcome, Session):
                session = outcome
                self.last_error = None
                logger.info(
                    "refresh.succeeded",
                    extra={"attempt": attempt, "expires_at": session.expires_at},
                )
                self._events.emit(
                    RefreshEventType.REFRESH_ATTEMPT_SUCCESS,
                    {"attempt": attempt, "expires_at": session.expires_at},
                )
                return RefreshResult(success=True, new_session=session, attempts=attempt)

            error = outcome
            last_error = error
            self.last_error = error
            will_retry = error.retryable and attempt < self._max_attempts

            logger.warning(
                "refresh.attempt_failed",
                extra={
                    "attempt": attempt,
                    "max_attempts": self._max_attempts,
                    "error_type": str(error.type),
                    "error_msg": error.message,
                    "will_retry": will_retry,
                },
            )
            self._events.emit(
                RefreshEventType.REFRESH_ATTEMPT_ERROR if raised else RefreshEventType.REFRESH_ATTEMPT_FAILED,
                {
                    "attempt": attempt,
                    "error_type": str(error.type),
                    "error_message": error.message,
                    "will_retry": will_retry,
                },
            )

            if not will_retry:
                break

            await self._clock.sleep(self.compute_retry_delay(attempt))

        final_error = last_error or RefreshError(
            type=RefreshErrorType.TOKEN_REFRESH_FAILED,
            message="All refresh attempts failed",
        )
        logger.error(
            "refresh.failed",
            extra={
                "attempts": attempt,
                "error_type": str(final_error.type),
                "error_msg": final_error.message,
            },
        )
        self._events.emit(
            RefreshEventType.REFRESH_FAILED_FINAL,
            {
                "attempts": attempt,
                "error_type": str(final_error.type),
                "error_message": final_error.message,
            },
        )
        return RefreshResult(success=False, error=final_error, attempts=attempt)

    async def _attempt_once(self) -> tuple[Session | RefreshError, bool]:
        """Run one provider call.

        Returns:
            Tuple of (session or error, whether the provider raised).
        """
        try:
            response = await self._provider.perform_refresh()
        except Exception as exc:
            return (
                RefreshError(
                    type=RefreshErrorType.NETWORK_ERROR,
                    message=str(exc) or "Network error during refresh",
                    details={"exception_type": type(exc).__name__},
                ),
                True,
            )

        if response.error:
            return RefreshError.from_message(response.error), False
        if response.session is None:
            return (
                RefreshError(
                    type=RefreshErrorType.TOKEN_REFRESH_FAILED,
                    message="No session returned from refresh",
                ),
                False,
            )
        return response.session, False

    def _on_timer_fired(self, token: object, expires_at: float) -> None:
        if token is not self._timer_token:
            # Superseded by a later schedule_refresh or cleared
            return

        self._timer = None
        self._timer_token = None
        self._timer_fires_at = None

        task = asyncio.get_running_loop().create_task(
            self._run_scheduled_refresh(expires_at, self._generation)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_scheduled_refresh(self, expires_at: float, generation: int) -> None:
        self._events.emit(RefreshEventType.SCHEDULED_REFRESH_STARTED, {"expires_at": expires_at})
        try:
            result = await self.refresh()
        except Exception as exc:
            logger.exception("refresh.scheduled_error")
            self._emit_if_current(
                generation,
                RefreshEventType.SCHEDULED_REFRESH_ERROR,
                {"expires_at": expires_at, "error_type": type(exc).__name__, "error_message": str(exc)},
            )
            return

        if result.success and result.new_session is not None:
            new_expires_at = result.new_session.expires_at
            if self._emit_if_current(
                generation,
                RefreshEventType.SCHEDULED_REFRESH_SUCCESS,
                {"new_expires_at": new_expires_at},
            ):
                self.schedule_refresh(new_expires_at)
            return

        error = result.error
        self._emit_if_current(
            generation,
            RefreshEventType.SCHEDULED_REFRESH_FAILED,
            {
                "expires_at": expires_at,
                "error_type": str(error.type) if error else None,
                "error_message": error.message if error else None,
            },
        )

    def _emit_if_current(self, generation: int, event_type: str, data: dict[str, Any]) -> bool:
        if generation != self._generation:
            return False
        self._events.emit(event_type, data)
        return True


def create_refresh_coordinator(
    provider: AbstractRefreshProvider,
    settings: TokenRefreshSettings | None = None,
    **kwargs: Any,
) -> RefreshCoordinator:
    """Factory building a coordinator from ``TOKEN_REFRESH_*`` settings.

    Args:
        provider: Identity provider performing the refresh.
        settings: Settings group; defaults to the global settings.
        **kwargs: Collaborators (``clock``, ``events``, ``rng``) or overrides.

    Returns:
        Configured RefreshCoordinator.
    """
    cfg = settings or app_settings.token_refresh
    options: dict[str, Any] = {
        "threshold_seconds": cfg.threshold_seconds,
        "safety_buffer_seconds": cfg.safety_buffer_seconds,
        "max_retry_attempts": cfg.max_retry_attempts,
        "base_retry_delay_seconds": cfg.base_retry_delay_seconds,
        "max_retry_delay_seconds": cfg.max_retry_delay_seconds,
        "backoff_factor": cfg.backoff_factor,
        "max_jitter_seconds": cfg.max_jitter_seconds,
    }
    options.update(kwargs)
    return RefreshCoordinator(provider, **options)
