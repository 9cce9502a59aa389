"""Background eviction of expired rate limit entries.

The sweeper runs ``limiter.cleanup()`` on a daemon thread every
``interval_seconds`` so the entry table stays bounded even for identifiers
that are never seen again. It is independent of request handling threads and
of the asyncio loop, and may be stopped and restarted any number of times.
"""

from __future__ import annotations

import logging
import threading

from authguard.adapters.rate_limit.base import AbstractLoginRateLimiter

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Periodic cleanup task for a login rate limiter."""

    def __init__(self, limiter: AbstractLoginRateLimiter, *, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiter = limiter
        self._interval = interval_seconds
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

    @property
    def limiter(self) -> AbstractLoginRateLimiter:
        return self._limiter

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the periodic timer; no-op if already running."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return

            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name="rate-limit-sweeper",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()

        logger.info("rate_limit.sweeper_started", extra={"interval_s": self._interval})

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the periodic timer and wait for the thread to exit.

        Safe to call when not running. After ``stop`` the sweeper holds no
        thread or event, so a later ``start`` begins from a clean state.
        """
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None

        if thread is None or stop_event is None:
            return

        stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("rate_limit.sweeper_stopped")

    def sweep(self) -> int:
        """Run one cleanup pass immediately and return the number evicted."""
        return self._limiter.cleanup()

    def _run(self, stop_event: threading.Event) -> None:
        # Event.wait returns True once stop() sets it, ending the loop
        while not stop_event.wait(self._interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
