"""Time source and timer primitives shared by the rate limiter and refresh coordinator.

Components depend on the ``Clock`` protocol rather than on ``time``/``asyncio``
directly so tests can drive time deterministically.

Notes:
- ``now()`` returns UNIX epoch seconds. Session expiries reported by identity
  providers are epoch timestamps, so both sides of every comparison share it.
- ``after()`` arms a one-shot timer on the running asyncio loop. The loop
  schedules it against its own monotonic clock, so wall-clock jumps do not
  shift an armed timer.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol


class TimerHandle(Protocol):
    """Cancelable handle returned by ``Clock.after``."""

    def cancel(self) -> None:
        """Cancel the timer. Must be a no-op if it already fired."""
        ...


class Clock(Protocol):
    """Time source with one-shot timers and cooperative sleeping."""

    def now(self) -> float:
        """Return the current time in UNIX epoch seconds."""
        ...

    def after(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke ``callback`` once after ``delay_seconds``.

        Args:
            delay_seconds: Delay before firing; negative values fire immediately.
            callback: Zero-argument callable run on the event loop.

        Returns:
            Handle that cancels the pending invocation.
        """
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the current coroutine for ``seconds``."""
        ...


class SystemClock:
    """Production clock backed by ``time.time`` and the running asyncio loop."""

    def now(self) -> float:
        return time.time()

    def after(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_seconds), callback)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
