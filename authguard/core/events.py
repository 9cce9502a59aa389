"""Lightweight publish/subscribe channel for lifecycle notifications.

The refresh coordinator announces its state transitions through an ``EventBus``
so that logging, metrics or UI code can observe them without the coordinator
knowing about any specific sink.

Guarantees:
- Listeners for one event type run in subscription order.
- A listener that raises never prevents the remaining listeners from running,
  and the error never reaches the emitter. It is reported to the diagnostics
  sink instead.
- Events are immutable values; the bus does not retain them after emission.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """Immutable notification emitted by the bus.

    Attributes:
        type: Event type name (e.g., ``refresh_scheduled``).
        data: Read-only payload.
        timestamp: UTC time of emission.
    """

    type: str
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[Event], None]


class DiagnosticsSink(Protocol):
    """Optional observer of emitted events and listener failures."""

    def record_event(self, event: Event) -> None:
        ...

    def record_listener_error(self, event: Event, listener: Listener, exc: Exception) -> None:
        ...


class LoggingDiagnosticsSink:
    """Default sink: routes events and listener failures to ``logging``."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def record_event(self, event: Event) -> None:
        self._log.debug(
            "event_bus.emitted",
            extra={"event_type": event.type, "event_data": dict(event.data)},
        )

    def record_listener_error(self, event: Event, listener: Listener, exc: Exception) -> None:
        self._log.error(
            "event_bus.listener_error",
            extra={
                "event_type": event.type,
                "listener": getattr(listener, "__qualname__", repr(listener)),
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
            exc_info=exc,
        )


class EventBus:
    """Multi-subscriber event channel with per-listener error isolation."""

    def __init__(self, diagnostics: DiagnosticsSink | None = None) -> None:
        self._diagnostics: DiagnosticsSink = diagnostics or LoggingDiagnosticsSink()
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.RLock()

    def add_listener(self, event_type: str, listener: Listener) -> None:
        """Subscribe ``listener`` to ``event_type``."""
        with self._lock:
            self._listeners.setdefault(event_type, []).append(listener)

    def remove_listener(self, event_type: str, listener: Listener) -> None:
        """Unsubscribe one registration of ``listener``; no-op when absent."""
        with self._lock:
            listeners = self._listeners.get(event_type)
            if not listeners:
                return
            try:
                listeners.remove(listener)
            except ValueError:
                return
            if not listeners:
                del self._listeners[event_type]

    def listener_count(self, event_type: str | None = None) -> int:
        """Number of registrations for ``event_type`` (or for all types)."""
        with self._lock:
            if event_type is not None:
                return len(self._listeners.get(event_type, ()))
            return sum(len(items) for items in self._listeners.values())

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self._listeners.clear()

    def emit(self, event_type: str, data: Mapping[str, Any] | None = None) -> Event:
        """Build an event and deliver it to the current subscribers.

        Args:
            event_type: Event type name.
            data: Payload; copied into a read-only mapping.

        Returns:
            The emitted event.
        """
        event = Event(type=event_type, data=MappingProxyType(dict(data or {})))

        # Snapshot so listeners may (un)subscribe while being notified
        with self._lock:
            listeners = list(self._listeners.get(event_type, ()))

        self._report_event(event)
        for listener in listeners:
            try:
                listener(event)
            except Exception as exc:
                self._report_listener_error(event, listener, exc)
        return event

    def _report_event(self, event: Event) -> None:
        try:
            self._diagnostics.record_event(event)
        except Exception:
            logger.exception("event_bus.diagnostics_failed", extra={"event_type": event.type})

    def _report_listener_error(self, event: Event, listener: Listener, exc: Exception) -> None:
        try:
            self._diagnostics.record_listener_error(event, listener, exc)
        except Exception:
            logger.exception("event_bus.diagnostics_failed", extra={"event_type": event.type})
