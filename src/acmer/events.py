"""Typed lifecycle event stream.

Managers report progress and failures as :class:`LifecycleEvent`
objects.  Every event is written to the ``acmer.events`` logger and then
handed to any subscribed listeners.  Listeners are observers only: the
lifecycle behaves identically with none attached, and a listener that
raises is logged and skipped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from acmer.core.types import EventLevel

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifecycleEvent:
    level: EventLevel
    message: str
    identity: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


EventListener = Callable[[LifecycleEvent], None]


class EventBus:
    """Fan-out of lifecycle events to logging and listeners."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: EventListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(
        self,
        level: EventLevel,
        message: str,
        *,
        identity: str,
        exc_info: BaseException | None = None,
    ) -> LifecycleEvent:
        """Log *message* and deliver it to every listener.

        Parameters
        ----------
        level:
            ``info`` or ``error``.
        message:
            Human-readable text.
        identity:
            Name of the identity the event concerns.
        exc_info:
            Exception to attach to the log record, for error events.

        """
        event = LifecycleEvent(level=EventLevel(level), message=message, identity=identity)

        log.log(
            logging.ERROR if event.level is EventLevel.ERROR else logging.INFO,
            message,
            extra={"identity": identity},
            exc_info=exc_info,
        )

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                log.exception("Event listener %r failed", listener)
        return event
