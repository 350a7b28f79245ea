"""Change notifications for the presentation layer.

The SessionManager publishes an event after every mutation it makes, so a UI
can refresh without polling. Listeners may be called from a model-client
worker thread, not only from the thread that issued the request.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    THREAD_CREATED = "thread_created"
    COMMENT_APPENDED = "comment_appended"
    STATUS_CHANGED = "status_changed"
    THREAD_RESOLVED = "thread_resolved"
    SESSION_CLEARED = "session_cleared"


@dataclass(frozen=True)
class EventPayload:
    kind: SessionEvent
    file_id: str | None = None
    thread_id: int | None = None


Listener = Callable[[EventPayload], None]


class EventBus:
    def __init__(self):
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, kind: SessionEvent, file_id: str | None = None, thread_id: int | None = None) -> None:
        payload = EventPayload(kind=kind, file_id=file_id, thread_id=thread_id)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                # A broken view must not corrupt session state.
                logger.exception("Listener %r failed handling %s", listener, kind.value)
