"""
Event types and the event channel.

The discovery side publishes registry changes to an EventChannel; callers
either subscribe a callback or drain the queue from their own thread.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Registry events. Values are the names a host bridge exposes."""

    DEVICE_DISCOVERED = "deviceDiscovered"
    DEVICE_UPDATED = "deviceUpdated"
    DEVICE_REMOVED = "deviceRemoved"


@dataclass
class Event:
    """
    A single registry event.

    Attributes:
        type: Event type
        data: Payload; a device summary, or {"id": ...} for removals
    """

    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def device_id(self) -> Optional[str]:
        return self.data.get("id")


EventHandler = Callable[[Event], None]


class EventChannel:
    """
    Publish/subscribe channel with a drainable queue.

    Every published event is handed to each subscriber. With queue_events
    set it is also put on a queue for callers that drain from their own
    thread; otherwise nothing is retained.
    A failing subscriber is logged and skipped; it never stops delivery to
    the others or the publisher.
    """

    def __init__(self, maxsize: int = 0, queue_events: bool = False):
        self._queue: Optional["queue.Queue[Event]"] = queue.Queue(maxsize) if queue_events else None
        self._handlers: List[EventHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler. Returns a callable that unsubscribes it."""
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe():
            with self._lock:
                try:
                    self._handlers.remove(handler)
                except ValueError:
                    pass

        return unsubscribe

    def publish(self, event: Event) -> None:
        logger.debug("Publish %s -> %s", event.type.value, event.device_id)
        if self._queue is not None:
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                logger.warning("Event queue full, dropping %s for %s", event.type.value, event.device_id)

        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed on %s", handler, event.type.value)

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Return the next queued event, or None if none arrives within timeout."""
        if self._queue is None:
            return None
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Event]:
        """Return all currently queued events without blocking."""
        events: List[Event] = []
        if self._queue is None:
            return events
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events
