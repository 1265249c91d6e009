"""Synchronous event dispatch for gnucore.

Accounting components publish state changes (connections opening and
closing, node role changes, reachability latches, cache evictions) to
handlers registered on their own dispatcher. Dispatch happens on the
caller's thread, after the component has released its lock, so a handler
reacts within the same tick as the change that triggered it.
"""

from __future__ import annotations

import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gnucore.utils.logging_config import get_logger, log_exception


class EventType(Enum):
    """Built-in event types."""

    CONNECTION_OPENED = "connection_opened"
    CONNECTION_CLOSED = "connection_closed"
    NODE_ROLE_CHANGED = "node_role_changed"
    REACHABILITY_CHANGED = "reachability_changed"
    CACHE_EVICTED = "cache_evicted"


@dataclass
class Event:
    """Base event class."""

    event_type: str = ""
    timestamp: float = field(default_factory=time.time)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    source: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "event_id": self.event_id,
            "source": self.source,
            "data": self.data,
        }


class EventHandler(ABC):
    """Base class for event handlers."""

    def __init__(self, name: str):
        """Initialize event handler."""
        self.name = name
        self.logger = get_logger(f"event_handler.{name}")

    @abstractmethod
    def handle(self, event: Event) -> None:
        """Handle an event."""

    def can_handle(self, _event: Event) -> bool:
        """Check if this handler can handle the event."""
        return True


class EventDispatcher:
    """Per-component registry of handlers, invoked synchronously."""

    def __init__(self, source: str):
        """Initialize dispatcher.

        Args:
            source: Name of the component publishing through this dispatcher

        """
        self.source = source
        self._handlers: list[EventHandler] = []
        self._lock = threading.Lock()
        self.logger = get_logger(__name__)
        self.stats = {
            "events_dispatched": 0,
            "handler_errors": 0,
        }

    def register_handler(self, handler: EventHandler) -> None:
        """Register an event handler."""
        with self._lock:
            if handler in self._handlers:
                return
            self._handlers = [*self._handlers, handler]
        self.logger.debug(
            "Registered handler '%s' on '%s'", handler.name, self.source
        )

    def unregister_handler(self, handler: EventHandler) -> None:
        """Unregister an event handler; unknown handlers are ignored."""
        with self._lock:
            if handler not in self._handlers:
                return
            self._handlers = [h for h in self._handlers if h is not handler]
        self.logger.debug(
            "Unregistered handler '%s' from '%s'", handler.name, self.source
        )

    @property
    def handlers(self) -> list[EventHandler]:
        """Currently registered handlers."""
        return list(self._handlers)

    def dispatch(self, event_type: EventType, **data: Any) -> Event:
        """Build an event and hand it to every interested handler.

        A failing handler is logged and skipped; it never propagates into
        the component that published the event.
        """
        event = Event(event_type=event_type.value, source=self.source, data=data)
        # Copy-on-write list: iterate without holding the lock
        for handler in self._handlers:
            if not handler.can_handle(event):
                continue
            try:
                handler.handle(event)
            except Exception as exc:
                self.stats["handler_errors"] += 1
                log_exception(
                    self.logger,
                    exc,
                    f"Handler '{handler.name}' failed on {event.event_type}",
                )
        self.stats["events_dispatched"] += 1
        return event

    def get_stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "source": self.source,
            "handlers_registered": len(self._handlers),
            "events_dispatched": self.stats["events_dispatched"],
            "handler_errors": self.stats["handler_errors"],
        }
