"""
Event bus implementation for Ops Tower.

Author: Ops Tower Team
Date: 2026-10-18
"""

from collections import defaultdict
from threading import Lock
from typing import Any, Callable, TypeVar

from loguru import logger

from opstower.events.types import Event

# Type for event handlers
EventHandler = Callable[[Event], Any]
T = TypeVar("T", bound=Event)


class EventBus:
    """
    Synchronous event bus for loosely coupled component communication.

    A bus is created by its owner and passed to the components that emit
    on it; there is no process-wide default instance.

    Features:
    - Priority-based execution
    - Wildcard subscriptions
    - Handler errors are logged and do not stop other handlers
    """

    def __init__(self):
        """Initialize event bus."""
        self._handlers: dict[type[Event], list[tuple[EventHandler, int]]] = defaultdict(list)
        self._wildcard_handlers: list[tuple[EventHandler, int]] = []
        self._lock = Lock()

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], Any],
        priority: int = 0,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Type of event to subscribe to
            handler: Handler function
            priority: Handler priority (higher = executed first)
        """
        with self._lock:
            handlers = self._handlers[event_type] + [(handler, priority)]
            # Sort by priority (descending)
            handlers.sort(key=lambda x: x[1], reverse=True)
            self._handlers[event_type] = handlers

        logger.debug(f"Subscribed handler to {event_type.__name__} with priority {priority}")

    def subscribe_all(
        self,
        handler: EventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe to all events (wildcard subscription).

        Args:
            handler: Handler function
            priority: Handler priority
        """
        with self._lock:
            handlers = self._wildcard_handlers + [(handler, priority)]
            handlers.sort(key=lambda x: x[1], reverse=True)
            self._wildcard_handlers = handlers

        logger.debug(f"Subscribed wildcard handler with priority {priority}")

    def unsubscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], Any],
    ) -> None:
        """
        Unsubscribe from an event type.

        Args:
            event_type: Event type to unsubscribe from
            handler: Handler to remove
        """
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            self._handlers[event_type] = [
                (h, p) for h, p in handlers if h != handler
            ]

        logger.debug(f"Unsubscribed handler from {event_type.__name__}")

    def emit(self, event: Event) -> None:
        """
        Emit an event to all subscribed handlers.

        Handlers are executed in priority order. Wildcard handlers
        are executed after specific handlers.

        Args:
            event: Event to emit
        """
        logger.debug(f"Emitting event: {event.__class__.__name__} (id={event.id})")

        # Handler lists are replaced, never mutated, so reading without the lock is safe
        specific_handlers = self._handlers.get(type(event), [])
        all_handlers = specific_handlers + self._wildcard_handlers

        if not all_handlers:
            logger.debug(f"No handlers for event: {type(event).__name__}")
            return

        for handler, _priority in all_handlers:
            self._execute_handler(handler, event)

    def _execute_handler(self, handler: EventHandler, event: Event) -> Any:
        """
        Execute a single event handler with error handling.

        Returns:
            Handler result or None if error
        """
        try:
            return handler(event)
        except Exception as e:
            name = getattr(handler, "__name__", repr(handler))
            logger.error(
                f"Error in event handler {name} "
                f"for event {event.__class__.__name__}: {e}"
            )
            return None

    def clear(self) -> None:
        """Clear all handlers."""
        with self._lock:
            self._handlers = defaultdict(list)
            self._wildcard_handlers = []
        logger.info("Event bus cleared")

    def get_handler_count(self) -> int:
        """Get total number of registered handlers."""
        specific_count = sum(len(handlers) for handlers in self._handlers.values())
        return specific_count + len(self._wildcard_handlers)
