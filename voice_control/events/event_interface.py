"""
Event interface for the Voice Control Assistant.

This module defines the application-level events published between the
transport session, the dispatcher, the domain stores and the terminal UI,
and the bus that delivers them.
"""

import asyncio
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union

from voice_control.config.logging_config import get_logger

logger = get_logger(__name__)


class EventType(Enum):
    """Types of events that can be emitted by the event bus."""

    # System events
    ERROR = "error"
    SHUTDOWN = "shutdown"

    # Transport session lifecycle
    SESSION_STATE_CHANGED = "session.state_changed"
    SESSION_ENDED = "session.ended"
    CHANNEL_OPENED = "channel.opened"
    CHANNEL_ERROR = "channel.error"

    # Remote protocol milestones
    SESSION_CREATED = "session.created"
    TOOLS_CONFIGURED = "tools.configured"

    # Function calls
    FUNCTION_CALL_EXECUTED = "function_call.executed"
    FUNCTION_CALL_FAILED = "function_call.failed"

    # Domain state
    COLLECTION_CHANGED = "collection.changed"


@dataclass
class Event:
    """Base class for all events in the system."""

    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the event to a dictionary."""
        result = asdict(self)
        result['type'] = self.type.value
        return result


# Type for event handlers
EventHandler = Union[
    Callable[[Event], None],  # Synchronous handler
    Callable[[Event], Any]    # Asynchronous handler
]


class Subscription:
    """
    Handle returned by a listener registration.

    Calling ``cancel()`` unregisters the listener; it is safe to call more
    than once.
    """

    def __init__(self, unsubscribe: Callable[[], None], description: str = ""):
        self._unsubscribe = unsubscribe
        self.description = description
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<Subscription {self.description} ({state})>"


class EventBus:
    """
    Central event bus for the application.

    Handlers run in registration order. Synchronous handlers run inline;
    coroutine handlers are scheduled on the running loop and held in
    ``pending`` until they finish. An exception in one handler is logged and
    does not stop delivery to the others.
    """

    def __init__(self):
        """Initialize the event bus."""
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []
        self.pending: Set[asyncio.Task] = set()

    def on(self, event_type: EventType, handler: EventHandler) -> Subscription:
        """
        Register a handler for a specific event type.

        Args:
            event_type: The type of event to handle
            handler: The handler function to call when the event occurs

        Returns:
            Subscription: Handle that unregisters the handler
        """
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Registered handler for event type: {event_type.name}")

        return Subscription(lambda: self.off(event_type, handler), event_type.value)

    def on_any(self, handler: EventHandler) -> Subscription:
        """
        Register a handler for all event types.

        Args:
            handler: The handler function to call for any event

        Returns:
            Subscription: Handle that unregisters the handler
        """
        if handler not in self._global_handlers:
            self._global_handlers.append(handler)
            logger.debug("Registered global event handler")

        return Subscription(lambda: self.off_any(handler), "*")

    def off(self, event_type: EventType, handler: Optional[EventHandler] = None) -> None:
        """
        Remove a handler for a specific event type.

        Args:
            event_type: The type of event
            handler: The handler to remove. If None, removes all handlers for the event type.
        """
        if event_type in self._handlers:
            if handler is None:
                self._handlers[event_type] = []
                logger.debug(f"Removed all handlers for event type: {event_type.name}")
            elif handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Removed handler for event type: {event_type.name}")

    def off_any(self, handler: Optional[EventHandler] = None) -> None:
        """
        Remove a global handler.

        Args:
            handler: The handler to remove. If None, removes all global handlers.
        """
        if handler is None:
            self._global_handlers = []
        elif handler in self._global_handlers:
            self._global_handlers.remove(handler)

    def emit(self, event_type: Union[EventType, Event], data: Optional[Dict[str, Any]] = None) -> None:
        """
        Emit an event to all registered handlers.

        Args:
            event_type: The event type or Event object
            data: The event data (if event_type is not an Event)
        """
        if isinstance(event_type, Event):
            event = event_type
        else:
            event = Event(type=event_type, data=data or {})

        # Copy so handlers may unsubscribe while being called
        handlers = list(self._handlers.get(event.type, [])) + list(self._global_handlers)
        for handler in handlers:
            self._call_handler(handler, event)

    def _call_handler(self, handler: EventHandler, event: Event) -> None:
        try:
            if asyncio.iscoroutinefunction(handler):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    logger.warning(f"Cannot run async handler {handler.__name__}: no running event loop")
                    return
                task = loop.create_task(self._call_async_handler(handler, event))
                self.pending.add(task)
                task.add_done_callback(self.pending.discard)
            else:
                handler(event)
        except Exception as e:
            logger.error(f"Error in event handler for {event.type.name}: {e}", exc_info=True)

    async def _call_async_handler(self, handler: EventHandler, event: Event) -> None:
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Error in async event handler for {event.type.name}: {e}", exc_info=True)


# Global event bus instance
event_bus = EventBus()
