"""
In-process event bus for the wellness lending system.

Handlers run synchronously in publish order. Delivery is at-least-once from
the caller's point of view: a failing handler does not stop the others, and
the failures are reported back as a single ``ExternalServiceError``.
"""
import logging
from typing import Any, Callable, Dict, List

from wellness_lending.core.events.base_event import BaseEvent
from wellness_lending.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

EventHandler = Callable[[BaseEvent], Any]

ALL_EVENTS = "*"


class EventHandlerRegistry:
    """Registry for event handlers."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}

    def register(self, event_type: str, handler: EventHandler) -> None:
        """Register an event handler."""
        self._handlers.setdefault(event_type, []).append(handler)

    def unregister(self, event_type: str, handler: EventHandler) -> None:
        """Unregister an event handler."""
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    def get_handlers(self, event_type: str) -> List[EventHandler]:
        """Get handlers for an event type, wildcard subscribers last."""
        return list(self._handlers.get(event_type, [])) + list(self._handlers.get(ALL_EVENTS, []))

    def clear(self) -> None:
        """Clear all handlers."""
        self._handlers.clear()


class EventBus:
    """
    Event bus for handling application events.
    """

    def __init__(self):
        self._registry = EventHandlerRegistry()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe a handler to an event type.

        Args:
            event_type: The type of event to subscribe to, or ``"*"`` for all
            handler: Callable receiving the event
        """
        self._registry.register(event_type, handler)
        logger.info(f"Registered handler for event type: {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        self._registry.unregister(event_type, handler)
        logger.info(f"Unregistered handler for event type: {event_type}")

    def publish(self, event: BaseEvent) -> None:
        """
        Publish an event to every subscribed handler.

        Raises:
            ExternalServiceError: if one or more handlers failed
        """
        handlers = self._registry.get_handlers(event.event_type)
        if not handlers:
            logger.debug(f"No handlers found for event type: {event.event_type}")
            return

        errors: List[str] = []
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error handling event {event}: {str(e)}", exc_info=True)
                errors.append(f"{getattr(handler, '__name__', repr(handler))}: {e}")

        if errors:
            raise ExternalServiceError(
                f"{len(errors)} handler(s) failed for {event.event_type}: {'; '.join(errors)}",
                service_name="event_bus",
            )
        event.processed = True

    def clear(self) -> None:
        self._registry.clear()
