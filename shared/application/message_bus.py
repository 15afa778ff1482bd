"""
Message Bus

Routes committed domain events to the handlers that react to them
(expiry scheduling, audit logging). Handlers are registered by the
owning app's ``AppConfig.ready``.
"""

from typing import Callable, Dict, List, Type
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class MessageBus:
    """
    Message bus for domain events

    Events: Multiple handlers per event (1:N). A handler registered for a
    base class also receives its subclasses.
    """

    def __init__(self):
        self._event_handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        """
        Register an event handler

        Registering the same handler twice for one type is a no-op, so
        ``ready()`` running more than once does not duplicate side effects.
        """
        handlers = self._event_handlers.setdefault(event_type, [])
        if handler in handlers:
            return
        handlers.append(handler)
        logger.debug(f"Registered event handler {handler.__name__} for {event_type.__name__}")

    def handlers_for(self, event: DomainEvent) -> List[EventHandler]:
        found: List[EventHandler] = []
        for event_type in type(event).__mro__:
            found.extend(self._event_handlers.get(event_type, []))
        return found

    def publish_events(self, events: List[DomainEvent]):
        """
        Publish domain events

        All registered handlers for each event type will be called.
        Errors in handlers are logged but don't stop other handlers.
        """
        for event in events:
            event_name = type(event).__name__
            handlers = self.handlers_for(event)

            if not handlers:
                logger.debug(f"No handlers registered for event {event_name}")
                continue

            logger.info(f"Publishing event: {event_name} (ID: {event.event_id})")

            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    logger.error(
                        f"Error in event handler {handler.__name__} for event {event_name}: {e}",
                        exc_info=True,
                    )

    def clear(self):
        self._event_handlers.clear()


# Global message bus instance
message_bus = MessageBus()
