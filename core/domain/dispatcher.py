# core/domain/dispatcher.py
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Type, TypeVar

from .events import DomainEvent

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=DomainEvent)
Handler = Callable[[EventT], None]


class DomainEventDispatcher:
    """
    In-process, synchronous domain event dispatcher.

    Usage:

        from core.domain.dispatcher import register_handler, emit

        @register_handler(DispatchRecorded)
        def on_dispatch(event: DispatchRecorded) -> None:
            ...

        emit(DispatchRecorded(order_id=1, order_line_id=7, quantity=5, ...))
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def register_handler(self, event_type: Type[EventT]):
        """
        Decorator registering a handler for the given event type.
        Registering the same function twice is a no-op.
        """

        def decorator(func: Handler) -> Handler:
            if func not in self._handlers[event_type]:
                self._handlers[event_type].append(func)
                logger.debug(
                    "Registered domain event handler %s for %s",
                    func.__name__,
                    event_type.__name__,
                )
            return func

        return decorator

    def unregister_handler(self, event_type: Type[EventT], func: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if func in handlers:
            handlers.remove(func)

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[Handler]:
        return list(self._handlers.get(event_type, []))

    def emit(self, event: DomainEvent) -> None:
        """
        Dispatch the event to every handler registered for its type.

        A failing handler is logged and does not stop the others; the
        write that produced the event has already been committed.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type, [])

        if not handlers:
            logger.debug("No handlers registered for event %s", event.name)
            return

        logger.debug("Emitting %s %s", event.name, event.payload())

        for handler in list(handlers):
            try:
                handler(event)  # type: ignore[arg-type]
            except Exception:
                logger.exception(
                    "Error while handling event %s in handler %s",
                    event.name,
                    getattr(handler, "__name__", repr(handler)),
                )


# Global singleton dispatcher (sufficient for a Django monolith)
dispatcher = DomainEventDispatcher()

# Convenience API
register_handler = dispatcher.register_handler
unregister_handler = dispatcher.unregister_handler
emit = dispatcher.emit
