"""Domain event primitives and dispatcher."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """
    Base class for domain events.

    Subclasses set ``name`` in ``__post_init__`` and then call super().
    """

    name: str = field(default="", init=False)
    event_id: str = field(default="", init=False)
    occurred_at: Optional[datetime] = field(default=None, init=False)

    def __post_init__(self):
        self.event_id = str(uuid4())
        self.occurred_at = datetime.now(timezone.utc)


@dataclass
class EventResult:
    """Result of handling an event."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def success_result(cls, data: Any = None) -> "EventResult":
        return cls(success=True, data=data if data is not None else {})

    @classmethod
    def error_result(cls, error: str, error_type: Optional[str] = None) -> "EventResult":
        return cls(success=False, error=error, error_type=error_type)

    @classmethod
    def combine(cls, results: List["EventResult"]) -> "EventResult":
        """
        Merge handler results into one.

        Fails with the first handler error; otherwise succeeds with the list
        of handler data in registration order.
        """
        for result in results:
            if not result.success:
                return result
        return cls.success_result([r.data for r in results])


class IEventHandler(ABC):
    """Interface for event handlers."""

    @abstractmethod
    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event."""

    @abstractmethod
    def handle(self, event: DomainEvent) -> EventResult:
        """Handle the event."""


class DomainEventDispatcher:
    """
    Routes domain events to registered handlers by event name.

    Usage:
        dispatcher = DomainEventDispatcher()
        dispatcher.register("checkout.completed", handler)
        result = dispatcher.emit(CheckoutCompletedEvent(order_id="o1"))
    """

    def __init__(self):
        self._handlers: Dict[str, List[IEventHandler]] = {}

    def register(self, event_name: str, handler: IEventHandler) -> None:
        self._handlers.setdefault(event_name, []).append(handler)

    def unregister(self, event_name: str, handler: IEventHandler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_handlers(self, event_name: str) -> bool:
        return bool(self._handlers.get(event_name))

    def emit(self, event: DomainEvent) -> EventResult:
        """
        Deliver an event to every registered handler that accepts it.

        Handler exceptions are logged and reported as error results; they
        never propagate to the emitter.

        Returns:
            Combined EventResult, or an error result with
            error_type="no_handler" when nothing handled the event
        """
        handlers = [
            h for h in self._handlers.get(event.name, []) if h.can_handle(event)
        ]
        if not handlers:
            logger.debug(f"No handler registered for event {event.name}")
            return EventResult.error_result(
                f"No handler for event {event.name}", error_type="no_handler"
            )

        results = []
        for handler in handlers:
            try:
                results.append(handler.handle(event))
            except Exception as e:
                logger.error(
                    f"Handler {handler.__class__.__name__} failed for {event.name}: {e}"
                )
                results.append(EventResult.error_result(str(e), error_type="handler_error"))
        return EventResult.combine(results)

    dispatch = emit
