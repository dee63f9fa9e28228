"""Domain events for basket and checkout."""
from storefront.events.domain import DomainEvent, EventResult, IEventHandler, DomainEventDispatcher
from storefront.events.basket_events import BasketUpdatedEvent, BasketOperationFailedEvent
from storefront.events.checkout_events import (
    CheckoutCompletedEvent,
    CheckoutFailedEvent,
    AuthenticationRequiredEvent,
    AuthenticationCancelledEvent,
    PaymentMethodCreatedEvent,
)

__all__ = [
    "DomainEvent",
    "EventResult",
    "IEventHandler",
    "DomainEventDispatcher",
    "BasketUpdatedEvent",
    "BasketOperationFailedEvent",
    "CheckoutCompletedEvent",
    "CheckoutFailedEvent",
    "AuthenticationRequiredEvent",
    "AuthenticationCancelledEvent",
    "PaymentMethodCreatedEvent",
]
