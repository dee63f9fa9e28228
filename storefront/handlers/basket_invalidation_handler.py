"""Abandons a checkout that has not started paying once its basket is emptied."""
import logging

from storefront.events.basket_events import BasketUpdatedEvent
from storefront.events.domain import DomainEvent, EventResult, IEventHandler
from storefront.models.enums import CheckoutStep

logger = logging.getLogger(__name__)


class BasketInvalidationHandler(IEventHandler):
    """
    Resets a checkout still on the review step when the basket becomes empty.

    The checkout keeps its own basket snapshot and its prices never change
    here; a checkout past review or waiting on authentication is left alone.
    """

    def __init__(self, checkout_service):
        self._checkout_service = checkout_service

    def can_handle(self, event: DomainEvent) -> bool:
        return isinstance(event, BasketUpdatedEvent)

    def handle(self, event: DomainEvent) -> EventResult:
        if not isinstance(event, BasketUpdatedEvent):
            return EventResult.error_result("Invalid event type")

        if not event.is_empty:
            return EventResult.success_result({"reset": False})

        session = self._checkout_service.session
        if (
            session is None
            or self._checkout_service.is_busy
            or session.client_secret is not None
            or session.current_step > CheckoutStep.REVIEW
        ):
            return EventResult.success_result({"reset": False})

        logger.info(f"Basket {event.basket_id} emptied; resetting checkout")
        self._checkout_service.reset()
        return EventResult.success_result({"reset": True})
