"""Audit trail for money-moving checkout events."""
from storefront.events.domain import DomainEvent, EventResult, IEventHandler
from storefront.events.checkout_events import (
    AuthenticationCancelledEvent,
    AuthenticationRequiredEvent,
    CheckoutCompletedEvent,
    CheckoutFailedEvent,
    PaymentMethodCreatedEvent,
)
from storefront.services.activity_logger import ActivityLogger


class CheckoutActivityHandler(IEventHandler):
    """
    Writes checkout and payment events to the activity log.

    Register it for every name in ``EVENT_NAMES``.
    """

    EVENT_NAMES = (
        "checkout.completed",
        "checkout.failed",
        "payment.authentication_required",
        "payment.authentication_cancelled",
        "payment_method.created",
    )

    def __init__(self, activity_logger: ActivityLogger):
        """
        Initialize handler.

        Args:
            activity_logger: Logger for activity tracking
        """
        self._activity_logger = activity_logger

    def can_handle(self, event: DomainEvent) -> bool:
        return isinstance(
            event,
            (
                CheckoutCompletedEvent,
                CheckoutFailedEvent,
                AuthenticationRequiredEvent,
                AuthenticationCancelledEvent,
                PaymentMethodCreatedEvent,
            ),
        )

    def handle(self, event: DomainEvent) -> EventResult:
        """
        Log the event.

        Args:
            event: One of the checkout or payment events

        Returns:
            EventResult with the logged action
        """
        if isinstance(event, CheckoutCompletedEvent):
            metadata = {
                "order_id": event.order_id,
                "basket_id": event.basket_id,
                "total": event.total,
                "charge_total": event.charge_total,
                "payment_method_id": event.payment_method_id,
                "authenticated": event.authenticated,
            }
        elif isinstance(event, CheckoutFailedEvent):
            metadata = {
                "basket_id": event.basket_id,
                "error": event.error,
                "error_code": event.error_code,
                "stage": event.stage,
            }
        elif isinstance(event, (AuthenticationRequiredEvent, AuthenticationCancelledEvent)):
            metadata = {"order_id": event.order_id, "basket_id": event.basket_id}
        elif isinstance(event, PaymentMethodCreatedEvent):
            # never card numbers: brand and last4 only
            metadata = {
                "payment_method_id": event.payment_method_id,
                "brand": event.brand,
                "last4": event.last4,
                "is_default": event.is_default,
            }
        else:
            return EventResult.error_result("Unknown event type")

        self._activity_logger.log(action=event.name, metadata=metadata)
        return EventResult.success_result({"action": event.name})
