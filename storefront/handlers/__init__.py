"""Event handlers for domain events."""
from storefront.handlers.checkout_activity_handler import CheckoutActivityHandler
from storefront.handlers.basket_invalidation_handler import BasketInvalidationHandler

__all__ = [
    "CheckoutActivityHandler",
    "BasketInvalidationHandler",
]
