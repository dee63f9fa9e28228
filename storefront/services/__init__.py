"""Basket and checkout services."""
from storefront.services.activity_logger import ActivityLogger
from storefront.services.basket_store import (
    BasketError,
    BasketErrorKind,
    BasketState,
    BasketStatus,
    BasketStore,
    StoreResult,
)
from storefront.services.checkout_service import (
    CheckoutError,
    CheckoutInitial,
    CheckoutLoaded,
    CheckoutLoading,
    CheckoutOutcome,
    CheckoutProcessing,
    CheckoutResult,
    CheckoutService,
    CheckoutState,
    CheckoutStatus,
    CheckoutSuccess,
)

__all__ = [
    "ActivityLogger",
    "BasketError",
    "BasketErrorKind",
    "BasketState",
    "BasketStatus",
    "BasketStore",
    "StoreResult",
    "CheckoutError",
    "CheckoutInitial",
    "CheckoutLoaded",
    "CheckoutLoading",
    "CheckoutOutcome",
    "CheckoutProcessing",
    "CheckoutResult",
    "CheckoutService",
    "CheckoutState",
    "CheckoutStatus",
    "CheckoutSuccess",
]
