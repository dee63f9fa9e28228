"""Domain models package."""
from storefront.models.basket import (
    Basket,
    BasketItem,
    BasketOperationResult,
    CourseRef,
    CreditItem,
    FeeItem,
)
from storefront.models.checkout import (
    Address,
    BillingDetails,
    CardDetails,
    CheckoutSession,
    Order,
    OrderItem,
    PaymentMethod,
    PaymentMethodToken,
    PlaceOrderResult,
    default_payment_method,
)
from storefront.models.enums import (
    CheckoutStep,
    CourseType,
    ItemType,
    NextAction,
    OrderStatus,
    PaymentMethodType,
)

__all__ = [
    "Basket",
    "BasketItem",
    "BasketOperationResult",
    "CourseRef",
    "CreditItem",
    "FeeItem",
    "Address",
    "BillingDetails",
    "CardDetails",
    "CheckoutSession",
    "Order",
    "OrderItem",
    "PaymentMethod",
    "PaymentMethodToken",
    "PlaceOrderResult",
    "default_payment_method",
    "CheckoutStep",
    "CourseType",
    "ItemType",
    "NextAction",
    "OrderStatus",
    "PaymentMethodType",
]
