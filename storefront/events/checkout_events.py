"""Checkout domain events."""
from dataclasses import dataclass
from typing import Optional

from storefront.events.domain import DomainEvent


@dataclass
class CheckoutCompletedEvent(DomainEvent):
    """Event emitted when an order is paid and checkout reaches success."""

    order_id: Optional[str] = None
    basket_id: Optional[str] = None
    total: int = 0
    charge_total: int = 0
    payment_method_id: Optional[str] = None
    authenticated: bool = False

    def __post_init__(self):
        self.name = "checkout.completed"
        super().__post_init__()


@dataclass
class CheckoutFailedEvent(DomainEvent):
    """Event emitted when a checkout operation ends in the error state."""

    basket_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    stage: Optional[str] = None

    def __post_init__(self):
        self.name = "checkout.failed"
        super().__post_init__()


@dataclass
class AuthenticationRequiredEvent(DomainEvent):
    """Event emitted when the processor demands a step-up challenge."""

    order_id: Optional[str] = None
    basket_id: Optional[str] = None

    def __post_init__(self):
        self.name = "payment.authentication_required"
        super().__post_init__()


@dataclass
class AuthenticationCancelledEvent(DomainEvent):
    """Event emitted when the user abandons the step-up challenge."""

    order_id: Optional[str] = None
    basket_id: Optional[str] = None

    def __post_init__(self):
        self.name = "payment.authentication_cancelled"
        super().__post_init__()


@dataclass
class PaymentMethodCreatedEvent(DomainEvent):
    """Event emitted when a tokenised card is stored."""

    payment_method_id: Optional[str] = None
    brand: Optional[str] = None
    last4: Optional[str] = None
    is_default: bool = False

    def __post_init__(self):
        self.name = "payment_method.created"
        super().__post_init__()
