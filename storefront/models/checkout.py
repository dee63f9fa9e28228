"""Checkout domain models: addresses, payment methods, orders and sessions."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from storefront.models.basket import Basket
from storefront.models.enums import CheckoutStep, NextAction, OrderStatus
from storefront.utils.money import (
    format_timestamp,
    minor_units,
    optional_minor_units,
    parse_timestamp,
)


@dataclass(frozen=True)
class Address:
    """Postal address used for billing."""

    line1: str
    city: str
    post_code: str
    id: Optional[str] = None
    name: Optional[str] = None
    line2: Optional[str] = None
    county: Optional[str] = None
    country: Optional[str] = None
    country_code: str = "GB"

    @property
    def short_display(self) -> str:
        return f"{self.line1}, {self.city} {self.post_code}"

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.name, self.line1, self.line2, self.city, self.post_code) if p]
        return ", ".join(parts)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            line1=data.get("line1") or "",
            line2=data.get("line2"),
            city=data.get("city") or "",
            county=data.get("county"),
            post_code=data.get("postCode") or "",
            country=data.get("country"),
            country_code=data.get("countryCode") or "GB",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize as an AddressInput payload (no id)."""
        return {
            "name": self.name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "county": self.county,
            "postCode": self.post_code,
            "country": self.country,
            "countryCode": self.country_code,
        }


@dataclass(frozen=True)
class CardDetails:
    """Raw card input. Handed to the payment facade only, never stored."""

    number: str
    exp_month: int
    exp_year: int
    cvc: str

    def __repr__(self) -> str:
        return f"CardDetails(last4={self.number[-4:]!r}, exp={self.exp_month}/{self.exp_year})"


@dataclass(frozen=True)
class BillingDetails:
    """Cardholder details sent with a tokenization request."""

    email: str
    name: str
    address: Address


@dataclass(frozen=True)
class PaymentMethod:
    """Tokenized card reference stored by the order service."""

    id: str
    type: str = "card"
    brand: Optional[str] = None
    last4: Optional[str] = None
    expiry_month: Optional[str] = None
    expiry_year: Optional[str] = None
    is_default: bool = False
    billing_address: Optional[Address] = None
    created_at: Optional[datetime] = None

    @property
    def expiry(self) -> Optional[str]:
        if not self.expiry_month or not self.expiry_year:
            return None
        return f"{str(self.expiry_month).zfill(2)}/{str(self.expiry_year)[-2:]}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentMethod":
        address = data.get("billingAddress")
        return cls(
            id=str(data["id"]),
            type=data.get("type") or "card",
            brand=data.get("brand"),
            last4=data.get("last4"),
            expiry_month=_optional_str(data.get("expiryMonth")),
            expiry_year=_optional_str(data.get("expiryYear")),
            is_default=bool(data.get("isDefault")),
            billing_address=Address.from_dict(address) if address else None,
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass(frozen=True)
class PaymentMethodToken:
    """Processor token returned by the facade after card tokenization."""

    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None


@dataclass(frozen=True)
class OrderItem:
    """Line item of a completed order."""

    id: str
    item_id: str
    item_type: str
    item_name: str
    price: int
    total_price: int
    discount_value: Optional[int] = None
    promo_code_discount_value: Optional[int] = None
    assign_to_user_id: Optional[str] = None
    assign_to_user_name: Optional[str] = None
    charge_from_date: Optional[datetime] = None
    extra_info: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        return cls(
            id=str(data["id"]),
            item_id=str(data.get("itemId") or ""),
            item_type=data.get("itemType") or "",
            item_name=data.get("itemName") or "",
            price=minor_units(data.get("price"), "price"),
            total_price=minor_units(data.get("totalPrice"), "totalPrice"),
            discount_value=optional_minor_units(data.get("discountValue"), "discountValue"),
            promo_code_discount_value=optional_minor_units(
                data.get("promoCodeDiscountValue"), "promoCodeDiscountValue"
            ),
            assign_to_user_id=data.get("assignToUserId"),
            assign_to_user_name=data.get("assignToUserName"),
            charge_from_date=parse_timestamp(data.get("chargeFromDate")),
            extra_info=dict(data.get("extraInfo") or {}),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass(frozen=True)
class Order:
    """Server-created record of a purchase. Immutable on the client."""

    id: str
    user_id: Optional[str] = None
    items: Tuple[OrderItem, ...] = ()
    sub_total: int = 0
    discount_total: int = 0
    promo_code_discount_value: int = 0
    credit_total: int = 0
    tax: int = 0
    total: int = 0
    charge_total: int = 0
    pay_later: int = 0
    status: str = OrderStatus.PENDING.value
    payment_method_id: Optional[str] = None
    payment_method_type: str = "card"
    payment_intent_id: Optional[str] = None
    payment_transaction_status: Optional[str] = None
    billing_address: Optional[Address] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.SUCCESS.value

    @property
    def is_payment_pending(self) -> bool:
        return self.status == OrderStatus.PAYMENT_PENDING.value

    @property
    def has_failed(self) -> bool:
        return self.status == OrderStatus.FAILED.value

    @property
    def requires_additional_payment(self) -> bool:
        return self.pay_later > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        address = data.get("billingAddress")
        return cls(
            id=str(data["id"]),
            user_id=_optional_str(data.get("userId")),
            items=tuple(OrderItem.from_dict(i) for i in data.get("items") or []),
            sub_total=minor_units(data.get("subTotal"), "subTotal"),
            discount_total=minor_units(data.get("discountTotal"), "discountTotal"),
            promo_code_discount_value=minor_units(
                data.get("promoCodeDiscountValue"), "promoCodeDiscountValue"
            ),
            credit_total=minor_units(data.get("creditTotal"), "creditTotal"),
            tax=minor_units(data.get("tax"), "tax"),
            total=minor_units(data.get("total"), "total"),
            charge_total=minor_units(data.get("chargeTotal"), "chargeTotal"),
            pay_later=minor_units(data.get("payLater"), "payLater"),
            status=data.get("status") or OrderStatus.PENDING.value,
            payment_method_id=data.get("paymentMethodId"),
            payment_method_type=data.get("paymentMethodType") or "card",
            payment_intent_id=data.get("paymentIntentId"),
            payment_transaction_status=data.get("paymentTransactionStatus"),
            billing_address=Address.from_dict(address) if address else None,
            notes=data.get("notes"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )

    def summary(self) -> Dict[str, Any]:
        """Compact dict for logs and events."""
        return {
            "id": self.id,
            "status": self.status,
            "total": self.total,
            "charge_total": self.charge_total,
            "items": len(self.items),
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class PlaceOrderResult:
    """Response of the order service to an order submission."""

    success: bool
    order: Optional[Order] = None
    client_secret: Optional[str] = None
    next_action: str = NextAction.NONE.value
    error: Optional[str] = None
    error_code: Optional[str] = None
    payment_transaction_status: Optional[str] = None

    @property
    def requires_action(self) -> bool:
        return self.next_action == NextAction.REQUIRES_ACTION.value and bool(self.client_secret)


@dataclass(frozen=True)
class CheckoutSession:
    """
    One checkout attempt.

    Holds its own basket snapshot: later basket mutations never reach an
    in-progress checkout.
    """

    basket: Basket
    available_payment_methods: Tuple[PaymentMethod, ...] = ()
    selected_payment_method: Optional[PaymentMethod] = None
    billing_address: Optional[Address] = None
    current_step: int = CheckoutStep.REVIEW
    client_secret: Optional[str] = None
    is_processing: bool = False
    pending_order: Optional[Order] = None

    @property
    def can_proceed_to_payment(self) -> bool:
        return (
            not self.basket.is_empty
            and self.current_step >= CheckoutStep.PAYMENT
            and (self.selected_payment_method is not None or self.billing_address is not None)
        )

    @property
    def requires_payment(self) -> bool:
        return self.basket.charge_total > 0

    @property
    def awaiting_authentication(self) -> bool:
        return self.client_secret is not None

    @property
    def step_title(self) -> str:
        try:
            return CheckoutStep(self.current_step).title
        except ValueError:
            return "Checkout"

    @property
    def progress_percent(self) -> float:
        if self.current_step >= CheckoutStep.COMPLETE:
            return 100.0
        return self.current_step * 25.0

    def find_payment_method(self, payment_method_id: str) -> Optional[PaymentMethod]:
        for method in self.available_payment_methods:
            if method.id == payment_method_id:
                return method
        return None

    def evolve(self, **changes: Any) -> "CheckoutSession":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


def default_payment_method(methods: Tuple[PaymentMethod, ...]) -> Optional[PaymentMethod]:
    """Pick the default-flagged method, else the first, else None."""
    for method in methods:
        if method.is_default:
            return method
    return methods[0] if methods else None


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
