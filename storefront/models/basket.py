"""Basket domain models.

The basket is owned by the remote basket authority. These classes are
immutable snapshots of what it last returned; totals are never recomputed
on the client.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from storefront.models.enums import ItemType
from storefront.utils.money import (
    format_timestamp,
    minor_units,
    optional_minor_units,
    parse_timestamp,
)


@dataclass(frozen=True)
class CourseRef:
    """Reference to the offering a basket item books."""

    id: str
    name: str = ""
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CourseRef":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            type=data.get("type"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.type}


@dataclass(frozen=True)
class BasketItem:
    """One bookable unit in the basket."""

    id: str
    course: CourseRef
    price: int
    total_price: int
    discount_value: Optional[int] = None
    promo_code_discount_value: Optional[int] = None
    is_taster: bool = False
    session_id: Optional[str] = None
    added_at: Optional[datetime] = None

    @property
    def total_discount(self) -> int:
        return (self.discount_value or 0) + (self.promo_code_discount_value or 0)

    @property
    def has_discount(self) -> bool:
        return self.total_discount > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BasketItem":
        course = data.get("course") or {"id": data.get("courseId", data["id"])}
        return cls(
            id=str(data["id"]),
            course=CourseRef.from_dict(course),
            price=minor_units(data.get("price"), "price"),
            total_price=minor_units(data.get("totalPrice"), "totalPrice"),
            discount_value=optional_minor_units(data.get("discountValue"), "discountValue"),
            promo_code_discount_value=optional_minor_units(
                data.get("promoCodeDiscountValue"), "promoCodeDiscountValue"
            ),
            is_taster=bool(data.get("isTaster", False)),
            session_id=data.get("sessionId"),
            added_at=parse_timestamp(data.get("addedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "course": self.course.to_dict(),
            "price": self.price,
            "totalPrice": self.total_price,
            "discountValue": self.discount_value,
            "promoCodeDiscountValue": self.promo_code_discount_value,
            "isTaster": self.is_taster,
            "sessionId": self.session_id,
            "addedAt": format_timestamp(self.added_at),
        }


@dataclass(frozen=True)
class CreditItem:
    """Account credit applied to the basket."""

    id: str
    description: str
    value: int
    code: Optional[str] = None
    valid_until: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreditItem":
        return cls(
            id=str(data["id"]),
            description=data.get("description") or "",
            value=minor_units(data.get("value"), "value"),
            code=data.get("code"),
            valid_until=parse_timestamp(data.get("validUntil")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "value": self.value,
            "code": self.code,
            "validUntil": format_timestamp(self.valid_until),
        }


@dataclass(frozen=True)
class FeeItem:
    """Additional charge such as a registration fee."""

    id: str
    description: str
    value: int
    optional: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeeItem":
        return cls(
            id=str(data["id"]),
            description=data.get("description") or "",
            value=minor_units(data.get("value"), "value"),
            optional=bool(data.get("optional", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "value": self.value,
            "optional": self.optional,
        }


@dataclass(frozen=True)
class Basket:
    """
    Server-authoritative basket snapshot.

    All amounts are integer minor units. The authority guarantees:
        total == sub_total - discount_total - promo_code_discount_value
                 - credit_total + tax
        total == charge_total + pay_later
    """

    id: str
    items: Tuple[BasketItem, ...] = ()
    credit_items: Tuple[CreditItem, ...] = ()
    fee_items: Tuple[FeeItem, ...] = ()
    discount_value: int = 0
    discount_total: int = 0
    promo_code_discount_value: int = 0
    credit_total: int = 0
    sub_total: int = 0
    tax: int = 0
    total: int = 0
    charge_total: int = 0
    pay_later: int = 0
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return len(self.items) == 0

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def has_discounts(self) -> bool:
        return self.discount_total > 0 or self.promo_code_discount_value > 0

    @property
    def has_credits(self) -> bool:
        return self.credit_total > 0

    @property
    def has_pay_later(self) -> bool:
        """True when part of the total is deferred (deposit payments)."""
        return self.pay_later > 0

    @property
    def taster_items(self) -> List[BasketItem]:
        return [item for item in self.items if item.is_taster]

    @property
    def course_items(self) -> List[BasketItem]:
        return [item for item in self.items if not item.is_taster]

    @property
    def total_savings(self) -> int:
        return self.discount_total + self.promo_code_discount_value + self.credit_total

    @property
    def totals_consistent(self) -> bool:
        """Check both total invariants against the server-supplied values."""
        expected = (
            self.sub_total
            - self.discount_total
            - self.promo_code_discount_value
            - self.credit_total
            + self.tax
        )
        return self.total == expected and self.total == self.charge_total + self.pay_later

    def find_item(self, item_id: str) -> Optional[BasketItem]:
        """Find a basket item by its own id or by the id of the booked course."""
        for item in self.items:
            if item.id == str(item_id) or item.course.id == str(item_id):
                return item
        return None

    def contains_item(self, item_id: str, item_type: Optional[str] = None) -> bool:
        """
        Check whether an offering is already in the basket.

        A taster booking and a full booking of the same course are distinct.

        Args:
            item_id: Course id
            item_type: Optional item type; "taster" matches taster items only,
                any other type matches full bookings only
        """
        for item in self.items:
            if item.course.id != str(item_id):
                continue
            if item_type is None:
                return True
            if item_type == ItemType.TASTER.value:
                if item.is_taster:
                    return True
            elif not item.is_taster:
                return True
        return False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Basket":
        """Build a basket from a camelCase wire payload."""
        return cls(
            id=str(data["id"]),
            items=tuple(BasketItem.from_dict(i) for i in data.get("items") or []),
            credit_items=tuple(
                CreditItem.from_dict(c) for c in data.get("creditItems") or []
            ),
            fee_items=tuple(FeeItem.from_dict(f) for f in data.get("feeItems") or []),
            discount_value=minor_units(data.get("discountValue"), "discountValue"),
            discount_total=minor_units(data.get("discountTotal"), "discountTotal"),
            promo_code_discount_value=minor_units(
                data.get("promoCodeDiscountValue"), "promoCodeDiscountValue"
            ),
            credit_total=minor_units(data.get("creditTotal"), "creditTotal"),
            sub_total=minor_units(data.get("subTotal"), "subTotal"),
            tax=minor_units(data.get("tax"), "tax"),
            total=minor_units(data.get("total"), "total"),
            charge_total=minor_units(data.get("chargeTotal"), "chargeTotal"),
            pay_later=minor_units(data.get("payLater"), "payLater"),
            session_id=data.get("sessionId"),
            user_id=data.get("userId"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            expires_at=parse_timestamp(data.get("expiresAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "items": [i.to_dict() for i in self.items],
            "creditItems": [c.to_dict() for c in self.credit_items],
            "feeItems": [f.to_dict() for f in self.fee_items],
            "discountValue": self.discount_value,
            "discountTotal": self.discount_total,
            "promoCodeDiscountValue": self.promo_code_discount_value,
            "creditTotal": self.credit_total,
            "subTotal": self.sub_total,
            "tax": self.tax,
            "total": self.total,
            "chargeTotal": self.charge_total,
            "payLater": self.pay_later,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "expiresAt": format_timestamp(self.expires_at),
        }


@dataclass(frozen=True)
class BasketOperationResult:
    """Outcome of a basket mutation, always carrying the full resulting basket."""

    success: bool
    basket: Optional[Basket] = None
    message: Optional[str] = None
    error_code: Optional[str] = None

