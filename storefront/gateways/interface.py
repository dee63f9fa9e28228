"""Contracts for the remote basket authority and order service."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from storefront.models.basket import Basket, BasketOperationResult
from storefront.models.checkout import Address, Order, PaymentMethod, PlaceOrderResult


class IBasketGateway(ABC):
    """
    Remote basket authority.

    Every mutation returns the full resulting basket; the client never
    patches a basket locally. Transport failures raise GatewayError.
    """

    @abstractmethod
    async def get_current_basket(self) -> Optional[Basket]:
        """Return the caller's basket, or None if there is none."""

    @abstractmethod
    async def create_basket(self) -> Basket:
        """Create and return a fresh empty basket."""

    @abstractmethod
    async def add_item(
        self,
        item_id: str,
        item_type: str,
        pay_deposit: Optional[bool] = None,
        assign_to_user_id: Optional[str] = None,
        charge_from_date: Optional[datetime] = None,
    ) -> BasketOperationResult:
        """Add a bookable item."""

    @abstractmethod
    async def remove_item(self, item_id: str, item_type: str) -> BasketOperationResult:
        """Remove an item. Removing an absent item is not an error."""

    @abstractmethod
    async def apply_promo_code(self, code: str) -> BasketOperationResult:
        """Apply a promo code; the authority decides validity."""

    @abstractmethod
    async def remove_promo_code(self) -> BasketOperationResult:
        """Remove every applied promo code."""

    @abstractmethod
    async def set_credit_usage(self, use_credit: bool) -> BasketOperationResult:
        """Turn account credit on or off for the basket."""

    @abstractmethod
    async def destroy_basket(self) -> bool:
        """Destroy the current basket."""


class IOrderSubmissionService(ABC):
    """Remote order service: payment methods, orders and confirmations."""

    @abstractmethod
    async def get_payment_methods(self) -> List[PaymentMethod]:
        """List stored payment methods for the current user."""

    @abstractmethod
    async def create_payment_method(
        self, token: str, billing_address: Address, set_default: bool = False
    ) -> PaymentMethod:
        """Persist a processor token as a stored payment method."""

    @abstractmethod
    async def place_order(
        self,
        basket: Basket,
        payment_method_id: Optional[str],
        payment_method_type: str,
        billing_address: Optional[Address] = None,
        line_item_info: Optional[Dict[str, Any]] = None,
    ) -> PlaceOrderResult:
        """Submit the basket as an order and attempt the charge."""

    @abstractmethod
    async def confirm_authenticated_payment(self, payment_intent_id: str) -> bool:
        """Tell the server a step-up challenge has been passed."""

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Order]:
        """Fetch an order by id."""

    @abstractmethod
    async def delete_payment_method(self, payment_method_id: str) -> bool:
        """Remove a stored payment method. False when the server refused."""

    @abstractmethod
    async def set_default_payment_method(self, payment_method_id: str) -> bool:
        """Make a stored payment method the default. False when the server refused."""

    @abstractmethod
    async def get_order_history(self, limit: int = 20, offset: int = 0) -> List[Order]:
        """Page through the current user's past orders."""
