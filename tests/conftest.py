"""Shared fixtures for storefront tests."""
from unittest.mock import AsyncMock

import pytest

from storefront.gateways.interface import IBasketGateway, IOrderSubmissionService
from storefront.models.basket import Basket, BasketItem, BasketOperationResult, CourseRef
from storefront.models.checkout import Address, Order, PaymentMethod, PlaceOrderResult
from storefront.sdk.interface import IPaymentGatewayFacade


@pytest.fixture
def make_basket():
    """Factory for baskets whose totals satisfy the server invariants."""

    def _make(
        basket_id="basket-1",
        items=(("101", 5000),),
        discount_total=0,
        promo_code_discount_value=0,
        credit_total=0,
        tax=0,
        pay_later=0,
        tasters=(),
    ):
        basket_items = []
        for course_id, price in items:
            basket_items.append(
                BasketItem(
                    id=f"item-{course_id}",
                    course=CourseRef(id=course_id, name=f"Course {course_id}"),
                    price=price,
                    total_price=price,
                    is_taster=course_id in tasters,
                )
            )
        sub_total = sum(price for _, price in items)
        total = sub_total - discount_total - promo_code_discount_value - credit_total + tax
        return Basket(
            id=basket_id,
            items=tuple(basket_items),
            discount_total=discount_total,
            promo_code_discount_value=promo_code_discount_value,
            credit_total=credit_total,
            sub_total=sub_total,
            tax=tax,
            total=total,
            charge_total=total - pay_later,
            pay_later=pay_later,
        )

    return _make


@pytest.fixture
def ok_result():
    def _ok(basket):
        return BasketOperationResult(success=True, basket=basket)

    return _ok


@pytest.fixture
def address():
    return Address(
        name="Ada Lovelace",
        line1="1 Dance Street",
        city="London",
        post_code="N1 1AA",
        country="United Kingdom",
    )


@pytest.fixture
def card_method(address):
    return PaymentMethod(
        id="pm_card_1",
        brand="visa",
        last4="4242",
        expiry_month="12",
        expiry_year="2030",
        is_default=False,
        billing_address=address,
    )


@pytest.fixture
def default_method():
    return PaymentMethod(id="pm_card_default", brand="mastercard", last4="4444", is_default=True)


@pytest.fixture
def make_order():
    def _make(order_id="order-1", status="success", total=5000, payment_intent_id="pi_123"):
        return Order(
            id=order_id,
            status=status,
            total=total,
            charge_total=total,
            sub_total=total,
            payment_intent_id=payment_intent_id,
        )

    return _make


@pytest.fixture
def basket_gateway():
    return AsyncMock(spec=IBasketGateway)


@pytest.fixture
def order_service(card_method, default_method):
    service = AsyncMock(spec=IOrderSubmissionService)
    service.get_payment_methods.return_value = [card_method, default_method]
    return service


@pytest.fixture
def payment_facade():
    return AsyncMock(spec=IPaymentGatewayFacade)


@pytest.fixture
def placed(make_order):
    """PlaceOrderResult factory."""

    def _placed(next_action="none", client_secret=None, order=None, success=True, **kwargs):
        return PlaceOrderResult(
            success=success,
            order=order if order is not None else (make_order(status="payment_pending") if success else None),
            client_secret=client_secret,
            next_action=next_action,
            **kwargs,
        )

    return _placed
