"""Order submission service backed by the GraphQL API."""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from storefront.errors import DomainError
from storefront.gateways.graphql_client import GraphQLClient, GraphQLError, GraphQLResponse
from storefront.gateways.interface import IOrderSubmissionService
from storefront.models.basket import Basket
from storefront.models.checkout import Address, Order, PaymentMethod, PlaceOrderResult
from storefront.models.enums import NextAction

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = "id name line1 line2 city county postCode country countryCode"

PAYMENT_METHOD_FIELDS = f"""
    id type last4 brand expiryMonth expiryYear isDefault
    billingAddress {{ {ADDRESS_FIELDS} }}
    createdAt
"""

ORDER_FIELDS = f"""
    id
    userId
    items {{
      id itemId itemType itemName price totalPrice discountValue
      promoCodeDiscountValue assignToUserId assignToUserName
      chargeFromDate extraInfo createdAt
    }}
    subTotal discountTotal promoCodeDiscountValue creditTotal tax total
    chargeTotal payLater status paymentMethodId paymentMethodType
    paymentIntentId paymentTransactionStatus
    billingAddress {{ {ADDRESS_FIELDS} }}
    notes createdAt updatedAt
"""

GET_PAYMENT_METHODS = f"""
query GetPaymentMethods {{
  getPaymentMethods {{ paymentMethods {{ {PAYMENT_METHOD_FIELDS} }} }}
}}
"""

CREATE_PAYMENT_METHOD = f"""
mutation CreatePaymentMethod(
  $stripePaymentMethodId: String!
  $billingAddress: AddressInput!
  $setAsDefault: Boolean
) {{
  createPaymentMethod(
    stripePaymentMethodId: $stripePaymentMethodId
    billingAddress: $billingAddress
    setAsDefault: $setAsDefault
  ) {{ {PAYMENT_METHOD_FIELDS} }}
}}
"""

PLACE_ORDER = f"""
mutation PlaceOrder($data: PlaceOrderInput!) {{
  placeOrder(data: $data) {{
    order {{ {ORDER_FIELDS} }}
    nextAction {{ clientSecret type }}
    paymentTransactionStatus
    errors {{ field message }}
  }}
}}
"""

UPDATE_PAYMENT_INTENT = """
mutation UpdatePaymentIntent($id: String!) {
  updatePaymentIntent(id: $id)
}
"""

GET_ORDER = f"""
query GetOrder($orderId: String!) {{
  getOrder(orderId: $orderId) {{ {ORDER_FIELDS} }}
}}
"""

GET_ORDER_HISTORY = f"""
query GetOrderHistory($limit: Int, $offset: Int) {{
  getOrderHistory(limit: $limit, offset: $offset) {{ orders {{ {ORDER_FIELDS} }} }}
}}
"""

DELETE_PAYMENT_METHOD = """
mutation DeletePaymentMethod($paymentMethodId: String!) {
  deletePaymentMethod(paymentMethodId: $paymentMethodId)
}
"""

SET_DEFAULT_PAYMENT_METHOD = """
mutation SetDefaultPaymentMethod($paymentMethodId: String!) {
  setDefaultPaymentMethod(paymentMethodId: $paymentMethodId)
}
"""


class OrderErrorCode:
    """Codes for order submissions the server did not accept."""

    NO_DATA = "NO_DATA"
    ORDER_ERROR = "ORDER_ERROR"
    NO_ORDER = "NO_ORDER"
    PAYMENT_METHOD_ERROR = "PAYMENT_METHOD_ERROR"


class GraphQLOrderService(IOrderSubmissionService):
    """IOrderSubmissionService over GraphQL."""

    def __init__(self, client: GraphQLClient, currency: str = "gbp"):
        self._client = client
        self._currency = currency

    async def _execute(
        self, query: str, operation_name: str, variables: Optional[Dict[str, Any]] = None
    ) -> GraphQLResponse:
        return await asyncio.to_thread(self._client.execute, query, variables, operation_name)

    async def get_payment_methods(self) -> List[PaymentMethod]:
        response = await self._execute(GET_PAYMENT_METHODS, "GetPaymentMethods")
        if response.has_errors:
            raise GraphQLError(f"Failed to fetch payment methods: {response.first_error_message}")
        payload = response.data.get("getPaymentMethods")
        if payload is None:
            logger.warning("No payment methods data returned")
            return []
        return [PaymentMethod.from_dict(m) for m in payload.get("paymentMethods") or []]

    async def create_payment_method(
        self, token: str, billing_address: Address, set_default: bool = False
    ) -> PaymentMethod:
        variables = {
            "stripePaymentMethodId": token,
            "billingAddress": billing_address.to_dict(),
            "setAsDefault": set_default,
        }
        response = await self._execute(CREATE_PAYMENT_METHOD, "CreatePaymentMethod", variables)
        if response.has_errors:
            raise DomainError(
                response.first_error_message or "Failed to create payment method",
                response.first_error_code or OrderErrorCode.PAYMENT_METHOD_ERROR,
            )
        data = response.data.get("createPaymentMethod")
        if not data:
            raise GraphQLError("No payment method data returned")
        method = PaymentMethod.from_dict(data)
        logger.info(f"Stored payment method {method.id}")
        return method

    async def place_order(
        self,
        basket: Basket,
        payment_method_id: Optional[str],
        payment_method_type: str,
        billing_address: Optional[Address] = None,
        line_item_info: Optional[Dict[str, Any]] = None,
    ) -> PlaceOrderResult:
        data: Dict[str, Any] = {
            "amount": basket.charge_total,
            "currency": self._currency,
            "paymentMethod": payment_method_id,
            "paymentMethodType": payment_method_type,
            "lineItemInfo": line_item_info or {},
        }
        if billing_address is not None:
            data["billingAddress"] = billing_address.to_dict()

        response = await self._execute(PLACE_ORDER, "PlaceOrder", {"data": data})
        if response.has_errors:
            return PlaceOrderResult(
                success=False,
                error=response.first_error_message or "Failed to place order",
                error_code=response.first_error_code or OrderErrorCode.ORDER_ERROR,
            )

        payload = response.data.get("placeOrder")
        if payload is None:
            return PlaceOrderResult(
                success=False, error="No order data returned", error_code=OrderErrorCode.NO_DATA
            )

        errors = payload.get("errors") or []
        if errors:
            return PlaceOrderResult(
                success=False,
                error=errors[0].get("message") or "Unknown error",
                error_code=OrderErrorCode.ORDER_ERROR,
            )

        order_data = payload.get("order")
        if not order_data:
            return PlaceOrderResult(
                success=False, error="No order created", error_code=OrderErrorCode.NO_ORDER
            )

        order = Order.from_dict(order_data)
        next_action = payload.get("nextAction") or {}
        result = PlaceOrderResult(
            success=True,
            order=order,
            client_secret=next_action.get("clientSecret"),
            next_action=next_action.get("type") or NextAction.NONE.value,
            payment_transaction_status=payload.get("paymentTransactionStatus"),
        )
        logger.info(f"Placed order {order.id} (next action: {result.next_action})")
        return result

    async def confirm_authenticated_payment(self, payment_intent_id: str) -> bool:
        response = await self._execute(
            UPDATE_PAYMENT_INTENT, "UpdatePaymentIntent", {"id": payment_intent_id}
        )
        if response.has_errors:
            logger.error(
                f"Error updating payment intent {payment_intent_id}: {response.first_error_message}"
            )
            return False
        return response.data.get("updatePaymentIntent") is True

    async def get_order(self, order_id: str) -> Optional[Order]:
        response = await self._execute(GET_ORDER, "GetOrder", {"orderId": order_id})
        if response.has_errors:
            logger.error(f"Error fetching order {order_id}: {response.first_error_message}")
            return None
        data = response.data.get("getOrder")
        return Order.from_dict(data) if data else None

    async def get_order_history(self, limit: int = 20, offset: int = 0) -> List[Order]:
        response = await self._execute(
            GET_ORDER_HISTORY, "GetOrderHistory", {"limit": limit, "offset": offset}
        )
        if response.has_errors:
            logger.error(f"Error fetching order history: {response.first_error_message}")
            return []
        payload = response.data.get("getOrderHistory")
        if payload is None:
            return []
        return [Order.from_dict(o) for o in payload.get("orders") or []]

    async def delete_payment_method(self, payment_method_id: str) -> bool:
        response = await self._execute(
            DELETE_PAYMENT_METHOD, "DeletePaymentMethod", {"paymentMethodId": payment_method_id}
        )
        if response.has_errors:
            logger.error(
                f"Error deleting payment method {payment_method_id}: {response.first_error_message}"
            )
            return False
        return response.data.get("deletePaymentMethod") is True

    async def set_default_payment_method(self, payment_method_id: str) -> bool:
        response = await self._execute(
            SET_DEFAULT_PAYMENT_METHOD,
            "SetDefaultPaymentMethod",
            {"paymentMethodId": payment_method_id},
        )
        if response.has_errors:
            logger.error(
                f"Error setting default payment method {payment_method_id}: "
                f"{response.first_error_message}"
            )
            return False
        return response.data.get("setDefaultPaymentMethod") is True
