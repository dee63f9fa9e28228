"""Basket gateway backed by the GraphQL API."""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from storefront.errors import ErrorCode, ValidationError
from storefront.gateways.graphql_client import GraphQLClient, GraphQLError, GraphQLResponse
from storefront.gateways.interface import IBasketGateway
from storefront.models.basket import Basket, BasketOperationResult

logger = logging.getLogger(__name__)

BASKET_FIELDS = """
    id
    items {
      id
      course { id name type }
      price
      discountValue
      promoCodeDiscountValue
      totalPrice
      isTaster
      sessionId
      addedAt
    }
    creditItems { id description value code validUntil }
    feeItems { id description value optional }
    discountValue
    discountTotal
    promoCodeDiscountValue
    creditTotal
    subTotal
    tax
    total
    chargeTotal
    payLater
    sessionId
    userId
    createdAt
    updatedAt
    expiresAt
"""

OPERATION_PAYLOAD = f"""
    basket {{ {BASKET_FIELDS} }}
    errors {{ path message }}
"""

GET_BASKET = f"query GetBasket {{ getBasket {{ {OPERATION_PAYLOAD} }} }}"

INIT_BASKET = f"mutation InitBasket {{ initBasket {{ {OPERATION_PAYLOAD} }} }}"

ADD_ITEM = f"""
mutation AddItem(
  $itemId: Float!
  $itemType: String!
  $payDeposit: Boolean
  $assignToUserId: String
  $chargeFromDate: Float
) {{
  addItem(
    itemId: $itemId
    itemType: $itemType
    payDeposit: $payDeposit
    assignToUserId: $assignToUserId
    chargeFromDate: $chargeFromDate
  ) {{ {OPERATION_PAYLOAD} }}
}}
"""

REMOVE_ITEM = f"""
mutation RemoveItem($itemId: Float!, $itemType: String!) {{
  removeItem(itemId: $itemId, itemType: $itemType) {{ {OPERATION_PAYLOAD} }}
}}
"""

USE_CREDIT = f"""
mutation UseCreditForBasket($useCredit: Boolean!) {{
  useCreditForBasket(useCredit: $useCredit) {{ {OPERATION_PAYLOAD} }}
}}
"""

APPLY_PROMO_CODE = f"""
mutation ApplyPromoCode($code: String!) {{
  applyPromoCode(code: $code) {{ {BASKET_FIELDS} }}
}}
"""

REMOVE_PROMO_CODE = f"mutation RemovePromoCode {{ removePromoCode {{ {BASKET_FIELDS} }} }}"

DESTROY_BASKET = "mutation DestroyBasket { destroyBasket }"


def _item_id_variable(item_id: str) -> float:
    """The API types item ids as Float."""
    try:
        return float(item_id)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid item id: {item_id!r}", code="INVALID_ITEM_ID")


def _error_path(error: Dict[str, Any]) -> Optional[str]:
    path = error.get("path")
    if isinstance(path, (list, tuple)):
        return ".".join(str(p) for p in path)
    return path


class GraphQLBasketGateway(IBasketGateway):
    """IBasketGateway over GraphQL. Blocking HTTP runs in a worker thread."""

    def __init__(self, client: GraphQLClient):
        self._client = client

    async def _execute(
        self, query: str, operation_name: str, variables: Optional[Dict[str, Any]] = None
    ) -> GraphQLResponse:
        return await asyncio.to_thread(self._client.execute, query, variables, operation_name)

    def _operation_result(
        self, response: GraphQLResponse, field_name: str
    ) -> BasketOperationResult:
        """Map a ``{basket, errors}`` payload onto a BasketOperationResult."""
        if response.has_errors:
            return BasketOperationResult(
                success=False,
                message=response.first_error_message,
                error_code=response.first_error_code or ErrorCode.BASKET_OPERATION_FAILED,
            )

        payload = response.data.get(field_name)
        if payload is None:
            raise GraphQLError(f"Invalid response from server: missing {field_name}")

        basket_data = payload.get("basket")
        basket = Basket.from_dict(basket_data) if basket_data else None
        errors = payload.get("errors") or []
        if errors:
            return BasketOperationResult(
                success=False,
                basket=basket,
                message=errors[0].get("message"),
                error_code=_error_path(errors[0]),
            )
        if basket is None:
            raise GraphQLError(f"Invalid response from server: {field_name} returned no basket")
        return BasketOperationResult(success=True, basket=basket)

    def _promo_result(self, response: GraphQLResponse, field_name: str) -> BasketOperationResult:
        """Promo mutations return the basket itself; rejections arrive as GraphQL errors."""
        if response.has_errors:
            return BasketOperationResult(
                success=False,
                message=response.first_error_message,
                error_code=response.first_error_code or ErrorCode.PROMO_CODE_REJECTED,
            )
        basket_data = response.data.get(field_name)
        if not basket_data:
            raise GraphQLError(f"Invalid response from server: missing {field_name}")
        return BasketOperationResult(success=True, basket=Basket.from_dict(basket_data))

    async def get_current_basket(self) -> Optional[Basket]:
        response = await self._execute(GET_BASKET, "GetBasket")
        if response.has_errors:
            raise GraphQLError(f"Failed to fetch basket: {response.first_error_message}")
        payload = response.data.get("getBasket") or {}
        basket_data = payload.get("basket")
        if not basket_data:
            logger.debug("No current basket on server")
            return None
        return Basket.from_dict(basket_data)

    async def create_basket(self) -> Basket:
        response = await self._execute(INIT_BASKET, "InitBasket")
        if response.has_errors:
            raise GraphQLError(f"Failed to initialize basket: {response.first_error_message}")
        payload = response.data.get("initBasket") or {}
        if not payload.get("basket"):
            raise GraphQLError("Invalid response from server: initBasket returned no basket")
        basket = Basket.from_dict(payload["basket"])
        logger.info(f"Initialized basket {basket.id}")
        return basket

    async def add_item(
        self,
        item_id: str,
        item_type: str,
        pay_deposit: Optional[bool] = None,
        assign_to_user_id: Optional[str] = None,
        charge_from_date: Optional[datetime] = None,
    ) -> BasketOperationResult:
        variables = {
            "itemId": _item_id_variable(item_id),
            "itemType": item_type,
            "payDeposit": pay_deposit,
            "assignToUserId": assign_to_user_id,
            "chargeFromDate": (
                charge_from_date.timestamp() * 1000 if charge_from_date else None
            ),
        }
        response = await self._execute(ADD_ITEM, "AddItem", variables)
        return self._operation_result(response, "addItem")

    async def remove_item(self, item_id: str, item_type: str) -> BasketOperationResult:
        variables = {"itemId": _item_id_variable(item_id), "itemType": item_type}
        response = await self._execute(REMOVE_ITEM, "RemoveItem", variables)
        return self._operation_result(response, "removeItem")

    async def apply_promo_code(self, code: str) -> BasketOperationResult:
        response = await self._execute(APPLY_PROMO_CODE, "ApplyPromoCode", {"code": code})
        return self._promo_result(response, "applyPromoCode")

    async def remove_promo_code(self) -> BasketOperationResult:
        response = await self._execute(REMOVE_PROMO_CODE, "RemovePromoCode")
        return self._promo_result(response, "removePromoCode")

    async def set_credit_usage(self, use_credit: bool) -> BasketOperationResult:
        response = await self._execute(USE_CREDIT, "UseCreditForBasket", {"useCredit": use_credit})
        return self._operation_result(response, "useCreditForBasket")

    async def destroy_basket(self) -> bool:
        response = await self._execute(DESTROY_BASKET, "DestroyBasket")
        if response.has_errors:
            raise GraphQLError(f"Failed to destroy basket: {response.first_error_message}")
        return bool(response.data.get("destroyBasket"))
