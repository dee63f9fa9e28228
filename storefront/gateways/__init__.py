"""Gateways to the remote basket authority and order service."""
from storefront.gateways.interface import IBasketGateway, IOrderSubmissionService
from storefront.gateways.graphql_client import GraphQLClient, GraphQLError, GraphQLResponse
from storefront.gateways.graphql_basket_gateway import GraphQLBasketGateway
from storefront.gateways.graphql_order_service import GraphQLOrderService, OrderErrorCode

__all__ = [
    "IBasketGateway",
    "IOrderSubmissionService",
    "GraphQLClient",
    "GraphQLError",
    "GraphQLResponse",
    "GraphQLBasketGateway",
    "GraphQLOrderService",
    "OrderErrorCode",
]
