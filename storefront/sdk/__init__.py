"""Payment SDK facade contract and adapter base."""
from storefront.sdk.interface import (
    IPaymentGatewayFacade,
    PaymentIntentResult,
    PaymentIntentStatus,
    SDKConfig,
)
from storefront.sdk.base import BaseSDKAdapter

__all__ = [
    "IPaymentGatewayFacade",
    "PaymentIntentResult",
    "PaymentIntentStatus",
    "SDKConfig",
    "BaseSDKAdapter",
]
