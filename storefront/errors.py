"""Error taxonomy for basket and checkout orchestration.

Three families:
- ValidationError: rejected locally, never reaches the network.
- GatewayError: transport failure from an external collaborator.
- DomainError: a refusal from the remote authority, carrying its own
  machine-readable code and human-readable message.

User abandonment of a step-up challenge is not an error and has no class here.
"""
import enum
from typing import Optional


class ErrorCode:
    """Error codes produced by the client itself."""

    EMPTY_BASKET = "EMPTY_BASKET"
    STALE_CLIENT_SECRET = "STALE_CLIENT_SECRET"
    INVALID_CHECKOUT_STATE = "INVALID_CHECKOUT_STATE"
    NO_PAYMENT_METHOD = "NO_PAYMENT_METHOD"
    PAYMENT_METHOD_UPDATE_FAILED = "PAYMENT_METHOD_UPDATE_FAILED"
    NO_ORDER = "NO_ORDER"
    GATEWAY_ERROR = "GATEWAY_ERROR"
    BASKET_BUSY = "BASKET_BUSY"
    ITEM_UNAVAILABLE = "ITEM_UNAVAILABLE"
    PROMO_CODE_REJECTED = "PROMO_CODE_REJECTED"
    BASKET_OPERATION_FAILED = "BASKET_OPERATION_FAILED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    CONFIRMATION_FAILED = "CONFIRMATION_FAILED"


class PaymentErrorCode(enum.Enum):
    """Distinct card and payment failure conditions signalled by the facade."""

    CARD_DECLINED = "card_declined"
    INVALID_NUMBER = "invalid_number"
    INVALID_EXPIRY = "invalid_expiry"
    INVALID_CVC = "invalid_cvc"
    EXPIRED_CARD = "expired_card"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    PROCESSING_ERROR = "processing_error"
    AUTHENTICATION_FAILED = "authentication_failed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class StorefrontError(Exception):
    """Base class for all storefront errors."""

    default_code: Optional[str] = None

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message or "")
        self.message = message
        self.code = code or self.default_code

    def __str__(self) -> str:
        if self.code and self.message:
            return f"{self.message} ({self.code})"
        return self.message or self.code or self.__class__.__name__


class ValidationError(StorefrontError):
    """Request rejected locally before any remote call."""


class EmptyBasketError(ValidationError):
    default_code = ErrorCode.EMPTY_BASKET

    def __init__(self, message: str = "Basket is empty", code: Optional[str] = None):
        super().__init__(message, code)


class StaleClientSecretError(ValidationError):
    """Authentication requested for a secret the session is not waiting on."""

    default_code = ErrorCode.STALE_CLIENT_SECRET

    def __init__(
        self,
        message: str = "Client secret does not match the pending authentication",
        code: Optional[str] = None,
    ):
        super().__init__(message, code)


class InvalidCheckoutStateError(ValidationError):
    default_code = ErrorCode.INVALID_CHECKOUT_STATE


class GatewayError(StorefrontError):
    """Network or transport failure talking to a remote collaborator."""

    default_code = ErrorCode.GATEWAY_ERROR


class DomainError(StorefrontError):
    """Refusal from the remote authority; message and code are passed through."""


class ItemUnavailableError(DomainError):
    default_code = ErrorCode.ITEM_UNAVAILABLE


class PromoCodeRejectedError(DomainError):
    default_code = ErrorCode.PROMO_CODE_REJECTED


class PaymentError(DomainError):
    """Failure reported by the payment processor.

    Attributes:
        payment_code: Structured reason (PaymentErrorCode)
        details: Raw processor detail, for logs only
        is_user_cancellation: True when the user abandoned the flow
    """

    def __init__(
        self,
        message: Optional[str] = None,
        payment_code: PaymentErrorCode = PaymentErrorCode.UNKNOWN,
        details: Optional[str] = None,
        is_user_cancellation: bool = False,
    ):
        super().__init__(message, payment_code.value)
        self.payment_code = payment_code
        self.details = details
        self.is_user_cancellation = is_user_cancellation
