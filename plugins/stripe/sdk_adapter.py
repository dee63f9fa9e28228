"""Stripe SDK adapter implementing IPaymentGatewayFacade."""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from storefront.errors import PaymentError, PaymentErrorCode
from storefront.models.checkout import BillingDetails, CardDetails, PaymentMethodToken
from storefront.sdk.base import BaseSDKAdapter
from storefront.sdk.interface import PaymentIntentResult, PaymentIntentStatus, SDKConfig

logger = logging.getLogger(__name__)

DEFAULT_RETURN_URL = "storefront://stripe-redirect"

ChallengePresenter = Callable[[str], Awaitable[bool]]

# Stripe error / decline codes -> PaymentErrorCode
STRIPE_ERROR_CODES = {
    "card_declined": PaymentErrorCode.CARD_DECLINED,
    "invalid_number": PaymentErrorCode.INVALID_NUMBER,
    "incorrect_number": PaymentErrorCode.INVALID_NUMBER,
    "invalid_expiry_month": PaymentErrorCode.INVALID_EXPIRY,
    "invalid_expiry_year": PaymentErrorCode.INVALID_EXPIRY,
    "invalid_cvc": PaymentErrorCode.INVALID_CVC,
    "incorrect_cvc": PaymentErrorCode.INVALID_CVC,
    "expired_card": PaymentErrorCode.EXPIRED_CARD,
    "insufficient_funds": PaymentErrorCode.INSUFFICIENT_FUNDS,
    "processing_error": PaymentErrorCode.PROCESSING_ERROR,
    "payment_intent_authentication_failure": PaymentErrorCode.AUTHENTICATION_FAILED,
}

INTENT_STATUSES = {
    "succeeded": PaymentIntentStatus.SUCCEEDED,
    "processing": PaymentIntentStatus.SUCCEEDED,
    "requires_capture": PaymentIntentStatus.SUCCEEDED,
    "requires_action": PaymentIntentStatus.REQUIRES_ACTION,
    "requires_confirmation": PaymentIntentStatus.REQUIRES_ACTION,
    "canceled": PaymentIntentStatus.CANCELLED,
    "requires_payment_method": PaymentIntentStatus.FAILED,
}


def payment_intent_id_from_secret(client_secret: str) -> str:
    """Client secrets look like ``pi_123_secret_abc``; the intent id is the prefix."""
    intent_id, sep, _ = (client_secret or "").partition("_secret_")
    if not sep or not intent_id:
        raise PaymentError("Malformed client secret", PaymentErrorCode.UNKNOWN)
    return intent_id


class StripeSDKAdapter(BaseSDKAdapter):
    """Stripe adapter for the client side of a payment.

    Works with the publishable key and per-intent client secrets only.
    The issuer's 3-D Secure page is opened by ``challenge_presenter``,
    which returns False when the user closes it.
    """

    def __init__(
        self,
        config: SDKConfig,
        challenge_presenter: Optional[ChallengePresenter] = None,
        return_url: str = DEFAULT_RETURN_URL,
    ):
        super().__init__(config)
        import stripe
        self._stripe = stripe
        self._challenge_presenter = challenge_presenter
        self._return_url = return_url

    @property
    def provider_name(self) -> str:
        return "stripe"

    def _error_code(self, error: Exception) -> PaymentErrorCode:
        for code in (getattr(error, "decline_code", None), getattr(error, "code", None)):
            if code in STRIPE_ERROR_CODES:
                return STRIPE_ERROR_CODES[code]
        return PaymentErrorCode.UNKNOWN

    def _payment_error(self, error: Exception) -> PaymentError:
        message = getattr(error, "user_message", None) or str(error)
        return PaymentError(
            message,
            payment_code=self._error_code(error),
            details=getattr(error, "code", None),
        )

    def _intent_result(self, intent: Any) -> PaymentIntentResult:
        status = INTENT_STATUSES.get(getattr(intent, "status", None), PaymentIntentStatus.FAILED)
        reason = None
        if status is PaymentIntentStatus.FAILED:
            last_error = getattr(intent, "last_payment_error", None)
            reason = getattr(last_error, "message", None) or f"Payment {getattr(intent, 'status', 'failed')}"
        elif status is PaymentIntentStatus.CANCELLED:
            reason = getattr(intent, "cancellation_reason", None)
        return PaymentIntentResult(status=status, payment_intent_id=intent.id, reason=reason)

    async def create_payment_method(
        self, card_details: CardDetails, billing_details: BillingDetails
    ) -> PaymentMethodToken:
        """Tokenise a card with Stripe.

        Raises:
            PaymentError: Carrying the mapped PaymentErrorCode and Stripe's message
        """
        address = billing_details.address
        params: Dict[str, Any] = {
            "type": "card",
            "card": {
                "number": card_details.number,
                "exp_month": card_details.exp_month,
                "exp_year": card_details.exp_year,
                "cvc": card_details.cvc,
            },
            "billing_details": {
                "email": billing_details.email,
                "name": billing_details.name,
                "address": {
                    "line1": address.line1,
                    "line2": address.line2,
                    "city": address.city,
                    "state": address.county,
                    "postal_code": address.post_code,
                    "country": address.country_code,
                },
            },
            "api_key": self._config.publishable_key,
        }
        try:
            payment_method = await self._run(self._stripe.PaymentMethod.create, **params)
        except self._stripe.error.StripeError as e:
            error = self._payment_error(e)
            logger.warning(f"Stripe tokenisation failed: {error.code}")
            raise error

        card = getattr(payment_method, "card", None)
        return PaymentMethodToken(
            id=payment_method.id,
            brand=getattr(card, "brand", None),
            last4=getattr(card, "last4", None),
        )

    async def confirm_payment(self, client_secret: str) -> PaymentIntentResult:
        """Confirm a PaymentIntent using its client secret."""
        intent_id = payment_intent_id_from_secret(client_secret)
        try:
            intent = await self._run(
                self._stripe.PaymentIntent.confirm,
                intent_id,
                client_secret=client_secret,
                return_url=self._return_url,
                api_key=self._config.publishable_key,
            )
        except self._stripe.error.StripeError as e:
            error = self._payment_error(e)
            return PaymentIntentResult(PaymentIntentStatus.FAILED, intent_id, reason=error.message)
        return self._intent_result(intent)

    async def present_authentication_challenge(self, client_secret: str) -> PaymentIntentResult:
        """Run the 3-D Secure redirect for a PaymentIntent that requires action."""
        intent_id = payment_intent_id_from_secret(client_secret)
        try:
            intent = await self._retrieve(intent_id, client_secret)
        except self._stripe.error.StripeError as e:
            return PaymentIntentResult(
                PaymentIntentStatus.FAILED, intent_id, reason=self._payment_error(e).message
            )

        if getattr(intent, "status", None) != "requires_action":
            return self._intent_result(intent)

        next_action = getattr(intent, "next_action", None)
        redirect = getattr(next_action, "redirect_to_url", None)
        url = getattr(redirect, "url", None)
        if not url:
            return PaymentIntentResult(
                PaymentIntentStatus.FAILED, intent_id, reason="Unsupported authentication action"
            )
        if self._challenge_presenter is None:
            return PaymentIntentResult(
                PaymentIntentStatus.FAILED, intent_id, reason="No authentication presenter configured"
            )

        completed = await self._challenge_presenter(url)
        if not completed:
            logger.info(f"Authentication for {intent_id} closed by user")
            return PaymentIntentResult(
                PaymentIntentStatus.CANCELLED, intent_id, reason="Authentication cancelled by user"
            )

        try:
            intent = await self._retrieve(intent_id, client_secret)
        except self._stripe.error.StripeError as e:
            return PaymentIntentResult(
                PaymentIntentStatus.FAILED, intent_id, reason=self._payment_error(e).message
            )
        return self._intent_result(intent)

    async def _retrieve(self, intent_id: str, client_secret: str) -> Any:
        return await self._run(
            self._stripe.PaymentIntent.retrieve,
            intent_id,
            client_secret=client_secret,
            api_key=self._config.publishable_key,
        )
