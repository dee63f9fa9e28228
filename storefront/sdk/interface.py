"""Payment gateway facade contract."""
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from storefront.models.checkout import BillingDetails, CardDetails, PaymentMethodToken


class PaymentIntentStatus(enum.Enum):
    """Outcome of confirming or authenticating a payment intent."""

    SUCCEEDED = "succeeded"
    REQUIRES_ACTION = "requires_action"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PaymentIntentResult:
    """Status of a payment intent after a facade call."""

    status: PaymentIntentStatus
    payment_intent_id: Optional[str] = None
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is PaymentIntentStatus.SUCCEEDED

    @property
    def cancelled(self) -> bool:
        return self.status is PaymentIntentStatus.CANCELLED


@dataclass
class SDKConfig:
    """Configuration for a payment facade."""

    publishable_key: str
    timeout_seconds: int = 30

    @property
    def sandbox(self) -> bool:
        return self.publishable_key.startswith("pk_test_")


class IPaymentGatewayFacade(ABC):
    """
    Client-side payment processor SDK.

    Raw card data goes through here and nowhere else; callers only ever see
    the opaque token that comes back.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Processor identifier, e.g. 'stripe'."""

    @abstractmethod
    async def create_payment_method(
        self, card_details: CardDetails, billing_details: BillingDetails
    ) -> PaymentMethodToken:
        """
        Tokenise a card.

        Raises:
            PaymentError: With a PaymentErrorCode describing the card problem
        """

    @abstractmethod
    async def confirm_payment(self, client_secret: str) -> PaymentIntentResult:
        """Confirm a payment intent identified by its client secret."""

    @abstractmethod
    async def present_authentication_challenge(self, client_secret: str) -> PaymentIntentResult:
        """
        Run the issuer's step-up challenge for a payment intent.

        User abandonment is reported as PaymentIntentStatus.CANCELLED,
        never raised.
        """
