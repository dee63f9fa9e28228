"""Tests for StripeSDKAdapter."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from storefront.errors import PaymentError, PaymentErrorCode
from storefront.sdk.base import BaseSDKAdapter
from storefront.sdk.interface import PaymentIntentStatus

SECRET = "pi_123_secret_abc"


def stripe_error(mock_stripe, message, code=None, decline_code=None, user_message=None):
    """Build an instance of the mocked StripeError with Stripe's attributes."""
    error = mock_stripe.error.StripeError(message)
    error.code = code
    error.decline_code = decline_code
    error.user_message = user_message
    return error


def intent(status, **attrs):
    mock_intent = MagicMock()
    mock_intent.id = "pi_123"
    mock_intent.status = status
    for name, value in attrs.items():
        setattr(mock_intent, name, value)
    return mock_intent


@pytest.fixture
def presenter():
    return AsyncMock(return_value=True)


@pytest.fixture
def adapter(mock_stripe, sdk_config, presenter):
    """Create StripeSDKAdapter with mocked stripe module."""
    from plugins.stripe.sdk_adapter import StripeSDKAdapter

    return StripeSDKAdapter(sdk_config, challenge_presenter=presenter)


class TestStripeSDKAdapter:
    """Tests for adapter basics."""

    def test_provider_name(self, adapter):
        """provider_name should return 'stripe'."""
        assert adapter.provider_name == "stripe"

    def test_inherits_base_sdk_adapter(self, adapter):
        """StripeSDKAdapter should inherit from BaseSDKAdapter."""
        assert isinstance(adapter, BaseSDKAdapter)

    def test_sandbox_follows_key(self, adapter):
        assert adapter.is_sandbox is True

    def test_intent_id_from_secret(self, mock_stripe):
        from plugins.stripe.sdk_adapter import payment_intent_id_from_secret

        assert payment_intent_id_from_secret(SECRET) == "pi_123"
        with pytest.raises(PaymentError):
            payment_intent_id_from_secret("garbage")


class TestCreatePaymentMethod:
    """Tests for card tokenisation."""

    @pytest.mark.asyncio
    async def test_create_payment_method_success(self, adapter, mock_stripe, card, billing):
        """Tokenisation returns the id, brand and last4."""
        payment_method = MagicMock()
        payment_method.id = "pm_tok"
        payment_method.card.brand = "visa"
        payment_method.card.last4 = "3155"
        mock_stripe.PaymentMethod.create.return_value = payment_method

        token = await adapter.create_payment_method(card, billing)

        assert token.id == "pm_tok"
        assert token.brand == "visa"
        assert token.last4 == "3155"

    @pytest.mark.asyncio
    async def test_create_payment_method_params(self, adapter, mock_stripe, card, billing):
        """Card and billing details are sent with the publishable key."""
        await adapter.create_payment_method(card, billing)

        kwargs = mock_stripe.PaymentMethod.create.call_args.kwargs
        assert kwargs["type"] == "card"
        assert kwargs["card"]["number"] == "4000002500003155"
        assert kwargs["billing_details"]["email"] == "ada@example.com"
        assert kwargs["billing_details"]["address"]["postal_code"] == "N1 1AA"
        assert kwargs["billing_details"]["address"]["state"] == "Greater London"
        assert kwargs["billing_details"]["address"]["country"] == "GB"
        assert kwargs["api_key"] == "pk_test_abc123"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,decline_code,expected",
        [
            ("card_declined", "insufficient_funds", PaymentErrorCode.INSUFFICIENT_FUNDS),
            ("card_declined", None, PaymentErrorCode.CARD_DECLINED),
            ("incorrect_number", None, PaymentErrorCode.INVALID_NUMBER),
            ("invalid_expiry_year", None, PaymentErrorCode.INVALID_EXPIRY),
            ("incorrect_cvc", None, PaymentErrorCode.INVALID_CVC),
            ("expired_card", None, PaymentErrorCode.EXPIRED_CARD),
            ("rate_limit", None, PaymentErrorCode.UNKNOWN),
        ],
    )
    async def test_create_payment_method_error_codes(
        self, adapter, mock_stripe, card, billing, code, decline_code, expected
    ):
        """Stripe error codes map onto distinct PaymentErrorCodes."""
        mock_stripe.PaymentMethod.create.side_effect = stripe_error(
            mock_stripe, "Stripe said no", code=code, decline_code=decline_code
        )

        with pytest.raises(PaymentError) as exc_info:
            await adapter.create_payment_method(card, billing)

        assert exc_info.value.payment_code is expected
        assert exc_info.value.details == code

    @pytest.mark.asyncio
    async def test_error_prefers_user_message(self, adapter, mock_stripe, card, billing):
        mock_stripe.PaymentMethod.create.side_effect = stripe_error(
            mock_stripe, "raw", code="card_declined", user_message="Your card was declined."
        )

        with pytest.raises(PaymentError, match="Your card was declined."):
            await adapter.create_payment_method(card, billing)


class TestConfirmPayment:
    """Tests for confirm_payment."""

    @pytest.mark.asyncio
    async def test_confirm_succeeded(self, adapter, mock_stripe):
        mock_stripe.PaymentIntent.confirm.return_value = intent("succeeded")

        result = await adapter.confirm_payment(SECRET)

        assert result.succeeded is True
        args, kwargs = mock_stripe.PaymentIntent.confirm.call_args
        assert args[0] == "pi_123"
        assert kwargs["client_secret"] == SECRET

    @pytest.mark.asyncio
    async def test_confirm_requires_payment_method(self, adapter, mock_stripe):
        """A declined intent reports Stripe's last error."""
        last_error = MagicMock()
        last_error.message = "Your card was declined."
        mock_stripe.PaymentIntent.confirm.return_value = intent(
            "requires_payment_method", last_payment_error=last_error
        )

        result = await adapter.confirm_payment(SECRET)

        assert result.status is PaymentIntentStatus.FAILED
        assert result.reason == "Your card was declined."

    @pytest.mark.asyncio
    async def test_confirm_stripe_error(self, adapter, mock_stripe):
        mock_stripe.PaymentIntent.confirm.side_effect = stripe_error(mock_stripe, "Network down")

        result = await adapter.confirm_payment(SECRET)

        assert result.status is PaymentIntentStatus.FAILED
        assert result.reason == "Network down"


class TestAuthenticationChallenge:
    """Tests for present_authentication_challenge."""

    @staticmethod
    def requires_action(url="https://hooks.stripe.com/3ds"):
        next_action = MagicMock()
        next_action.redirect_to_url.url = url
        return intent("requires_action", next_action=next_action)

    @pytest.mark.asyncio
    async def test_completed_challenge(self, adapter, mock_stripe, presenter):
        """The presenter opens the issuer page; the intent is re-read afterwards."""
        mock_stripe.PaymentIntent.retrieve.side_effect = [self.requires_action(), intent("succeeded")]

        result = await adapter.present_authentication_challenge(SECRET)

        assert result.status is PaymentIntentStatus.SUCCEEDED
        assert result.payment_intent_id == "pi_123"
        presenter.assert_awaited_once_with("https://hooks.stripe.com/3ds")

    @pytest.mark.asyncio
    async def test_user_closes_challenge(self, adapter, mock_stripe, presenter):
        """Closing the page is a cancellation, not a failure."""
        presenter.return_value = False
        mock_stripe.PaymentIntent.retrieve.return_value = self.requires_action()

        result = await adapter.present_authentication_challenge(SECRET)

        assert result.cancelled is True
        assert mock_stripe.PaymentIntent.retrieve.call_count == 1

    @pytest.mark.asyncio
    async def test_failed_challenge(self, adapter, mock_stripe):
        last_error = MagicMock()
        last_error.message = "Authentication failed"
        mock_stripe.PaymentIntent.retrieve.side_effect = [
            self.requires_action(),
            intent("requires_payment_method", last_payment_error=last_error),
        ]

        result = await adapter.present_authentication_challenge(SECRET)

        assert result.status is PaymentIntentStatus.FAILED
        assert result.reason == "Authentication failed"

    @pytest.mark.asyncio
    async def test_already_settled_intent_skips_presenter(self, adapter, mock_stripe, presenter):
        mock_stripe.PaymentIntent.retrieve.return_value = intent("succeeded")

        result = await adapter.present_authentication_challenge(SECRET)

        assert result.succeeded is True
        presenter.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsupported_next_action(self, adapter, mock_stripe, presenter):
        mock_stripe.PaymentIntent.retrieve.return_value = self.requires_action(url=None)

        result = await adapter.present_authentication_challenge(SECRET)

        assert result.status is PaymentIntentStatus.FAILED
        presenter.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_presenter(self, mock_stripe, sdk_config):
        from plugins.stripe.sdk_adapter import StripeSDKAdapter

        adapter = StripeSDKAdapter(sdk_config)
        mock_stripe.PaymentIntent.retrieve.return_value = self.requires_action()

        result = await adapter.present_authentication_challenge(SECRET)

        assert result.reason == "No authentication presenter configured"

    @pytest.mark.asyncio
    async def test_retrieve_error(self, adapter, mock_stripe):
        mock_stripe.PaymentIntent.retrieve.side_effect = stripe_error(mock_stripe, "Not found")

        result = await adapter.present_authentication_challenge(SECRET)

        assert result.status is PaymentIntentStatus.FAILED
        assert result.reason == "Not found"
