"""Stripe payment facade plugin."""
from plugins.stripe.sdk_adapter import (
    StripeSDKAdapter,
    STRIPE_ERROR_CODES,
    payment_intent_id_from_secret,
)

__all__ = [
    "StripeSDKAdapter",
    "STRIPE_ERROR_CODES",
    "payment_intent_id_from_secret",
]
