"""Shared fixtures for Stripe plugin tests."""
import sys
import pytest

from storefront.models.checkout import Address, BillingDetails, CardDetails
from storefront.sdk.interface import SDKConfig


@pytest.fixture
def sdk_config():
    """SDKConfig with a test publishable key."""
    return SDKConfig(publishable_key="pk_test_abc123")


@pytest.fixture
def mock_stripe(mocker):
    """Mock the stripe module and inject it into sys.modules.

    Returns the mock stripe module so tests can configure it.
    """
    mock_mod = mocker.MagicMock()
    mock_mod.error.StripeError = type("StripeError", (Exception,), {})
    mocker.patch.dict(sys.modules, {"stripe": mock_mod})
    return mock_mod


@pytest.fixture
def card():
    return CardDetails(number="4000002500003155", exp_month=12, exp_year=2030, cvc="123")


@pytest.fixture
def billing():
    return BillingDetails(
        email="ada@example.com",
        name="Ada Lovelace",
        address=Address(line1="1 Dance Street", city="London", post_code="N1 1AA", county="Greater London"),
    )
