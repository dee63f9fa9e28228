"""Storefront configuration."""
import os
from typing import Optional

# Constants - avoid magic numbers
DEFAULT_API_TIMEOUT_SECONDS = 30
DEFAULT_CHECKOUT_TOTAL_STEPS = 4
DEFAULT_PUBLISHABLE_KEY = "pk_test_change_me"


def get_api_url() -> str:
    """Get GraphQL API URL."""
    return os.getenv("API_URL", "http://localhost:4000/graphql")


def get_cache_url() -> str:
    """Get basket snapshot cache URL."""
    return os.getenv("BASKET_CACHE_URL", "sqlite:///storefront_cache.db")


class Config:
    """Base configuration."""

    # Basket and order API
    API_URL = get_api_url()
    API_TIMEOUT_SECONDS = int(os.getenv("API_TIMEOUT_SECONDS", DEFAULT_API_TIMEOUT_SECONDS))
    API_AUTH_TOKEN = os.getenv("API_AUTH_TOKEN")
    API_SITE_ID = os.getenv("API_SITE_ID", "UKCPA")

    # Payments
    STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY", DEFAULT_PUBLISHABLE_KEY)
    CURRENCY = os.getenv("CURRENCY", "gbp")

    # Checkout / basket behaviour
    CHECKOUT_TOTAL_STEPS = int(os.getenv("CHECKOUT_TOTAL_STEPS", DEFAULT_CHECKOUT_TOTAL_STEPS))
    BASKET_MUTATION_POLICY = os.getenv("BASKET_MUTATION_POLICY", "queue")

    # Local cache
    BASKET_CACHE_URL = get_cache_url()

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DEBUG = False
    TESTING = False

    def as_dict(self) -> dict:
        """Upper-case settings as a dict, for providers.Configuration.from_dict."""
        return {
            key.lower(): getattr(self, key)
            for key in dir(self)
            if key.isupper()
        }


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    API_URL = "http://api.test/graphql"
    API_AUTH_TOKEN = None
    STRIPE_PUBLISHABLE_KEY = "pk_test_123"
    BASKET_CACHE_URL = "sqlite:///:memory:"  # In-memory for tests
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production configuration."""

    def __init__(self):
        """Initialize production config and validate required env vars."""
        super().__init__()

        self.STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY")
        self.API_URL = os.getenv("API_URL")

        if not self.STRIPE_PUBLISHABLE_KEY:
            raise ValueError("STRIPE_PUBLISHABLE_KEY must be set in production")

        if self.STRIPE_PUBLISHABLE_KEY == DEFAULT_PUBLISHABLE_KEY:
            raise ValueError(
                "STRIPE_PUBLISHABLE_KEY is using the placeholder default. "
                "Please set the live publishable key in production."
            )

        # Secret keys must never ship in a client
        if self.STRIPE_PUBLISHABLE_KEY.startswith(("sk_", "rk_")):
            raise ValueError("STRIPE_PUBLISHABLE_KEY must be a publishable key, not a secret key")

        if not self.API_URL or not self.API_URL.startswith("https://"):
            raise ValueError("API_URL must be set to an https URL in production")


# Configuration dictionary
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: Optional[str] = None) -> type:
    """
    Get configuration based on environment.

    Args:
        env: Environment name (development, testing, production)

    Returns:
        Configuration class
    """
    if env is None:
        env = os.getenv("STOREFRONT_ENV", "development")

    return config.get(env, config["default"])
