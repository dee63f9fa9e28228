"""Dependency injection container."""
from dependency_injector import containers, providers

from plugins.stripe.sdk_adapter import StripeSDKAdapter
from storefront.events.domain import DomainEventDispatcher
from storefront.extensions import create_session, init_engine
from storefront.gateways.graphql_basket_gateway import GraphQLBasketGateway
from storefront.gateways.graphql_client import GraphQLClient
from storefront.gateways.graphql_order_service import GraphQLOrderService
from storefront.handlers.basket_invalidation_handler import BasketInvalidationHandler
from storefront.handlers.checkout_activity_handler import CheckoutActivityHandler
from storefront.repositories.basket_snapshot_repository import BasketSnapshotRepository
from storefront.sdk.interface import SDKConfig
from storefront.services.activity_logger import ActivityLogger
from storefront.services.basket_store import BasketStore
from storefront.services.checkout_service import CheckoutService
from storefront.utils.mutation_guard import MutationPolicy


class Container(containers.DeclarativeContainer):
    """
    Storefront dependency injection container.

    Long-lived collaborators (HTTP client, gateways, payment facade, stores)
    are singletons owned by the container; the cache engine is a resource
    released by shutdown_resources().

    Usage:
        container = Container()
        container.config.from_dict(TestingConfig().as_dict())
        container.challenge_presenter.override(providers.Object(presenter))
        container.init_resources()

        store = container.basket_store()
    """

    # Configuration
    config = providers.Configuration()

    # Presents the issuer's step-up page; overridden by the UI layer
    challenge_presenter = providers.Object(None)

    # ==================
    # Local cache
    # ==================

    db_engine = providers.Resource(
        init_engine,
        url=config.basket_cache_url
    )

    db_session = providers.Singleton(
        create_session,
        engine=db_engine
    )

    basket_snapshot_repository = providers.Factory(
        BasketSnapshotRepository,
        session=db_session
    )

    # ==================
    # Remote collaborators
    # ==================

    graphql_client = providers.Singleton(
        GraphQLClient,
        endpoint=config.api_url,
        timeout=config.api_timeout_seconds,
        auth_token=config.api_auth_token,
        site_id=config.api_site_id
    )

    basket_gateway = providers.Singleton(
        GraphQLBasketGateway,
        client=graphql_client
    )

    order_service = providers.Singleton(
        GraphQLOrderService,
        client=graphql_client,
        currency=config.currency
    )

    sdk_config = providers.Factory(
        SDKConfig,
        publishable_key=config.stripe_publishable_key,
        timeout_seconds=config.api_timeout_seconds
    )

    payment_facade = providers.Singleton(
        StripeSDKAdapter,
        config=sdk_config,
        challenge_presenter=challenge_presenter
    )

    # ==================
    # Services
    # ==================

    activity_logger = providers.Singleton(
        ActivityLogger
    )

    event_dispatcher = providers.Singleton(
        DomainEventDispatcher
    )

    basket_store = providers.Singleton(
        BasketStore,
        gateway=basket_gateway,
        mutation_policy=providers.Callable(MutationPolicy, config.basket_mutation_policy),
        snapshot_repository=basket_snapshot_repository,
        event_dispatcher=event_dispatcher
    )

    checkout_service = providers.Singleton(
        CheckoutService,
        order_service=order_service,
        payment_facade=payment_facade,
        event_dispatcher=event_dispatcher,
        total_steps=config.checkout_total_steps
    )

    # ==================
    # Event handlers
    # ==================

    checkout_activity_handler = providers.Singleton(
        CheckoutActivityHandler,
        activity_logger=activity_logger
    )

    basket_invalidation_handler = providers.Singleton(
        BasketInvalidationHandler,
        checkout_service=checkout_service
    )

    # Note: handlers are registered with the dispatcher in app.create_storefront()
