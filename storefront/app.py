"""Storefront assembly."""
import logging
from typing import Awaitable, Callable, Optional

from dependency_injector import providers

from storefront import configure_logging
from storefront.config import get_config
from storefront.container import Container

logger = logging.getLogger(__name__)

ChallengePresenter = Callable[[str], Awaitable[bool]]


def register_handlers(container: Container) -> None:
    """Register domain event handlers with the container's dispatcher."""
    dispatcher = container.event_dispatcher()

    activity_handler = container.checkout_activity_handler()
    for event_name in activity_handler.EVENT_NAMES:
        dispatcher.register(event_name, activity_handler)

    dispatcher.register("basket.updated", container.basket_invalidation_handler())


def create_storefront(
    env: Optional[str] = None,
    challenge_presenter: Optional[ChallengePresenter] = None,
) -> Container:
    """
    Build a wired container.

    Args:
        env: Environment name (development, testing, production)
        challenge_presenter: Coroutine opening the issuer's authentication
            page; returns False when the user closes it

    Returns:
        Container with resources initialised and handlers registered.
        Call ``container.shutdown_resources()`` when done.
    """
    config_class = get_config(env)
    settings = config_class()

    configure_logging(settings.LOG_LEVEL)

    container = Container()
    container.config.from_dict(settings.as_dict())
    if challenge_presenter is not None:
        container.challenge_presenter.override(providers.Object(challenge_presenter))

    container.init_resources()
    register_handlers(container)

    logger.info(f"Storefront ready ({config_class.__name__}, API {settings.API_URL})")
    return container
