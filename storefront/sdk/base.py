"""Base class for payment facade adapters."""
import asyncio
import logging
from typing import Any, Callable, TypeVar

from storefront.sdk.interface import IPaymentGatewayFacade, SDKConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseSDKAdapter(IPaymentGatewayFacade):
    """
    Shared plumbing for processor adapters.

    Processor SDKs are blocking; ``_run`` moves each call onto a worker
    thread so the event loop keeps serving other tasks.
    """

    def __init__(self, config: SDKConfig):
        self._config = config

    @property
    def config(self) -> SDKConfig:
        return self._config

    @property
    def is_sandbox(self) -> bool:
        return self._config.sandbox

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        logger.debug(f"{self.provider_name}: calling {getattr(func, '__name__', func)}")
        return await asyncio.to_thread(func, *args, **kwargs)
