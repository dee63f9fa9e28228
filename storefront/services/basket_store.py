"""Basket store: client-side owner of the basket state."""
import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront.errors import (
    DomainError,
    ErrorCode,
    GatewayError,
    ItemUnavailableError,
    PromoCodeRejectedError,
    StorefrontError,
    ValidationError,
)
from storefront.events.basket_events import BasketOperationFailedEvent, BasketUpdatedEvent
from storefront.events.domain import DomainEventDispatcher
from storefront.gateways.interface import IBasketGateway
from storefront.models.basket import Basket, BasketItem, BasketOperationResult
from storefront.repositories.basket_snapshot_repository import BasketSnapshotRepository
from storefront.utils.mutation_guard import MutationGuard, MutationInProgress, MutationPolicy
from storefront.utils.observable import StateHolder

logger = logging.getLogger(__name__)


class BasketStatus(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class BasketErrorKind(enum.Enum):
    """Category of a basket failure, for display decisions."""

    VALIDATION = "validation"
    GATEWAY = "gateway"
    ITEM_UNAVAILABLE = "item_unavailable"
    PROMO_REJECTED = "promo_rejected"
    DOMAIN = "domain"
    BUSY = "busy"


@dataclass(frozen=True)
class BasketError:
    """Failure recorded in the basket state."""

    kind: BasketErrorKind
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class BasketState:
    """
    Snapshot of the store.

    ``basket`` survives LOADING and FAILED: it is always the last basket the
    authority confirmed, so the UI never sees a gap.
    """

    status: BasketStatus = BasketStatus.UNINITIALIZED
    basket: Optional[Basket] = None
    error: Optional[BasketError] = None

    @property
    def is_loading(self) -> bool:
        return self.status is BasketStatus.LOADING


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a store operation. Truthy on success."""

    success: bool
    message: Optional[str] = None
    error_code: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success


_EXCEPTION_KINDS = (
    (ItemUnavailableError, BasketErrorKind.ITEM_UNAVAILABLE),
    (PromoCodeRejectedError, BasketErrorKind.PROMO_REJECTED),
    (ValidationError, BasketErrorKind.VALIDATION),
    (GatewayError, BasketErrorKind.GATEWAY),
    (DomainError, BasketErrorKind.DOMAIN),
)


def _error_from_exception(exc: Exception) -> BasketError:
    if isinstance(exc, StorefrontError):
        for exc_type, kind in _EXCEPTION_KINDS:
            if isinstance(exc, exc_type):
                return BasketError(kind, exc.message or str(exc), exc.code)
    return BasketError(BasketErrorKind.GATEWAY, str(exc) or exc.__class__.__name__, ErrorCode.GATEWAY_ERROR)


class BasketStore:
    """
    Keeps the local basket consistent with the remote basket authority.

    Every mutation goes LOADING -> gateway -> READY(new basket) or
    FAILED(error), and FAILED keeps the last known-good basket. Totals are
    never computed here; each success replaces the basket wholesale.

    Usage:
        store = await BasketStore.create(gateway)
        result = await store.add_item("42", "course")
        if not result:
            show(store.error.message)
    """

    def __init__(
        self,
        gateway: IBasketGateway,
        mutation_policy: MutationPolicy = MutationPolicy.QUEUE,
        snapshot_repository: Optional[BasketSnapshotRepository] = None,
        event_dispatcher: Optional[DomainEventDispatcher] = None,
    ):
        self._gateway = gateway
        self._guard = MutationGuard(mutation_policy)
        self._snapshots = snapshot_repository
        self._dispatcher = event_dispatcher
        self._state: StateHolder[BasketState] = StateHolder(BasketState())

    @classmethod
    async def create(cls, gateway: IBasketGateway, **kwargs) -> "BasketStore":
        """Construct a store and load the basket."""
        store = cls(gateway, **kwargs)
        await store.initialize()
        return store

    # ==================
    # State facets
    # ==================

    @property
    def state(self) -> BasketState:
        return self._state.value

    @property
    def basket(self) -> Optional[Basket]:
        return self._state.value.basket

    @property
    def is_loading(self) -> bool:
        return self._state.value.is_loading

    @property
    def error(self) -> Optional[BasketError]:
        return self._state.value.error

    @property
    def item_count(self) -> int:
        basket = self.basket
        return basket.item_count if basket else 0

    @property
    def is_empty(self) -> bool:
        basket = self.basket
        return basket is None or basket.is_empty

    @property
    def total(self) -> int:
        basket = self.basket
        return basket.total if basket else 0

    @property
    def charge_total(self) -> int:
        basket = self.basket
        return basket.charge_total if basket else 0

    def subscribe(self, listener: Callable[[BasketState], None]) -> Callable[[], None]:
        return self._state.subscribe(listener)

    def is_item_in_basket(self, item_id: str, item_type: Optional[str] = None) -> bool:
        basket = self.basket
        return basket is not None and basket.contains_item(item_id, item_type)

    def get_item(self, item_id: str) -> Optional[BasketItem]:
        basket = self.basket
        return basket.find_item(item_id) if basket else None

    def clear_error(self) -> None:
        state = self._state.value
        if state.status is not BasketStatus.FAILED:
            return
        status = BasketStatus.READY if state.basket else BasketStatus.UNINITIALIZED
        self._state.set(BasketState(status=status, basket=state.basket))

    # ==================
    # Operations
    # ==================

    async def initialize(self) -> StoreResult:
        """Load the existing remote basket, creating one if there is none."""
        return await self._load("initialize", use_cache=True)

    async def refresh(self) -> StoreResult:
        """Re-read the remote basket."""
        return await self._load("refresh", use_cache=False)

    async def add_item(
        self,
        item_id: str,
        item_type: str,
        pay_deposit: Optional[bool] = None,
        assign_to_user_id: Optional[str] = None,
        charge_from_date: Optional[datetime] = None,
    ) -> StoreResult:
        """Add a bookable item. A refusal carries the authority's message and code."""
        return await self._mutate(
            "add_item",
            lambda: self._gateway.add_item(
                item_id,
                item_type,
                pay_deposit=pay_deposit,
                assign_to_user_id=assign_to_user_id,
                charge_from_date=charge_from_date,
            ),
            BasketErrorKind.ITEM_UNAVAILABLE,
        )

    async def remove_item(self, item_id: str, item_type: str) -> StoreResult:
        return await self._mutate(
            "remove_item",
            lambda: self._gateway.remove_item(item_id, item_type),
            BasketErrorKind.DOMAIN,
        )

    async def apply_promo_code(self, code: str) -> StoreResult:
        code = (code or "").strip()
        if not code:
            return await self._reject(
                "apply_promo_code",
                BasketError(BasketErrorKind.VALIDATION, "Promo code is required", ErrorCode.PROMO_CODE_REJECTED),
            )
        return await self._mutate(
            "apply_promo_code",
            lambda: self._gateway.apply_promo_code(code),
            BasketErrorKind.PROMO_REJECTED,
        )

    async def remove_promo_code(self) -> StoreResult:
        return await self._mutate(
            "remove_promo_code",
            self._gateway.remove_promo_code,
            BasketErrorKind.DOMAIN,
        )

    async def toggle_credit_usage(self, use_credit: bool) -> StoreResult:
        return await self._mutate(
            "toggle_credit_usage",
            lambda: self._gateway.set_credit_usage(use_credit),
            BasketErrorKind.DOMAIN,
        )

    async def clear(self) -> StoreResult:
        """Destroy the remote basket and start a fresh one."""
        old_basket = self.basket

        async def destroy_and_create() -> BasketOperationResult:
            destroyed = await self._gateway.destroy_basket()
            if not destroyed:
                return BasketOperationResult(
                    success=False,
                    message="Failed to clear basket",
                    error_code=ErrorCode.BASKET_OPERATION_FAILED,
                )
            basket = await self._gateway.create_basket()
            if old_basket is not None and old_basket.id != basket.id:
                await self._forget_snapshot(old_basket.id)
            return BasketOperationResult(success=True, basket=basket)

        return await self._mutate("clear", destroy_and_create, BasketErrorKind.DOMAIN)

    # ==================
    # Internals
    # ==================

    async def _load(self, operation: str, use_cache: bool) -> StoreResult:
        async def fetch_or_create() -> BasketOperationResult:
            basket = await self._gateway.get_current_basket()
            if basket is None:
                logger.debug("No remote basket, creating one")
                basket = await self._gateway.create_basket()
            return BasketOperationResult(success=True, basket=basket)

        result = await self._mutate(operation, fetch_or_create, BasketErrorKind.GATEWAY)
        if not result and use_cache and self.basket is None:
            cached = await self._cached_basket()
            if cached is not None:
                logger.info(f"Showing cached basket {cached.id} after failed {operation}")
                self._state.set(BasketState(BasketStatus.FAILED, cached, self.error))
        return result

    async def _mutate(
        self,
        operation: str,
        call: Callable[[], Awaitable[BasketOperationResult]],
        failure_kind: BasketErrorKind,
    ) -> StoreResult:
        try:
            async with self._guard.hold():
                return await self._run(operation, call, failure_kind)
        except MutationInProgress as e:
            logger.debug(f"Rejected {operation}: {e}")
            return StoreResult(success=False, message=str(e), error_code=ErrorCode.BASKET_BUSY)

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[BasketOperationResult]],
        failure_kind: BasketErrorKind,
    ) -> StoreResult:
        current = self._state.value
        self._state.set(BasketState(BasketStatus.LOADING, current.basket))
        logger.debug(f"Basket {operation} started")

        try:
            result = await call()
        except Exception as e:
            logger.error(f"Basket {operation} failed: {e}")
            return self._fail(operation, _error_from_exception(e))

        if not result.success:
            error = BasketError(
                failure_kind,
                result.message or f"Basket {operation.replace('_', ' ')} failed",
                result.error_code or ErrorCode.BASKET_OPERATION_FAILED,
            )
            logger.info(f"Basket {operation} refused: {error.message} ({error.code})")
            return self._fail(operation, error)

        if result.basket is None:
            return self._fail(
                operation,
                BasketError(BasketErrorKind.GATEWAY, "Basket service returned no basket", ErrorCode.GATEWAY_ERROR),
            )

        await self._accept(operation, result.basket)
        return StoreResult(success=True, message=result.message)

    async def _reject(self, operation: str, error: BasketError) -> StoreResult:
        try:
            async with self._guard.hold():
                return self._fail(operation, error)
        except MutationInProgress as e:
            return StoreResult(success=False, message=str(e), error_code=ErrorCode.BASKET_BUSY)

    async def _accept(self, operation: str, basket: Basket) -> None:
        if not basket.totals_consistent:
            logger.warning(
                f"Basket {basket.id} totals are inconsistent "
                f"(total={basket.total}, charge_total={basket.charge_total}, pay_later={basket.pay_later})"
            )
        self._state.set(BasketState(BasketStatus.READY, basket))
        logger.info(f"Basket {operation} succeeded: {basket.item_count} items, total {basket.total}")
        await self._save_snapshot(basket)
        self._emit(
            BasketUpdatedEvent(
                basket_id=basket.id,
                operation=operation,
                item_count=basket.item_count,
                total=basket.total,
                charge_total=basket.charge_total,
            )
        )

    def _fail(self, operation: str, error: BasketError) -> StoreResult:
        basket = self._state.value.basket
        self._state.set(BasketState(BasketStatus.FAILED, basket, error))
        self._emit(
            BasketOperationFailedEvent(
                operation=operation,
                error=error.message,
                error_code=error.code,
                error_kind=error.kind.value,
            )
        )
        return StoreResult(success=False, message=error.message, error_code=error.code)

    def _emit(self, event) -> None:
        if self._dispatcher is None:
            return
        result = self._dispatcher.emit(event)
        if not result.success and result.error_type != "no_handler":
            logger.warning(f"Handler for {event.name} failed: {result.error}")

    # Snapshot I/O runs in a worker thread so a disk-backed cache never
    # blocks the event loop.

    async def _save_snapshot(self, basket: Basket) -> None:
        if self._snapshots is None:
            return
        try:
            await asyncio.to_thread(self._snapshots.save_basket, basket)
        except SQLAlchemyError as e:
            logger.warning(f"Could not cache basket {basket.id}: {e}")

    async def _cached_basket(self) -> Optional[Basket]:
        if self._snapshots is None:
            return None
        try:
            return await asyncio.to_thread(self._snapshots.find_latest)
        except SQLAlchemyError as e:
            logger.warning(f"Could not read cached basket: {e}")
            return None

    async def _forget_snapshot(self, basket_id: str) -> None:
        if self._snapshots is None:
            return
        try:
            await asyncio.to_thread(self._snapshots.delete, basket_id)
        except SQLAlchemyError as e:
            logger.warning(f"Could not drop cached basket {basket_id}: {e}")
