"""Checkout session manager: drives one checkout attempt from review to order."""
import enum
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union

from storefront.errors import (
    EmptyBasketError,
    ErrorCode,
    InvalidCheckoutStateError,
    PaymentError,
    StaleClientSecretError,
    StorefrontError,
)
from storefront.events.checkout_events import (
    AuthenticationCancelledEvent,
    AuthenticationRequiredEvent,
    CheckoutCompletedEvent,
    CheckoutFailedEvent,
    PaymentMethodCreatedEvent,
)
from storefront.events.domain import DomainEvent, DomainEventDispatcher
from storefront.gateways.interface import IOrderSubmissionService
from storefront.models.basket import Basket
from storefront.models.checkout import (
    Address,
    BillingDetails,
    CardDetails,
    CheckoutSession,
    Order,
    PaymentMethod,
    default_payment_method,
)
from storefront.models.enums import CheckoutStep, NextAction, PaymentMethodType
from storefront.sdk.interface import IPaymentGatewayFacade, PaymentIntentStatus
from storefront.services.basket_store import BasketStore
from storefront.utils.observable import StateHolder

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_STEPS = len(CheckoutStep)


class CheckoutStatus(enum.Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADED = "loaded"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CheckoutInitial:
    status: ClassVar[CheckoutStatus] = CheckoutStatus.INITIAL


@dataclass(frozen=True)
class CheckoutLoading:
    status: ClassVar[CheckoutStatus] = CheckoutStatus.LOADING


@dataclass(frozen=True)
class CheckoutLoaded:
    session: CheckoutSession
    status: ClassVar[CheckoutStatus] = CheckoutStatus.LOADED


@dataclass(frozen=True)
class CheckoutProcessing:
    message: str = "Processing..."
    status: ClassVar[CheckoutStatus] = CheckoutStatus.PROCESSING


@dataclass(frozen=True)
class CheckoutSuccess:
    order: Order
    status: ClassVar[CheckoutStatus] = CheckoutStatus.SUCCESS


@dataclass(frozen=True)
class CheckoutError:
    """Failure state. ``session`` is the last good session, if there was one."""

    message: str
    code: Optional[str] = None
    session: Optional[CheckoutSession] = None
    status: ClassVar[CheckoutStatus] = CheckoutStatus.ERROR


CheckoutState = Union[
    CheckoutInitial,
    CheckoutLoading,
    CheckoutLoaded,
    CheckoutProcessing,
    CheckoutSuccess,
    CheckoutError,
]


class CheckoutOutcome(enum.Enum):
    """What a checkout operation achieved."""

    COMPLETED = "completed"
    REQUIRES_AUTHENTICATION = "requires_authentication"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CheckoutResult:
    """
    Return value of checkout operations.

    REJECTED means the call was refused locally and the state did not
    change. FAILED means the state moved to CheckoutError.
    """

    outcome: CheckoutOutcome
    error: Optional[StorefrontError] = None
    order: Optional[Order] = None
    payment_method: Optional[PaymentMethod] = None

    @property
    def success(self) -> bool:
        return self.outcome is CheckoutOutcome.COMPLETED

    @property
    def requires_authentication(self) -> bool:
        return self.outcome is CheckoutOutcome.REQUIRES_AUTHENTICATION

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    @classmethod
    def rejected(cls, error: StorefrontError) -> "CheckoutResult":
        return cls(CheckoutOutcome.REJECTED, error=error)


class CheckoutService:
    """
    Checkout state machine.

    The session holds its own basket snapshot taken at initialisation;
    later basket changes do not reach it. Collaborator failures become
    CheckoutError states; no exception escapes a public operation.
    """

    def __init__(
        self,
        order_service: IOrderSubmissionService,
        payment_facade: IPaymentGatewayFacade,
        event_dispatcher: Optional[DomainEventDispatcher] = None,
        total_steps: int = DEFAULT_TOTAL_STEPS,
    ):
        self._order_service = order_service
        self._facade = payment_facade
        self._dispatcher = event_dispatcher
        self._total_steps = max(1, total_steps)
        self._state: StateHolder[CheckoutState] = StateHolder(CheckoutInitial())

    # ==================
    # Accessors
    # ==================

    @property
    def state(self) -> CheckoutState:
        return self._state.value

    @property
    def total_steps(self) -> int:
        return self._total_steps

    @property
    def session(self) -> Optional[CheckoutSession]:
        state = self._state.value
        if isinstance(state, (CheckoutLoaded, CheckoutError)):
            return state.session
        return None

    @property
    def is_busy(self) -> bool:
        return isinstance(self._state.value, (CheckoutLoading, CheckoutProcessing))

    @property
    def error_message(self) -> Optional[str]:
        state = self._state.value
        return state.message if isinstance(state, CheckoutError) else None

    @property
    def order(self) -> Optional[Order]:
        state = self._state.value
        return state.order if isinstance(state, CheckoutSuccess) else None

    def subscribe(self, listener: Callable[[CheckoutState], None]) -> Callable[[], None]:
        return self._state.subscribe(listener)

    # ==================
    # Session setup and navigation
    # ==================

    async def initialize_checkout(self, basket: Optional[Basket]) -> None:
        """
        Start a checkout for a basket snapshot.

        An empty basket fails immediately without fetching payment methods.
        """
        if basket is None or basket.is_empty:
            self._fail(EmptyBasketError(), stage="initialize")
            return

        loading = CheckoutLoading()
        self._state.set(loading)
        try:
            methods = tuple(await self._order_service.get_payment_methods())
        except Exception as e:
            logger.error(f"Error initializing checkout: {e}")
            self._fail(self._wrap(e, "Failed to initialize checkout"), stage="initialize")
            return

        if self._state.value is not loading:
            logger.debug("Checkout state changed while loading; discarding payment methods")
            return

        selected = default_payment_method(methods)
        session = CheckoutSession(
            basket=basket,
            available_payment_methods=methods,
            selected_payment_method=selected,
            billing_address=selected.billing_address if selected else None,
            current_step=CheckoutStep.REVIEW,
        )
        self._state.set(CheckoutLoaded(session))
        logger.debug(f"Checkout session initialized with {len(methods)} payment methods")

    async def initialize_from_store(self, basket_store: BasketStore) -> None:
        """Start a checkout from the basket store's current snapshot."""
        await self.initialize_checkout(basket_store.basket)

    def next_step(self) -> None:
        self._move_step(1)

    def previous_step(self) -> None:
        self._move_step(-1)

    def _move_step(self, delta: int) -> None:
        state = self._state.value
        if not isinstance(state, CheckoutLoaded):
            return
        step = min(max(state.session.current_step + delta, 1), self._total_steps)
        self._state.set(CheckoutLoaded(state.session.evolve(current_step=step)))

    def select_payment_method(self, method: PaymentMethod) -> None:
        state = self._state.value
        if isinstance(state, CheckoutLoaded):
            self._state.set(CheckoutLoaded(state.session.evolve(selected_payment_method=method)))
            logger.debug(f"Selected payment method {method.id}")

    def update_billing_address(self, address: Address) -> None:
        state = self._state.value
        if isinstance(state, CheckoutLoaded):
            self._state.set(CheckoutLoaded(state.session.evolve(billing_address=address)))
            logger.debug(f"Updated billing address: {address.short_display}")

    # ==================
    # Payment methods
    # ==================

    async def create_payment_method_from_card(
        self,
        card_details: CardDetails,
        email: str,
        name: str,
        billing_address: Address,
        set_as_default: bool = False,
    ) -> CheckoutResult:
        """
        Tokenise a card and store it as a payment method.

        The card goes only to the payment facade; the order service receives
        the resulting token.
        """
        state = self._state.value
        if not isinstance(state, CheckoutLoaded):
            return CheckoutResult.rejected(
                InvalidCheckoutStateError("Checkout is not ready to add a payment method")
            )
        session = state.session

        self._state.set(CheckoutProcessing("Adding payment method..."))
        try:
            token = await self._facade.create_payment_method(
                card_details, BillingDetails(email=email, name=name, address=billing_address)
            )
            method = await self._order_service.create_payment_method(
                token.id, billing_address, set_as_default
            )
        except Exception as e:
            logger.error(f"Error adding payment method: {e}")
            error = self._wrap(e, "Failed to add payment method")
            self._fail(error, session=session, stage="payment_method")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        methods = session.available_payment_methods
        selected = session.selected_payment_method
        if set_as_default:
            methods = tuple(replace(m, is_default=False) for m in methods)
            method = replace(method, is_default=True)
            selected = method
        elif selected is None:
            selected = method

        self._state.set(
            CheckoutLoaded(
                session.evolve(
                    available_payment_methods=methods + (method,),
                    selected_payment_method=selected,
                    billing_address=billing_address,
                )
            )
        )
        logger.info(f"Added payment method {method.id}")
        self._emit(
            PaymentMethodCreatedEvent(
                payment_method_id=method.id,
                brand=method.brand,
                last4=method.last4,
                is_default=method.is_default,
            )
        )
        return CheckoutResult(CheckoutOutcome.COMPLETED, payment_method=method)

    async def refresh_payment_methods(self) -> None:
        """Best-effort reload of stored payment methods. Failures leave the state alone."""
        if not isinstance(self._state.value, CheckoutLoaded):
            return
        try:
            methods = tuple(await self._order_service.get_payment_methods())
        except Exception as e:
            logger.warning(f"Error refreshing payment methods: {e}")
            return

        state = self._state.value
        if not isinstance(state, CheckoutLoaded):
            return
        session = state.session
        selected = None
        if session.selected_payment_method is not None:
            selected = next(
                (m for m in methods if m.id == session.selected_payment_method.id), None
            )
        if selected is None:
            selected = default_payment_method(methods)
        self._state.set(
            CheckoutLoaded(
                session.evolve(available_payment_methods=methods, selected_payment_method=selected)
            )
        )
        logger.debug(f"Refreshed {len(methods)} payment methods")

    async def delete_payment_method(self, payment_method_id: str) -> CheckoutResult:
        """
        Remove a stored payment method and drop it from the session.

        Deleting the selected method moves the selection to the default
        (or first) remaining one.
        """
        checked = self._stored_method(payment_method_id)
        if isinstance(checked, CheckoutResult):
            return checked
        session, method = checked

        self._state.set(CheckoutProcessing("Removing payment method..."))
        try:
            deleted = await self._order_service.delete_payment_method(method.id)
        except Exception as e:
            logger.error(f"Error deleting payment method: {e}")
            error = self._wrap(e, "Failed to delete payment method")
            self._fail(error, session=session, stage="payment_method")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)
        if not deleted:
            error = StorefrontError(
                "Failed to delete payment method", ErrorCode.PAYMENT_METHOD_UPDATE_FAILED
            )
            self._fail(error, session=session, stage="payment_method")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        methods = tuple(m for m in session.available_payment_methods if m.id != method.id)
        selected = session.selected_payment_method
        if selected is not None and selected.id == method.id:
            selected = default_payment_method(methods)
        self._state.set(
            CheckoutLoaded(
                session.evolve(available_payment_methods=methods, selected_payment_method=selected)
            )
        )
        logger.info(f"Deleted payment method {method.id}")
        return CheckoutResult(CheckoutOutcome.COMPLETED, payment_method=method)

    async def set_default_payment_method(self, payment_method_id: str) -> CheckoutResult:
        """Make a stored method the default and select it."""
        checked = self._stored_method(payment_method_id)
        if isinstance(checked, CheckoutResult):
            return checked
        session, method = checked

        self._state.set(CheckoutProcessing("Updating payment method..."))
        try:
            updated = await self._order_service.set_default_payment_method(method.id)
        except Exception as e:
            logger.error(f"Error setting default payment method: {e}")
            error = self._wrap(e, "Failed to set default payment method")
            self._fail(error, session=session, stage="payment_method")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)
        if not updated:
            error = StorefrontError(
                "Failed to set default payment method", ErrorCode.PAYMENT_METHOD_UPDATE_FAILED
            )
            self._fail(error, session=session, stage="payment_method")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        methods = tuple(
            replace(m, is_default=m.id == method.id) for m in session.available_payment_methods
        )
        default = next(m for m in methods if m.id == method.id)
        self._state.set(
            CheckoutLoaded(
                session.evolve(available_payment_methods=methods, selected_payment_method=default)
            )
        )
        logger.info(f"Default payment method is now {method.id}")
        return CheckoutResult(CheckoutOutcome.COMPLETED, payment_method=default)

    def _stored_method(
        self, payment_method_id: str
    ) -> Union[CheckoutResult, Tuple[CheckoutSession, PaymentMethod]]:
        state = self._state.value
        if not isinstance(state, CheckoutLoaded):
            return CheckoutResult.rejected(
                InvalidCheckoutStateError("Checkout is not ready to manage payment methods")
            )
        session = state.session
        if session.client_secret is not None:
            return CheckoutResult.rejected(
                InvalidCheckoutStateError("Payment is waiting for authentication")
            )
        method = session.find_payment_method(payment_method_id)
        if method is None:
            return CheckoutResult.rejected(
                InvalidCheckoutStateError(
                    f"Unknown payment method {payment_method_id}", code=ErrorCode.NO_PAYMENT_METHOD
                )
            )
        return session, method

    # ==================
    # Payment
    # ==================

    async def process_payment(
        self,
        payment_method_id: Optional[str] = None,
        payment_method_type: str = PaymentMethodType.CARD.value,
        billing_address: Optional[Address] = None,
        line_item_info: Optional[Dict[str, Any]] = None,
    ) -> CheckoutResult:
        """
        Submit the session's basket as an order.

        Returns:
            COMPLETED with the order, REQUIRES_AUTHENTICATION when a step-up
            challenge is pending (state stays CheckoutLoaded at the
            processing step), FAILED when the state moved to CheckoutError,
            or REJECTED when the call was refused without changing state
        """
        state = self._state.value
        if not isinstance(state, CheckoutLoaded):
            return CheckoutResult.rejected(
                InvalidCheckoutStateError(f"Cannot process payment while {state.status.value}")
            )
        session = state.session

        if session.client_secret is not None:
            return CheckoutResult.rejected(
                InvalidCheckoutStateError("Payment is waiting for authentication")
            )

        if session.basket.is_empty:
            error = EmptyBasketError()
            self._fail(error, session=session, stage="payment")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        method_id = payment_method_id
        if method_id is None and session.selected_payment_method is not None:
            method_id = session.selected_payment_method.id
        if method_id is None and payment_method_type == PaymentMethodType.CARD.value:
            error = InvalidCheckoutStateError(
                "Select a payment method", code=ErrorCode.NO_PAYMENT_METHOD
            )
            self._fail(error, session=session, stage="payment")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        address = billing_address or session.billing_address

        self._state.set(CheckoutProcessing("Processing payment..."))
        try:
            result = await self._order_service.place_order(
                session.basket,
                method_id,
                payment_method_type,
                billing_address=address,
                line_item_info=line_item_info,
            )
        except Exception as e:
            logger.error(f"Error processing payment: {e}")
            error = self._wrap(e, "Payment processing failed")
            self._fail(error, session=session, stage="payment")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        if not result.success:
            error = StorefrontError(result.error or "Payment failed", result.error_code)
            self._fail(error, session=session, stage="payment")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        order = result.order
        if order is None:
            error = StorefrontError("No order created", ErrorCode.NO_ORDER)
            self._fail(error, session=session, stage="payment")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        if result.next_action == NextAction.REQUIRES_ACTION.value:
            if not result.client_secret:
                error = StorefrontError(
                    "Payment requires authentication but no challenge was issued",
                    ErrorCode.CONFIRMATION_FAILED,
                )
                self._fail(error, session=session, stage="payment")
                return CheckoutResult(CheckoutOutcome.FAILED, error=error)

            self._state.set(
                CheckoutLoaded(
                    session.evolve(
                        client_secret=result.client_secret,
                        current_step=min(CheckoutStep.PROCESSING, self._total_steps),
                        is_processing=True,
                        pending_order=order,
                        billing_address=address,
                    )
                )
            )
            logger.info(f"Order {order.id} requires authentication")
            self._emit(AuthenticationRequiredEvent(order_id=order.id, basket_id=session.basket.id))
            return CheckoutResult(CheckoutOutcome.REQUIRES_AUTHENTICATION, order=order)

        return self._complete(order, session, authenticated=False)

    async def handle_3ds_authentication(self, client_secret: str) -> CheckoutResult:
        """
        Present the step-up challenge for the pending payment.

        The secret must match the one stored on the session; anything else
        is rejected without touching the payment facade.
        """
        state = self._state.value
        if not isinstance(state, CheckoutLoaded):
            return CheckoutResult.rejected(
                InvalidCheckoutStateError(f"No authentication pending while {state.status.value}")
            )
        session = state.session
        if session.client_secret is None or client_secret != session.client_secret:
            logger.warning("Ignoring authentication request for a stale client secret")
            return CheckoutResult.rejected(StaleClientSecretError())

        self._state.set(CheckoutProcessing("Completing authentication..."))
        try:
            intent = await self._facade.present_authentication_challenge(client_secret)
        except PaymentError as e:
            if e.is_user_cancellation:
                return self._authentication_cancelled(session)
            logger.error(f"Authentication challenge failed: {e}")
            self._fail(e, session=self._cleared(session), stage="authentication")
            return CheckoutResult(CheckoutOutcome.FAILED, error=e)
        except Exception as e:
            logger.error(f"Authentication challenge failed: {e}")
            error = self._wrap(e, "Authentication failed")
            self._fail(error, session=session, stage="authentication")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        if intent.status is PaymentIntentStatus.CANCELLED:
            return self._authentication_cancelled(session)

        if intent.status is PaymentIntentStatus.REQUIRES_ACTION:
            self._state.set(CheckoutLoaded(session))
            logger.info("Authentication still required")
            return CheckoutResult(CheckoutOutcome.REQUIRES_AUTHENTICATION, order=session.pending_order)

        if intent.status is PaymentIntentStatus.FAILED:
            error = StorefrontError(
                intent.reason or "Authentication failed", ErrorCode.AUTHENTICATION_FAILED
            )
            self._fail(error, session=self._cleared(session), stage="authentication")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        return await self._confirm_authenticated(session, intent.payment_intent_id)

    def reset(self) -> None:
        self._state.set(CheckoutInitial())

    def dismiss_error(self) -> None:
        """Leave the error state, back to the last good session if there is one."""
        state = self._state.value
        if not isinstance(state, CheckoutError):
            return
        if state.session is not None:
            self._state.set(CheckoutLoaded(state.session.evolve(is_processing=False)))
        else:
            self._state.set(CheckoutInitial())

    # ==================
    # Internals
    # ==================

    async def _confirm_authenticated(
        self, session: CheckoutSession, payment_intent_id: Optional[str]
    ) -> CheckoutResult:
        pending = session.pending_order
        intent_id = payment_intent_id or (pending.payment_intent_id if pending else None)
        try:
            if not intent_id:
                raise StorefrontError("Missing payment intent id", ErrorCode.CONFIRMATION_FAILED)
            confirmed = await self._order_service.confirm_authenticated_payment(intent_id)
            if not confirmed:
                raise StorefrontError(
                    "Payment could not be confirmed", ErrorCode.CONFIRMATION_FAILED
                )
            order = await self._order_service.get_order(pending.id) if pending else None
            if order is None:
                raise StorefrontError(
                    "Payment confirmed but the order could not be loaded", ErrorCode.NO_ORDER
                )
        except Exception as e:
            logger.error(f"Error completing authentication: {e}")
            error = self._wrap(e, "Authentication failed")
            self._fail(error, session=session, stage="confirmation")
            return CheckoutResult(CheckoutOutcome.FAILED, error=error)

        return self._complete(order, session, authenticated=True)

    def _complete(self, order: Order, session: CheckoutSession, authenticated: bool) -> CheckoutResult:
        self._state.set(CheckoutSuccess(order))
        logger.info(f"Order placed successfully: {order.id}")
        self._emit(
            CheckoutCompletedEvent(
                order_id=order.id,
                basket_id=session.basket.id,
                total=order.total,
                charge_total=order.charge_total,
                payment_method_id=order.payment_method_id,
                authenticated=authenticated,
            )
        )
        return CheckoutResult(CheckoutOutcome.COMPLETED, order=order)

    def _authentication_cancelled(self, session: CheckoutSession) -> CheckoutResult:
        pending = session.pending_order
        self._state.set(CheckoutLoaded(self._cleared(session)))
        logger.info("Authentication cancelled by user")
        self._emit(
            AuthenticationCancelledEvent(
                order_id=pending.id if pending else None, basket_id=session.basket.id
            )
        )
        return CheckoutResult(CheckoutOutcome.CANCELLED)

    @staticmethod
    def _cleared(session: CheckoutSession) -> CheckoutSession:
        """Session with the pending challenge dropped, ready for another attempt."""
        return session.evolve(client_secret=None, is_processing=False, pending_order=None)

    @staticmethod
    def _wrap(exc: Exception, message: str) -> StorefrontError:
        if isinstance(exc, StorefrontError):
            return exc
        return StorefrontError(f"{message}: {exc}", ErrorCode.GATEWAY_ERROR)

    def _fail(
        self,
        error: StorefrontError,
        session: Optional[CheckoutSession] = None,
        stage: Optional[str] = None,
    ) -> None:
        message = error.message or str(error)
        self._state.set(CheckoutError(message=message, code=error.code, session=session))
        self._emit(
            CheckoutFailedEvent(
                basket_id=session.basket.id if session else None,
                error=message,
                error_code=error.code,
                stage=stage,
            )
        )

    def _emit(self, event: DomainEvent) -> None:
        if self._dispatcher is None:
            return
        result = self._dispatcher.emit(event)
        if not result.success and result.error_type != "no_handler":
            logger.warning(f"Handler for {event.name} failed: {result.error}")
