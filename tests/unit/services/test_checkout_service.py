"""Tests for CheckoutService."""
import pytest
import pytest_asyncio

from storefront.errors import (
    ErrorCode,
    GatewayError,
    PaymentError,
    PaymentErrorCode,
    StaleClientSecretError,
)
from storefront.events.domain import DomainEventDispatcher, EventResult, IEventHandler
from storefront.models.checkout import CardDetails, PaymentMethod, PaymentMethodToken, PlaceOrderResult
from storefront.models.enums import CheckoutStep
from storefront.sdk.interface import PaymentIntentResult, PaymentIntentStatus
from storefront.services.checkout_service import (
    CheckoutError,
    CheckoutInitial,
    CheckoutLoaded,
    CheckoutOutcome,
    CheckoutService,
    CheckoutStatus,
    CheckoutSuccess,
)

CARD = CardDetails(number="4000002500003155", exp_month=12, exp_year=2030, cvc="123")
SECRET = "pi_123_secret_abc"


class CollectingHandler(IEventHandler):
    def __init__(self):
        self.events = []

    def can_handle(self, event):
        return True

    def handle(self, event):
        self.events.append(event)
        return EventResult.success_result()


@pytest.fixture
def service(order_service, payment_facade):
    return CheckoutService(order_service, payment_facade)


@pytest_asyncio.fixture
async def loaded(service, make_basket):
    """Service with a loaded session for a 5000 basket."""
    await service.initialize_checkout(make_basket())
    return service


@pytest_asyncio.fixture
async def awaiting_auth(loaded, order_service, placed, make_order):
    """Service waiting on a 3-D Secure challenge for SECRET."""
    order_service.place_order.return_value = placed(
        next_action="requires_action",
        client_secret=SECRET,
        order=make_order(status="payment_pending"),
    )
    await loaded.process_payment()
    return loaded


class TestInitializeCheckout:
    """Tests for initialize_checkout."""

    @pytest.mark.asyncio
    async def test_empty_basket_fails_without_network(self, service, order_service, make_basket):
        """An empty basket errors immediately and fetches nothing."""
        await service.initialize_checkout(make_basket(items=()))

        assert isinstance(service.state, CheckoutError)
        assert service.state.code == ErrorCode.EMPTY_BASKET
        order_service.get_payment_methods.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_basket_fails(self, service, order_service):
        await service.initialize_checkout(None)

        assert service.state.code == ErrorCode.EMPTY_BASKET
        order_service.get_payment_methods.assert_not_called()

    @pytest.mark.asyncio
    async def test_default_method_is_preselected(self, service, make_basket, default_method):
        """The default-flagged method is selected on load."""
        states = []
        service.subscribe(states.append)

        await service.initialize_checkout(make_basket())

        assert [s.status for s in states] == [CheckoutStatus.LOADING, CheckoutStatus.LOADED]
        session = service.session
        assert session.current_step == CheckoutStep.REVIEW
        assert session.selected_payment_method == default_method
        assert len(session.available_payment_methods) == 2

    @pytest.mark.asyncio
    async def test_billing_address_comes_from_selected_method(
        self, service, order_service, make_basket, card_method, address
    ):
        order_service.get_payment_methods.return_value = [card_method]

        await service.initialize_checkout(make_basket())

        assert service.session.selected_payment_method == card_method
        assert service.session.billing_address == address

    @pytest.mark.asyncio
    async def test_no_methods(self, service, order_service, make_basket):
        order_service.get_payment_methods.return_value = []

        await service.initialize_checkout(make_basket())

        assert service.session.selected_payment_method is None

    @pytest.mark.asyncio
    async def test_fetch_failure(self, service, order_service, make_basket):
        """A failed fetch becomes an error state with the gateway code."""
        order_service.get_payment_methods.side_effect = GatewayError("offline")

        await service.initialize_checkout(make_basket())

        assert service.state.code == ErrorCode.GATEWAY_ERROR
        assert service.error_message == "offline"

    @pytest.mark.asyncio
    async def test_session_keeps_its_basket_snapshot(self, basket_gateway, service, make_basket, ok_result):
        """Later basket store changes do not reach the session."""
        from storefront.services.basket_store import BasketStore

        original = make_basket(items=(("101", 5000),))
        basket_gateway.get_current_basket.return_value = original
        store = await BasketStore.create(basket_gateway)
        await service.initialize_from_store(store)

        basket_gateway.add_item.return_value = ok_result(make_basket(items=(("101", 5000), ("102", 2000))))
        await store.add_item("102", "course")

        assert store.item_count == 2
        assert service.session.basket == original


class TestNavigation:
    """Tests for step navigation and selection."""

    @pytest.mark.asyncio
    async def test_steps_are_clamped(self, loaded):
        loaded.previous_step()
        assert loaded.session.current_step == 1

        for _ in range(10):
            loaded.next_step()
        assert loaded.session.current_step == 4

    @pytest.mark.asyncio
    async def test_custom_step_count(self, order_service, payment_facade, make_basket):
        service = CheckoutService(order_service, payment_facade, total_steps=2)
        await service.initialize_checkout(make_basket())

        for _ in range(5):
            service.next_step()

        assert service.session.current_step == 2

    @pytest.mark.asyncio
    async def test_select_method_and_address(self, loaded, card_method, address):
        loaded.select_payment_method(card_method)
        loaded.update_billing_address(address)

        assert loaded.session.selected_payment_method == card_method
        assert loaded.session.billing_address == address

    def test_navigation_ignored_before_load(self, service, card_method):
        """Without a loaded session, navigation is a no-op."""
        service.next_step()
        service.select_payment_method(card_method)

        assert isinstance(service.state, CheckoutInitial)


class TestCreatePaymentMethod:
    """Tests for create_payment_method_from_card."""

    @pytest.mark.asyncio
    async def test_tokenises_then_persists(self, loaded, payment_facade, order_service, address):
        """The card goes to the facade; only the token reaches the order service."""
        payment_facade.create_payment_method.return_value = PaymentMethodToken("pm_tok_1", "visa", "3155")
        new_method = PaymentMethod(id="pm_tok_1", brand="visa", last4="3155")
        order_service.create_payment_method.return_value = new_method

        result = await loaded.create_payment_method_from_card(
            CARD, "ada@example.com", "Ada Lovelace", address, set_as_default=True
        )

        assert result.outcome is CheckoutOutcome.COMPLETED
        card_arg, billing = payment_facade.create_payment_method.call_args[0]
        assert card_arg == CARD
        assert billing.email == "ada@example.com"
        order_service.create_payment_method.assert_awaited_once_with("pm_tok_1", address, True)
        session = loaded.session
        assert session.selected_payment_method.id == "pm_tok_1"
        assert session.selected_payment_method.is_default is True
        assert [m.is_default for m in session.available_payment_methods] == [False, False, True]
        assert session.billing_address == address

    @pytest.mark.asyncio
    async def test_non_default_keeps_selection(self, loaded, payment_facade, order_service, address, default_method):
        payment_facade.create_payment_method.return_value = PaymentMethodToken("pm_tok_2")
        order_service.create_payment_method.return_value = PaymentMethod(id="pm_tok_2")

        await loaded.create_payment_method_from_card(CARD, "a@b.c", "A", address)

        assert loaded.session.selected_payment_method == default_method
        assert len(loaded.session.available_payment_methods) == 3

    @pytest.mark.asyncio
    async def test_card_declined(self, loaded, payment_facade, order_service, address):
        """A decline becomes an error state and nothing is persisted."""
        payment_facade.create_payment_method.side_effect = PaymentError(
            "Your card was declined.", PaymentErrorCode.CARD_DECLINED
        )

        result = await loaded.create_payment_method_from_card(CARD, "a@b.c", "A", address)

        assert result.outcome is CheckoutOutcome.FAILED
        assert result.error.payment_code is PaymentErrorCode.CARD_DECLINED
        assert loaded.state.code == "card_declined"
        assert loaded.state.session is not None
        order_service.create_payment_method.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_before_load(self, service, payment_facade, address):
        result = await service.create_payment_method_from_card(CARD, "a@b.c", "A", address)

        assert result.outcome is CheckoutOutcome.REJECTED
        payment_facade.create_payment_method.assert_not_called()


class TestManagePaymentMethods:
    """Tests for delete_payment_method and set_default_payment_method."""

    @pytest.mark.asyncio
    async def test_delete_selected_falls_back(self, loaded, order_service, card_method):
        """Deleting the selected method selects what remains."""
        order_service.delete_payment_method.return_value = True

        result = await loaded.delete_payment_method("pm_card_default")

        assert result.outcome is CheckoutOutcome.COMPLETED
        assert result.payment_method.id == "pm_card_default"
        order_service.delete_payment_method.assert_awaited_once_with("pm_card_default")
        session = loaded.session
        assert [m.id for m in session.available_payment_methods] == ["pm_card_1"]
        assert session.selected_payment_method == card_method

    @pytest.mark.asyncio
    async def test_delete_other_keeps_selection(self, loaded, order_service, default_method):
        order_service.delete_payment_method.return_value = True

        await loaded.delete_payment_method("pm_card_1")

        assert loaded.session.selected_payment_method == default_method
        assert len(loaded.session.available_payment_methods) == 1

    @pytest.mark.asyncio
    async def test_delete_refused(self, loaded, order_service):
        """A refusal keeps the last good session on the error state."""
        order_service.delete_payment_method.return_value = False

        result = await loaded.delete_payment_method("pm_card_1")

        assert result.outcome is CheckoutOutcome.FAILED
        assert result.error_code == ErrorCode.PAYMENT_METHOD_UPDATE_FAILED
        assert isinstance(loaded.state, CheckoutError)
        assert len(loaded.state.session.available_payment_methods) == 2

    @pytest.mark.asyncio
    async def test_delete_unknown_method_rejected(self, loaded, order_service):
        result = await loaded.delete_payment_method("pm_missing")

        assert result.outcome is CheckoutOutcome.REJECTED
        assert result.error_code == ErrorCode.NO_PAYMENT_METHOD
        assert isinstance(loaded.state, CheckoutLoaded)
        order_service.delete_payment_method.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_default_moves_flag_and_selection(self, loaded, order_service):
        order_service.set_default_payment_method.return_value = True

        result = await loaded.set_default_payment_method("pm_card_1")

        assert result.outcome is CheckoutOutcome.COMPLETED
        assert result.payment_method.is_default is True
        session = loaded.session
        assert session.selected_payment_method.id == "pm_card_1"
        assert [(m.id, m.is_default) for m in session.available_payment_methods] == [
            ("pm_card_1", True),
            ("pm_card_default", False),
        ]

    @pytest.mark.asyncio
    async def test_set_default_gateway_failure(self, loaded, order_service):
        order_service.set_default_payment_method.side_effect = GatewayError("offline")

        result = await loaded.set_default_payment_method("pm_card_1")

        assert result.outcome is CheckoutOutcome.FAILED
        assert loaded.state.code == ErrorCode.GATEWAY_ERROR
        assert loaded.state.session.selected_payment_method.id == "pm_card_default"

    @pytest.mark.asyncio
    async def test_rejected_while_awaiting_authentication(self, awaiting_auth, order_service):
        result = await awaiting_auth.set_default_payment_method("pm_card_1")

        assert result.outcome is CheckoutOutcome.REJECTED
        order_service.set_default_payment_method.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_before_load(self, service, order_service):
        result = await service.delete_payment_method("pm_card_1")

        assert result.outcome is CheckoutOutcome.REJECTED
        order_service.delete_payment_method.assert_not_called()


class TestProcessPayment:
    """Tests for process_payment."""

    @pytest.mark.asyncio
    async def test_completed_without_authentication(self, loaded, order_service, placed, make_order, default_method):
        """A payment that needs no challenge ends in success with the server's order."""
        order = make_order(status="success")
        order_service.place_order.return_value = placed(order=order)

        result = await loaded.process_payment()

        assert result.outcome is CheckoutOutcome.COMPLETED
        assert isinstance(loaded.state, CheckoutSuccess)
        assert loaded.order == order
        args, kwargs = order_service.place_order.call_args
        assert args[1] == default_method.id
        assert args[2] == "card"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, awaiting_auth):
        """A challenge leaves the session loaded at the processing step."""
        session = awaiting_auth.session

        assert isinstance(awaiting_auth.state, CheckoutLoaded)
        assert session.client_secret == SECRET
        assert session.current_step == CheckoutStep.PROCESSING
        assert session.is_processing is True
        assert session.pending_order.id == "order-1"

    @pytest.mark.asyncio
    async def test_requires_action_without_secret(self, loaded, order_service, placed):
        order_service.place_order.return_value = placed(next_action="requires_action")

        result = await loaded.process_payment()

        assert result.outcome is CheckoutOutcome.FAILED
        assert loaded.state.code == ErrorCode.CONFIRMATION_FAILED

    @pytest.mark.asyncio
    async def test_server_refusal(self, loaded, order_service, placed):
        """A refused order carries the server's message and code."""
        order_service.place_order.return_value = placed(
            success=False, error="Card declined", error_code="ORDER_ERROR"
        )

        result = await loaded.process_payment()

        assert result.outcome is CheckoutOutcome.FAILED
        assert loaded.state.message == "Card declined"
        assert loaded.state.code == "ORDER_ERROR"
        assert loaded.state.session is not None

    @pytest.mark.asyncio
    async def test_missing_order(self, loaded, order_service):
        order_service.place_order.return_value = PlaceOrderResult(success=True)

        await loaded.process_payment()

        assert loaded.state.code == ErrorCode.NO_ORDER

    @pytest.mark.asyncio
    async def test_gateway_exception(self, loaded, order_service):
        order_service.place_order.side_effect = RuntimeError("timeout")

        result = await loaded.process_payment()

        assert result.error_code == ErrorCode.GATEWAY_ERROR
        assert isinstance(loaded.state, CheckoutError)

    @pytest.mark.asyncio
    async def test_no_payment_method(self, service, order_service, make_basket):
        order_service.get_payment_methods.return_value = []
        await service.initialize_checkout(make_basket())

        result = await service.process_payment()

        assert result.error_code == ErrorCode.NO_PAYMENT_METHOD
        order_service.place_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_outside_loaded(self, service, order_service):
        """Processing before the session loads changes nothing."""
        result = await service.process_payment()

        assert result.outcome is CheckoutOutcome.REJECTED
        assert isinstance(service.state, CheckoutInitial)
        order_service.place_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_submission_while_awaiting_auth(self, awaiting_auth, order_service):
        """A pending challenge blocks another order submission."""
        result = await awaiting_auth.process_payment()

        assert result.outcome is CheckoutOutcome.REJECTED
        assert order_service.place_order.await_count == 1
        assert awaiting_auth.session.client_secret == SECRET

    @pytest.mark.asyncio
    async def test_success_closes_session(self, loaded, order_service, placed, make_order):
        """After success, every further operation is refused."""
        order_service.place_order.return_value = placed(order=make_order())
        await loaded.process_payment()

        loaded.next_step()
        again = await loaded.process_payment()
        auth = await loaded.handle_3ds_authentication(SECRET)

        assert again.outcome is CheckoutOutcome.REJECTED
        assert auth.outcome is CheckoutOutcome.REJECTED
        assert isinstance(loaded.state, CheckoutSuccess)


class TestAuthentication:
    """Tests for handle_3ds_authentication."""

    @pytest.mark.asyncio
    async def test_success_confirms_and_loads_order(self, awaiting_auth, payment_facade, order_service, make_order):
        """A passed challenge is confirmed and the server's order shown."""
        final = make_order(status="success")
        payment_facade.present_authentication_challenge.return_value = PaymentIntentResult(
            PaymentIntentStatus.SUCCEEDED, "pi_123"
        )
        order_service.confirm_authenticated_payment.return_value = True
        order_service.get_order.return_value = final

        result = await awaiting_auth.handle_3ds_authentication(SECRET)

        assert result.outcome is CheckoutOutcome.COMPLETED
        assert awaiting_auth.order == final
        order_service.confirm_authenticated_payment.assert_awaited_once_with("pi_123")
        order_service.get_order.assert_awaited_once_with("order-1")

    @pytest.mark.asyncio
    async def test_confirmation_refused(self, awaiting_auth, payment_facade, order_service):
        payment_facade.present_authentication_challenge.return_value = PaymentIntentResult(
            PaymentIntentStatus.SUCCEEDED, "pi_123"
        )
        order_service.confirm_authenticated_payment.return_value = False

        result = await awaiting_auth.handle_3ds_authentication(SECRET)

        assert result.error_code == ErrorCode.CONFIRMATION_FAILED
        order_service.get_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_order_missing_after_confirmation(self, awaiting_auth, payment_facade, order_service):
        payment_facade.present_authentication_challenge.return_value = PaymentIntentResult(
            PaymentIntentStatus.SUCCEEDED, None
        )
        order_service.confirm_authenticated_payment.return_value = True
        order_service.get_order.return_value = None

        result = await awaiting_auth.handle_3ds_authentication(SECRET)

        assert result.error_code == ErrorCode.NO_ORDER
        order_service.confirm_authenticated_payment.assert_awaited_once_with("pi_123")

    @pytest.mark.asyncio
    async def test_failed_challenge(self, awaiting_auth, payment_facade):
        """A failed challenge errors with the secret cleared for a retry."""
        payment_facade.present_authentication_challenge.return_value = PaymentIntentResult(
            PaymentIntentStatus.FAILED, "pi_123", reason="Authentication failed at issuer"
        )

        result = await awaiting_auth.handle_3ds_authentication(SECRET)

        assert result.outcome is CheckoutOutcome.FAILED
        assert awaiting_auth.state.code == ErrorCode.AUTHENTICATION_FAILED
        assert awaiting_auth.state.message == "Authentication failed at issuer"
        assert awaiting_auth.state.session.client_secret is None

    @pytest.mark.asyncio
    async def test_cancelled_challenge(self, awaiting_auth, payment_facade):
        """Cancelling returns to the loaded session, not an error."""
        payment_facade.present_authentication_challenge.return_value = PaymentIntentResult(
            PaymentIntentStatus.CANCELLED, "pi_123"
        )

        result = await awaiting_auth.handle_3ds_authentication(SECRET)

        assert result.outcome is CheckoutOutcome.CANCELLED
        assert isinstance(awaiting_auth.state, CheckoutLoaded)
        session = awaiting_auth.session
        assert session.client_secret is None
        assert session.is_processing is False
        assert session.pending_order is None
        assert session.current_step == CheckoutStep.PROCESSING

    @pytest.mark.asyncio
    async def test_user_cancellation_error(self, awaiting_auth, payment_facade):
        """A facade cancellation error is treated as a cancel."""
        payment_facade.present_authentication_challenge.side_effect = PaymentError(
            "closed", PaymentErrorCode.CANCELLED, is_user_cancellation=True
        )

        result = await awaiting_auth.handle_3ds_authentication(SECRET)

        assert result.outcome is CheckoutOutcome.CANCELLED
        assert isinstance(awaiting_auth.state, CheckoutLoaded)

    @pytest.mark.asyncio
    async def test_stale_secret_never_reaches_facade(self, awaiting_auth, payment_facade):
        """A secret that is not the pending one is refused locally."""
        result = await awaiting_auth.handle_3ds_authentication("pi_old_secret_xyz")

        assert result.outcome is CheckoutOutcome.REJECTED
        assert isinstance(result.error, StaleClientSecretError)
        assert awaiting_auth.session.client_secret == SECRET
        payment_facade.present_authentication_challenge.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_pending_challenge(self, loaded, payment_facade):
        result = await loaded.handle_3ds_authentication(SECRET)

        assert result.error_code == ErrorCode.STALE_CLIENT_SECRET
        payment_facade.present_authentication_challenge.assert_not_called()

    @pytest.mark.asyncio
    async def test_still_requires_action(self, awaiting_auth, payment_facade):
        payment_facade.present_authentication_challenge.return_value = PaymentIntentResult(
            PaymentIntentStatus.REQUIRES_ACTION, "pi_123"
        )

        result = await awaiting_auth.handle_3ds_authentication(SECRET)

        assert result.requires_authentication is True
        assert awaiting_auth.session.client_secret == SECRET


class TestRecovery:
    """Tests for refresh, reset and error dismissal."""

    @pytest.mark.asyncio
    async def test_refresh_keeps_selection(self, loaded, order_service, card_method, default_method):
        loaded.select_payment_method(card_method)
        order_service.get_payment_methods.return_value = [default_method, card_method]

        await loaded.refresh_payment_methods()

        assert loaded.session.selected_payment_method == card_method

    @pytest.mark.asyncio
    async def test_refresh_failure_is_tolerated(self, loaded, order_service):
        """A refresh error leaves the loaded session untouched."""
        before = loaded.state
        order_service.get_payment_methods.side_effect = GatewayError("offline")

        await loaded.refresh_payment_methods()

        assert loaded.state is before

    @pytest.mark.asyncio
    async def test_dismiss_error_returns_to_session(self, loaded, order_service):
        order_service.place_order.side_effect = GatewayError("offline")
        await loaded.process_payment()

        loaded.dismiss_error()

        assert isinstance(loaded.state, CheckoutLoaded)
        assert loaded.session.is_processing is False

    @pytest.mark.asyncio
    async def test_dismiss_error_without_session(self, service, make_basket):
        await service.initialize_checkout(make_basket(items=()))

        service.dismiss_error()

        assert isinstance(service.state, CheckoutInitial)

    @pytest.mark.asyncio
    async def test_reset(self, loaded):
        loaded.reset()

        assert isinstance(loaded.state, CheckoutInitial)
        assert loaded.session is None


class TestCheckoutEvents:
    """Tests for emitted domain events."""

    @pytest.mark.asyncio
    async def test_events_through_authenticated_checkout(
        self, order_service, payment_facade, make_basket, placed, make_order
    ):
        dispatcher = DomainEventDispatcher()
        handler = CollectingHandler()
        for name in ("payment.authentication_required", "checkout.completed"):
            dispatcher.register(name, handler)
        service = CheckoutService(order_service, payment_facade, event_dispatcher=dispatcher)
        await service.initialize_checkout(make_basket())
        order_service.place_order.return_value = placed(
            next_action="requires_action", client_secret=SECRET
        )
        await service.process_payment()
        payment_facade.present_authentication_challenge.return_value = PaymentIntentResult(
            PaymentIntentStatus.SUCCEEDED, "pi_123"
        )
        order_service.confirm_authenticated_payment.return_value = True
        order_service.get_order.return_value = make_order()

        await service.handle_3ds_authentication(SECRET)

        assert [e.name for e in handler.events] == [
            "payment.authentication_required",
            "checkout.completed",
        ]
        assert handler.events[1].authenticated is True
        assert handler.events[1].basket_id == "basket-1"

    @pytest.mark.asyncio
    async def test_failure_event(self, order_service, payment_facade):
        dispatcher = DomainEventDispatcher()
        handler = CollectingHandler()
        dispatcher.register("checkout.failed", handler)
        service = CheckoutService(order_service, payment_facade, event_dispatcher=dispatcher)

        await service.initialize_checkout(None)

        assert handler.events[0].stage == "initialize"
        assert handler.events[0].error_code == ErrorCode.EMPTY_BASKET
