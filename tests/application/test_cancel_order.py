"""Integration tests for the CancelOrder use case."""

import pytest

from marketplace.domain.exceptions import IllegalTransition, ValidationError
from marketplace.domain.model.order import OrderStatus, PaymentMethod, RefundStatus
from marketplace.domain.model.value_objects import Money
from tests.builders import App, make_submission
from tests.fakes import FakePaymentGateway


class TestCancelOrder:

    def test_cancel_pending_restores_stock(self):
        app = App()
        order = app.world.place()
        assert app.world.stock("P1") == (3, 2)

        dto = app.cancel.handle(order.id, reason="Changed plans", actor="C1")

        assert dto.status == "cancelled"
        assert dto.refund_status is None
        assert app.world.stock("P1") == (5, 0)

    def test_cancel_paid_order_refunds_through_gateway(self):
        app = App()
        result = app.submit.handle(make_submission())
        assert app.world.stock("P1") == (3, 0)

        dto = app.cancel.handle(result.order.id, reason="Customer request")

        assert dto.status == "refunded"
        assert dto.refund_status == "completed"
        assert app.gateway.refunds == [("PAY-1", Money.of("290.00"))]
        assert app.world.stock("P1") == (5, 0)

    def test_refund_failure_leaves_refund_pending(self):
        app = App(gateway=FakePaymentGateway(fail_refund=True))
        result = app.submit.handle(make_submission())

        dto = app.cancel.handle(result.order.id, reason="Customer request")

        assert dto.status == "cancelled"
        assert dto.refund_status == "pending"
        stored = app.world.orders.get_by_id(result.order.id)
        assert stored.cancellation.refund_status is RefundStatus.PENDING

    def test_cancel_cod_order_opens_no_refund(self):
        app = App()
        result = app.submit.handle(make_submission(payment_method="cod"))

        dto = app.cancel.handle(result.order.id, reason="Out of town")
        assert dto.status == "cancelled"
        assert dto.refund_status is None

    def test_reason_is_required(self):
        app = App()
        order = app.world.place()
        with pytest.raises(ValidationError, match="reason is required"):
            app.cancel.handle(order.id, reason="  ")

    def test_shipped_order_cannot_be_cancelled(self):
        app = App()
        order = app.world.place(payment_method=PaymentMethod.COD)
        for status in ("confirmed", "preparing", "ready_to_ship", "shipped"):
            app.transitions.handle(order.id, status)

        with pytest.raises(IllegalTransition):
            app.cancel.handle(order.id, reason="Too late")
        assert app.world.orders.get_by_id(order.id).status is OrderStatus.SHIPPED
