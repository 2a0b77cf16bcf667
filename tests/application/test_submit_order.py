"""Integration tests for the SubmitOrder pipeline.

Uses in-memory fakes for every repository and external port, no file I/O.
"""

import pytest

from marketplace.domain.model.order import OrderStatus, PaymentStatus
from marketplace.domain.model.value_objects import Money
from marketplace.domain.service.fraud_scorer import FraudRule, FraudRuleRegistry
from tests.builders import App, make_submission
from tests.fakes import (
    CancelDuringCaptureGateway,
    FakeCustomerDirectory,
    FakeFulfillmentDispatcher,
    FakeNotifier,
    FakePaymentGateway,
    SlowGateway,
)


def _always(weight: int) -> FraudRuleRegistry:
    return FraudRuleRegistry([FraudRule("flagged", weight, lambda subject, context: True)])


def _steps(result) -> list[tuple[str, str]]:
    return [(s.step, s.status) for s in result.steps]


class TestSubmitHappyPath:

    def test_confirms_and_prices_order(self):
        app = App()
        result = app.submit.handle(make_submission(items=[("P1", 2)]))

        assert result.success
        assert result.code == "confirmed"
        dto = result.order
        assert dto.status == "confirmed"
        assert dto.subtotal == "INR 200.00"
        assert dto.shipping == "INR 50.00"
        assert dto.tax == "INR 36.00"
        assert dto.platform_fee == "INR 4.00"
        assert dto.discount == "INR 0.00"
        assert dto.total == "INR 290.00"
        assert dto.payment_status == "paid"

    def test_stock_is_committed(self):
        app = App()
        app.submit.handle(make_submission(items=[("P1", 2)]))
        assert app.world.stock("P1") == (3, 0)

    def test_captures_payment_for_upfront_methods(self):
        app = App()
        result = app.submit.handle(make_submission())

        ((amount, method, order_ref),) = app.gateway.captures
        assert amount == Money.of("290.00")
        assert method.value == "card"
        assert order_ref == "ORD-1"
        order = app.world.orders.get_by_id(result.order.id)
        assert order.payment.reference_id == "PAY-1"

    def test_cash_on_delivery_skips_capture(self):
        app = App()
        result = app.submit.handle(make_submission(payment_method="cod"))

        assert result.code == "confirmed"
        assert app.gateway.captures == []
        assert ("payment", "skipped") in _steps(result)
        assert app.world.orders.get_by_id(1).payment.status is PaymentStatus.PENDING

    def test_steps_run_in_pipeline_order(self):
        result = App().submit.handle(make_submission())
        assert [step for step, _ in _steps(result)] == [
            "validate",
            "resolve",
            "reserve",
            "fraud",
            "price",
            "persist",
            "payment",
            "confirm",
            "fulfillment",
        ]

    def test_schedules_one_task_per_seller(self):
        app = App()
        app.submit.handle(make_submission(items=[("P1", 1), ("P2", 1)]))
        assert [t.seller_id for t in app.dispatcher.tasks] == ["S1", "S2"]

    def test_notifies_placed_then_confirmed(self):
        app = App()
        app.submit.handle(make_submission())
        assert app.events(1) == ["order_placed", "order_confirmed"]

    def test_correlation_id_from_metadata(self):
        app = App()
        result = app.submit.handle(make_submission(metadata={"correlation_id": "abc-123"}))

        assert result.correlation_id == "abc-123"
        assert app.log.outcome("abc-123") == "confirmed"
        assert len(app.log.get("abc-123")) == len(result.steps)

    def test_price_is_read_from_catalog_not_cached(self):
        app = App()
        product = app.world.products.get_by_id("P1")
        product.update_price(Money.of("120"))
        app.world.products.save(product)

        result = app.submit.handle(make_submission(items=[("P1", 1)]))
        assert result.order.subtotal == "INR 120.00"


class TestSubmitRejections:

    def test_validation_failure_lists_reasons_and_touches_nothing(self):
        app = App()
        result = app.submit.handle(make_submission(customer_id="", items=[("P1", 0)]))

        assert not result.success
        assert result.code == "validation_error"
        assert "customer_id: required" in result.reasons
        assert "items[0].quantity: must be positive" in result.reasons
        assert _steps(result) == [("validate", "failed")]
        assert app.world.stock("P1") == (5, 0)

    def test_insufficient_stock_leaves_stock_unchanged(self):
        app = App()
        result = app.submit.handle(make_submission(items=[("P1", 10)]))

        assert not result.success
        assert result.code == "insufficient_stock"
        assert result.order is None
        assert app.world.stock("P1") == (5, 0)
        assert app.world.orders.get_by_id(1) is None

    def test_fraud_block_releases_reservation(self):
        app = App(fraud_registry=_always(80))
        result = app.submit.handle(make_submission())

        assert result.code == "fraud_blocked"
        assert app.world.stock("P1") == (5, 0)
        assert ("compensate", "ok") in _steps(result)
        assert app.world.orders.get_by_id(1) is None

    def test_payment_failure_cancels_order_and_releases_stock(self):
        app = App(gateway=FakePaymentGateway(decline=True))
        result = app.submit.handle(make_submission())

        assert not result.success
        assert result.code == "payment_failed"
        assert result.order.status == "cancelled"
        assert app.world.stock("P1") == (5, 0)
        assert app.world.orders.get_by_id(1).refund is None
        assert app.events(1) == ["order_placed", "order_cancelled"]

    def test_cancel_during_capture_refunds_the_capture(self):
        gateway = CancelDuringCaptureGateway()
        app = App(gateway=gateway)
        gateway.on_capture = lambda: app.cancel.handle(1, reason="changed mind")

        result = app.submit.handle(make_submission())

        assert not result.success
        assert result.code == "checkout_interrupted"
        assert gateway.refunds == [("PAY-1", Money.of("290.00"))]
        assert app.world.orders.get_by_id(1).status is OrderStatus.CANCELLED
        assert app.world.stock("P1") == (5, 0)
        assert ("payment", "ok") in _steps(result)
        assert ("confirm", "failed") in _steps(result)

    def test_payment_timeout_releases_reservation(self):
        gateway = SlowGateway()
        app = App(gateway=gateway, payment_timeout=0.05)
        try:
            result = app.submit.handle(make_submission())
        finally:
            gateway.release.set()

        assert result.code == "payment_failed"
        assert "timed out" in result.message
        assert result.order.status == "cancelled"
        assert app.world.stock("P1") == (5, 0)
        assert gateway.refunded.wait(5)
        assert gateway.refunds == [("PAY-1", Money.of("290.00"))]


class TestFraudReview:

    def test_score_35_is_held_pending(self):
        app = App(fraud_registry=_always(35))
        result = app.submit.handle(make_submission())

        assert result.success
        assert result.code == "pending_review"
        assert result.order.status == "pending"
        assert result.order.requires_review
        assert result.order.risk_score == 35

    def test_held_order_keeps_its_reservation_and_is_not_charged(self):
        app = App(fraud_registry=_always(35))
        app.submit.handle(make_submission(items=[("P1", 2)]))

        assert app.world.stock("P1") == (3, 2)
        assert app.gateway.captures == []
        assert app.dispatcher.tasks == []


class TestDegradedCollaborators:

    def test_customer_directory_outage_does_not_block(self):
        app = App(directory=FakeCustomerDirectory(fail=True))
        result = app.submit.handle(make_submission())

        assert result.code == "confirmed"
        order = app.world.orders.get_by_id(1)
        assert "new_customer_high_value" in order.fraud_check.skipped_rules

    def test_notification_failure_is_ignored(self):
        result = App(notifier=FakeNotifier(fail=True)).submit.handle(make_submission())
        assert result.code == "confirmed"

    def test_fulfillment_failure_keeps_order_confirmed(self):
        app = App(dispatcher=FakeFulfillmentDispatcher(fail=True))
        result = app.submit.handle(make_submission())

        assert result.success
        assert result.order.status == "confirmed"
        assert ("fulfillment", "failed") in _steps(result)

    def test_new_customer_incentive_applied(self):
        app = App(directory=FakeCustomerDirectory(order_count=0))
        result = app.submit.handle(make_submission(items=[("P2", 4)]))
        assert result.order.discount == "INR 100.00"


class TestDefects:

    def test_unexpected_error_is_raised_after_compensation(self):
        app = App()

        def broken_save(order):
            raise RuntimeError("disk on fire")

        app.world.orders.save = broken_save

        with pytest.raises(RuntimeError, match="disk on fire"):
            app.submit.handle(make_submission())
        assert app.world.stock("P1") == (5, 0)

    def test_order_id_is_assigned_sequentially(self):
        app = App()
        first = app.submit.handle(make_submission(items=[("P1", 1)]))
        second = app.submit.handle(make_submission(items=[("P1", 1)]))
        assert second.order.id == first.order.id + 1
        assert app.world.orders.get_by_id(second.order.id).status is OrderStatus.CONFIRMED
