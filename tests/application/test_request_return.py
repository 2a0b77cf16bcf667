"""Integration tests for the RequestReturn use case."""

import pytest

from marketplace.domain.exceptions import IllegalTransition, ValidationError
from tests.builders import App, make_submission

DELIVERY = ("preparing", "ready_to_ship", "shipped", "out_for_delivery", "delivered")


def _delivered(app: App, payment_method: str = "card") -> int:
    result = app.submit.handle(make_submission(items=[("P1", 2)], payment_method=payment_method))
    for status in DELIVERY:
        app.transitions.handle(result.order.id, status)
    return result.order.id


class TestRequestReturn:

    def test_auto_approved_reason(self):
        app = App()
        order_id = _delivered(app)

        dto = app.returns.handle(order_id, {"P1": 1}, "wrong_item", comment="Got a mug")

        assert dto.status == "return_approved"
        stored = app.world.orders.get_by_id(order_id)
        assert stored.return_request.approved_at is not None
        assert stored.return_request.comment == "Got a mug"
        assert app.events(order_id)[-2:] == ["order_return_requested", "order_return_approved"]

    def test_manual_reason_waits_for_approval(self):
        app = App()
        order_id = _delivered(app)

        dto = app.returns.handle(order_id, {"P1": 2}, "defective_product")

        assert dto.status == "return_requested"
        assert dto.items[0].status == "return_requested"

    def test_unknown_reason_rejected(self):
        app = App()
        order_id = _delivered(app)
        with pytest.raises(ValidationError, match="Unknown return reason 'bored'"):
            app.returns.handle(order_id, {"P1": 1}, "bored")

    def test_return_before_delivery_is_illegal(self):
        app = App()
        result = app.submit.handle(make_submission())
        with pytest.raises(IllegalTransition):
            app.returns.handle(result.order.id, {"P1": 1}, "wrong_item")

    def test_return_after_window_rejected(self):
        app = App()
        order_id = _delivered(app)
        app.world.clock.advance(days=3, minutes=1)

        with pytest.raises(ValidationError, match="Return window closed"):
            app.returns.handle(order_id, {"P1": 1}, "changed_mind")
        assert app.world.orders.get_by_id(order_id).status.value == "delivered"
