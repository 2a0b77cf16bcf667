"""Tests for per-seller fulfillment task scheduling."""

import pytest

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.order import FraudCheck, OrderStatus, RiskLevel
from marketplace.domain.service.fulfillment_scheduler import (
    FulfillmentPriority,
    FulfillmentScheduler,
)
from marketplace.domain.service.order_state_machine import TransitionRequest
from tests.builders import World, make_item
from tests.fakes import FakeFulfillmentDispatcher


def _confirmed(risk: RiskLevel = RiskLevel.LOW):
    world = World()
    order = world.place(
        [
            make_item("P1", qty=2, seller_id="S1"),
            make_item("P2", qty=1, price="250", seller_id="S2"),
        ],
        fraud_check=FraudCheck(score=0, risk_level=risk),
    )
    order.id = 7
    return world.state_machine.transition(order, TransitionRequest(OrderStatus.CONFIRMED))


class TestSchedule:

    def test_one_task_per_seller(self):
        dispatcher = FakeFulfillmentDispatcher()
        tasks = FulfillmentScheduler(dispatcher).schedule(_confirmed())

        assert [t.seller_id for t in tasks] == ["S1", "S2"]
        assert tasks[0].lines[0].product_id == "P1"
        assert tasks[0].lines[0].quantity == 2
        assert tasks[0].order_reference == "ORD-7"
        assert tasks[0].estimated_minutes == 15
        assert dispatcher.tasks == tasks

    @pytest.mark.parametrize(
        "risk, priority",
        [
            (RiskLevel.LOW, FulfillmentPriority.HIGH),
            (RiskLevel.MEDIUM, FulfillmentPriority.NORMAL),
            (RiskLevel.HIGH, FulfillmentPriority.LOW),
        ],
    )
    def test_priority_is_inverse_of_risk(self, risk, priority):
        tasks = FulfillmentScheduler(FakeFulfillmentDispatcher()).schedule(_confirmed(risk))
        assert {t.priority for t in tasks} == {priority}

    def test_pending_order_rejected(self):
        world = World()
        with pytest.raises(ValidationError, match="Only confirmed orders"):
            FulfillmentScheduler(FakeFulfillmentDispatcher()).schedule(world.place())

    def test_dispatch_failure_propagates(self):
        with pytest.raises(ConnectionError):
            FulfillmentScheduler(FakeFulfillmentDispatcher(fail=True)).schedule(_confirmed())
