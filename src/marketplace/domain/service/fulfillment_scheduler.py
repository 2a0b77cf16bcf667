"""Domain service: Fulfillment Scheduling.

Turns a confirmed order into one fulfillment task per seller and hands
each task to the fulfillment dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.gateway.fulfillment_dispatcher import FulfillmentDispatcher
from marketplace.domain.model.order import Order, OrderStatus, RiskLevel

logger = structlog.get_logger(__name__)

MINUTES_PER_LINE = 15


class FulfillmentPriority(Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


# Riskier orders are picked later.
_PRIORITY_BY_RISK = {
    RiskLevel.LOW: FulfillmentPriority.HIGH,
    RiskLevel.MEDIUM: FulfillmentPriority.NORMAL,
    RiskLevel.HIGH: FulfillmentPriority.LOW,
}


@dataclass(frozen=True)
class FulfillmentLine:
    product_id: str
    product_name: str
    quantity: int


@dataclass(frozen=True)
class FulfillmentTask:
    order_id: int
    order_reference: str
    seller_id: str
    lines: tuple[FulfillmentLine, ...]
    priority: FulfillmentPriority
    estimated_minutes: int


class FulfillmentScheduler:

    def __init__(self, dispatcher: FulfillmentDispatcher) -> None:
        self._dispatcher = dispatcher

    def schedule(self, order: Order) -> list[FulfillmentTask]:
        if order.status is not OrderStatus.CONFIRMED:
            raise ValidationError(
                f"Only confirmed orders can be scheduled (order is {order.status.value})"
            )

        risk = order.fraud_check.risk_level if order.fraud_check else RiskLevel.LOW
        priority = _PRIORITY_BY_RISK[risk]

        tasks = []
        for seller_id, items in order.items_by_seller().items():
            task = FulfillmentTask(
                order_id=order.id,
                order_reference=order.reference,
                seller_id=seller_id,
                lines=tuple(
                    FulfillmentLine(item.product_id, item.product_name, item.quantity.value)
                    for item in items
                ),
                priority=priority,
                estimated_minutes=len(items) * MINUTES_PER_LINE,
            )
            self._dispatcher.dispatch(task)
            tasks.append(task)

        logger.info(
            "Fulfillment scheduled",
            order_id=order.id,
            task_count=len(tasks),
            priority=priority.value,
        )
        return tasks
