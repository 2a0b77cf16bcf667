"""Fulfillment dispatcher that records each task in the log."""

from __future__ import annotations

import structlog

from marketplace.domain.gateway.fulfillment_dispatcher import FulfillmentDispatcher
from marketplace.domain.service.fulfillment_scheduler import FulfillmentTask

logger = structlog.get_logger(__name__)


class LoggingFulfillmentDispatcher(FulfillmentDispatcher):

    def dispatch(self, task: FulfillmentTask) -> None:
        logger.info(
            "Fulfillment task dispatched",
            order_id=task.order_id,
            seller_id=task.seller_id,
            priority=task.priority.value,
            lines=[f"{line.product_id}x{line.quantity}" for line in task.lines],
            estimated_minutes=task.estimated_minutes,
        )
