"""Application service: Approve Order use case (manual fraud review).

An order held for review sits in ``pending`` with no payment taken. A
reviewer's approval is recorded on the fraud check; the order then goes
through the same capture-and-confirm path a clean submission takes.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from marketplace.application.confirm_order import ConfirmOrderHandler
from marketplace.application.dto import OrderDTO, order_to_dto
from marketplace.domain.exceptions import EntityNotFoundError, ValidationError
from marketplace.domain.model.order import OrderStatus
from marketplace.domain.repository.order_repository import OrderRepository
from marketplace.domain.service.fulfillment_scheduler import FulfillmentScheduler
from marketplace.domain.service.inventory_reservation_service import utcnow

logger = structlog.get_logger(__name__)


class ApproveOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        confirmation: ConfirmOrderHandler,
        scheduler: FulfillmentScheduler,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._order_repo = order_repo
        self._confirmation = confirmation
        self._scheduler = scheduler
        self._clock = clock

    def handle(self, order_id: int, actor: str, note: str | None = None) -> OrderDTO:
        if not actor or not actor.strip():
            raise ValidationError("A reviewer is required to approve an order")

        with self._order_repo.transaction():
            order = self._order_repo.get_by_id(order_id)
            if order is None:
                raise EntityNotFoundError(f"Order #{order_id} not found")
            if order.status is not OrderStatus.PENDING or not order.requires_review:
                raise ValidationError(f"Order #{order_id} is not awaiting review")
            order.fraud_check = order.fraud_check.reviewed(actor, self._clock(), note)  # type: ignore[union-attr]
            self._order_repo.save(order)

        logger.info("Fraud review approved", order_id=order_id, reviewer=actor)

        reason = f"Approved after manual review by {actor}"
        if note:
            reason = f"{reason}: {note}"
        confirmed = self._confirmation.handle(order_id, actor=actor, reason=reason)

        try:
            self._scheduler.schedule(confirmed)
        except Exception as exc:
            logger.error("Fulfillment scheduling failed", order_id=order_id, error=str(exc))

        return order_to_dto(confirmed)
