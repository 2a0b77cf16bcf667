"""Application service: Cancel Order use case.

Cancellation itself (releasing or restocking inventory, opening a refund
record) is a side effect of the ``cancelled`` transition. When a refund
handler is wired in, a captured payment is refunded right away; if the
gateway refuses, the refund stays pending for a later ``order refund``.
"""

from __future__ import annotations

import structlog

from marketplace.application.dto import OrderDTO, order_to_dto
from marketplace.application.refund_order import RefundOrderHandler
from marketplace.application.transition_status import TransitionStatusHandler
from marketplace.domain.exceptions import PaymentFailure, ValidationError
from marketplace.domain.model.order import OrderStatus, RefundStatus

logger = structlog.get_logger(__name__)


class CancelOrderHandler:

    def __init__(
        self,
        transitions: TransitionStatusHandler,
        refunds: RefundOrderHandler | None = None,
    ) -> None:
        self._transitions = transitions
        self._refunds = refunds

    def handle(self, order_id: int, reason: str, actor: str | None = None) -> OrderDTO:
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")

        order = self._transitions.handle(
            order_id, OrderStatus.CANCELLED, actor=actor, reason=reason.strip()
        )

        if (
            self._refunds is not None
            and order.refund is not None
            and order.refund.status is RefundStatus.PENDING
        ):
            try:
                return self._refunds.handle(order_id, actor=actor)
            except PaymentFailure as exc:
                logger.warning(
                    "Refund after cancellation failed; left pending",
                    order_id=order_id,
                    error=str(exc),
                )

        return order_to_dto(order)
