"""Application service: Refund Order use case."""

from __future__ import annotations

import structlog

from marketplace.application.dto import OrderDTO, order_to_dto
from marketplace.application.transition_status import TransitionStatusHandler
from marketplace.domain.exceptions import EntityNotFoundError, PaymentFailure, ValidationError
from marketplace.domain.gateway.payment_gateway import PaymentGateway
from marketplace.domain.model.order import OrderStatus, PaymentMethod
from marketplace.domain.model.value_objects import Money
from marketplace.domain.repository.order_repository import OrderRepository
from marketplace.domain.service.order_state_machine import can_transition

logger = structlog.get_logger(__name__)


class RefundOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        transitions: TransitionStatusHandler,
        payment_gateway: PaymentGateway,
    ) -> None:
        self._order_repo = order_repo
        self._transitions = transitions
        self._gateway = payment_gateway

    def handle(self, order_id: int, actor: str | None = None) -> OrderDTO:
        """Pay back the open refund and move the order to ``refunded``.

        Card, UPI, netbanking and wallet payments are refunded through the
        gateway. Cash on delivery is settled outside the platform, so only
        the amount is recorded. A never-paid order refunds zero.
        """
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")
        if not can_transition(order.status, OrderStatus.REFUNDED):
            raise ValidationError(
                f"Order #{order_id} cannot be refunded while {order.status.value}"
            )

        amount = order.refund.amount if order.refund else Money.zero(order.currency)
        reference_id = None
        payment = order.payment
        if (
            payment is not None
            and payment.is_captured
            and payment.method is not PaymentMethod.COD
            and not amount.is_zero
        ):
            if not payment.reference_id:
                raise PaymentFailure(f"Order #{order_id} has no payment reference to refund")
            result = self._gateway.refund(payment.reference_id, amount)
            if not result.refunded:
                raise PaymentFailure(f"Refund declined for {order.reference}")
            reference_id = result.reference_id

        logger.info("Refund issued", order_id=order_id, amount=str(amount), reference_id=reference_id)
        updated = self._transitions.handle(
            order_id,
            OrderStatus.REFUNDED,
            actor=actor,
            reason=f"Refund of {amount} completed",
            details={"amount": amount, "reference_id": reference_id},
        )
        return order_to_dto(updated)
