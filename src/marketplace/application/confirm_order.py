"""Application service: Confirm Order use case.

Finishes checkout for a persisted pending order: captures payment when
the method needs it up front, then moves the order to confirmed (which
commits the stock reservation and records the payment). A failure on
either step cancels the order before the error is re-raised.

A captured payment is never written outside a transition. If the order
can no longer take it (it was cancelled while the gateway call ran), the
capture is refunded through the gateway.
"""

from __future__ import annotations

import structlog

from marketplace.application.payment_capture import capture_payment, refund_capture
from marketplace.application.transition_status import TransitionStatusHandler
from marketplace.domain.exceptions import (
    CheckoutInterrupted,
    CheckoutRejected,
    EntityNotFoundError,
    IllegalTransition,
)
from marketplace.domain.gateway.payment_gateway import PaymentGateway
from marketplace.domain.model.order import Order, OrderStatus, PaymentRecord
from marketplace.domain.repository.order_repository import OrderRepository

logger = structlog.get_logger(__name__)


class ConfirmOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        transitions: TransitionStatusHandler,
        payment_gateway: PaymentGateway,
        payment_timeout_seconds: float = 10,
    ) -> None:
        self._order_repo = order_repo
        self._transitions = transitions
        self._gateway = payment_gateway
        self._timeout = payment_timeout_seconds

    def handle(self, order_id: int, actor: str | None = None, reason: str | None = None) -> Order:
        order = self._load(order_id)
        try:
            payment = self.capture(order)
        except CheckoutRejected as exc:
            self.abort(order_id, exc, actor=actor)
            raise
        return self.confirm(order_id, payment, actor=actor, reason=reason)

    def capture(self, order: Order) -> PaymentRecord | None:
        """Capture payment if the method needs it and it is not captured yet.

        Returns the captured payment, or None when nothing was taken. The
        order itself is not changed; pass the result to :meth:`confirm`.
        """
        if not order.payment_method.requires_upfront_capture or order.payment_captured:
            return None
        # Gateway call runs outside the store lock.
        return capture_payment(self._gateway, order, self._timeout)

    def confirm(
        self,
        order_id: int,
        payment: PaymentRecord | None = None,
        actor: str | None = None,
        reason: str | None = None,
    ) -> Order:
        details = {"payment": payment} if payment is not None else {}
        try:
            return self._transitions.handle(
                order_id,
                OrderStatus.CONFIRMED,
                actor=actor,
                reason=reason or "Order confirmed",
                details=details,
            )
        except IllegalTransition as exc:
            error = CheckoutInterrupted(
                f"Order #{order_id} became {exc.current.value} during checkout"
            )
            self.abort(order_id, error, actor=actor, payment=payment)
            raise error from exc
        except Exception as exc:
            self.abort(order_id, exc, actor=actor, payment=payment)
            raise

    def abort(
        self,
        order_id: int,
        error: Exception,
        actor: str | None = None,
        payment: PaymentRecord | None = None,
    ) -> None:
        """Cancel a pending order after a checkout failure. Never masks ``error``.

        A ``payment`` captured for the order is attached to the cancellation,
        which opens a pending refund. When the order cannot be cancelled the
        capture is refunded straight away.
        """
        order = self._order_repo.get_by_id(order_id)
        if order is not None and order.status is OrderStatus.PENDING:
            code = getattr(error, "code", "internal_error")
            try:
                self._transitions.handle(
                    order_id,
                    OrderStatus.CANCELLED,
                    actor=actor,
                    reason=f"Checkout aborted: [{code}] {error}",
                    details={"payment": payment} if payment is not None else {},
                )
                return
            except Exception as exc:
                logger.error(
                    "Compensation failed: could not cancel order",
                    order_id=order_id,
                    original_error=str(error),
                    error=str(exc),
                )
        if payment is not None and payment.is_captured:
            refund_capture(self._gateway, order_id, payment.reference_id or "", payment.amount)

    def _load(self, order_id: int) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")
        return order
