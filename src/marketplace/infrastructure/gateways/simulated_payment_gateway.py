"""In-process stand-in for a payment provider.

Captures always succeed except for payment methods on the decline list,
which lets a deployment rehearse payment-failure compensation.
"""

from __future__ import annotations

import uuid

import structlog

from marketplace.domain.exceptions import PaymentFailure
from marketplace.domain.gateway.payment_gateway import (
    CaptureResult,
    PaymentGateway,
    RefundResult,
)
from marketplace.domain.model.order import PaymentMethod
from marketplace.domain.model.value_objects import Money

logger = structlog.get_logger(__name__)


class SimulatedPaymentGateway(PaymentGateway):

    def __init__(self, declined_methods: frozenset[str] = frozenset()) -> None:
        self._declined = declined_methods

    def capture(self, amount: Money, method: PaymentMethod, order_ref: str) -> CaptureResult:
        if method.value in self._declined:
            logger.warning("Simulated capture declined", order_ref=order_ref, method=method.value)
            raise PaymentFailure(f"Payment method '{method.value}' was declined")
        reference_id = f"PAY-{uuid.uuid4().hex[:12].upper()}"
        logger.info(
            "Simulated capture",
            order_ref=order_ref,
            amount=str(amount),
            reference_id=reference_id,
        )
        return CaptureResult(captured=True, reference_id=reference_id)

    def refund(self, reference_id: str, amount: Money) -> RefundResult:
        refund_id = f"RFD-{uuid.uuid4().hex[:12].upper()}"
        logger.info(
            "Simulated refund",
            payment_reference=reference_id,
            amount=str(amount),
            reference_id=refund_id,
        )
        return RefundResult(refunded=True, reference_id=refund_id)
