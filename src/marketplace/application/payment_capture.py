"""Payment capture with a caller-side timeout.

The gateway call runs on a worker thread so a hung gateway cannot stall
the order pipeline past ``timeout_seconds``. The worker is not killed on
timeout; if its capture still goes through afterwards, it is refunded, or
logged for reconciliation when the refund fails.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime

import structlog

from marketplace.domain.exceptions import PaymentFailure
from marketplace.domain.gateway.payment_gateway import CaptureResult, PaymentGateway
from marketplace.domain.model.order import Order, PaymentRecord, PaymentStatus
from marketplace.domain.model.value_objects import Money
from marketplace.domain.service.inventory_reservation_service import utcnow

logger = structlog.get_logger(__name__)


def capture_payment(
    gateway: PaymentGateway,
    order: Order,
    timeout_seconds: float,
    clock: Callable[[], datetime] = utcnow,
) -> PaymentRecord:
    """Capture the order total. Any decline, error or timeout is a PaymentFailure."""
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="payment-capture")
    future = executor.submit(gateway.capture, order.total, order.payment_method, order.reference)
    try:
        result = future.result(timeout=timeout_seconds)
    except FutureTimeout:
        logger.error(
            "Payment capture timed out",
            order_id=order.id,
            timeout_seconds=timeout_seconds,
        )
        future.add_done_callback(
            lambda late: _refund_late_capture(gateway, order.id, order.total, late)
        )
        raise PaymentFailure(f"Payment capture timed out after {timeout_seconds}s")
    except PaymentFailure:
        raise
    except Exception as exc:
        logger.error("Payment gateway error", order_id=order.id, error=str(exc))
        raise PaymentFailure(f"Payment gateway error: {exc}") from exc
    finally:
        executor.shutdown(wait=False)

    if not result.captured:
        raise PaymentFailure(f"Payment declined for {order.reference}")

    logger.info("Payment captured", order_id=order.id, reference_id=result.reference_id)
    return PaymentRecord(
        method=order.payment_method,
        status=PaymentStatus.PENDING,
        amount=order.total,
        reference_id=result.reference_id,
        captured_at=clock(),
    )


def refund_capture(
    gateway: PaymentGateway, order_id: int | None, reference_id: str, amount: Money
) -> bool:
    """Give back a capture that no order holds. Returns whether the refund went through.

    A failed refund is logged with the payment reference for manual
    reconciliation and never raised.
    """
    try:
        result = gateway.refund(reference_id, amount)
    except Exception as exc:
        logger.error(
            "Captured payment could not be refunded, reconcile manually",
            order_id=order_id,
            payment_reference=reference_id,
            amount=str(amount),
            error=str(exc),
        )
        return False
    if not result.refunded:
        logger.error(
            "Refund of captured payment declined, reconcile manually",
            order_id=order_id,
            payment_reference=reference_id,
            amount=str(amount),
        )
        return False
    logger.warning(
        "Orphaned payment capture refunded",
        order_id=order_id,
        payment_reference=reference_id,
        refund_reference=result.reference_id,
    )
    return True


def _refund_late_capture(
    gateway: PaymentGateway, order_id: int | None, amount: Money, future: Future
) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    result: CaptureResult = future.result()
    if result.captured:
        logger.error(
            "Payment captured after timeout",
            order_id=order_id,
            payment_reference=result.reference_id,
        )
        refund_capture(gateway, order_id, result.reference_id, amount)
