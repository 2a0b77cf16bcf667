"""Application service: Submit Order use case (the checkout orchestrator).

Pipeline:
    validate -> resolve -> reserve -> fraud -> price -> persist
             -> payment -> confirm -> fulfillment

Every step is recorded in the processing log under the submission's
correlation id. Compensation runs in reverse: once stock is reserved any
failure releases it, and once the order is persisted a failure cancels it
through the state machine (which releases the reservation and opens a
refund record if money was taken).

Business refusals return an unsuccessful ``OrderResult``. Defects
(IllegalTransition, PersistenceFailure, anything unexpected) are raised
after compensation.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog

from marketplace.application.confirm_order import ConfirmOrderHandler
from marketplace.application.dto import OrderResult, order_to_dto
from marketplace.application.processing_log import ProcessingLog
from marketplace.application.transition_status import notify_quietly
from marketplace.domain.exceptions import (
    CheckoutRejected,
    EntityNotFoundError,
    FraudBlocked,
    ValidationError,
)
from marketplace.domain.gateway.customer_directory import CustomerDirectory, CustomerHistory
from marketplace.domain.gateway.notification_dispatcher import NotificationDispatcher
from marketplace.domain.model.order import Order, OrderItem
from marketplace.domain.model.submission import OrderSubmission
from marketplace.domain.model.value_objects import Quantity
from marketplace.domain.repository.order_repository import OrderRepository
from marketplace.domain.repository.product_repository import ProductRepository
from marketplace.domain.service.fraud_scorer import (
    FraudContext,
    FraudPolicy,
    FraudScorer,
    FraudSubject,
)
from marketplace.domain.service.fulfillment_scheduler import FulfillmentScheduler
from marketplace.domain.service.inventory_reservation_service import (
    InventoryReservationService,
    utcnow,
)
from marketplace.domain.service.order_validator import OrderValidator
from marketplace.domain.service.pricing_calculator import PricingCalculator

logger = structlog.get_logger(__name__)

# Refusals reported through OrderResult rather than raised.
BUSINESS_FAILURES = (ValidationError, EntityNotFoundError, CheckoutRejected)


class SubmitOrderHandler:

    def __init__(
        self,
        validator: OrderValidator,
        product_repo: ProductRepository,
        order_repo: OrderRepository,
        reservations: InventoryReservationService,
        fraud_scorer: FraudScorer,
        pricing: PricingCalculator,
        confirmation: ConfirmOrderHandler,
        scheduler: FulfillmentScheduler,
        processing_log: ProcessingLog,
        customer_directory: CustomerDirectory | None = None,
        notifier: NotificationDispatcher | None = None,
        fraud_policy: FraudPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._validator = validator
        self._product_repo = product_repo
        self._order_repo = order_repo
        self._reservations = reservations
        self._fraud_scorer = fraud_scorer
        self._pricing = pricing
        self._confirmation = confirmation
        self._scheduler = scheduler
        self._log = processing_log
        self._directory = customer_directory
        self._notifier = notifier
        self._fraud_policy = fraud_policy or FraudPolicy()
        self._clock = clock

    def handle(self, submission: OrderSubmission) -> OrderResult:
        state = _CheckoutState(
            submission=submission,
            correlation_id=str(submission.metadata.get("correlation_id") or uuid.uuid4().hex),
        )
        self._log.start(state.correlation_id)
        structlog.contextvars.bind_contextvars(correlation_id=state.correlation_id)
        try:
            return self._run(state)
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")

    def _run(self, state: _CheckoutState) -> OrderResult:
        try:
            return self._pipeline(state)
        except BUSINESS_FAILURES as exc:
            self._fail(state, exc)
            self._compensate(state, exc)
            return self._result(state, False, exc.code, str(exc), reasons=self._reasons(exc))
        except Exception as exc:
            self._fail(state, exc)
            logger.exception("Order pipeline defect", step=state.step, error=str(exc))
            self._compensate(state, exc)
            raise

    def _pipeline(self, state: _CheckoutState) -> OrderResult:
        sub = state.submission

        self._validator.check(sub)
        self._ok(state)

        state.step = "resolve"
        items = self._resolve_items(sub)
        self._ok(state, f"{len(items)} line(s)")

        state.step = "reserve"
        reservation = self._reservations.reserve(sub.quantities(), order_ref=state.correlation_id)
        state.reservation_id = reservation.id
        self._ok(state, reservation.id)

        state.step = "fraud"
        customer_id = str(sub.customer_id).strip()
        context = FraudContext(
            origin_ip=sub.origin_ip,
            customer_id=customer_id,
            directory=self._directory,
            window=self._fraud_policy.repeat_ip_window,
        )
        subject = FraudSubject(
            customer_id=customer_id,
            items_total=self._pricing.items_total(items),
            item_count=sum(item.quantity.value for item in items),
        )
        fraud_check = self._fraud_scorer.score(subject, context)
        if fraud_check.blocked:
            raise FraudBlocked(
                f"Order blocked by fraud screening (score {fraud_check.score})",
                fraud_check,
            )
        self._ok(state, f"score={fraud_check.score} level={fraud_check.risk_level.value}")

        state.step = "price"
        pricing = self._pricing.price(
            items,
            sub.address(),
            coupon_code=sub.coupon_code,
            customer_history=self._history_for_pricing(context),
            now=self._clock(),
        )
        self._ok(state, f"total={pricing.total}")

        state.step = "persist"
        order = Order.create(
            customer_id=customer_id,
            items=items,
            shipping_address=sub.address(),
            payment_method=sub.method(),
            pricing=pricing,
            fraud_check=fraud_check,
            reservation_id=reservation.id,
            origin_ip=sub.origin_ip,
            coupon_code=sub.coupon_code,
            now=self._clock(),
        )
        self._order_repo.save(order)
        state.order = order
        self._ok(state, order.reference)
        notify_quietly(self._notifier, order.reference, "order_placed")

        if order.requires_review:
            self._log.record(state.correlation_id, "review", "skipped", "awaiting manual fraud review")
            logger.warning(
                "Order held for fraud review",
                order_id=order.id,
                risk_score=fraud_check.score,
                triggered_rules=list(fraud_check.triggered_rules),
            )
            return self._result(
                state,
                True,
                "pending_review",
                f"Order {order.reference} is awaiting manual review",
            )

        state.step = "payment"
        payment = self._confirmation.capture(order)
        if payment is not None:
            self._ok(state, f"captured {payment.reference_id}")
        else:
            self._ok(state, "not required", "skipped")

        state.step = "confirm"
        state.order = self._confirmation.confirm(order.id, payment)  # type: ignore[arg-type]
        self._ok(state)

        state.step = "fulfillment"
        try:
            tasks = self._scheduler.schedule(state.order)
        except Exception as exc:
            # The order stays confirmed; fulfillment can be rescheduled.
            logger.error("Fulfillment scheduling failed", order_id=order.id, error=str(exc))
            self._ok(state, str(exc), "failed")
        else:
            self._ok(state, f"{len(tasks)} task(s)")

        logger.info("Order processed", order_id=order.id, total=str(order.total))
        return self._result(state, True, "confirmed", f"Order {order.reference} confirmed")

    # --- Steps ----------------------------------------------------------------

    def _resolve_items(self, submission: OrderSubmission) -> list[OrderItem]:
        """Build line items from live catalog data, never from caller-supplied prices."""
        items = []
        for product_id, qty in submission.quantities().items():
            product = self._product_repo.get_by_id(product_id)
            if product is None:
                raise EntityNotFoundError(f"Product not found: '{product_id}'")
            items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    seller_id=product.seller_id,
                    quantity=Quantity(qty),
                    unit_price=product.price,  # <-- price snapshot
                    weight_kg=product.weight_kg,
                )
            )
        return items

    @staticmethod
    def _history_for_pricing(context: FraudContext) -> CustomerHistory | None:
        # Without history the new-customer incentive is simply not applied.
        try:
            return context.customer_history()
        except Exception as exc:
            logger.warning("Customer history unavailable for pricing", error=str(exc))
            return None

    def _compensate(self, state: _CheckoutState, error: Exception) -> None:
        if state.order is not None and state.order.id is not None:
            self._confirmation.abort(state.order.id, error)
            self._log.record(state.correlation_id, "compensate", "ok", "order cancelled")
            return
        if state.reservation_id is not None:
            try:
                self._reservations.release(state.reservation_id)
                self._log.record(state.correlation_id, "compensate", "ok", "reservation released")
            except Exception as exc:
                logger.error(
                    "Compensation failed: could not release reservation",
                    reservation_id=state.reservation_id,
                    error=str(exc),
                )
                self._log.record(state.correlation_id, "compensate", "failed", str(exc))

    # --- Bookkeeping ----------------------------------------------------------

    def _ok(self, state: _CheckoutState, detail: str | None = None, status: str = "ok") -> None:
        self._log.record(state.correlation_id, state.step, status, detail)

    def _fail(self, state: _CheckoutState, error: Exception) -> None:
        self._log.record(state.correlation_id, state.step, "failed", str(error))
        logger.warning("Order step failed", step=state.step, error=str(error))

    @staticmethod
    def _reasons(error: Exception) -> list[str]:
        if isinstance(error, ValidationError) and error.reasons:
            return list(error.reasons)
        return [str(error)]

    def _result(
        self,
        state: _CheckoutState,
        success: bool,
        code: str,
        message: str,
        reasons: list[str] | None = None,
    ) -> OrderResult:
        order = state.order
        if order is not None and order.id is not None:
            order = self._order_repo.get_by_id(order.id) or order
        self._log.finish(state.correlation_id, code)
        return OrderResult(
            success=success,
            code=code,
            message=message,
            correlation_id=state.correlation_id,
            reasons=reasons or [],
            order=order_to_dto(order) if order is not None and order.id is not None else None,
            steps=self._log.get(state.correlation_id),
        )


@dataclass
class _CheckoutState:
    """Progress of one submission through the pipeline."""

    submission: OrderSubmission
    correlation_id: str
    step: str = "validate"
    reservation_id: str | None = None
    order: Order | None = None
