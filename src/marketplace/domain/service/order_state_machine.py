"""Domain service: Order Status State Machine.

``TRANSITIONS`` is the single source of truth for which status may follow
which. Side effects hang off the *destination* status in one dispatch
table and run inside the same transition as the status change and its
history entry.

``transition`` never mutates the order it is given. It works on a copy
and returns the new revision, so a rejected or failed transition leaves
the caller's order exactly as it was. Persisting the revision, together
with any stock writes the side effects made, is the caller's job and
must happen in one store transaction.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog

from marketplace.domain.exceptions import IllegalTransition, ValidationError
from marketplace.domain.model.order import (
    CancellationRecord,
    ItemStatus,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    RefundRecord,
    RefundStatus,
    ReturnRequest,
    StatusHistoryEntry,
)
from marketplace.domain.model.value_objects import Money
from marketplace.domain.service.inventory_reservation_service import (
    InventoryReservationService,
    utcnow,
)
from marketplace.domain.service.pricing_calculator import PricingCalculator

logger = structlog.get_logger(__name__)

S = OrderStatus

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.PREPARING, S.CANCELLED}),
    S.PREPARING: frozenset({S.READY_TO_SHIP, S.CANCELLED}),
    S.READY_TO_SHIP: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.EXCEPTION}),
    S.IN_TRANSIT: frozenset({S.OUT_FOR_DELIVERY, S.EXCEPTION}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.FAILED_DELIVERY, S.EXCEPTION}),
    S.FAILED_DELIVERY: frozenset({S.OUT_FOR_DELIVERY, S.EXCEPTION}),
    S.DELIVERED: frozenset({S.RETURN_REQUESTED}),
    S.RETURN_REQUESTED: frozenset({S.RETURN_APPROVED}),
    S.RETURN_APPROVED: frozenset({S.RETURN_PICKED_UP}),
    S.RETURN_PICKED_UP: frozenset({S.RETURN_IN_TRANSIT}),
    S.RETURN_IN_TRANSIT: frozenset({S.RETURN_DELIVERED}),
    S.RETURN_DELIVERED: frozenset({S.REFUNDED}),
    S.CANCELLED: frozenset({S.REFUNDED}),
    S.EXCEPTION: frozenset({S.RESOLVED, S.CANCELLED}),
    S.RESOLVED: frozenset({S.OUT_FOR_DELIVERY}),
    S.REFUNDED: frozenset(),
}

STATUS_LABELS: dict[OrderStatus, tuple[str, str]] = {
    S.PENDING: ("Order Placed", "Your order has been placed and is being processed"),
    S.CONFIRMED: ("Order Confirmed", "Your order has been confirmed"),
    S.PREPARING: ("Preparing Order", "Your items are being picked and packed"),
    S.READY_TO_SHIP: ("Ready to Ship", "Your order is packed and ready for pickup"),
    S.SHIPPED: ("Shipped", "Your order is on the way to you"),
    S.IN_TRANSIT: ("In Transit", "Your order is traveling to your location"),
    S.OUT_FOR_DELIVERY: ("Out for Delivery", "Your order is out for delivery"),
    S.DELIVERED: ("Delivered", "Your order has been delivered"),
    S.FAILED_DELIVERY: ("Delivery Failed", "Delivery attempt failed, trying again"),
    S.CANCELLED: ("Cancelled", "Your order has been cancelled"),
    S.RETURN_REQUESTED: ("Return Requested", "A return has been requested"),
    S.RETURN_APPROVED: ("Return Approved", "The return request has been approved"),
    S.RETURN_PICKED_UP: ("Return Picked Up", "The return has been picked up"),
    S.RETURN_IN_TRANSIT: ("Return In Transit", "The return is on its way back"),
    S.RETURN_DELIVERED: ("Return Delivered", "The return has reached the seller"),
    S.REFUNDED: ("Refunded", "The refund has been processed"),
    S.EXCEPTION: ("Delivery Exception", "The shipment needs attention"),
    S.RESOLVED: ("Resolved", "The delivery exception has been resolved"),
}


def allowed_next(status: OrderStatus) -> frozenset[OrderStatus]:
    return TRANSITIONS.get(status, frozenset())


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in allowed_next(current)


def is_terminal(status: OrderStatus) -> bool:
    return not allowed_next(status)


@dataclass(frozen=True)
class ReturnReason:
    label: str
    window_days: int
    return_fee: Decimal = Decimal("0")
    auto_approve: bool = False


RETURN_REASONS: dict[str, ReturnReason] = {
    "defective_product": ReturnReason("Defective/Damaged Product", 7),
    "wrong_item": ReturnReason("Wrong Item Delivered", 7, auto_approve=True),
    "not_as_described": ReturnReason("Product Not as Described", 7),
    "changed_mind": ReturnReason("Changed Mind/No Longer Need", 3, Decimal("50")),
    "size_fit_issue": ReturnReason("Size/Fit Issue", 7, auto_approve=True),
    "quality_issue": ReturnReason("Poor Quality", 7),
    "delivery_issue": ReturnReason("Delivery Related Issue", 2, auto_approve=True),
}


@dataclass(frozen=True)
class LifecyclePolicy:
    delivery_estimate_days: int = 3
    carrier_eta_hours: int = 48
    return_window_days: int = 7
    default_carrier: str = "marketplace-logistics"


@dataclass(frozen=True)
class TransitionRequest:
    """One requested status change.

    ``details`` carries destination-specific inputs, e.g. ``payment`` (a
    captured ``PaymentRecord``) for confirmed and cancelled,
    ``tracking_number`` for shipped, ``items``/``comment`` for
    return_requested, or ``amount`` and ``reference_id`` for refunded.
    """

    new_status: OrderStatus
    reason: str | None = None
    actor: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)


def _default_tracking_number() -> str:
    return f"TRK{uuid.uuid4().hex[:12].upper()}"


SideEffect = Callable[[Order, TransitionRequest, datetime], None]


class OrderStateMachine:

    def __init__(
        self,
        reservations: InventoryReservationService,
        pricing: PricingCalculator,
        policy: LifecyclePolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
        tracking_number_factory: Callable[[], str] = _default_tracking_number,
    ) -> None:
        self._reservations = reservations
        self._pricing = pricing
        self._policy = policy or LifecyclePolicy()
        self._clock = clock
        self._tracking_number_factory = tracking_number_factory
        self._side_effects: dict[OrderStatus, SideEffect] = {
            S.CONFIRMED: self._enter_confirmed,
            S.SHIPPED: self._enter_shipped,
            S.DELIVERED: self._enter_delivered,
            S.CANCELLED: self._enter_cancelled,
            S.RETURN_REQUESTED: self._enter_return_requested,
            S.RETURN_APPROVED: self._enter_return_approved,
            S.RETURN_DELIVERED: self._enter_return_delivered,
            S.REFUNDED: self._enter_refunded,
        }

    @property
    def side_effect_states(self) -> frozenset[OrderStatus]:
        return frozenset(self._side_effects)

    def transition(self, order: Order, request: TransitionRequest) -> Order:
        """Validate, record and apply one status change. Returns the new revision."""
        current = order.status
        new = request.new_status
        if not can_transition(current, new):
            raise IllegalTransition(current, new, allowed_next(current))

        now = self._clock()
        updated = copy.deepcopy(order)
        updated._record_transition(
            StatusHistoryEntry(
                status=new,
                timestamp=now,
                reason=request.reason or STATUS_LABELS[new][1],
                actor=request.actor,
                system_generated=request.actor is None,
            )
        )

        effect = self._side_effects.get(new)
        if effect is not None:
            effect(updated, request, now)

        logger.info(
            "Order status transitioned",
            order_id=order.id,
            old_status=current.value,
            new_status=new.value,
            actor=request.actor,
        )
        return updated

    # --- Side effects, keyed by destination status ------------------------------

    @staticmethod
    def _attach_payment(order: Order, request: TransitionRequest) -> None:
        payment = request.details.get("payment")
        if payment is not None and not order.payment_captured:
            order.payment = payment

    def _enter_confirmed(self, order: Order, request: TransitionRequest, now: datetime) -> None:
        self._attach_payment(order, request)
        if not order.reservation_committed:
            self._reservations.commit(order.reservation_id)
            order.reservation_committed = True

        if order.payment is None:
            order.payment = PaymentRecord(
                method=order.payment_method,
                status=PaymentStatus.PENDING,
                amount=order.total,
            )
        elif order.payment.is_captured:
            order.payment = replace(order.payment, status=PaymentStatus.PAID)

        days = int(request.details.get("estimated_delivery_days", self._policy.delivery_estimate_days))
        order.delivery.estimated_delivery = now + timedelta(days=days)

        # Splits are generated once; a later confirmation must not recompute them.
        if not order.splits:
            order.splits = self._pricing.compute_splits(order.items)

        order.mark_items(ItemStatus.CONFIRMED)

    def _enter_shipped(self, order: Order, request: TransitionRequest, now: datetime) -> None:
        delivery = order.delivery
        if request.details.get("tracking_number"):
            delivery.tracking_number = str(request.details["tracking_number"])
        elif not delivery.tracking_number:
            delivery.tracking_number = self._tracking_number_factory()

        delivery.carrier = (
            request.details.get("carrier") or delivery.carrier or self._policy.default_carrier
        )
        hours = int(request.details.get("eta_hours", self._policy.carrier_eta_hours))
        delivery.carrier_eta = now + timedelta(hours=hours)
        order.mark_items(ItemStatus.SHIPPED)

    def _enter_delivered(self, order: Order, request: TransitionRequest, now: datetime) -> None:
        delivery = order.delivery
        delivery.delivered_at = now
        delivery.actual_delivery_minutes = int((now - order.created_at).total_seconds() // 60)
        delivery.return_eligible_until = now + timedelta(days=self._policy.return_window_days)

        # Cash on delivery is collected at the door.
        if order.payment_method is PaymentMethod.COD and not order.payment_captured:
            order.payment = PaymentRecord(
                method=PaymentMethod.COD,
                status=PaymentStatus.PAID,
                amount=order.total,
                captured_at=now,
            )
        order.mark_items(ItemStatus.DELIVERED)

    def _enter_cancelled(self, order: Order, request: TransitionRequest, now: datetime) -> None:
        self._attach_payment(order, request)
        if order.reservation_committed:
            self._reservations.restock(order.quantities())
        else:
            self._reservations.release(order.reservation_id)

        captured = order.payment_captured
        order.cancellation = CancellationRecord(
            reason=request.reason or "Order cancelled",
            cancelled_at=now,
            refund_status=RefundStatus.PENDING if captured else RefundStatus.NOT_APPLICABLE,
            actor=request.actor,
        )
        if captured:
            order.refund = RefundRecord(
                amount=order.payment.amount,  # type: ignore[union-attr]
                source="cancellation",
                opened_at=now,
            )
        order.mark_items(ItemStatus.CANCELLED)

    def _enter_return_requested(
        self, order: Order, request: TransitionRequest, now: datetime
    ) -> None:
        code = str(request.details.get("reason_code") or "")
        reason = RETURN_REASONS.get(code)
        if reason is None:
            raise ValidationError(
                f"Unknown return reason '{code}'. Expected one of: {', '.join(sorted(RETURN_REASONS))}"
            )

        delivered_at = order.delivery.delivered_at
        eligible_until = order.delivery.return_eligible_until
        if delivered_at is None or eligible_until is None:
            raise ValidationError("Order has no recorded delivery; it cannot be returned")
        deadline = min(eligible_until, delivered_at + timedelta(days=reason.window_days))
        if now > deadline:
            raise ValidationError(f"Return window closed on {deadline:%Y-%m-%d %H:%M UTC}")

        quantities = self._return_quantities(order, request.details.get("items"))
        returned_total = Money.zero(order.currency)
        for product_id, qty in quantities.items():
            returned_total = returned_total + order.find_item(product_id).unit_price * qty

        fee = Money.of(reason.return_fee, order.currency).min(returned_total)
        order.return_request = ReturnRequest(
            items=quantities,
            reason=code,
            requested_at=now,
            refund_amount=returned_total - fee,
            return_fee=fee,
            comment=request.details.get("comment"),
        )
        order.mark_items(ItemStatus.RETURN_REQUESTED, set(quantities))

    def _enter_return_approved(
        self, order: Order, request: TransitionRequest, now: datetime
    ) -> None:
        if order.return_request is not None:
            order.return_request.approved_at = now

    def _enter_return_delivered(
        self, order: Order, request: TransitionRequest, now: datetime
    ) -> None:
        ret = order.return_request
        if ret is None:
            raise ValidationError("Order has no return request")
        self._reservations.restock(ret.items)
        order.refund = RefundRecord(amount=ret.refund_amount, source="return", opened_at=now)
        order.mark_items(ItemStatus.RETURNED, set(ret.items))

    def _enter_refunded(self, order: Order, request: TransitionRequest, now: datetime) -> None:
        amount = request.details.get("amount")
        if amount is None:
            amount = order.refund.amount if order.refund else Money.zero(order.currency)

        if order.refund is None:
            source = "return" if order.return_request is not None else "cancellation"
            order.refund = RefundRecord(amount=amount, source=source, opened_at=now)
        order.refund.amount = amount
        order.refund.status = RefundStatus.COMPLETED
        order.refund.completed_at = now
        order.refund.reference_id = request.details.get("reference_id")

        if order.payment is not None:
            order.payment = replace(order.payment, status=PaymentStatus.REFUNDED)
        if order.cancellation is not None:
            order.cancellation.refund_status = RefundStatus.COMPLETED
        if order.return_request is not None:
            order.return_request.closed_at = now

        refunded_by_seller = self._refunded_gross_by_seller(order)
        splits = []
        for split in order.splits:
            gross = refunded_by_seller.get(split.seller_id)
            splits.append(split if gross is None or gross.is_zero else split.apply_refund(gross))
        order.splits = tuple(splits)

        if order.return_request is not None:
            order.mark_items(ItemStatus.REFUNDED, set(order.return_request.items))
        else:
            order.mark_items(ItemStatus.REFUNDED)

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _return_quantities(order: Order, raw_items: Any) -> dict[str, int]:
        if not raw_items:
            raise ValidationError("A return must name at least one item")
        ordered = order.quantities()
        quantities: dict[str, int] = {}
        for product_id, qty in dict(raw_items).items():
            if product_id not in ordered:
                raise ValidationError(f"Product ID '{product_id}' not found in this order")
            if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
                raise ValidationError(f"Return quantity for '{product_id}' must be a positive integer")
            if qty > ordered[product_id]:
                raise ValidationError(
                    f"Cannot return {qty} of '{product_id}' - only {ordered[product_id]} ordered"
                )
            quantities[product_id] = qty
        return quantities

    @staticmethod
    def _refunded_gross_by_seller(order: Order) -> dict[str, Money]:
        """Seller gross covered by this refund: returned lines, or everything on cancellation."""
        result: dict[str, Money] = {}
        if order.return_request is not None:
            for product_id, qty in order.return_request.items.items():
                item = order.find_item(product_id)
                current = result.get(item.seller_id, Money.zero(order.currency))
                result[item.seller_id] = current + item.unit_price * qty
        else:
            for split in order.splits:
                result[split.seller_id] = split.gross_amount
        return result
