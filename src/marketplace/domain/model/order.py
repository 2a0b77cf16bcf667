"""Order aggregate: the core of the domain.

The Order is an aggregate root that owns its line items, pricing, fraud
verdict, commission splits and the records opened by its lifecycle
(payment, delivery, cancellation, refund, return).

The current status is not a writable attribute. It is read from the last
entry of the append-only status history, and the only way to add an entry
is ``_record_transition``, which the order state machine calls after it has
validated the move. A status change without a history entry cannot exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.value_objects import Money, Quantity, ShippingAddress


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED_DELIVERY = "failed_delivery"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return_requested"
    RETURN_APPROVED = "return_approved"
    RETURN_PICKED_UP = "return_picked_up"
    RETURN_IN_TRANSIT = "return_in_transit"
    RETURN_DELIVERED = "return_delivered"
    REFUNDED = "refunded"
    EXCEPTION = "exception"
    RESOLVED = "resolved"


class ItemStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return_requested"
    RETURNED = "returned"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    COD = "cod"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"

    @property
    def requires_upfront_capture(self) -> bool:
        return self is not PaymentMethod.COD


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RefundStatus(Enum):
    NOT_APPLICABLE = "not_applicable"
    PENDING = "pending"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Line items and value records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItem:
    """Captures the product snapshot at order-creation time.

    Frozen: the unit price can never change once the order exists. Status
    updates produce a replaced copy via ``with_status``.
    """

    product_id: str
    product_name: str
    seller_id: str
    quantity: Quantity
    unit_price: Money  # locked at order-creation time
    weight_kg: Decimal = Decimal("0")
    status: ItemStatus = ItemStatus.PENDING

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value

    def with_status(self, status: ItemStatus) -> OrderItem:
        return replace(self, status=status)


@dataclass(frozen=True)
class PricingBreakdown:
    """Totals of an order. ``total`` always balances the other components."""

    subtotal: Money
    shipping: Money
    tax: Money
    platform_fee: Money
    discount: Money
    total: Money

    def __post_init__(self) -> None:
        gross = self.subtotal + self.shipping + self.tax + self.platform_fee
        if self.discount > gross:
            raise ValidationError(
                f"Discount {self.discount} exceeds pre-discount total {gross}"
            )
        if self.total != gross - self.discount:
            raise ValidationError(
                f"Order total {self.total} does not balance "
                f"(expected {gross - self.discount})"
            )

    @staticmethod
    def compose(
        subtotal: Money,
        shipping: Money,
        tax: Money,
        platform_fee: Money,
        discount: Money,
    ) -> PricingBreakdown:
        total = subtotal + shipping + tax + platform_fee - discount
        return PricingBreakdown(subtotal, shipping, tax, platform_fee, discount, total)


@dataclass(frozen=True)
class FraudCheck:
    """Result of fraud scoring, created once per order at submission."""

    score: int
    risk_level: RiskLevel
    triggered_rules: tuple[str, ...] = ()
    skipped_rules: tuple[str, ...] = ()
    requires_review: bool = False
    blocked: bool = False
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_note: str | None = None

    def reviewed(self, actor: str, at: datetime, note: str | None = None) -> FraudCheck:
        """Record a manual review that clears the order for confirmation."""
        return replace(
            self,
            requires_review=False,
            reviewed_by=actor,
            reviewed_at=at,
            review_note=note,
        )


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One audit-trail line. Never mutated, never deleted."""

    status: OrderStatus
    timestamp: datetime
    reason: str
    actor: str | None = None
    system_generated: bool = False


@dataclass(frozen=True)
class Split:
    """Per-seller breakdown of a multi-vendor order after platform commission."""

    seller_id: str
    gross_amount: Money
    commission_rate: Decimal
    commission_amount: Money
    net_amount: Money
    refunded_amount: Money | None = None

    def apply_refund(self, amount: Money) -> Split:
        """Return a copy that records ``amount`` of the seller's gross as refunded."""
        already = self.refunded_amount or Money.zero(amount.currency)
        total = already + amount
        if total > self.gross_amount:
            raise ValidationError(
                f"Refund {total} exceeds seller {self.seller_id} gross {self.gross_amount}"
            )
        return replace(self, refunded_amount=total)

    @property
    def net_payable(self) -> Money:
        """Net amount still owed to the seller after refund adjustments."""
        if self.refunded_amount is None or self.refunded_amount.is_zero:
            return self.net_amount
        refunded_net = self.refunded_amount - self.refunded_amount.percent(self.commission_rate)
        if refunded_net >= self.net_amount:
            return Money.zero(self.net_amount.currency)
        return self.net_amount - refunded_net


@dataclass(frozen=True)
class PaymentRecord:
    method: PaymentMethod
    status: PaymentStatus
    amount: Money
    reference_id: str | None = None
    captured_at: datetime | None = None

    @property
    def is_captured(self) -> bool:
        return self.captured_at is not None


@dataclass
class DeliveryTracking:
    estimated_delivery: datetime | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    carrier_eta: datetime | None = None
    delivered_at: datetime | None = None
    actual_delivery_minutes: int | None = None
    return_eligible_until: datetime | None = None


@dataclass
class CancellationRecord:
    reason: str
    cancelled_at: datetime
    refund_status: RefundStatus
    actor: str | None = None


@dataclass
class RefundRecord:
    amount: Money
    source: str  # "cancellation" or "return"
    opened_at: datetime
    status: RefundStatus = RefundStatus.PENDING
    completed_at: datetime | None = None
    reference_id: str | None = None


@dataclass
class ReturnRequest:
    items: dict[str, int]
    reason: str
    requested_at: datetime
    refund_amount: Money
    return_fee: Money
    comment: str | None = None
    approved_at: datetime | None = None
    closed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Constants for business rules
# ---------------------------------------------------------------------------
MAX_LINE_ITEMS = 50


@dataclass
class Order:
    """Aggregate root for marketplace orders.

    Use the ``Order.create()`` factory for new orders: it enforces all
    business rules. The ``__init__`` is intentionally simple so the
    repository can reconstitute persisted orders without re-validating.
    """

    id: int | None
    customer_id: str
    items: list[OrderItem]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    pricing: PricingBreakdown
    history: list[StatusHistoryEntry]
    fraud_check: FraudCheck | None = None
    splits: tuple[Split, ...] = ()
    reservation_id: str | None = None
    reservation_committed: bool = False
    payment: PaymentRecord | None = None
    delivery: DeliveryTracking = field(default_factory=DeliveryTracking)
    cancellation: CancellationRecord | None = None
    refund: RefundRecord | None = None
    return_request: ReturnRequest | None = None
    origin_ip: str | None = None
    coupon_code: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None
    version: int = 0

    def __post_init__(self) -> None:
        if not self.history:
            raise ValidationError("Order history must contain the initial status")

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        customer_id: str,
        items: list[OrderItem],
        shipping_address: ShippingAddress,
        payment_method: PaymentMethod,
        pricing: PricingBreakdown,
        fraud_check: FraudCheck | None = None,
        reservation_id: str | None = None,
        origin_ip: str | None = None,
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> Order:
        """Create a new order in ``pending``, enforcing all invariants."""
        if not customer_id or not customer_id.strip():
            raise ValidationError("Customer id is required")

        if not items:
            raise ValidationError("Order must contain at least one item")

        if len(items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")

        subtotal = Money.zero(pricing.subtotal.currency)
        for item in items:
            subtotal = subtotal + item.line_total
        if subtotal != pricing.subtotal:
            raise ValidationError(
                f"Pricing subtotal {pricing.subtotal} does not match items {subtotal}"
            )

        created = now or datetime.now(timezone.utc)
        return Order(
            id=None,
            customer_id=customer_id.strip(),
            items=list(items),
            shipping_address=shipping_address,
            payment_method=payment_method,
            pricing=pricing,
            history=[
                StatusHistoryEntry(
                    status=OrderStatus.PENDING,
                    timestamp=created,
                    reason="Order placed",
                    system_generated=True,
                )
            ],
            fraud_check=fraud_check,
            reservation_id=reservation_id,
            origin_ip=origin_ip,
            coupon_code=coupon_code,
            created_at=created,
            updated_at=created,
        )

    # --- Status ---------------------------------------------------------------

    @property
    def status(self) -> OrderStatus:
        return self.history[-1].status

    def _record_transition(self, entry: StatusHistoryEntry) -> None:
        """Append a history entry, which is what moves the status.

        Only the order state machine calls this, after checking the
        transition table.
        """
        self.history.append(entry)
        self.updated_at = entry.timestamp

    # --- Computed properties --------------------------------------------------

    @property
    def reference(self) -> str:
        return f"ORD-{self.id}"

    @property
    def currency(self) -> str:
        return self.pricing.total.currency

    @property
    def total(self) -> Money:
        return self.pricing.total

    @property
    def requires_review(self) -> bool:
        return self.fraud_check is not None and self.fraud_check.requires_review

    @property
    def payment_captured(self) -> bool:
        return self.payment is not None and self.payment.is_captured

    def items_by_seller(self) -> dict[str, list[OrderItem]]:
        """Group line items by seller, keeping first-seen seller order."""
        groups: dict[str, list[OrderItem]] = {}
        for item in self.items:
            groups.setdefault(item.seller_id, []).append(item)
        return groups

    def quantities(self) -> dict[str, int]:
        return {item.product_id: item.quantity.value for item in self.items}

    # --- Item helpers -----------------------------------------------------------

    def find_item(self, product_id: str) -> OrderItem:
        for item in self.items:
            if item.product_id == product_id:
                return item
        raise ValidationError(f"Product ID '{product_id}' not found in this order")

    def mark_items(self, status: ItemStatus, product_ids: set[str] | None = None) -> None:
        """Set the per-item status, for every item or only ``product_ids``."""
        self.items = [
            item.with_status(status)
            if product_ids is None or item.product_id in product_ids
            else item
            for item in self.items
        ]
