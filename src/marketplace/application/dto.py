"""Data Transfer Objects: plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from marketplace.domain.model.inventory import InventoryItem
from marketplace.domain.model.order import Order
from marketplace.domain.service.order_state_machine import STATUS_LABELS, allowed_next

_TIME_FORMAT = "%Y-%m-%d %H:%M UTC"


def _fmt(at: datetime | None) -> str | None:
    return at.strftime(_TIME_FORMAT) if at is not None else None


@dataclass(frozen=True)
class OrderLineItemDTO:
    """Output: a single line item as displayed to the user."""

    product_id: str
    product_name: str
    seller_id: str
    quantity: int
    unit_price: str  # formatted, e.g. "INR 15.00"
    line_total: str
    status: str


@dataclass(frozen=True)
class SplitDTO:
    seller_id: str
    gross: str
    commission_rate: str
    commission: str
    net: str
    refunded: str | None
    net_payable: str


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: int
    reference: str
    customer_id: str
    status: str
    status_label: str
    items: list[OrderLineItemDTO]
    subtotal: str
    shipping: str
    tax: str
    platform_fee: str
    discount: str
    total: str
    payment_method: str
    payment_status: str
    risk_level: str | None
    risk_score: int | None
    requires_review: bool
    splits: list[SplitDTO]
    tracking_number: str | None
    estimated_delivery: str | None
    refund_status: str | None
    allowed_next: list[str]
    created_at: str


@dataclass(frozen=True)
class TimelineEntryDTO:
    status: str
    label: str
    description: str
    timestamp: str
    reason: str
    actor: str | None
    system_generated: bool


@dataclass(frozen=True)
class InventoryDTO:
    product_id: str
    product_name: str
    stock: int
    reserved: int


@dataclass(frozen=True)
class StepRecord:
    """One orchestration step of a submission, kept in the processing log."""

    step: str
    status: str  # "ok", "failed" or "skipped"
    at: datetime
    detail: str | None = None


@dataclass(frozen=True)
class OrderResult:
    """Outcome of a submission.

    Business refusals come back here with ``success=False`` and a stable
    ``code``. Defects are raised instead.
    """

    success: bool
    code: str
    message: str
    correlation_id: str
    reasons: list[str] = field(default_factory=list)
    order: OrderDTO | None = None
    steps: list[StepRecord] = field(default_factory=list)


# --- Mapping -------------------------------------------------------------------


def order_to_dto(order: Order) -> OrderDTO:
    pricing = order.pricing
    fraud = order.fraud_check
    return OrderDTO(
        id=order.id,  # type: ignore[arg-type]
        reference=order.reference,
        customer_id=order.customer_id,
        status=order.status.value,
        status_label=STATUS_LABELS[order.status][0],
        items=[
            OrderLineItemDTO(
                product_id=item.product_id,
                product_name=item.product_name,
                seller_id=item.seller_id,
                quantity=item.quantity.value,
                unit_price=str(item.unit_price),
                line_total=str(item.line_total),
                status=item.status.value,
            )
            for item in order.items
        ],
        subtotal=str(pricing.subtotal),
        shipping=str(pricing.shipping),
        tax=str(pricing.tax),
        platform_fee=str(pricing.platform_fee),
        discount=str(pricing.discount),
        total=str(pricing.total),
        payment_method=order.payment_method.value,
        payment_status=order.payment.status.value if order.payment else "pending",
        risk_level=fraud.risk_level.value if fraud else None,
        risk_score=fraud.score if fraud else None,
        requires_review=order.requires_review,
        splits=[
            SplitDTO(
                seller_id=split.seller_id,
                gross=str(split.gross_amount),
                commission_rate=str(split.commission_rate),
                commission=str(split.commission_amount),
                net=str(split.net_amount),
                refunded=str(split.refunded_amount) if split.refunded_amount else None,
                net_payable=str(split.net_payable),
            )
            for split in order.splits
        ],
        tracking_number=order.delivery.tracking_number,
        estimated_delivery=_fmt(order.delivery.estimated_delivery),
        refund_status=order.refund.status.value if order.refund else None,
        allowed_next=sorted(s.value for s in allowed_next(order.status)),
        created_at=order.created_at.strftime(_TIME_FORMAT),
    )


def timeline_to_dto(order: Order) -> list[TimelineEntryDTO]:
    entries = []
    for entry in order.history:
        label, description = STATUS_LABELS[entry.status]
        entries.append(
            TimelineEntryDTO(
                status=entry.status.value,
                label=label,
                description=description,
                timestamp=entry.timestamp.strftime(_TIME_FORMAT),
                reason=entry.reason,
                actor=entry.actor,
                system_generated=entry.system_generated,
            )
        )
    return entries


def inventory_to_dto(item: InventoryItem) -> InventoryDTO:
    return InventoryDTO(
        product_id=item.product_id,
        product_name=item.product_name,
        stock=item.stock,
        reserved=item.reserved_stock,
    )
