"""JSON-document-backed implementation of OrderRepository."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

from marketplace.domain.exceptions import ConcurrencyConflict
from marketplace.domain.model.order import (
    CancellationRecord,
    DeliveryTracking,
    FraudCheck,
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PricingBreakdown,
    RefundRecord,
    RefundStatus,
    ReturnRequest,
    RiskLevel,
    Split,
    StatusHistoryEntry,
)
from marketplace.domain.model.value_objects import Money, Quantity, ShippingAddress
from marketplace.domain.repository.order_repository import OrderRepository
from marketplace.infrastructure.persistence.json_store import JsonDocumentStore


class JsonOrderRepository(OrderRepository):

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store

    # --- OrderRepository interface --------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._store.transaction():
            yield

    def get_by_id(self, order_id: int) -> Order | None:
        with self._store.transaction() as data:
            raw = data["orders"].get(str(order_id))
            return self._to_domain(raw) if raw else None

    def list_by_customer(self, customer_id: str) -> list[Order]:
        return [o for o in self._list_all() if o.customer_id == customer_id]

    def list_placed_since(self, since: datetime) -> list[Order]:
        return [o for o in self._list_all() if o.created_at >= since]

    def save(self, order: Order) -> None:
        with self._store.transaction() as data:
            orders = data["orders"]
            if order.id is None:
                order.id = max((int(key) for key in orders), default=0) + 1
            else:
                stored = orders.get(str(order.id))
                stored_version = stored["version"] if stored else 0
                if stored_version != order.version:
                    raise ConcurrencyConflict(
                        f"Order #{order.id} was modified concurrently "
                        f"(stored version {stored_version}, writing {order.version})"
                    )
            order.version += 1
            orders[str(order.id)] = self._to_raw(order)

    def _list_all(self) -> list[Order]:
        with self._store.transaction() as data:
            orders = [self._to_domain(raw) for raw in data["orders"].values()]
        return sorted(orders, key=lambda o: o.id or 0)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict:
        address = order.shipping_address
        fraud = order.fraud_check
        delivery = order.delivery
        return {
            "id": order.id,
            "version": order.version,
            "customer_id": order.customer_id,
            "currency": order.currency,
            "status": order.status.value,
            "items": [
                {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "seller_id": item.seller_id,
                    "quantity": item.quantity.value,
                    "unit_price": str(item.unit_price.amount),
                    "weight_kg": str(item.weight_kg),
                    "status": item.status.value,
                }
                for item in order.items
            ],
            "shipping_address": {
                "name": address.name,
                "line1": address.line1,
                "city": address.city,
                "state": address.state,
                "postal_code": address.postal_code,
                "country": address.country,
                "phone": address.phone,
            },
            "payment_method": order.payment_method.value,
            "pricing": {
                "subtotal": _amount(order.pricing.subtotal),
                "shipping": _amount(order.pricing.shipping),
                "tax": _amount(order.pricing.tax),
                "platform_fee": _amount(order.pricing.platform_fee),
                "discount": _amount(order.pricing.discount),
                "total": _amount(order.pricing.total),
            },
            "history": [
                {
                    "status": entry.status.value,
                    "timestamp": entry.timestamp.isoformat(),
                    "reason": entry.reason,
                    "actor": entry.actor,
                    "system_generated": entry.system_generated,
                }
                for entry in order.history
            ],
            "fraud_check": None if fraud is None else {
                "score": fraud.score,
                "risk_level": fraud.risk_level.value,
                "triggered_rules": list(fraud.triggered_rules),
                "skipped_rules": list(fraud.skipped_rules),
                "requires_review": fraud.requires_review,
                "blocked": fraud.blocked,
                "reviewed_by": fraud.reviewed_by,
                "reviewed_at": _iso(fraud.reviewed_at),
                "review_note": fraud.review_note,
            },
            "splits": [
                {
                    "seller_id": split.seller_id,
                    "gross_amount": _amount(split.gross_amount),
                    "commission_rate": str(split.commission_rate),
                    "commission_amount": _amount(split.commission_amount),
                    "net_amount": _amount(split.net_amount),
                    "refunded_amount": _amount(split.refunded_amount),
                }
                for split in order.splits
            ],
            "reservation_id": order.reservation_id,
            "reservation_committed": order.reservation_committed,
            "payment": None if order.payment is None else {
                "method": order.payment.method.value,
                "status": order.payment.status.value,
                "amount": _amount(order.payment.amount),
                "reference_id": order.payment.reference_id,
                "captured_at": _iso(order.payment.captured_at),
            },
            "delivery": {
                "estimated_delivery": _iso(delivery.estimated_delivery),
                "tracking_number": delivery.tracking_number,
                "carrier": delivery.carrier,
                "carrier_eta": _iso(delivery.carrier_eta),
                "delivered_at": _iso(delivery.delivered_at),
                "actual_delivery_minutes": delivery.actual_delivery_minutes,
                "return_eligible_until": _iso(delivery.return_eligible_until),
            },
            "cancellation": None if order.cancellation is None else {
                "reason": order.cancellation.reason,
                "cancelled_at": order.cancellation.cancelled_at.isoformat(),
                "refund_status": order.cancellation.refund_status.value,
                "actor": order.cancellation.actor,
            },
            "refund": None if order.refund is None else {
                "amount": _amount(order.refund.amount),
                "source": order.refund.source,
                "opened_at": order.refund.opened_at.isoformat(),
                "status": order.refund.status.value,
                "completed_at": _iso(order.refund.completed_at),
                "reference_id": order.refund.reference_id,
            },
            "return_request": None if order.return_request is None else {
                "items": dict(order.return_request.items),
                "reason": order.return_request.reason,
                "requested_at": order.return_request.requested_at.isoformat(),
                "refund_amount": _amount(order.return_request.refund_amount),
                "return_fee": _amount(order.return_request.return_fee),
                "comment": order.return_request.comment,
                "approved_at": _iso(order.return_request.approved_at),
                "closed_at": _iso(order.return_request.closed_at),
            },
            "origin_ip": order.origin_ip,
            "coupon_code": order.coupon_code,
            "created_at": order.created_at.isoformat(),
            "updated_at": _iso(order.updated_at),
        }

    @staticmethod
    def _to_domain(raw: dict) -> Order:
        currency = raw.get("currency", "INR")

        def money(value: str | None) -> Money | None:
            return Money(Decimal(value), currency) if value is not None else None

        pricing = raw["pricing"]
        fraud = raw.get("fraud_check")
        payment = raw.get("payment")
        delivery = raw.get("delivery") or {}
        cancellation = raw.get("cancellation")
        refund = raw.get("refund")
        ret = raw.get("return_request")

        return Order(
            id=raw["id"],
            version=raw["version"],
            customer_id=raw["customer_id"],
            items=[
                OrderItem(
                    product_id=i["product_id"],
                    product_name=i["product_name"],
                    seller_id=i["seller_id"],
                    quantity=Quantity(i["quantity"]),
                    unit_price=money(i["unit_price"]),
                    weight_kg=Decimal(i.get("weight_kg", "0")),
                    status=ItemStatus(i.get("status", "pending")),
                )
                for i in raw["items"]
            ],
            shipping_address=ShippingAddress(**raw["shipping_address"]),
            payment_method=PaymentMethod(raw["payment_method"]),
            pricing=PricingBreakdown(
                subtotal=money(pricing["subtotal"]),
                shipping=money(pricing["shipping"]),
                tax=money(pricing["tax"]),
                platform_fee=money(pricing["platform_fee"]),
                discount=money(pricing["discount"]),
                total=money(pricing["total"]),
            ),
            history=[
                StatusHistoryEntry(
                    status=OrderStatus(h["status"]),
                    timestamp=datetime.fromisoformat(h["timestamp"]),
                    reason=h["reason"],
                    actor=h.get("actor"),
                    system_generated=h.get("system_generated", False),
                )
                for h in raw["history"]
            ],
            fraud_check=None if fraud is None else FraudCheck(
                score=fraud["score"],
                risk_level=RiskLevel(fraud["risk_level"]),
                triggered_rules=tuple(fraud.get("triggered_rules", ())),
                skipped_rules=tuple(fraud.get("skipped_rules", ())),
                requires_review=fraud.get("requires_review", False),
                blocked=fraud.get("blocked", False),
                reviewed_by=fraud.get("reviewed_by"),
                reviewed_at=_dt(fraud.get("reviewed_at")),
                review_note=fraud.get("review_note"),
            ),
            splits=tuple(
                Split(
                    seller_id=s["seller_id"],
                    gross_amount=money(s["gross_amount"]),
                    commission_rate=Decimal(s["commission_rate"]),
                    commission_amount=money(s["commission_amount"]),
                    net_amount=money(s["net_amount"]),
                    refunded_amount=money(s.get("refunded_amount")),
                )
                for s in raw.get("splits", [])
            ),
            reservation_id=raw.get("reservation_id"),
            reservation_committed=raw.get("reservation_committed", False),
            payment=None if payment is None else PaymentRecord(
                method=PaymentMethod(payment["method"]),
                status=PaymentStatus(payment["status"]),
                amount=money(payment["amount"]),
                reference_id=payment.get("reference_id"),
                captured_at=_dt(payment.get("captured_at")),
            ),
            delivery=DeliveryTracking(
                estimated_delivery=_dt(delivery.get("estimated_delivery")),
                tracking_number=delivery.get("tracking_number"),
                carrier=delivery.get("carrier"),
                carrier_eta=_dt(delivery.get("carrier_eta")),
                delivered_at=_dt(delivery.get("delivered_at")),
                actual_delivery_minutes=delivery.get("actual_delivery_minutes"),
                return_eligible_until=_dt(delivery.get("return_eligible_until")),
            ),
            cancellation=None if cancellation is None else CancellationRecord(
                reason=cancellation["reason"],
                cancelled_at=datetime.fromisoformat(cancellation["cancelled_at"]),
                refund_status=RefundStatus(cancellation["refund_status"]),
                actor=cancellation.get("actor"),
            ),
            refund=None if refund is None else RefundRecord(
                amount=money(refund["amount"]),
                source=refund["source"],
                opened_at=datetime.fromisoformat(refund["opened_at"]),
                status=RefundStatus(refund["status"]),
                completed_at=_dt(refund.get("completed_at")),
                reference_id=refund.get("reference_id"),
            ),
            return_request=None if ret is None else ReturnRequest(
                items={pid: int(qty) for pid, qty in ret["items"].items()},
                reason=ret["reason"],
                requested_at=datetime.fromisoformat(ret["requested_at"]),
                refund_amount=money(ret["refund_amount"]),
                return_fee=money(ret["return_fee"]),
                comment=ret.get("comment"),
                approved_at=_dt(ret.get("approved_at")),
                closed_at=_dt(ret.get("closed_at")),
            ),
            origin_ip=raw.get("origin_ip"),
            coupon_code=raw.get("coupon_code"),
            created_at=datetime.fromisoformat(raw["created_at"]),
            updated_at=_dt(raw.get("updated_at")),
        )


def _amount(money: Money | None) -> str | None:
    return str(money.amount) if money is not None else None


def _iso(at: datetime | None) -> str | None:
    return at.isoformat() if at is not None else None


def _dt(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None
