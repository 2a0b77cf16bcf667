"""Raw order submission, exactly as received from the caller.

Fields are loosely typed on purpose: nothing here is trusted until the
OrderValidator has accepted it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from marketplace.domain.model.order import PaymentMethod
from marketplace.domain.model.value_objects import ShippingAddress


@dataclass(frozen=True)
class SubmittedItem:
    product_id: Any
    quantity: Any


@dataclass(frozen=True)
class OrderSubmission:
    customer_id: Any
    items: list[SubmittedItem] | None
    shipping_address: dict[str, Any] | None
    payment_method: Any
    coupon_code: str | None = None
    origin_ip: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    # --- Typed views (only valid after validation) ------------------------------

    def address(self) -> ShippingAddress:
        raw = self.shipping_address or {}
        return ShippingAddress(
            name=str(raw.get("name", "")).strip(),
            line1=str(raw.get("line1", "")).strip(),
            city=str(raw.get("city", "")).strip(),
            postal_code=str(raw.get("postal_code", "")).strip(),
            phone=str(raw.get("phone", "")).strip(),
            state=str(raw.get("state", "") or "").strip(),
            country=str(raw.get("country", "") or "India").strip(),
        )

    def method(self) -> PaymentMethod:
        return PaymentMethod(str(self.payment_method).strip().lower())

    def quantities(self) -> dict[str, int]:
        return {str(item.product_id).strip(): item.quantity for item in self.items or []}
