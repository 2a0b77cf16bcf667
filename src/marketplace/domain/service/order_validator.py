"""Domain service: Order Intake Validation.

Checks that a raw submission is structurally complete before anything
with a side effect runs. Collects every problem instead of stopping at the
first one, so the caller gets one reason per offending field.
"""

from __future__ import annotations

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.order import MAX_LINE_ITEMS, PaymentMethod
from marketplace.domain.model.submission import OrderSubmission
from marketplace.domain.model.value_objects import ShippingAddress
from marketplace.domain.repository.product_repository import ProductRepository

_PAYMENT_METHODS = {m.value for m in PaymentMethod}


class OrderValidator:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    def check(self, submission: OrderSubmission) -> None:
        """Raise ValidationError carrying every reason, or return silently."""
        reasons = self.validate(submission)
        if reasons:
            raise ValidationError(f"Invalid order submission: {'; '.join(reasons)}", reasons)

    def validate(self, submission: OrderSubmission) -> list[str]:
        reasons: list[str] = []

        if not _non_empty(submission.customer_id):
            reasons.append("customer_id: required")

        reasons.extend(self._validate_items(submission))
        reasons.extend(self._validate_address(submission.shipping_address))

        method = submission.payment_method
        if not _non_empty(method):
            reasons.append("payment_method: required")
        elif str(method).strip().lower() not in _PAYMENT_METHODS:
            reasons.append(f"payment_method: unsupported method '{method}'")

        return reasons

    # --- Internal helpers -----------------------------------------------------

    def _validate_items(self, submission: OrderSubmission) -> list[str]:
        items = submission.items
        if not items:
            return ["items: order must contain at least one item"]
        if len(items) > MAX_LINE_ITEMS:
            return [f"items: maximum {MAX_LINE_ITEMS} items per order"]

        reasons: list[str] = []
        seen: set[str] = set()
        for index, item in enumerate(items):
            prefix = f"items[{index}]"
            qty = item.quantity
            if isinstance(qty, bool) or not isinstance(qty, int):
                reasons.append(f"{prefix}.quantity: must be an integer")
            elif qty <= 0:
                reasons.append(f"{prefix}.quantity: must be positive")

            if not _non_empty(item.product_id):
                reasons.append(f"{prefix}.product_id: required")
                continue
            product_id = str(item.product_id).strip()
            if product_id in seen:
                reasons.append(f"{prefix}.product_id: duplicate product '{product_id}'")
            seen.add(product_id)
            if self._product_repo.get_by_id(product_id) is None:
                reasons.append(f"{prefix}.product_id: unknown product '{product_id}'")
        return reasons

    @staticmethod
    def _validate_address(address: dict | None) -> list[str]:
        if not address:
            return ["shipping_address: required"]
        return [
            f"shipping_address.{name}: required"
            for name in ShippingAddress.REQUIRED_FIELDS
            if not _non_empty(address.get(name))
        ]


def _non_empty(value) -> bool:
    return value is not None and str(value).strip() != ""
