"""Coupon value object used by the pricing calculator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.value_objects import Money


@dataclass(frozen=True)
class Coupon:
    """A discount code: either a percentage of the items total or a fixed amount."""

    code: str
    percent_off: Decimal | None = None
    amount_off: Money | None = None
    min_items_total: Money | None = None
    max_discount: Money | None = None
    expires_at: datetime | None = None

    def __post_init__(self) -> None:
        if (self.percent_off is None) == (self.amount_off is None):
            raise ValidationError("Coupon needs exactly one of percent_off or amount_off")
        if self.percent_off is not None and not Decimal("0") < self.percent_off <= Decimal("1"):
            raise ValidationError("Coupon percent_off must be in (0, 1]")

    def discount_for(self, items_total: Money, now: datetime) -> Money:
        """Discount this coupon grants on ``items_total``, zero if not applicable."""
        if self.expires_at is not None and now >= self.expires_at:
            return Money.zero(items_total.currency)
        if self.min_items_total is not None and items_total < self.min_items_total:
            return Money.zero(items_total.currency)

        if self.percent_off is not None:
            discount = items_total.percent(self.percent_off)
        else:
            discount = self.amount_off  # type: ignore[assignment]

        if self.max_discount is not None:
            discount = discount.min(self.max_discount)
        return discount.min(items_total)
