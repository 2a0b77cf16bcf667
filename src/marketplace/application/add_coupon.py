"""Application service: Add Coupon use case."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.coupon import Coupon
from marketplace.domain.model.value_objects import Money
from marketplace.domain.repository.coupon_repository import CouponRepository


class AddCouponHandler:

    def __init__(self, coupon_repo: CouponRepository, currency: str = "INR") -> None:
        self._coupon_repo = coupon_repo
        self._currency = currency

    def handle(
        self,
        code: str,
        percent_off: str | None = None,
        amount_off: str | None = None,
        min_items_total: str | None = None,
        max_discount: str | None = None,
        expires_at: datetime | None = None,
    ) -> Coupon:
        if not code or not code.strip():
            raise ValidationError("Coupon code is required")
        code = code.strip().upper()
        if self._coupon_repo.get_by_code(code) is not None:
            raise ValidationError(f"Coupon '{code}' already exists")

        percent = None
        if percent_off is not None:
            try:
                percent = Decimal(str(percent_off))
            except InvalidOperation:
                raise ValidationError(f"Invalid percent_off '{percent_off}'")

        coupon = Coupon(
            code=code,
            percent_off=percent,
            amount_off=self._money(amount_off),
            min_items_total=self._money(min_items_total),
            max_discount=self._money(max_discount),
            expires_at=expires_at,
        )
        self._coupon_repo.save(coupon)
        return coupon

    def _money(self, raw: str | None) -> Money | None:
        return Money.of(raw, self._currency) if raw is not None else None
