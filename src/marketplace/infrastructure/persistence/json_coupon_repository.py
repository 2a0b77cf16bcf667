"""JSON-document-backed implementation of CouponRepository."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from marketplace.domain.model.coupon import Coupon
from marketplace.domain.model.value_objects import Money
from marketplace.domain.repository.coupon_repository import CouponRepository
from marketplace.infrastructure.persistence.json_store import JsonDocumentStore


class JsonCouponRepository(CouponRepository):

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store

    def get_by_code(self, code: str) -> Coupon | None:
        key = code.strip().upper()
        with self._store.transaction() as data:
            raw = data["coupons"].get(key)
        return self._to_domain(key, raw) if raw else None

    def save(self, coupon: Coupon) -> None:
        with self._store.transaction() as data:
            data["coupons"][coupon.code.strip().upper()] = self._to_raw(coupon)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(coupon: Coupon) -> dict:
        money = (coupon.amount_off, coupon.min_items_total, coupon.max_discount)
        currency = next((m.currency for m in money if m is not None), "INR")
        return {
            "percent_off": str(coupon.percent_off) if coupon.percent_off is not None else None,
            "amount_off": _amount(coupon.amount_off),
            "min_items_total": _amount(coupon.min_items_total),
            "max_discount": _amount(coupon.max_discount),
            "currency": currency,
            "expires_at": coupon.expires_at.isoformat() if coupon.expires_at else None,
        }

    @staticmethod
    def _to_domain(code: str, raw: dict) -> Coupon:
        currency = raw.get("currency", "INR")
        return Coupon(
            code=code,
            percent_off=Decimal(raw["percent_off"]) if raw.get("percent_off") else None,
            amount_off=_money(raw.get("amount_off"), currency),
            min_items_total=_money(raw.get("min_items_total"), currency),
            max_discount=_money(raw.get("max_discount"), currency),
            expires_at=datetime.fromisoformat(raw["expires_at"]) if raw.get("expires_at") else None,
        )


def _amount(money: Money | None) -> str | None:
    return str(money.amount) if money is not None else None


def _money(raw: str | None, currency: str) -> Money | None:
    return Money(Decimal(raw), currency) if raw is not None else None
