"""Domain service: Pricing & Commission.

Computes the customer-facing price breakdown of an order and the
per-seller commission splits. Every amount is a Decimal-backed Money
quantized to minor units, so repeated aggregation never drifts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_CEILING, Decimal

import structlog

from marketplace.domain.gateway.customer_directory import CustomerHistory
from marketplace.domain.model.order import OrderItem, PricingBreakdown, Split
from marketplace.domain.model.value_objects import Money, ShippingAddress
from marketplace.domain.repository.coupon_repository import CouponRepository
from marketplace.domain.repository.seller_repository import SellerRepository

logger = structlog.get_logger(__name__)


# (first postal code, last postal code, multiplier)
DEFAULT_SHIPPING_ZONES: tuple[tuple[int, int, Decimal], ...] = (
    (110000, 110099, Decimal("1.0")),  # Delhi NCR
    (400000, 400099, Decimal("1.2")),  # Mumbai
    (560000, 560099, Decimal("1.3")),  # Bangalore
)


@dataclass(frozen=True)
class PricingPolicy:
    currency: str = "INR"
    free_shipping_threshold: Decimal = Decimal("500")
    base_shipping_fee: Decimal = Decimal("50")
    weight_allowance_kg: Decimal = Decimal("1")
    weight_step_kg: Decimal = Decimal("0.5")
    weight_step_fee: Decimal = Decimal("10")
    shipping_zones: tuple[tuple[int, int, Decimal], ...] = field(
        default=DEFAULT_SHIPPING_ZONES
    )
    default_zone_multiplier: Decimal = Decimal("1.5")
    tax_rate: Decimal = Decimal("0.18")
    platform_fee_rate: Decimal = Decimal("0.02")
    new_customer_discount_rate: Decimal = Decimal("0.10")
    new_customer_min_items_total: Decimal = Decimal("1000")
    new_customer_discount_cap: Decimal = Decimal("500")
    max_discount_rate: Decimal = Decimal("0.5")
    default_commission_rate: Decimal = Decimal("0.05")

    def money(self, amount: Decimal | int | str) -> Money:
        return Money.of(amount, self.currency)


class PricingCalculator:

    def __init__(
        self,
        policy: PricingPolicy | None = None,
        coupon_repo: CouponRepository | None = None,
        seller_repo: SellerRepository | None = None,
    ) -> None:
        self._policy = policy or PricingPolicy()
        self._coupon_repo = coupon_repo
        self._seller_repo = seller_repo

    # --- Customer pricing -------------------------------------------------------

    def price(
        self,
        items: list[OrderItem],
        address: ShippingAddress,
        coupon_code: str | None = None,
        customer_history: CustomerHistory | None = None,
        now: datetime | None = None,
    ) -> PricingBreakdown:
        p = self._policy
        subtotal = self.items_total(items)
        shipping = self.shipping(subtotal, self.total_weight(items), address.postal_code)
        tax = subtotal.percent(p.tax_rate)
        platform_fee = subtotal.percent(p.platform_fee_rate)

        discount = self.discount(subtotal, coupon_code, customer_history, now)
        # Cap so the total can never go below zero.
        discount = discount.min(subtotal + shipping + tax + platform_fee)

        return PricingBreakdown.compose(subtotal, shipping, tax, platform_fee, discount)

    def items_total(self, items: list[OrderItem]) -> Money:
        total = Money.zero(self._policy.currency)
        for item in items:
            total = total + item.line_total
        return total.quantized()

    @staticmethod
    def total_weight(items: list[OrderItem]) -> Decimal:
        return sum((item.weight_kg * item.quantity.value for item in items), Decimal("0"))

    def shipping(self, subtotal: Money, weight_kg: Decimal, postal_code: str) -> Money:
        """Free above the threshold, else base fee plus weight steps, times the zone."""
        p = self._policy
        if subtotal.amount >= p.free_shipping_threshold:
            return Money.zero(p.currency)

        fee = p.base_shipping_fee
        if weight_kg > p.weight_allowance_kg:
            steps = ((weight_kg - p.weight_allowance_kg) / p.weight_step_kg).to_integral_value(
                rounding=ROUND_CEILING
            )
            fee += steps * p.weight_step_fee

        return p.money(fee).percent(self.zone_multiplier(postal_code))

    def zone_multiplier(self, postal_code: str) -> Decimal:
        try:
            code = int(str(postal_code).strip())
        except ValueError:
            return self._policy.default_zone_multiplier
        for first, last, multiplier in self._policy.shipping_zones:
            if first <= code <= last:
                return Decimal(multiplier)
        return self._policy.default_zone_multiplier

    def discount(
        self,
        subtotal: Money,
        coupon_code: str | None,
        customer_history: CustomerHistory | None,
        now: datetime | None = None,
    ) -> Money:
        """Coupon plus new-customer incentive, capped at a share of the subtotal."""
        p = self._policy
        at = now or datetime.now(timezone.utc)
        total = Money.zero(p.currency)

        if coupon_code:
            coupon = self._coupon_repo.get_by_code(coupon_code) if self._coupon_repo else None
            if coupon is None:
                logger.warning("Unknown coupon code ignored", coupon_code=coupon_code)
            else:
                total = total + coupon.discount_for(subtotal, at)

        if (
            customer_history is not None
            and customer_history.is_first_order
            and subtotal.amount >= p.new_customer_min_items_total
        ):
            incentive = subtotal.percent(p.new_customer_discount_rate)
            total = total + incentive.min(p.money(p.new_customer_discount_cap))

        return total.min(subtotal.percent(p.max_discount_rate))

    # --- Seller splits ------------------------------------------------------------

    def commission_rate(self, seller_id: str) -> Decimal:
        override = self._seller_repo.get_commission_rate(seller_id) if self._seller_repo else None
        return self._policy.default_commission_rate if override is None else override

    def compute_splits(self, items: list[OrderItem]) -> tuple[Split, ...]:
        """One Split per seller: commission + net always equals gross."""
        groups: dict[str, Money] = {}
        for item in items:
            current = groups.get(item.seller_id, Money.zero(item.unit_price.currency))
            groups[item.seller_id] = current + item.line_total

        splits = []
        for seller_id, gross in groups.items():
            gross = gross.quantized()
            rate = self.commission_rate(seller_id)
            commission = gross.percent(rate)
            splits.append(
                Split(
                    seller_id=seller_id,
                    gross_amount=gross,
                    commission_rate=rate,
                    commission_amount=commission,
                    net_amount=gross - commission,
                )
            )
        return tuple(splits)
