"""Unit tests for the Coupon value object."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.coupon import Coupon
from marketplace.domain.model.value_objects import Money

NOW = datetime(2026, 3, 2, tzinfo=timezone.utc)


class TestCouponRules:

    def test_needs_exactly_one_kind(self):
        with pytest.raises(ValidationError, match="exactly one"):
            Coupon("BOTH", percent_off=Decimal("0.1"), amount_off=Money.of("10"))
        with pytest.raises(ValidationError, match="exactly one"):
            Coupon("NONE")

    def test_percent_out_of_range(self):
        with pytest.raises(ValidationError, match="percent_off"):
            Coupon("BIG", percent_off=Decimal("1.5"))


class TestCouponDiscount:

    def test_minimum_items_total(self):
        coupon = Coupon("MIN", amount_off=Money.of("50"), min_items_total=Money.of("500"))
        assert coupon.discount_for(Money.of("499"), NOW) == Money.zero()
        assert coupon.discount_for(Money.of("500"), NOW) == Money.of("50")

    def test_max_discount(self):
        coupon = Coupon("PCT", percent_off=Decimal("0.2"), max_discount=Money.of("100"))
        assert coupon.discount_for(Money.of("1000"), NOW) == Money.of("100")

    def test_never_exceeds_items_total(self):
        coupon = Coupon("FLAT", amount_off=Money.of("80"))
        assert coupon.discount_for(Money.of("60"), NOW) == Money.of("60")

    def test_expiry_is_exclusive(self):
        coupon = Coupon("END", amount_off=Money.of("10"), expires_at=NOW)
        assert coupon.discount_for(Money.of("100"), NOW) == Money.zero()
