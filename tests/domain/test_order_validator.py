"""Tests for intake validation of raw submissions."""

import pytest

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.product import Product
from marketplace.domain.model.submission import OrderSubmission, SubmittedItem
from marketplace.domain.model.value_objects import Money
from marketplace.domain.service.order_validator import OrderValidator
from tests.builders import ADDRESS, make_submission
from tests.fakes import FakeProductRepository


def _validator() -> OrderValidator:
    return OrderValidator(FakeProductRepository([
        Product("P1", "Cotton Kurta", Money.of("100"), "S1"),
        Product("P2", "Steel Bottle", Money.of("250"), "S2"),
    ]))


class TestValidSubmission:

    def test_complete_submission_passes(self):
        assert _validator().validate(make_submission()) == []

    def test_check_returns_silently(self):
        _validator().check(make_submission(payment_method=" UPI "))


class TestReasons:

    def test_every_problem_is_reported(self):
        submission = OrderSubmission(
            customer_id="",
            items=[SubmittedItem("P1", 0), SubmittedItem("P9", "two")],
            shipping_address={"name": "Asha", "line1": "", "city": "Delhi"},
            payment_method="bitcoin",
        )
        reasons = _validator().validate(submission)

        assert "customer_id: required" in reasons
        assert "items[0].quantity: must be positive" in reasons
        assert "items[1].quantity: must be an integer" in reasons
        assert "items[1].product_id: unknown product 'P9'" in reasons
        assert "shipping_address.line1: required" in reasons
        assert "shipping_address.postal_code: required" in reasons
        assert "shipping_address.phone: required" in reasons
        assert "payment_method: unsupported method 'bitcoin'" in reasons

    def test_no_items(self):
        reasons = _validator().validate(make_submission(items=[]))
        assert reasons == ["items: order must contain at least one item"]

    def test_too_many_items(self):
        submission = make_submission(items=[(f"P{i}", 1) for i in range(51)])
        assert _validator().validate(submission) == ["items: maximum 50 items per order"]

    def test_duplicate_product(self):
        reasons = _validator().validate(make_submission(items=[("P1", 1), (" P1 ", 2)]))
        assert reasons == ["items[1].product_id: duplicate product 'P1'"]

    def test_boolean_quantity_is_not_an_integer(self):
        reasons = _validator().validate(make_submission(items=[("P1", True)]))
        assert reasons == ["items[0].quantity: must be an integer"]

    def test_missing_address(self):
        submission = OrderSubmission("C1", [SubmittedItem("P1", 1)], None, "cod")
        assert _validator().validate(submission) == ["shipping_address: required"]

    def test_missing_payment_method(self):
        submission = OrderSubmission("C1", [SubmittedItem("P1", 1)], dict(ADDRESS), None)
        assert _validator().validate(submission) == ["payment_method: required"]


class TestCheck:

    def test_check_raises_with_reasons(self):
        with pytest.raises(ValidationError) as exc_info:
            _validator().check(make_submission(customer_id=" "))
        assert exc_info.value.reasons == ["customer_id: required"]
