"""Tests for the composition root wired to a real JSON file."""

import pytest

from marketplace.domain.model.order import PaymentStatus
from marketplace.infrastructure.bootstrap import Container
from marketplace.infrastructure.config import Settings
from tests.builders import make_submission


def _container(tmp_path, **overrides) -> Container:
    return Container(Settings(data_dir=tmp_path, **overrides))


@pytest.fixture
def container(tmp_path):
    c = _container(tmp_path)
    c.add_product().handle("Cotton Kurta", "100", "S1", weight_kg="0.5", product_id="P1")
    c.set_inventory().handle("P1", 5)
    return c


class TestContainer:

    def test_services_are_cached(self, tmp_path):
        c = _container(tmp_path)
        assert c.order_repository is c.order_repository
        assert c.transitions is c.transitions
        assert c.store.file_path == tmp_path / "marketplace.json"

    def test_card_checkout_persists_across_containers(self, tmp_path, container):
        result = container.submit_order().handle(make_submission(items=[("P1", 2)]))

        assert result.success, result.reasons
        reloaded = _container(tmp_path)
        order = reloaded.order_repository.get_by_id(result.order.id)
        assert order.status.value == "confirmed"
        assert order.payment.status is PaymentStatus.PAID
        assert order.payment.reference_id.startswith("PAY-")
        assert order.reservation_committed
        item = reloaded.inventory_repository.get_by_product_id("P1")
        assert (item.stock, item.reserved_stock) == (3, 0)

    def test_declined_method_compensates(self, tmp_path):
        c = _container(tmp_path, declined_payment_methods=frozenset({"card"}))
        c.add_product().handle("Cotton Kurta", "100", "S1", product_id="P1")
        c.set_inventory().handle("P1", 5)

        result = c.submit_order().handle(make_submission(items=[("P1", 2)]))

        assert not result.success
        assert result.code == "payment_failed"
        item = c.inventory_repository.get_by_product_id("P1")
        assert (item.stock, item.reserved_stock) == (5, 0)
