"""In-memory fakes for repositories, external ports and the clock.

The repositories implement the same abstract interfaces as the JSON
repositories but keep everything in dicts. They share one ``FakeStore``
so a transaction that touches stock and orders rolls back as a unit, just
like the JSON document store. No file I/O.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from marketplace.domain.exceptions import ConcurrencyConflict, PaymentFailure
from marketplace.domain.gateway.customer_directory import CustomerDirectory, CustomerHistory
from marketplace.domain.gateway.fulfillment_dispatcher import FulfillmentDispatcher
from marketplace.domain.gateway.notification_dispatcher import NotificationDispatcher
from marketplace.domain.gateway.payment_gateway import (
    CaptureResult,
    PaymentGateway,
    RefundResult,
)
from marketplace.domain.model.coupon import Coupon
from marketplace.domain.model.inventory import InventoryItem
from marketplace.domain.model.order import Order, PaymentMethod
from marketplace.domain.model.product import Product
from marketplace.domain.model.reservation import Reservation
from marketplace.domain.model.value_objects import Money
from marketplace.domain.repository.coupon_repository import CouponRepository
from marketplace.domain.repository.inventory_repository import InventoryRepository
from marketplace.domain.repository.order_repository import OrderRepository
from marketplace.domain.repository.product_repository import ProductRepository
from marketplace.domain.repository.seller_repository import SellerRepository

T0 = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeStore:
    """Shared state with snapshot/rollback transactions."""

    def __init__(self) -> None:
        self.data: dict[str, dict] = {
            "products": {},
            "inventory": {},
            "reservations": {},
            "orders": {},
            "sellers": {},
            "coupons": {},
        }
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = copy.deepcopy(self.data) if self._depth == 0 else None
            self._depth += 1
            try:
                yield
            except BaseException:
                if snapshot is not None:
                    self.data = snapshot
                raise
            finally:
                self._depth -= 1


class FakeOrderRepository(OrderRepository):

    def __init__(self, store: FakeStore | None = None) -> None:
        self.store = store or FakeStore()

    def transaction(self):
        return self.store.transaction()

    def get_by_id(self, order_id: int) -> Order | None:
        order = self.store.data["orders"].get(order_id)
        return copy.deepcopy(order)

    def list_by_customer(self, customer_id: str) -> list[Order]:
        return [copy.deepcopy(o) for o in self._all() if o.customer_id == customer_id]

    def list_placed_since(self, since: datetime) -> list[Order]:
        return [copy.deepcopy(o) for o in self._all() if o.created_at >= since]

    def save(self, order: Order) -> None:
        orders = self.store.data["orders"]
        if order.id is None:
            order.id = max(orders, default=0) + 1
        else:
            stored = orders.get(order.id)
            if stored is not None and stored.version != order.version:
                raise ConcurrencyConflict(f"Order #{order.id} was modified concurrently")
        order.version += 1
        orders[order.id] = copy.deepcopy(order)

    def _all(self) -> list[Order]:
        return sorted(self.store.data["orders"].values(), key=lambda o: o.id)


class FakeProductRepository(ProductRepository):

    def __init__(self, products: list[Product] | None = None, store: FakeStore | None = None) -> None:
        self.store = store or FakeStore()
        for p in products or []:
            self.save(p)

    def get_by_id(self, product_id: str) -> Product | None:
        return copy.deepcopy(self.store.data["products"].get(product_id))

    def get_by_name(self, name: str) -> Product | None:
        for p in self.store.data["products"].values():
            if p.name == name:
                return copy.deepcopy(p)
        return None

    def list_all(self) -> list[Product]:
        return [copy.deepcopy(p) for p in self.store.data["products"].values()]

    def save(self, product: Product) -> None:
        self.store.data["products"][product.id] = copy.deepcopy(product)


class FakeInventoryRepository(InventoryRepository):

    def __init__(
        self, items: list[InventoryItem] | None = None, store: FakeStore | None = None
    ) -> None:
        self.store = store or FakeStore()
        for item in items or []:
            self.save(item)

    def transaction(self):
        return self.store.transaction()

    def get_by_product_id(self, product_id: str) -> InventoryItem | None:
        return copy.deepcopy(self.store.data["inventory"].get(product_id))

    def list_all(self) -> list[InventoryItem]:
        return [copy.deepcopy(i) for i in self.store.data["inventory"].values()]

    def save(self, item: InventoryItem) -> None:
        self.store.data["inventory"][item.product_id] = copy.deepcopy(item)

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        return self.store.data["reservations"].get(reservation_id)

    def save_reservation(self, reservation: Reservation) -> None:
        self.store.data["reservations"][reservation.id] = reservation

    def delete_reservation(self, reservation_id: str) -> None:
        self.store.data["reservations"].pop(reservation_id, None)

    def list_expired_reservations(self, now: datetime) -> list[Reservation]:
        return [r for r in self.store.data["reservations"].values() if r.is_expired(now)]


class FakeSellerRepository(SellerRepository):

    def __init__(self, rates: dict[str, Decimal] | None = None) -> None:
        self.rates = dict(rates or {})

    def get_commission_rate(self, seller_id: str) -> Decimal | None:
        return self.rates.get(seller_id)

    def set_commission_rate(self, seller_id: str, rate: Decimal) -> None:
        self.rates[seller_id] = rate


class FakeCouponRepository(CouponRepository):

    def __init__(self, coupons: list[Coupon] | None = None) -> None:
        self.coupons = {c.code.upper(): c for c in coupons or []}

    def get_by_code(self, code: str) -> Coupon | None:
        return self.coupons.get(code.strip().upper())

    def save(self, coupon: Coupon) -> None:
        self.coupons[coupon.code.upper()] = coupon


# ---------------------------------------------------------------------------
# External ports
# ---------------------------------------------------------------------------


class FakePaymentGateway(PaymentGateway):

    def __init__(self, decline: bool = False, fail_refund: bool = False) -> None:
        self.decline = decline
        self.fail_refund = fail_refund
        self.captures: list[tuple[Money, PaymentMethod, str]] = []
        self.refunds: list[tuple[str, Money]] = []

    def capture(self, amount: Money, method: PaymentMethod, order_ref: str) -> CaptureResult:
        if self.decline:
            raise PaymentFailure("Card declined")
        self.captures.append((amount, method, order_ref))
        return CaptureResult(captured=True, reference_id=f"PAY-{len(self.captures)}")

    def refund(self, reference_id: str, amount: Money) -> RefundResult:
        if self.fail_refund:
            raise PaymentFailure("Refund rejected")
        self.refunds.append((reference_id, amount))
        return RefundResult(refunded=True, reference_id=f"RFD-{len(self.refunds)}")


class CancelDuringCaptureGateway(FakePaymentGateway):
    """Runs ``on_capture`` (e.g. a customer cancel) before the capture goes through."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.on_capture = lambda: None

    def capture(self, amount: Money, method: PaymentMethod, order_ref: str) -> CaptureResult:
        self.on_capture()
        return super().capture(amount, method, order_ref)


class SlowGateway(FakePaymentGateway):
    """Holds every capture until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()
        self.refunded = threading.Event()

    def capture(self, amount: Money, method: PaymentMethod, order_ref: str) -> CaptureResult:
        self.release.wait(5)
        return super().capture(amount, method, order_ref)

    def refund(self, reference_id: str, amount: Money) -> RefundResult:
        result = super().refund(reference_id, amount)
        self.refunded.set()
        return result


class FakeNotifier(NotificationDispatcher):

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    def notify(self, order_ref: str, event_type: str) -> None:
        if self.fail:
            raise ConnectionError("notification service down")
        self.sent.append((order_ref, event_type))


class FakeCustomerDirectory(CustomerDirectory):

    def __init__(
        self,
        order_count: int = 1,
        recent_order_ips: tuple[str, ...] = (),
        fail: bool = False,
    ) -> None:
        self.order_count = order_count
        self.recent_order_ips = recent_order_ips
        self.fail = fail
        self.calls = 0

    def get_customer_history(self, customer_id: str, window: timedelta) -> CustomerHistory:
        self.calls += 1
        if self.fail:
            raise ConnectionError("customer directory unavailable")
        return CustomerHistory(self.order_count, self.recent_order_ips)


class FakeFulfillmentDispatcher(FulfillmentDispatcher):

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.tasks = []

    def dispatch(self, task) -> None:
        if self.fail:
            raise ConnectionError("warehouse unreachable")
        self.tasks.append(task)
