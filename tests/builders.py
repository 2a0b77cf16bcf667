"""Builders for domain objects and wired-up services used across tests."""

from __future__ import annotations

from decimal import Decimal

from marketplace.application.approve_order import ApproveOrderHandler
from marketplace.application.cancel_order import CancelOrderHandler
from marketplace.application.confirm_order import ConfirmOrderHandler
from marketplace.application.processing_log import ProcessingLog
from marketplace.application.refund_order import RefundOrderHandler
from marketplace.application.request_return import RequestReturnHandler
from marketplace.application.submit_order import SubmitOrderHandler
from marketplace.application.transition_status import TransitionStatusHandler
from marketplace.domain.model.inventory import InventoryItem
from marketplace.domain.model.order import (
    FraudCheck,
    Order,
    OrderItem,
    PaymentMethod,
    PricingBreakdown,
    RiskLevel,
)
from marketplace.domain.model.product import Product
from marketplace.domain.model.submission import OrderSubmission, SubmittedItem
from marketplace.domain.model.value_objects import Money, Quantity, ShippingAddress
from marketplace.domain.service.fraud_scorer import (
    FraudPolicy,
    FraudRuleRegistry,
    FraudScorer,
    default_registry,
)
from marketplace.domain.service.fulfillment_scheduler import FulfillmentScheduler
from marketplace.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)
from marketplace.domain.service.order_state_machine import OrderStateMachine
from marketplace.domain.service.order_validator import OrderValidator
from marketplace.domain.service.pricing_calculator import PricingCalculator
from tests.fakes import (
    FakeCouponRepository,
    FakeCustomerDirectory,
    FakeFulfillmentDispatcher,
    FakeInventoryRepository,
    FakeNotifier,
    FakeOrderRepository,
    FakePaymentGateway,
    FakeProductRepository,
    FakeSellerRepository,
    FakeStore,
    FixedClock,
)

ADDRESS = {
    "name": "Asha Rao",
    "line1": "12 MG Road",
    "city": "Delhi",
    "postal_code": "110001",
    "phone": "9876543210",
}


def make_address() -> ShippingAddress:
    return ShippingAddress(**ADDRESS)


def make_item(
    product_id: str = "P1",
    qty: int = 2,
    price: str = "100",
    seller_id: str = "S1",
    weight: str = "0.5",
) -> OrderItem:
    return OrderItem(
        product_id=product_id,
        product_name=f"Product {product_id}",
        seller_id=seller_id,
        quantity=Quantity(qty),
        unit_price=Money.of(price),
        weight_kg=Decimal(weight),
    )


def make_order(
    items: list[OrderItem] | None = None,
    payment_method: PaymentMethod = PaymentMethod.CARD,
    fraud_check: FraudCheck | None = None,
    reservation_id: str | None = None,
    order_id: int | None = None,
    now=None,
) -> Order:
    """A pending order priced without shipping, tax or fees."""
    items = items or [make_item()]
    subtotal = Money.zero()
    for item in items:
        subtotal = subtotal + item.line_total
    zero = Money.zero()
    order = Order.create(
        customer_id="C1",
        items=items,
        shipping_address=make_address(),
        payment_method=payment_method,
        pricing=PricingBreakdown.compose(subtotal, zero, zero, zero, zero),
        fraud_check=fraud_check or FraudCheck(score=0, risk_level=RiskLevel.LOW),
        reservation_id=reservation_id,
        now=now,
    )
    order.id = order_id
    return order


def make_submission(
    items: list[tuple[str, int]] | None = None,
    payment_method: str = "card",
    customer_id: str = "C1",
    **kwargs,
) -> OrderSubmission:
    if items is None:
        items = [("P1", 2)]
    return OrderSubmission(
        customer_id=customer_id,
        items=[SubmittedItem(pid, qty) for pid, qty in items],
        shipping_address=dict(ADDRESS),
        payment_method=payment_method,
        **kwargs,
    )


class World:
    """Fake repositories plus the stock domain services, sharing one store and clock."""

    def __init__(
        self,
        products: list[Product] | None = None,
        stock: dict[str, int] | None = None,
        commission_rates: dict[str, Decimal] | None = None,
    ) -> None:
        if products is None:
            products = [
                Product("P1", "Cotton Kurta", Money.of("100"), "S1", Decimal("0.5")),
                Product("P2", "Steel Bottle", Money.of("250"), "S2", Decimal("0.8")),
            ]
        if stock is None:
            stock = {p.id: 5 for p in products}

        self.clock = FixedClock()
        self.store = FakeStore()
        self.products = FakeProductRepository(products, store=self.store)
        self.inventory = FakeInventoryRepository(
            [
                InventoryItem(product_id=p.id, product_name=p.name, stock=stock.get(p.id, 0))
                for p in products
            ],
            store=self.store,
        )
        self.orders = FakeOrderRepository(self.store)
        self.sellers = FakeSellerRepository(commission_rates)
        self.coupons = FakeCouponRepository()
        self.reservations = InventoryReservationService(self.inventory, clock=self.clock)
        self.pricing = PricingCalculator(coupon_repo=self.coupons, seller_repo=self.sellers)
        self.state_machine = OrderStateMachine(
            self.reservations,
            self.pricing,
            clock=self.clock,
            tracking_number_factory=lambda: "TRK-TEST",
        )

    def stock(self, product_id: str) -> tuple[int, int]:
        inv = self.inventory.get_by_product_id(product_id)
        return inv.stock, inv.reserved_stock

    def place(self, items: list[OrderItem] | None = None, **kwargs) -> Order:
        """Reserve stock for ``items`` and persist a pending order holding it."""
        items = items or [make_item()]
        reservation = self.reservations.reserve(
            {item.product_id: item.quantity.value for item in items}
        )
        order = make_order(items, reservation_id=reservation.id, now=self.clock(), **kwargs)
        self.orders.save(order)
        return order


class App:
    """Every application handler wired over one ``World`` and fake external ports."""

    def __init__(
        self,
        world: World | None = None,
        gateway: FakePaymentGateway | None = None,
        notifier: FakeNotifier | None = None,
        directory: FakeCustomerDirectory | None = None,
        dispatcher: FakeFulfillmentDispatcher | None = None,
        fraud_registry: FraudRuleRegistry | None = None,
        fraud_policy: FraudPolicy | None = None,
        payment_timeout: float = 1,
    ) -> None:
        self.world = world or World()
        self.gateway = gateway or FakePaymentGateway()
        self.notifier = notifier or FakeNotifier()
        self.directory = directory or FakeCustomerDirectory()
        self.dispatcher = dispatcher or FakeFulfillmentDispatcher()
        self.fraud_policy = fraud_policy or FraudPolicy()
        self.log = ProcessingLog(clock=self.world.clock)

        w = self.world
        self.scheduler = FulfillmentScheduler(self.dispatcher)
        self.transitions = TransitionStatusHandler(w.orders, w.state_machine, self.notifier)
        self.confirmation = ConfirmOrderHandler(
            w.orders, self.transitions, self.gateway, payment_timeout
        )
        self.refunds = RefundOrderHandler(w.orders, self.transitions, self.gateway)
        self.cancel = CancelOrderHandler(self.transitions, self.refunds)
        self.returns = RequestReturnHandler(self.transitions)
        self.approve = ApproveOrderHandler(w.orders, self.confirmation, self.scheduler, w.clock)
        self.submit = SubmitOrderHandler(
            validator=OrderValidator(w.products),
            product_repo=w.products,
            order_repo=w.orders,
            reservations=w.reservations,
            fraud_scorer=FraudScorer(
                fraud_registry or default_registry(self.fraud_policy), self.fraud_policy
            ),
            pricing=w.pricing,
            confirmation=self.confirmation,
            scheduler=self.scheduler,
            processing_log=self.log,
            customer_directory=self.directory,
            notifier=self.notifier,
            fraud_policy=self.fraud_policy,
            clock=w.clock,
        )

    def events(self, order_id: int) -> list[str]:
        return [event for ref, event in self.notifier.sent if ref == f"ORD-{order_id}"]
