"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from functools import cached_property

from marketplace.application.add_coupon import AddCouponHandler
from marketplace.application.add_product import AddProductHandler
from marketplace.application.approve_order import ApproveOrderHandler
from marketplace.application.cancel_order import CancelOrderHandler
from marketplace.application.confirm_order import ConfirmOrderHandler
from marketplace.application.processing_log import ProcessingLog
from marketplace.application.refund_order import RefundOrderHandler
from marketplace.application.request_return import RequestReturnHandler
from marketplace.application.set_commission import SetCommissionHandler
from marketplace.application.set_inventory import SetInventoryHandler
from marketplace.application.show_inventory import ShowInventoryHandler
from marketplace.application.show_order import ShowOrderHandler
from marketplace.application.submit_order import SubmitOrderHandler
from marketplace.application.sweep_reservations import SweepReservationsHandler
from marketplace.application.transition_status import TransitionStatusHandler
from marketplace.application.update_product import UpdateProductHandler
from marketplace.domain.service.fraud_scorer import FraudScorer, default_registry
from marketplace.domain.service.fulfillment_scheduler import FulfillmentScheduler
from marketplace.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)
from marketplace.domain.service.order_state_machine import OrderStateMachine
from marketplace.domain.service.order_validator import OrderValidator
from marketplace.domain.service.pricing_calculator import PricingCalculator
from marketplace.infrastructure.config import Settings
from marketplace.infrastructure.gateways.logging_fulfillment_dispatcher import (
    LoggingFulfillmentDispatcher,
)
from marketplace.infrastructure.gateways.logging_notification_dispatcher import (
    LoggingNotificationDispatcher,
)
from marketplace.infrastructure.gateways.order_history_customer_directory import (
    OrderHistoryCustomerDirectory,
)
from marketplace.infrastructure.gateways.simulated_payment_gateway import (
    SimulatedPaymentGateway,
)
from marketplace.infrastructure.persistence.json_coupon_repository import JsonCouponRepository
from marketplace.infrastructure.persistence.json_inventory_repository import (
    JsonInventoryRepository,
)
from marketplace.infrastructure.persistence.json_order_repository import JsonOrderRepository
from marketplace.infrastructure.persistence.json_product_repository import (
    JsonProductRepository,
)
from marketplace.infrastructure.persistence.json_seller_repository import JsonSellerRepository
from marketplace.infrastructure.persistence.json_store import JsonDocumentStore


class Container:
    """Lazily builds and caches one object graph per settings."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings.from_env()

    # --- Persistence ----------------------------------------------------------

    @cached_property
    def store(self) -> JsonDocumentStore:
        return JsonDocumentStore(self.settings.store_path)

    @cached_property
    def product_repository(self) -> JsonProductRepository:
        return JsonProductRepository(self.store)

    @cached_property
    def inventory_repository(self) -> JsonInventoryRepository:
        return JsonInventoryRepository(self.store)

    @cached_property
    def order_repository(self) -> JsonOrderRepository:
        return JsonOrderRepository(self.store)

    @cached_property
    def seller_repository(self) -> JsonSellerRepository:
        return JsonSellerRepository(self.store)

    @cached_property
    def coupon_repository(self) -> JsonCouponRepository:
        return JsonCouponRepository(self.store)

    # --- External ports -------------------------------------------------------

    @cached_property
    def payment_gateway(self) -> SimulatedPaymentGateway:
        return SimulatedPaymentGateway(self.settings.declined_payment_methods)

    @cached_property
    def notifier(self) -> LoggingNotificationDispatcher:
        return LoggingNotificationDispatcher()

    @cached_property
    def customer_directory(self) -> OrderHistoryCustomerDirectory:
        return OrderHistoryCustomerDirectory(self.order_repository)

    # --- Domain services ------------------------------------------------------

    @cached_property
    def reservations(self) -> InventoryReservationService:
        return InventoryReservationService(self.inventory_repository, self.settings.reservation)

    @cached_property
    def pricing(self) -> PricingCalculator:
        return PricingCalculator(
            self.settings.pricing, self.coupon_repository, self.seller_repository
        )

    @cached_property
    def state_machine(self) -> OrderStateMachine:
        return OrderStateMachine(self.reservations, self.pricing, self.settings.lifecycle)

    @cached_property
    def scheduler(self) -> FulfillmentScheduler:
        return FulfillmentScheduler(LoggingFulfillmentDispatcher())

    # --- Application handlers -------------------------------------------------

    @cached_property
    def transitions(self) -> TransitionStatusHandler:
        return TransitionStatusHandler(self.order_repository, self.state_machine, self.notifier)

    @cached_property
    def confirmation(self) -> ConfirmOrderHandler:
        return ConfirmOrderHandler(
            self.order_repository,
            self.transitions,
            self.payment_gateway,
            self.settings.processing.payment_timeout_seconds,
        )

    def submit_order(self) -> SubmitOrderHandler:
        processing = self.settings.processing
        return SubmitOrderHandler(
            validator=OrderValidator(self.product_repository),
            product_repo=self.product_repository,
            order_repo=self.order_repository,
            reservations=self.reservations,
            fraud_scorer=FraudScorer(default_registry(self.settings.fraud), self.settings.fraud),
            pricing=self.pricing,
            confirmation=self.confirmation,
            scheduler=self.scheduler,
            processing_log=ProcessingLog(
                processing.step_log_max_entries, processing.step_log_retention
            ),
            customer_directory=self.customer_directory,
            notifier=self.notifier,
            fraud_policy=self.settings.fraud,
        )

    def approve_order(self) -> ApproveOrderHandler:
        return ApproveOrderHandler(self.order_repository, self.confirmation, self.scheduler)

    def refund_order(self) -> RefundOrderHandler:
        return RefundOrderHandler(self.order_repository, self.transitions, self.payment_gateway)

    def cancel_order(self) -> CancelOrderHandler:
        return CancelOrderHandler(self.transitions, self.refund_order())

    def request_return(self) -> RequestReturnHandler:
        return RequestReturnHandler(self.transitions)

    def show_order(self) -> ShowOrderHandler:
        return ShowOrderHandler(self.order_repository)

    def sweep_reservations(self) -> SweepReservationsHandler:
        return SweepReservationsHandler(self.reservations)

    def set_inventory(self) -> SetInventoryHandler:
        return SetInventoryHandler(self.inventory_repository, self.product_repository)

    def show_inventory(self) -> ShowInventoryHandler:
        return ShowInventoryHandler(self.inventory_repository)

    def add_product(self) -> AddProductHandler:
        return AddProductHandler(self.product_repository, self.settings.pricing.currency)

    def update_product(self) -> UpdateProductHandler:
        return UpdateProductHandler(self.product_repository)

    def set_commission(self) -> SetCommissionHandler:
        return SetCommissionHandler(self.seller_repository)

    def add_coupon(self) -> AddCouponHandler:
        return AddCouponHandler(self.coupon_repository, self.settings.pricing.currency)
