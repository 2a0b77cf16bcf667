"""Customer directory derived from the order repository itself."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from marketplace.domain.gateway.customer_directory import CustomerDirectory, CustomerHistory
from marketplace.domain.repository.order_repository import OrderRepository
from marketplace.domain.service.inventory_reservation_service import utcnow


class OrderHistoryCustomerDirectory(CustomerDirectory):

    def __init__(
        self,
        order_repo: OrderRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._order_repo = order_repo
        self._clock = clock

    def get_customer_history(self, customer_id: str, window: timedelta) -> CustomerHistory:
        orders = self._order_repo.list_by_customer(customer_id)
        since = self._clock() - window
        recent_ips = tuple(
            order.origin_ip
            for order in self._order_repo.list_placed_since(since)
            if order.origin_ip
        )
        return CustomerHistory(order_count=len(orders), recent_order_ips=recent_ips)
