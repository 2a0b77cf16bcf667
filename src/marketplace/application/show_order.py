"""Application service: Show Order use case (query)."""

from __future__ import annotations

from marketplace.application.dto import (
    OrderDTO,
    TimelineEntryDTO,
    order_to_dto,
    timeline_to_dto,
)
from marketplace.domain.exceptions import EntityNotFoundError
from marketplace.domain.model.order import Order
from marketplace.domain.repository.order_repository import OrderRepository


class ShowOrderHandler:

    def __init__(self, order_repo: OrderRepository) -> None:
        self._order_repo = order_repo

    def handle(self, order_id: int) -> OrderDTO:
        return order_to_dto(self._load(order_id))

    def timeline(self, order_id: int) -> list[TimelineEntryDTO]:
        return timeline_to_dto(self._load(order_id))

    def _load(self, order_id: int) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")
        return order
