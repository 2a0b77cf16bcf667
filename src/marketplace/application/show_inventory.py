"""Application service: Show Inventory use case (query)."""

from __future__ import annotations

from marketplace.application.dto import InventoryDTO, inventory_to_dto
from marketplace.domain.repository.inventory_repository import InventoryRepository


class ShowInventoryHandler:

    def __init__(self, inventory_repo: InventoryRepository) -> None:
        self._inventory_repo = inventory_repo

    def handle(self) -> list[InventoryDTO]:
        items = sorted(self._inventory_repo.list_all(), key=lambda i: i.product_id)
        return [inventory_to_dto(item) for item in items]
