"""Application service: Set Inventory use case."""

from __future__ import annotations

from marketplace.application.dto import InventoryDTO, inventory_to_dto
from marketplace.domain.exceptions import EntityNotFoundError, ValidationError
from marketplace.domain.model.inventory import InventoryItem
from marketplace.domain.repository.inventory_repository import InventoryRepository
from marketplace.domain.repository.product_repository import ProductRepository


class SetInventoryHandler:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        product_repo: ProductRepository,
    ) -> None:
        self._inventory_repo = inventory_repo
        self._product_repo = product_repo

    def handle(self, product_id: str, stock: int) -> InventoryDTO:
        """Set the sellable stock for a product. Units held by reservations are untouched."""
        if stock < 0:
            raise ValidationError("Stock cannot be negative")

        product = self._product_repo.get_by_id(product_id)
        if product is None:
            raise EntityNotFoundError(f"Product not found: '{product_id}'")

        with self._inventory_repo.transaction():
            item = self._inventory_repo.get_by_product_id(product.id)
            if item is None:
                item = InventoryItem(
                    product_id=product.id,
                    product_name=product.name,
                    stock=stock,
                )
            else:
                item.stock = stock
            self._inventory_repo.save(item)
        return inventory_to_dto(item)
