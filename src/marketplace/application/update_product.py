"""Application service: Update Product use case."""

from __future__ import annotations

from marketplace.domain.exceptions import EntityNotFoundError
from marketplace.domain.model.product import Product
from marketplace.domain.model.value_objects import Money
from marketplace.domain.repository.product_repository import ProductRepository


class UpdateProductHandler:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    def handle(self, product_id: str, new_price: str) -> Product:
        """Update a product's price.

        Existing orders keep the unit price they captured at submission.
        """
        product = self._product_repo.get_by_id(product_id)
        if product is None:
            raise EntityNotFoundError(f"Product with ID '{product_id}' not found")

        product.update_price(Money.of(new_price, product.price.currency))
        self._product_repo.save(product)
        return product
