"""Application service: Add Product use case."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.product import Product
from marketplace.domain.model.value_objects import Money
from marketplace.domain.repository.product_repository import ProductRepository


class AddProductHandler:

    def __init__(self, product_repo: ProductRepository, currency: str = "INR") -> None:
        self._product_repo = product_repo
        self._currency = currency

    def handle(
        self,
        name: str,
        price: str,
        seller_id: str,
        weight_kg: str = "0",
        product_id: str | None = None,
    ) -> Product:
        """Add a new product to the catalog."""
        if not name or not name.strip():
            raise ValidationError("Product name is required")
        if not seller_id or not seller_id.strip():
            raise ValidationError("Seller id is required")

        if self._product_repo.get_by_name(name.strip()) is not None:
            raise ValidationError(f"Product '{name}' already exists")
        if product_id and self._product_repo.get_by_id(product_id) is not None:
            raise ValidationError(f"Product ID '{product_id}' already exists")

        amount = Money.of(price, self._currency)
        try:
            weight = Decimal(str(weight_kg))
        except InvalidOperation:
            raise ValidationError(f"Invalid weight '{weight_kg}'")
        if amount.is_zero:
            raise ValidationError("Product price must be greater than zero")
        if weight < 0:
            raise ValidationError("Product weight cannot be negative")

        if not product_id:
            # Auto-assign ID based on existing products
            numeric = [int(p.id) for p in self._product_repo.list_all() if p.id.isdigit()]
            product_id = str(max(numeric) + 1) if numeric else "1"

        product = Product(
            id=product_id,
            name=name.strip(),
            price=amount,
            seller_id=seller_id.strip(),
            weight_kg=weight,
        )
        self._product_repo.save(product)
        return product
