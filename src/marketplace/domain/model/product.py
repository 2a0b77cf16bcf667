"""Product aggregate.

Products live independently of orders. They have their own lifecycle:
prices change, products are added and removed from the catalog. Only the
fields the order core reads are modelled here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.model.value_objects import Money


@dataclass
class Product:
    """A product in the catalog, owned by exactly one seller."""

    id: str
    name: str
    price: Money
    seller_id: str
    weight_kg: Decimal = Decimal("0")

    def update_price(self, new_price: Money) -> None:
        """Change the product price.

        This does NOT affect any existing orders because orders
        capture a price snapshot at creation time.
        """
        if new_price.amount <= 0:
            raise ValidationError("Product price must be greater than zero")
        self.price = new_price
