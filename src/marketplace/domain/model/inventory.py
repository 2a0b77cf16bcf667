"""InventoryItem aggregate: tracks sellable and held stock per product.

``stock`` is what can still be sold; ``reserved_stock`` is what is held by
open reservations. Both counters are only ever mutated through the
InventoryReservationService.
"""

from __future__ import annotations

from dataclasses import dataclass

from marketplace.domain.exceptions import ValidationError


@dataclass
class InventoryItem:
    """Aggregate root for inventory tracking.

    Invariants:
    - ``stock`` is always >= 0
    - ``reserved_stock`` is always >= 0
    """

    product_id: str
    product_name: str
    stock: int
    reserved_stock: int = 0

    def reserve(self, quantity: int) -> None:
        """Move ``quantity`` units from sellable stock into a hold."""
        self._assert_positive(quantity, "Reservation")
        if quantity > self.stock:
            raise ValidationError(
                f"Insufficient inventory for {self.product_name} "
                f"(need {quantity}, have {self.stock} available)"
            )
        self.stock -= quantity
        self.reserved_stock += quantity

    def release(self, quantity: int) -> None:
        """Return held units to sellable stock (cancellation or expiry)."""
        self._assert_positive(quantity, "Release")
        if quantity > self.reserved_stock:
            raise ValidationError(
                f"Cannot release {quantity} of {self.product_name} "
                f"- only {self.reserved_stock} currently reserved"
            )
        self.reserved_stock -= quantity
        self.stock += quantity

    def commit(self, quantity: int) -> None:
        """Turn held units into a permanent sale.

        The stock decrement made at reservation time stays; only the hold
        is dropped.
        """
        self._assert_positive(quantity, "Commit")
        if quantity > self.reserved_stock:
            raise ValidationError(
                f"Cannot commit {quantity} of {self.product_name} "
                f"- only {self.reserved_stock} currently reserved"
            )
        self.reserved_stock -= quantity

    def restock(self, quantity: int) -> None:
        """Put previously sold units back on the shelf."""
        self._assert_positive(quantity, "Restock")
        self.stock += quantity

    @staticmethod
    def _assert_positive(quantity: int, action: str) -> None:
        if quantity <= 0:
            raise ValidationError(f"{action} quantity must be positive")
