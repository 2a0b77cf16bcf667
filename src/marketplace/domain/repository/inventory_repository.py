"""Abstract repository for InventoryItem aggregates and their reservations.

Stock counters and reservation records live behind one repository so a
reservation and the stock it holds are always written in the same
transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime

from marketplace.domain.model.inventory import InventoryItem
from marketplace.domain.model.reservation import Reservation


class InventoryRepository(ABC):

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Serialize access and make every write inside all-or-nothing.

        Nested transactions join the outermost one.
        """

    @abstractmethod
    def get_by_product_id(self, product_id: str) -> InventoryItem | None:
        """Return the inventory record for a product, or None."""

    @abstractmethod
    def list_all(self) -> list[InventoryItem]:
        """Return every inventory record."""

    @abstractmethod
    def save(self, item: InventoryItem) -> None:
        """Persist a new or updated inventory record."""

    @abstractmethod
    def get_reservation(self, reservation_id: str) -> Reservation | None:
        """Return an active reservation, or None if it no longer exists."""

    @abstractmethod
    def save_reservation(self, reservation: Reservation) -> None:
        """Persist a reservation record."""

    @abstractmethod
    def delete_reservation(self, reservation_id: str) -> None:
        """Remove a reservation record. Missing ids are ignored."""

    @abstractmethod
    def list_expired_reservations(self, now: datetime) -> list[Reservation]:
        """Return reservations whose expiry is at or before ``now``."""
