"""Abstract repository for Order aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime

from marketplace.domain.model.order import Order


class OrderRepository(ABC):

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Group writes so they are persisted together or not at all."""

    @abstractmethod
    def get_by_id(self, order_id: int) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    def list_by_customer(self, customer_id: str) -> list[Order]:
        """Return every order placed by a customer."""

    @abstractmethod
    def list_placed_since(self, since: datetime) -> list[Order]:
        """Return orders created at or after ``since``."""

    @abstractmethod
    def save(self, order: Order) -> None:
        """Persist a new or updated order.

        New orders (``id is None``) get an id assigned. Existing orders are
        written only if the stored version equals ``order.version``,
        otherwise ConcurrencyConflict is raised. Either way the version is
        bumped on success.
        """
