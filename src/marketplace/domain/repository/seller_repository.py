"""Abstract repository for seller commission overrides."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal


class SellerRepository(ABC):

    @abstractmethod
    def get_commission_rate(self, seller_id: str) -> Decimal | None:
        """Return the seller's negotiated rate, or None for the platform default."""

    @abstractmethod
    def set_commission_rate(self, seller_id: str, rate: Decimal) -> None:
        """Store a seller-specific commission rate."""
