"""Abstract repository for coupon codes."""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketplace.domain.model.coupon import Coupon


class CouponRepository(ABC):

    @abstractmethod
    def get_by_code(self, code: str) -> Coupon | None:
        """Return the coupon for ``code`` (case-insensitive), or None."""

    @abstractmethod
    def save(self, coupon: Coupon) -> None:
        """Persist a new or updated coupon."""
