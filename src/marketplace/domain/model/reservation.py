"""Reservation: a time-bounded hold on stock for one order submission."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Reservation:
    """Held quantities per product, destroyed on commit, release or expiry."""

    id: str
    items: dict[str, int]
    created_at: datetime
    expires_at: datetime
    order_ref: str | None = field(default=None)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def total_units(self) -> int:
        return sum(self.items.values())
