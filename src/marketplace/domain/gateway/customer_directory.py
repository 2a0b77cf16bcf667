"""Customer directory port, read by fraud rules and pricing incentives."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class CustomerHistory:
    order_count: int
    # One entry per recent order, so repeated addresses are counted.
    recent_order_ips: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_first_order(self) -> bool:
        return self.order_count == 0


class CustomerDirectory(ABC):

    @abstractmethod
    def get_customer_history(self, customer_id: str, window: timedelta) -> CustomerHistory:
        """Return order count and origin IPs of orders placed within ``window``."""
