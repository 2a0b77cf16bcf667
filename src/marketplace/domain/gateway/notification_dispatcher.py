"""Notification dispatcher port. Delivery content is out of scope."""

from __future__ import annotations

from abc import ABC, abstractmethod


class NotificationDispatcher(ABC):

    @abstractmethod
    def notify(self, order_ref: str, event_type: str) -> None:
        """Announce an order event. Callers treat this as fire-and-forget."""
