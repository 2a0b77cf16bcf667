"""Fulfillment dispatcher port: hands per-seller tasks to the warehouse side."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marketplace.domain.service.fulfillment_scheduler import FulfillmentTask


class FulfillmentDispatcher(ABC):

    @abstractmethod
    def dispatch(self, task: FulfillmentTask) -> None:
        """Deliver one fulfillment task. Delivery reliability is the receiver's concern."""
