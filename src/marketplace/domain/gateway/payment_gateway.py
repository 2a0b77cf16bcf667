"""Payment gateway port: an opaque {capture, refund} capability."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from marketplace.domain.model.order import PaymentMethod
from marketplace.domain.model.value_objects import Money


@dataclass(frozen=True)
class CaptureResult:
    captured: bool
    reference_id: str


@dataclass(frozen=True)
class RefundResult:
    refunded: bool
    reference_id: str


class PaymentGateway(ABC):

    @abstractmethod
    def capture(self, amount: Money, method: PaymentMethod, order_ref: str) -> CaptureResult:
        """Charge the customer. Raises PaymentFailure when declined."""

    @abstractmethod
    def refund(self, reference_id: str, amount: Money) -> RefundResult:
        """Return ``amount`` of a captured payment. Raises PaymentFailure on error."""
