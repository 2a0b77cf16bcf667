"""Application service: Set Seller Commission use case."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import structlog

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.repository.seller_repository import SellerRepository

logger = structlog.get_logger(__name__)


class SetCommissionHandler:

    def __init__(self, seller_repo: SellerRepository) -> None:
        self._seller_repo = seller_repo

    def handle(self, seller_id: str, rate: str) -> Decimal:
        """Store a negotiated commission rate (a fraction, e.g. ``0.08``).

        Applies to splits generated from now on; confirmed orders keep theirs.
        """
        if not seller_id or not seller_id.strip():
            raise ValidationError("Seller id is required")
        try:
            value = Decimal(str(rate))
        except InvalidOperation:
            raise ValidationError(f"Invalid commission rate '{rate}'")
        if not Decimal("0") <= value < Decimal("1"):
            raise ValidationError("Commission rate must be in [0, 1)")

        self._seller_repo.set_commission_rate(seller_id.strip(), value)
        logger.info("Seller commission updated", seller_id=seller_id, rate=str(value))
        return value
