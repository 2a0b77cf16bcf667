"""JSON-document-backed implementation of SellerRepository."""

from __future__ import annotations

from decimal import Decimal

from marketplace.domain.repository.seller_repository import SellerRepository
from marketplace.infrastructure.persistence.json_store import JsonDocumentStore


class JsonSellerRepository(SellerRepository):

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store

    def get_commission_rate(self, seller_id: str) -> Decimal | None:
        with self._store.transaction() as data:
            raw = data["sellers"].get(seller_id)
        if not raw or raw.get("commission_rate") is None:
            return None
        return Decimal(raw["commission_rate"])

    def set_commission_rate(self, seller_id: str, rate: Decimal) -> None:
        with self._store.transaction() as data:
            data["sellers"].setdefault(seller_id, {})["commission_rate"] = str(rate)
