"""JSON-document-backed implementation of ProductRepository."""

from __future__ import annotations

from decimal import Decimal

from marketplace.domain.model.product import Product
from marketplace.domain.model.value_objects import Money
from marketplace.domain.repository.product_repository import ProductRepository
from marketplace.infrastructure.persistence.json_store import JsonDocumentStore


class JsonProductRepository(ProductRepository):

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store

    # --- ProductRepository interface ------------------------------------------

    def get_by_id(self, product_id: str) -> Product | None:
        with self._store.transaction() as data:
            raw = data["products"].get(product_id)
            return self._to_domain(product_id, raw) if raw else None

    def get_by_name(self, name: str) -> Product | None:
        with self._store.transaction() as data:
            for product_id, raw in data["products"].items():
                if raw["name"] == name:
                    return self._to_domain(product_id, raw)
        return None

    def list_all(self) -> list[Product]:
        with self._store.transaction() as data:
            return [self._to_domain(pid, raw) for pid, raw in data["products"].items()]

    def save(self, product: Product) -> None:
        with self._store.transaction() as data:
            data["products"][product.id] = self._to_raw(product)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(product: Product) -> dict:
        return {
            "name": product.name,
            "price": str(product.price.amount),
            "currency": product.price.currency,
            "seller_id": product.seller_id,
            "weight_kg": str(product.weight_kg),
        }

    @staticmethod
    def _to_domain(product_id: str, raw: dict) -> Product:
        return Product(
            id=product_id,
            name=raw["name"],
            price=Money(Decimal(raw["price"]), raw.get("currency", "INR")),
            seller_id=raw["seller_id"],
            weight_kg=Decimal(raw.get("weight_kg", "0")),
        )
