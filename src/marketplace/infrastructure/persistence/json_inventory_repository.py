"""JSON-document-backed implementation of InventoryRepository."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from marketplace.domain.model.inventory import InventoryItem
from marketplace.domain.model.reservation import Reservation
from marketplace.domain.repository.inventory_repository import InventoryRepository
from marketplace.infrastructure.persistence.json_store import JsonDocumentStore


class JsonInventoryRepository(InventoryRepository):

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store

    # --- InventoryRepository interface ----------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._store.transaction():
            yield

    def get_by_product_id(self, product_id: str) -> InventoryItem | None:
        with self._store.transaction() as data:
            raw = data["inventory"].get(product_id)
            return self._item_to_domain(product_id, raw) if raw else None

    def list_all(self) -> list[InventoryItem]:
        with self._store.transaction() as data:
            return [
                self._item_to_domain(pid, raw) for pid, raw in data["inventory"].items()
            ]

    def save(self, item: InventoryItem) -> None:
        with self._store.transaction() as data:
            data["inventory"][item.product_id] = {
                "product_name": item.product_name,
                "stock": item.stock,
                "reserved_stock": item.reserved_stock,
            }

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        with self._store.transaction() as data:
            raw = data["reservations"].get(reservation_id)
            return self._reservation_to_domain(reservation_id, raw) if raw else None

    def save_reservation(self, reservation: Reservation) -> None:
        with self._store.transaction() as data:
            data["reservations"][reservation.id] = {
                "items": dict(reservation.items),
                "created_at": reservation.created_at.isoformat(),
                "expires_at": reservation.expires_at.isoformat(),
                "order_ref": reservation.order_ref,
            }

    def delete_reservation(self, reservation_id: str) -> None:
        with self._store.transaction() as data:
            data["reservations"].pop(reservation_id, None)

    def list_expired_reservations(self, now: datetime) -> list[Reservation]:
        with self._store.transaction() as data:
            reservations = [
                self._reservation_to_domain(rid, raw)
                for rid, raw in data["reservations"].items()
            ]
        return sorted(
            (r for r in reservations if r.is_expired(now)),
            key=lambda r: r.expires_at,
        )

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _item_to_domain(product_id: str, raw: dict) -> InventoryItem:
        return InventoryItem(
            product_id=product_id,
            product_name=raw["product_name"],
            stock=raw["stock"],
            reserved_stock=raw.get("reserved_stock", 0),
        )

    @staticmethod
    def _reservation_to_domain(reservation_id: str, raw: dict) -> Reservation:
        return Reservation(
            id=reservation_id,
            items={pid: int(qty) for pid, qty in raw["items"].items()},
            created_at=datetime.fromisoformat(raw["created_at"]),
            expires_at=datetime.fromisoformat(raw["expires_at"]),
            order_ref=raw.get("order_ref"),
        )
