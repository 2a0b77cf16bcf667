"""Domain service: Inventory Reservation.

This service is the only writer of stock counters. It holds stock for an
order submission with a time-bounded reservation, and later either
commits the hold into a sale, releases it back to stock, or lets the
expiry sweep reclaim it.

Every operation runs inside one repository transaction. Reserving uses a
two-phase approach (validate-then-mutate) so a reservation that fails on
any line leaves no partial decrement behind.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from marketplace.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    InsufficientStock,
    ReservationNotFound,
)
from marketplace.domain.model.inventory import InventoryItem
from marketplace.domain.model.reservation import Reservation
from marketplace.domain.repository.inventory_repository import InventoryRepository

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReservationPolicy:
    hold_minutes: int = 30

    @property
    def hold(self) -> timedelta:
        return timedelta(minutes=self.hold_minutes)


class InventoryReservationService:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        policy: ReservationPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._inventory_repo = inventory_repo
        self._policy = policy or ReservationPolicy()
        self._clock = clock

    def reserve(self, quantities: Mapping[str, int], order_ref: str | None = None) -> Reservation:
        """Hold ``quantities`` (product_id -> qty) as one all-or-nothing unit.

        Uses a two-phase approach:
          Phase 1: load and validate. Every line must be covered by
                   sellable stock. Fails before any mutation.
          Phase 2: mutate and persist every InventoryItem plus the
                   reservation record.
        """
        if not quantities:
            raise EntityNotFoundError("Nothing to reserve")

        with self._inventory_repo.transaction():
            # Phase 1: load all inventory items and validate
            inventory_items: list[tuple[InventoryItem, int]] = []
            shortages: dict[str, tuple[int, int]] = {}

            for product_id, qty in quantities.items():
                inv = self._inventory_repo.get_by_product_id(product_id)
                if inv is None:
                    raise EntityNotFoundError(
                        f"No inventory record for product '{product_id}'"
                    )
                if qty > inv.stock:
                    shortages[product_id] = (qty, inv.stock)
                inventory_items.append((inv, qty))

            if shortages:
                logger.info("Reservation refused", shortages=shortages, order_ref=order_ref)
                raise InsufficientStock(shortages)

            # Phase 2: mutate and persist
            for inv, qty in inventory_items:
                inv.reserve(qty)
                self._inventory_repo.save(inv)

            now = self._clock()
            reservation = Reservation(
                id=f"RES-{uuid.uuid4().hex[:12]}",
                items=dict(quantities),
                created_at=now,
                expires_at=now + self._policy.hold,
                order_ref=order_ref,
            )
            self._inventory_repo.save_reservation(reservation)

        logger.info(
            "Inventory reserved",
            reservation_id=reservation.id,
            item_count=len(reservation.items),
            expires_at=reservation.expires_at.isoformat(),
        )
        return reservation

    def release(self, reservation_id: str | None) -> bool:
        """Give held stock back. Returns False when there was nothing to release.

        Idempotent: releasing twice, or releasing a reservation the sweep
        already reclaimed, is a no-op.
        """
        if not reservation_id:
            return False

        with self._inventory_repo.transaction():
            reservation = self._inventory_repo.get_reservation(reservation_id)
            if reservation is None:
                logger.debug("Reservation already gone", reservation_id=reservation_id)
                return False

            for product_id, qty in reservation.items.items():
                inv = self._load(product_id)
                inv.release(qty)
                self._inventory_repo.save(inv)
            self._inventory_repo.delete_reservation(reservation_id)

        logger.info("Inventory reservation released", reservation_id=reservation_id)
        return True

    def commit(self, reservation_id: str | None) -> Reservation:
        """Promote a reservation to a permanent sale and drop the record.

        A reservation that no longer exists, or that expired but was not
        swept yet, is a hard failure: the caller must abort rather than
        assume the stock is still held.
        """
        if not reservation_id:
            raise ReservationNotFound("Order has no inventory reservation")

        with self._inventory_repo.transaction():
            reservation = self._inventory_repo.get_reservation(reservation_id)
            if reservation is None:
                raise ReservationNotFound(
                    f"Reservation {reservation_id} not found (expired or released)"
                )
            expired = reservation.is_expired(self._clock())
            if not expired:
                for product_id, qty in reservation.items.items():
                    inv = self._load(product_id)
                    inv.commit(qty)
                    self._inventory_repo.save(inv)
                self._inventory_repo.delete_reservation(reservation_id)

        if expired:
            self.release(reservation_id)
            raise ReservationNotFound(f"Reservation {reservation_id} has expired")

        logger.info("Inventory reservation committed", reservation_id=reservation_id)
        return reservation

    def restock(self, quantities: Mapping[str, int]) -> None:
        """Return already-sold units to stock (cancellation after commit, returns)."""
        with self._inventory_repo.transaction():
            for product_id, qty in quantities.items():
                if qty <= 0:
                    continue
                inv = self._load(product_id)
                inv.restock(qty)
                self._inventory_repo.save(inv)

        logger.info("Inventory restocked", products=sorted(quantities))

    def sweep_expired(self, now: datetime | None = None) -> list[str]:
        """Release every reservation past its expiry.

        Runs independently of any order pipeline. A failure on one
        reservation is logged and the sweep moves on.
        """
        as_of = now or self._clock()
        expired = self._inventory_repo.list_expired_reservations(as_of)
        if not expired:
            logger.debug("No expired reservations found", as_of=as_of.isoformat())
            return []

        released: list[str] = []
        for reservation in expired:
            try:
                if self.release(reservation.id):
                    released.append(reservation.id)
            except DomainException as exc:
                logger.warning(
                    "Failed to release expired reservation",
                    reservation_id=reservation.id,
                    error=str(exc),
                )

        logger.info("Expired reservations swept", released_count=len(released))
        return released

    # --- Internal helpers -----------------------------------------------------

    def _load(self, product_id: str) -> InventoryItem:
        inv = self._inventory_repo.get_by_product_id(product_id)
        if inv is None:
            raise EntityNotFoundError(f"No inventory record for product ID '{product_id}'")
        return inv
