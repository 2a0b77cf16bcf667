"""Application service: Sweep Expired Reservations use case.

The sweep is independent of any order pipeline. ``ReservationSweeper``
runs it on a background thread at a fixed interval until stopped.
"""

from __future__ import annotations

import threading
from datetime import datetime

import structlog

from marketplace.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)

logger = structlog.get_logger(__name__)


class SweepReservationsHandler:

    def __init__(self, reservations: InventoryReservationService) -> None:
        self._reservations = reservations

    def handle(self, now: datetime | None = None) -> list[str]:
        """Release every reservation past its expiry. Returns the released ids."""
        return self._reservations.sweep_expired(now)


class ReservationSweeper:

    def __init__(self, handler: SweepReservationsHandler, interval_seconds: float = 60) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._handler = handler
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.runs = 0

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="reservation-sweeper", daemon=True
        )
        self._thread.start()
        logger.info("Reservation sweeper started", interval_seconds=self._interval)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Reservation sweeper stopped", runs=self.runs)

    def run_once(self) -> list[str]:
        try:
            released = self._handler.handle()
        except Exception as exc:
            # One failed pass must not kill the loop.
            logger.error("Reservation sweep failed", error=str(exc))
            released = []
        self.runs += 1
        return released

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds. Returns True once stop was requested."""
        return self._stop.wait(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self._interval)
