"""Tests for the reservation expiry sweep and its background runner."""

import pytest

from marketplace.application.sweep_reservations import (
    ReservationSweeper,
    SweepReservationsHandler,
)
from tests.builders import World


class _ExplodingHandler:
    def handle(self, now=None):
        raise RuntimeError("store unavailable")


class TestSweepReservationsHandler:

    def test_releases_abandoned_holds(self):
        world = World()
        reservation = world.reservations.reserve({"P1": 2})
        world.clock.advance(minutes=30)

        released = SweepReservationsHandler(world.reservations).handle()

        assert released == [reservation.id]
        assert world.stock("P1") == (5, 0)

    def test_explicit_as_of_time(self):
        world = World()
        world.reservations.reserve({"P1": 2})
        handler = SweepReservationsHandler(world.reservations)
        assert handler.handle(now=world.clock.now) == []


class TestReservationSweeper:

    def test_run_once_counts_runs(self):
        world = World()
        world.reservations.reserve({"P1": 1})
        world.clock.advance(hours=1)
        sweeper = ReservationSweeper(SweepReservationsHandler(world.reservations), 60)

        assert len(sweeper.run_once()) == 1
        assert sweeper.run_once() == []
        assert sweeper.runs == 2

    def test_failed_pass_does_not_raise(self):
        sweeper = ReservationSweeper(_ExplodingHandler(), 60)
        assert sweeper.run_once() == []
        assert sweeper.runs == 1

    def test_start_and_stop(self):
        world = World()
        sweeper = ReservationSweeper(SweepReservationsHandler(world.reservations), 0.01)

        sweeper.start()
        assert sweeper.running
        sweeper.wait(0.05)
        sweeper.stop(timeout=1)

        assert not sweeper.running
        assert sweeper.runs >= 1

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            ReservationSweeper(_ExplodingHandler(), 0)
