"""CLI commands for inventory management."""

from __future__ import annotations

import click

from marketplace.application.sweep_reservations import ReservationSweeper
from marketplace.infrastructure.bootstrap import Container
from marketplace.infrastructure.cli.common import domain_errors


@click.command("set")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--stock", required=True, type=int, help="Sellable units in stock.")
@click.pass_obj
def inventory_set(container: Container, product_id: str, stock: int) -> None:
    """Set inventory level for a product."""
    with domain_errors():
        dto = container.set_inventory().handle(product_id, stock)

    click.echo(f"Inventory for '{dto.product_name}' set to {dto.stock}")


@click.command("show")
@click.pass_obj
def inventory_show(container: Container) -> None:
    """Show current inventory levels."""
    lines = container.show_inventory().handle()

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(f"{'ID':<6} {'Product':<20} {'Stock':>8} {'Reserved':>10}")
    click.echo("-" * 47)
    for line in lines:
        click.echo(f"{line.product_id:<6} {line.product_name:<20} {line.stock:>8} {line.reserved:>10}")


@click.command("sweep")
@click.option("--watch", is_flag=True, default=False, help="Keep sweeping until interrupted.")
@click.option("--interval", type=float, default=60, show_default=True, help="Seconds between sweeps.")
@click.pass_obj
def inventory_sweep(container: Container, watch: bool, interval: float) -> None:
    """Release reservations past their expiry."""
    handler = container.sweep_reservations()

    if not watch:
        with domain_errors():
            released = handler.handle()
        click.echo(f"Released {len(released)} expired reservation(s).")
        for reservation_id in released:
            click.echo(f"  {reservation_id}")
        return

    sweeper = ReservationSweeper(handler, interval_seconds=interval)
    sweeper.start()
    click.echo(f"Sweeping every {interval:g}s. Press Ctrl+C to stop.")
    try:
        while sweeper.running:
            sweeper.wait(1)
    except KeyboardInterrupt:
        pass
    finally:
        sweeper.stop()
