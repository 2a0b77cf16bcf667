"""CLI commands for the catalog: products, seller terms and coupons."""

from __future__ import annotations

from datetime import datetime, timezone

import click

from marketplace.infrastructure.bootstrap import Container
from marketplace.infrastructure.cli.common import domain_errors


@click.command("add")
@click.option("--name", required=True, help="Product name.")
@click.option("--price", required=True, help="Price (e.g. 15.00).")
@click.option("--seller", "seller_id", required=True, help="Seller ID.")
@click.option("--weight", "weight_kg", default="0", show_default=True, help="Weight in kg.")
@click.option("--id", "product_id", default=None, help="Product ID (auto-assigned if omitted).")
@click.pass_obj
def product_add(
    container: Container,
    name: str,
    price: str,
    seller_id: str,
    weight_kg: str,
    product_id: str | None,
) -> None:
    """Add a new product to the catalog."""
    with domain_errors():
        product = container.add_product().handle(
            name=name,
            price=price,
            seller_id=seller_id,
            weight_kg=weight_kg,
            product_id=product_id,
        )

    click.echo(f"Product #{product.id} '{product.name}' added at {product.price}")


@click.command("list")
@click.pass_obj
def product_list(container: Container) -> None:
    """List all products in the catalog."""
    products = container.product_repository.list_all()

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<6} {'Name':<20} {'Seller':<10} {'Price':>14} {'Kg':>6}")
    click.echo("-" * 60)
    for p in products:
        click.echo(f"{p.id:<6} {p.name:<20} {p.seller_id:<10} {str(p.price):>14} {str(p.weight_kg):>6}")


@click.command("update")
@click.option("--id", "product_id", required=True, help="Product ID.")
@click.option("--price", required=True, help="New price (e.g. 29.99).")
@click.pass_obj
def product_update(container: Container, product_id: str, price: str) -> None:
    """Update a product's price."""
    with domain_errors():
        product = container.update_product().handle(product_id=product_id, new_price=price)

    click.echo(f"Product #{product_id} price updated to {product.price}")


@click.command("commission")
@click.option("--seller", "seller_id", required=True, help="Seller ID.")
@click.option("--rate", required=True, help="Commission rate as a fraction (e.g. 0.08).")
@click.pass_obj
def seller_commission(container: Container, seller_id: str, rate: str) -> None:
    """Set a seller's negotiated commission rate."""
    with domain_errors():
        value = container.set_commission().handle(seller_id, rate)

    click.echo(f"Seller '{seller_id}' commission set to {value}")


@click.command("add")
@click.option("--code", required=True, help="Coupon code.")
@click.option("--percent", "percent_off", default=None, help="Percent off as a fraction (e.g. 0.1).")
@click.option("--amount", "amount_off", default=None, help="Fixed amount off.")
@click.option("--min-total", "min_items_total", default=None, help="Minimum items total.")
@click.option("--max-discount", default=None, help="Maximum discount.")
@click.option("--expires", type=click.DateTime(), default=None, help="Expiry (UTC).")
@click.pass_obj
def coupon_add(
    container: Container,
    code: str,
    percent_off: str | None,
    amount_off: str | None,
    min_items_total: str | None,
    max_discount: str | None,
    expires: datetime | None,
) -> None:
    """Add a coupon code."""
    with domain_errors():
        coupon = container.add_coupon().handle(
            code,
            percent_off=percent_off,
            amount_off=amount_off,
            min_items_total=min_items_total,
            max_discount=max_discount,
            expires_at=expires.replace(tzinfo=timezone.utc) if expires else None,
        )

    click.echo(f"Coupon '{coupon.code}' added")
