import click

from marketplace.infrastructure.bootstrap import Container
from marketplace.infrastructure.cli.catalog_commands import (
    coupon_add,
    product_add,
    product_list,
    product_update,
    seller_commission,
)
from marketplace.infrastructure.cli.inventory_commands import (
    inventory_set,
    inventory_show,
    inventory_sweep,
)
from marketplace.infrastructure.cli.order_commands import (
    order_approve,
    order_cancel,
    order_refund,
    order_return,
    order_show,
    order_submit,
    order_timeline,
    order_transition,
)
from marketplace.infrastructure.config import Settings
from marketplace.infrastructure.logging import configure_logging


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Marketplace order processing and fulfillment core"""
    settings = Settings.from_env()
    configure_logging(settings.log_dir)
    ctx.obj = Container(settings)


@cli.group()
def order() -> None:
    """Submit and manage orders."""


@cli.group()
def product() -> None:
    """Manage products."""


@cli.group()
def inventory() -> None:
    """Manage inventory and reservations."""


@cli.group()
def seller() -> None:
    """Manage seller terms."""


@cli.group()
def coupon() -> None:
    """Manage coupon codes."""


# Register subcommands
order.add_command(order_approve)
order.add_command(order_cancel)
order.add_command(order_refund)
order.add_command(order_return)
order.add_command(order_show)
order.add_command(order_submit)
order.add_command(order_timeline)
order.add_command(order_transition)
product.add_command(product_add)
product.add_command(product_list)
product.add_command(product_update)
inventory.add_command(inventory_set)
inventory.add_command(inventory_show)
inventory.add_command(inventory_sweep)
seller.add_command(seller_commission)
coupon.add_command(coupon_add)
