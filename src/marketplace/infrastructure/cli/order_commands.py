"""CLI commands for the Order aggregate."""

from __future__ import annotations

import click

from marketplace.application.dto import OrderDTO
from marketplace.domain.model.order import OrderStatus, PaymentMethod
from marketplace.domain.model.submission import OrderSubmission, SubmittedItem
from marketplace.domain.service.order_state_machine import RETURN_REASONS
from marketplace.infrastructure.bootstrap import Container
from marketplace.infrastructure.cli.common import domain_errors, parse_items


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order #{dto.id}  (status={dto.status})")
    click.echo(f"Customer: {dto.customer_id}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo(f"Payment:  {dto.payment_method} ({dto.payment_status})")
    if dto.risk_level is not None:
        review = "  [awaiting review]" if dto.requires_review else ""
        click.echo(f"Risk:     {dto.risk_level} (score {dto.risk_score}){review}")
    if dto.tracking_number:
        click.echo(f"Tracking: {dto.tracking_number}")
    if dto.estimated_delivery:
        click.echo(f"ETA:      {dto.estimated_delivery}")
    click.echo()

    click.echo(f"  {'Product':<20} {'Seller':<10} {'Qty':>5} {'Price':>14} {'Total':>14}  Status")
    click.echo(f"  {'-'*80}")
    for item in dto.items:
        click.echo(
            f"  {item.product_name:<20} {item.seller_id:<10} {item.quantity:>5} "
            f"{item.unit_price:>14} {item.line_total:>14}  {item.status}"
        )
    click.echo(f"  {'-'*80}")
    for label, value in (
        ("Subtotal", dto.subtotal),
        ("Shipping", dto.shipping),
        ("Tax", dto.tax),
        ("Platform fee", dto.platform_fee),
        ("Discount", dto.discount),
        ("Order Total", dto.total),
    ):
        click.echo(f"  {label:<27} {value:>20}")

    if dto.splits:
        click.echo()
        click.echo(
            f"  {'Seller':<10} {'Gross':>14} {'Rate':>6} {'Commission':>14} "
            f"{'Net':>14} {'Payable':>14}"
        )
        for split in dto.splits:
            click.echo(
                f"  {split.seller_id:<10} {split.gross:>14} {split.commission_rate:>6} "
                f"{split.commission:>14} {split.net:>14} {split.net_payable:>14}"
            )

    if dto.refund_status:
        click.echo(f"Refund:   {dto.refund_status}")
    click.echo(f"Next:     {', '.join(dto.allowed_next) or '(terminal)'}")


@click.command("submit")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--items", required=True, help="Items as 'ProductId:Qty,ProductId:Qty'.")
@click.option("--name", required=True, help="Recipient name.")
@click.option("--line1", required=True, help="Street address.")
@click.option("--city", required=True, help="City.")
@click.option("--postal-code", required=True, help="Postal code.")
@click.option("--phone", required=True, help="Contact phone.")
@click.option("--state", default="", help="State.")
@click.option(
    "--payment",
    type=click.Choice([m.value for m in PaymentMethod]),
    default=PaymentMethod.COD.value,
    show_default=True,
    help="Payment method.",
)
@click.option("--coupon", default=None, help="Coupon code.")
@click.option("--ip", "origin_ip", default=None, help="Origin IP of the submission.")
@click.pass_obj
def order_submit(
    container: Container,
    customer: str,
    items: str,
    name: str,
    line1: str,
    city: str,
    postal_code: str,
    phone: str,
    state: str,
    payment: str,
    coupon: str | None,
    origin_ip: str | None,
) -> None:
    """Submit an order through the checkout pipeline."""
    submission = OrderSubmission(
        customer_id=customer,
        items=[SubmittedItem(pid, qty) for pid, qty in parse_items(items)],
        shipping_address={
            "name": name,
            "line1": line1,
            "city": city,
            "postal_code": postal_code,
            "phone": phone,
            "state": state,
        },
        payment_method=payment,
        coupon_code=coupon,
        origin_ip=origin_ip,
    )

    with domain_errors():
        result = container.submit_order().handle(submission)

    if not result.success:
        details = "".join(f"\n  - {reason}" for reason in result.reasons)
        raise click.ClickException(f"[{result.code}] {result.message}{details}")

    click.echo(f"{result.message}  (correlation={result.correlation_id})")
    if result.order is not None:
        click.echo()
        _display_order(result.order)


@click.command("show")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to display.")
@click.pass_obj
def order_show(container: Container, order_id: int) -> None:
    """Show details of an existing order."""
    with domain_errors():
        dto = container.show_order().handle(order_id)

    _display_order(dto)


@click.command("timeline")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.pass_obj
def order_timeline(container: Container, order_id: int) -> None:
    """Show the status history of an order."""
    with domain_errors():
        entries = container.show_order().timeline(order_id)

    for entry in entries:
        who = entry.actor or ("system" if entry.system_generated else "-")
        click.echo(f"{entry.timestamp}  {entry.label:<20} {who:<12} {entry.reason}")


@click.command("transition")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option(
    "--status",
    required=True,
    type=click.Choice([s.value for s in OrderStatus]),
    help="Target status.",
)
@click.option("--actor", default=None, help="Who is making the change.")
@click.option("--reason", default=None, help="Reason recorded in the history.")
@click.option("--tracking-number", default=None, help="Tracking number (shipped).")
@click.option("--carrier", default=None, help="Carrier name (shipped).")
@click.pass_obj
def order_transition(
    container: Container,
    order_id: int,
    status: str,
    actor: str | None,
    reason: str | None,
    tracking_number: str | None,
    carrier: str | None,
) -> None:
    """Move an order to another status."""
    details = {}
    if tracking_number:
        details["tracking_number"] = tracking_number
    if carrier:
        details["carrier"] = carrier

    with domain_errors():
        order = container.transitions.handle(
            order_id, status, actor=actor, reason=reason, details=details
        )

    click.echo(f"Order #{order.id} is now {order.status.value}.")


@click.command("cancel")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to cancel.")
@click.option("--reason", required=True, help="Why the order is cancelled.")
@click.option("--actor", default=None, help="Who is cancelling.")
@click.pass_obj
def order_cancel(container: Container, order_id: int, reason: str, actor: str | None) -> None:
    """Cancel an order (releases or restocks its inventory)."""
    with domain_errors():
        dto = container.cancel_order().handle(order_id, reason=reason, actor=actor)

    click.echo(f"Order #{order_id} cancelled.")
    if dto.refund_status:
        click.echo(f"Refund: {dto.refund_status}")


@click.command("return")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option("--items", required=True, help="Items as 'ProductId:Qty,ProductId:Qty'.")
@click.option("--reason", required=True, type=click.Choice(sorted(RETURN_REASONS)), help="Return reason.")
@click.option("--comment", default=None, help="Free-text comment.")
@click.option("--actor", default=None, help="Who is requesting the return.")
@click.pass_obj
def order_return(
    container: Container,
    order_id: int,
    items: str,
    reason: str,
    comment: str | None,
    actor: str | None,
) -> None:
    """Request a return for delivered items."""
    with domain_errors():
        dto = container.request_return().handle(
            order_id, dict(parse_items(items)), reason, comment=comment, actor=actor
        )

    click.echo(f"Return for order #{order_id} recorded (status={dto.status}).")


@click.command("approve")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option("--reviewer", required=True, help="Who reviewed the order.")
@click.option("--note", default=None, help="Review note.")
@click.pass_obj
def order_approve(container: Container, order_id: int, reviewer: str, note: str | None) -> None:
    """Approve an order held for fraud review."""
    with domain_errors():
        dto = container.approve_order().handle(order_id, actor=reviewer, note=note)

    click.echo(f"Order #{order_id} approved (status={dto.status}).")


@click.command("refund")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option("--actor", default=None, help="Who is issuing the refund.")
@click.pass_obj
def order_refund(container: Container, order_id: int, actor: str | None) -> None:
    """Issue the open refund of a cancelled or returned order."""
    with domain_errors():
        dto = container.refund_order().handle(order_id, actor=actor)

    click.echo(f"Order #{order_id} refunded (status={dto.status}).")
