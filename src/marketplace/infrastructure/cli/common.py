"""Helpers shared by the CLI command modules."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import click

from marketplace.domain.exceptions import DomainException


@contextmanager
def domain_errors() -> Iterator[None]:
    try:
        yield
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")


def parse_items(raw: str) -> list[tuple[str, int]]:
    """Parse 'P1:3,P2:5' into [(product_id, qty), ...]."""
    result: list[tuple[str, int]] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductId:Quantity'."
            )
        product_id, qty_str = pair.rsplit(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{product_id}'."
            )
        result.append((product_id.strip(), qty))
    return result
