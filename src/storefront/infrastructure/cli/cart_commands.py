"""CLI commands for the Cart aggregate."""

from __future__ import annotations

import json

import click

from storefront.application.dto import CartDTO
from storefront.application.show_cart import ShowCartHandler
from storefront.application.update_cart import UpdateCartHandler
from storefront.infrastructure.bootstrap import Settings
from storefront.infrastructure.cli.common import domain_errors, uow_factory


def _display_cart(dto: CartDTO) -> None:
    if not dto.items:
        click.echo(f"Cart for {dto.customer_id} is empty.")
        return

    click.echo(f"Cart for {dto.customer_id}")
    click.echo()
    click.echo(f"  {'Item':<30} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*57}")
    for item in dto.items:
        click.echo(
            f"  {item.display_name:<30} {item.quantity:>5} "
            f"{item.unit_price:>10} {item.line_total:>10}"
        )


@click.command("add")
@click.option("--customer", required=True, help="Customer id.")
@click.option("--variant", required=True, help="Variant key, e.g. '42::250g'.")
@click.option("--quantity", default=1, show_default=True, type=click.IntRange(min=1), help="Units to add.")
@click.option("--price", required=True, help="Unit price snapshot (e.g. 10.00).")
@click.option("--name", "display_name", required=True, help="Name shown to the customer.")
@click.pass_obj
def cart_add(
    settings: Settings,
    customer: str,
    variant: str,
    quantity: int,
    price: str,
    display_name: str,
) -> None:
    """Add units of a variant to a customer's cart."""
    handler = UpdateCartHandler(uow_factory(settings))

    with domain_errors():
        dto = handler.handle(customer, variant, quantity, price, display_name)

    _display_cart(dto)


@click.command("remove")
@click.option("--customer", required=True, help="Customer id.")
@click.option("--variant", required=True, help="Variant key, e.g. '42::250g'.")
@click.option("--quantity", default=1, show_default=True, type=click.IntRange(min=1), help="Units to remove.")
@click.pass_obj
def cart_remove(settings: Settings, customer: str, variant: str, quantity: int) -> None:
    """Remove units of a variant; the line disappears at zero."""
    handler = UpdateCartHandler(uow_factory(settings))

    with domain_errors():
        # The price snapshot only matters when a line is created.
        dto = handler.handle(customer, variant, -quantity, "0")

    _display_cart(dto)


@click.command("show")
@click.option("--customer", required=True, help="Customer id.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON.")
@click.pass_obj
def cart_show(settings: Settings, customer: str, as_json: bool) -> None:
    """Show a customer's cart."""
    handler = ShowCartHandler(uow_factory(settings))

    with domain_errors():
        dto = handler.handle(customer)

    if as_json:
        click.echo(json.dumps(dto.to_dict(), indent=2))
    else:
        _display_cart(dto)
