"""CLI commands for checkout and the Order aggregate."""

from __future__ import annotations

import json

import click

from storefront.application.checkout import CheckoutHandler
from storefront.application.dto import OrderDTO
from storefront.application.list_orders import ListOrdersHandler
from storefront.application.show_order import ShowOrderHandler
from storefront.infrastructure.bootstrap import Settings
from storefront.infrastructure.cli.common import domain_errors, parse_pairs, uow_factory


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order #{dto.order_id}  (status={dto.status})")
    click.echo(f"Customer: {dto.customer_id}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo(f"Shipping: {dto.shipping_method}")
    click.echo()
    click.echo(f"  {'Item':<30} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*57}")
    for item in dto.items:
        click.echo(
            f"  {item.display_name:<30} {item.quantity:>5} "
            f"{item.unit_price:>10} {item.line_total:>10}"
        )
    click.echo(f"  {'-'*57}")
    click.echo(f"  {'Order Total':<37} {dto.total_amount:>20}")


@click.command("checkout")
@click.option("--customer", required=True, help="Customer id.")
@click.option("--method", "shipping_method", required=True, help="Shipping method.")
@click.option(
    "--address", "address_fields", multiple=True, required=True,
    help="Shipping address field as 'name=value'; repeat for each field.",
)
@click.option("--total", "client_total", default=None, help="Total the customer saw (checked, never stored).")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON.")
@click.pass_obj
def checkout(
    settings: Settings,
    customer: str,
    shipping_method: str,
    address_fields: tuple[str, ...],
    client_total: str | None,
    as_json: bool,
) -> None:
    """Turn a customer's cart into a pending order."""
    address = parse_pairs(address_fields)
    handler = CheckoutHandler(
        uow_factory(settings), max_attempts=settings.checkout_attempts
    )

    with domain_errors():
        result = handler.handle(customer, address, shipping_method, client_total)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            raise click.exceptions.Exit(1)
        return

    if not result.ok:
        raise click.ClickException(f"[{result.error.value}] {result.message}")  # type: ignore[union-attr]
    _display_order(result.order)  # type: ignore[arg-type]


@click.command("show")
@click.option("--id", "order_id", required=True, help="Order ID to display.")
@click.pass_obj
def order_show(settings: Settings, order_id: str) -> None:
    """Show details of an existing order."""
    handler = ShowOrderHandler(uow_factory(settings))

    with domain_errors():
        dto = handler.handle(order_id)

    _display_order(dto)


@click.command("list")
@click.option("--customer", required=True, help="Customer id.")
@click.pass_obj
def order_list(settings: Settings, customer: str) -> None:
    """List a customer's orders, newest first."""
    handler = ListOrdersHandler(uow_factory(settings))

    with domain_errors():
        orders = handler.handle(customer)

    if not orders:
        click.echo(f"No orders found for {customer}.")
        return

    click.echo(f"{'Order':<34} {'Created':<33} {'Status':<10} {'Total':>10}")
    click.echo("-" * 90)
    for dto in orders:
        click.echo(
            f"{dto.order_id:<34} {dto.created_at:<33} {dto.status:<10} {dto.total_amount:>10}"
        )
