"""CLI commands for inventory management."""

from __future__ import annotations

import click

from storefront.application.set_inventory import SetInventoryHandler
from storefront.application.show_inventory import ShowInventoryHandler
from storefront.infrastructure.bootstrap import Settings
from storefront.infrastructure.cli.common import domain_errors, uow_factory


@click.command("set")
@click.option("--variant", required=True, help="Variant key, e.g. '42::250g'.")
@click.option("--stock", required=True, type=int, help="Units in stock.")
@click.option("--name", "product_name", default=None, help="Product name (required for new variants).")
@click.option("--price", default=None, help="Unit price (required for new variants).")
@click.pass_obj
def inventory_set(
    settings: Settings,
    variant: str,
    stock: int,
    product_name: str | None,
    price: str | None,
) -> None:
    """Set the stock level of a variant."""
    handler = SetInventoryHandler(uow_factory(settings))

    with domain_errors():
        result = handler.handle(
            variant_key=variant, stock=stock, product_name=product_name, unit_price=price
        )

    click.echo(f"Stock for {result.display_name} set to {result.stock_count}")


@click.command("show")
@click.pass_obj
def inventory_show(settings: Settings) -> None:
    """Show current stock levels."""
    handler = ShowInventoryHandler(uow_factory(settings))

    with domain_errors():
        lines = handler.handle()

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(f"{'Variant':<24} {'Product':<20} {'Price':>10} {'Stock':>8}")
    click.echo("-" * 65)
    for line in lines:
        click.echo(
            f"{line.variant_key:<24} {line.product_name:<20} "
            f"{line.unit_price:>10} {line.stock:>8}"
        )
