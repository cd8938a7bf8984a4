import click

from storefront.infrastructure.bootstrap import Settings, configure_logging
from storefront.infrastructure.cli.cart_commands import cart_add, cart_remove, cart_show
from storefront.infrastructure.cli.common import domain_errors
from storefront.infrastructure.cli.inventory_commands import inventory_set, inventory_show
from storefront.infrastructure.cli.order_commands import checkout, order_list, order_show


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log debug output.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Storefront — carts, checkout and stock"""
    configure_logging(verbose)
    with domain_errors():
        ctx.obj = Settings.from_env()


@cli.group()
def cart() -> None:
    """Manage carts."""


@cli.group()
def order() -> None:
    """Inspect orders."""


@cli.group()
def inventory() -> None:
    """Manage stock."""


# Register subcommands
cart.add_command(cart_add)
cart.add_command(cart_remove)
cart.add_command(cart_show)
cli.add_command(checkout)
order.add_command(order_list)
order.add_command(order_show)
inventory.add_command(inventory_set)
inventory.add_command(inventory_show)
