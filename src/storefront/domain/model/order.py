"""Order aggregate — the record of a completed checkout.

An Order is written exactly once, by the checkout coordinator, and is
never mutated afterwards within this package.  Its line items are a
historical copy of the cart, decoupled from later catalog changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.cart import Cart
from storefront.domain.model.value_objects import Money, Quantity, ShippingAddress


class OrderStatus(Enum):
    PENDING = "Pending"


@dataclass(frozen=True)
class OrderLineItem:
    """Captures the price and name snapshot of a cart line at purchase time."""

    variant_key: str
    display_name: str
    quantity: Quantity
    unit_price: Money  # locked at add-to-cart time

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


@dataclass
class Order:
    """Aggregate root for purchases.

    Use ``Order.place()`` for new orders.  ``id`` and ``created_at`` stay
    None until the order store assigns them on ``create``; the plain
    ``__init__`` lets repositories reconstitute persisted orders.
    """

    id: str | None
    customer_id: str
    items: tuple[OrderLineItem, ...]
    shipping_address: ShippingAddress
    shipping_method: str
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime | None = None

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def place(
        cart: Cart,
        shipping_address: ShippingAddress,
        shipping_method: str,
    ) -> Order:
        """Snapshot a cart into a new pending order."""
        if cart.is_empty:
            raise ValidationError("Order must contain at least one item")
        if not shipping_method or not shipping_method.strip():
            raise ValidationError("Shipping method is required")

        items = tuple(
            OrderLineItem(
                variant_key=line.variant_key,
                display_name=line.display_name,
                quantity=Quantity(line.quantity),
                unit_price=line.unit_price_snapshot,
            )
            for line in cart.lines
        )
        return Order(
            id=None,
            customer_id=cart.customer_id,
            items=items,
            shipping_address=shipping_address,
            shipping_method=shipping_method.strip(),
        )

    # --- Computed properties --------------------------------------------------

    @property
    def total(self) -> Money:
        """Always derived from the line snapshots, never supplied."""
        result = Money.zero()
        for item in self.items:
            result = result + item.line_total
        return result
