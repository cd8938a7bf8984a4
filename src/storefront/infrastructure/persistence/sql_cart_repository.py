"""SQL implementation of CartRepository."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Connection

from storefront.domain.model.cart import Cart, CartLine
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.cart_repository import CartRepository
from storefront.infrastructure.persistence.sql_schema import (
    cart_lines,
    carts,
    translate_errors,
)


class SqlCartRepository(CartRepository):

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    # --- CartRepository interface ---------------------------------------------

    def get(self, customer_id: str) -> Cart:
        with translate_errors():
            rows = self._conn.execute(
                select(cart_lines)
                .where(cart_lines.c.customer_id == customer_id)
                .order_by(cart_lines.c.position)
            ).mappings().all()
        return Cart(
            customer_id=customer_id,
            lines=[
                CartLine(
                    variant_key=row["variant_key"],
                    display_name=row["display_name"],
                    quantity=row["quantity"],
                    unit_price_snapshot=Money(Decimal(row["unit_price"]), row["currency"]),
                )
                for row in rows
            ],
        )

    def save(self, cart: Cart) -> None:
        self.clear(cart.customer_id)
        if cart.is_empty:
            return
        with translate_errors():
            self._conn.execute(insert(carts).values(customer_id=cart.customer_id))
            self._conn.execute(
                insert(cart_lines),
                [
                    {
                        "customer_id": cart.customer_id,
                        "variant_key": line.variant_key,
                        "position": position,
                        "display_name": line.display_name,
                        "quantity": line.quantity,
                        "unit_price": str(line.unit_price_snapshot.amount),
                        "currency": line.unit_price_snapshot.currency,
                    }
                    for position, line in enumerate(cart.lines)
                ],
            )

    def clear(self, customer_id: str) -> None:
        with translate_errors():
            self._conn.execute(
                delete(cart_lines).where(cart_lines.c.customer_id == customer_id)
            )
            self._conn.execute(delete(carts).where(carts.c.customer_id == customer_id))

    def take(self, expected: Cart) -> bool:
        if expected.is_empty or self.get(expected.customer_id) != expected:
            return False
        with translate_errors():
            result = self._conn.execute(
                delete(cart_lines).where(cart_lines.c.customer_id == expected.customer_id)
            )
            # A concurrent take may have deleted the rows after our read.
            if result.rowcount != len(expected.lines):
                return False
            self._conn.execute(
                delete(carts).where(carts.c.customer_id == expected.customer_id)
            )
        return True
