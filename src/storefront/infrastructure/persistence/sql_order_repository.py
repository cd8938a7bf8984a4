"""SQL implementation of OrderRepository."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import insert, select
from sqlalchemy.engine import Connection

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.order import Order, OrderLineItem, OrderStatus
from storefront.domain.model.value_objects import Money, Quantity, ShippingAddress
from storefront.domain.repository.order_repository import OrderRepository
from storefront.infrastructure.persistence.sql_schema import (
    order_lines,
    orders,
    translate_errors,
)


class SqlOrderRepository(OrderRepository):

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    # --- OrderRepository interface --------------------------------------------

    def create(self, order: Order) -> str:
        if order.id is not None:
            raise ValidationError(f"Order #{order.id} already exists")

        order_id = uuid4().hex
        created_at = datetime.now(timezone.utc)
        with translate_errors():
            self._conn.execute(
                insert(orders).values(
                    order_id=order_id,
                    customer_id=order.customer_id,
                    status=order.status.value,
                    created_at=created_at,
                    shipping_address=order.shipping_address.as_dict(),
                    shipping_method=order.shipping_method,
                    total_amount=str(order.total.amount),
                )
            )
            self._conn.execute(
                insert(order_lines),
                [
                    {
                        "order_id": order_id,
                        "position": position,
                        "variant_key": item.variant_key,
                        "display_name": item.display_name,
                        "quantity": item.quantity.value,
                        "unit_price": str(item.unit_price.amount),
                        "currency": item.unit_price.currency,
                    }
                    for position, item in enumerate(order.items)
                ],
            )
        order.id = order_id
        order.created_at = created_at
        return order_id

    def get_by_id(self, order_id: str) -> Order | None:
        with translate_errors():
            row = self._conn.execute(
                select(orders).where(orders.c.order_id == order_id)
            ).mappings().first()
            if row is None:
                return None
            lines = self._lines_for([order_id])
        return self._to_domain(row, lines.get(order_id, []))

    def list_by_customer(self, customer_id: str) -> list[Order]:
        with translate_errors():
            rows = self._conn.execute(
                select(orders)
                .where(orders.c.customer_id == customer_id)
                .order_by(orders.c.created_at.desc())
            ).mappings().all()
            lines = self._lines_for([row["order_id"] for row in rows])
        return [self._to_domain(row, lines.get(row["order_id"], [])) for row in rows]

    # --- Serialization --------------------------------------------------------

    def _lines_for(self, order_ids: list[str]) -> dict[str, list]:
        if not order_ids:
            return {}
        grouped: dict[str, list] = {}
        for row in self._conn.execute(
            select(order_lines)
            .where(order_lines.c.order_id.in_(order_ids))
            .order_by(order_lines.c.order_id, order_lines.c.position)
        ).mappings():
            grouped.setdefault(row["order_id"], []).append(row)
        return grouped

    @staticmethod
    def _to_domain(row, line_rows: list) -> Order:
        created_at = row["created_at"]
        if created_at.tzinfo is None:
            # SQLite drops the offset; everything is written in UTC.
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Order(
            id=row["order_id"],
            customer_id=row["customer_id"],
            items=tuple(
                OrderLineItem(
                    variant_key=line["variant_key"],
                    display_name=line["display_name"],
                    quantity=Quantity(line["quantity"]),
                    unit_price=Money(Decimal(line["unit_price"]), line["currency"]),
                )
                for line in line_rows
            ),
            shipping_address=ShippingAddress.of(row["shipping_address"]),
            shipping_method=row["shipping_method"],
            status=OrderStatus(row["status"]),
            created_at=created_at,
        )
