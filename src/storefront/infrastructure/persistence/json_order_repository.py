"""JSON-file-backed implementation of OrderRepository."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.order import Order, OrderLineItem, OrderStatus
from storefront.domain.model.value_objects import Money, Quantity, ShippingAddress
from storefront.domain.repository.order_repository import OrderRepository
from storefront.infrastructure.persistence.json_file import DEFAULT_LOCK_TIMEOUT, JsonFile


class JsonOrderRepository(OrderRepository):

    def __init__(self, file_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self._file = JsonFile(file_path, timeout)

    # --- OrderRepository interface --------------------------------------------

    def create(self, order: Order) -> str:
        if order.id is not None:
            raise ValidationError(f"Order #{order.id} already exists")

        with self._file.locked():
            orders = self._file.load()
            order_id = uuid4().hex
            order.id = order_id
            order.created_at = datetime.now(timezone.utc)
            orders.append(self._to_raw(order))
            self._file.persist(orders)
        return order_id

    def get_by_id(self, order_id: str) -> Order | None:
        for raw in self._file.load():
            if raw["order_id"] == order_id:
                return self._to_domain(raw)
        return None

    def list_by_customer(self, customer_id: str) -> list[Order]:
        mine = [
            self._to_domain(raw)
            for raw in reversed(self._file.load())
            if raw["customer_id"] == customer_id
        ]
        # Stable sort: same-instant orders stay newest-appended first.
        return sorted(mine, key=lambda o: o.created_at, reverse=True)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict:
        return {
            "order_id": order.id,
            "customer_id": order.customer_id,
            "status": order.status.value,
            "created_at": order.created_at.isoformat(),  # type: ignore[union-attr]
            "shipping_address": order.shipping_address.as_dict(),
            "shipping_method": order.shipping_method,
            "total_amount": str(order.total.amount),
            "items": [
                {
                    "variant_key": item.variant_key,
                    "display_name": item.display_name,
                    "quantity": item.quantity.value,
                    "unit_price": str(item.unit_price.amount),
                    "currency": item.unit_price.currency,
                }
                for item in order.items
            ],
        }

    @staticmethod
    def _to_domain(raw: dict) -> Order:
        items = tuple(
            OrderLineItem(
                variant_key=i["variant_key"],
                display_name=i["display_name"],
                quantity=Quantity(i["quantity"]),
                unit_price=Money(Decimal(i["unit_price"]), i.get("currency", "USD")),
            )
            for i in raw["items"]
        )
        return Order(
            id=raw["order_id"],
            customer_id=raw["customer_id"],
            items=items,
            shipping_address=ShippingAddress.of(raw["shipping_address"]),
            shipping_method=raw["shipping_method"],
            status=OrderStatus(raw["status"]),
            created_at=datetime.fromisoformat(raw["created_at"]),
        )
