"""JSON-file-backed implementation of CartRepository."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from storefront.domain.model.cart import Cart, CartLine
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.cart_repository import CartRepository
from storefront.infrastructure.persistence.json_file import DEFAULT_LOCK_TIMEOUT, JsonFile


class JsonCartRepository(CartRepository):

    def __init__(self, file_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self._file = JsonFile(file_path, timeout)

    # --- CartRepository interface ---------------------------------------------

    def get(self, customer_id: str) -> Cart:
        for raw in self._file.load():
            if raw["customer_id"] == customer_id:
                return self._to_domain(raw)
        return Cart(customer_id=customer_id)

    def save(self, cart: Cart) -> None:
        if cart.is_empty:
            self.clear(cart.customer_id)
            return
        with self._file.locked():
            records = self._file.load()
            for i, raw in enumerate(records):
                if raw["customer_id"] == cart.customer_id:
                    records[i] = self._to_raw(cart)
                    break
            else:
                records.append(self._to_raw(cart))
            self._file.persist(records)

    def clear(self, customer_id: str) -> None:
        with self._file.locked():
            records = self._file.load()
            kept = [raw for raw in records if raw["customer_id"] != customer_id]
            if len(kept) != len(records):
                self._file.persist(kept)

    def take(self, expected: Cart) -> bool:
        # Compare and delete under one lock: two takes of one cart cannot both win.
        with self._file.locked():
            records = self._file.load()
            for i, raw in enumerate(records):
                if raw["customer_id"] == expected.customer_id:
                    if self._to_domain(raw) != expected:
                        return False
                    del records[i]
                    self._file.persist(records)
                    return True
            return False

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(cart: Cart) -> dict:
        return {
            "customer_id": cart.customer_id,
            "items": [
                {
                    "variant_key": line.variant_key,
                    "display_name": line.display_name,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price_snapshot.amount),
                    "currency": line.unit_price_snapshot.currency,
                }
                for line in cart.lines
            ],
        }

    @staticmethod
    def _to_domain(raw: dict) -> Cart:
        return Cart(
            customer_id=raw["customer_id"],
            lines=[
                CartLine(
                    variant_key=i["variant_key"],
                    display_name=i["display_name"],
                    quantity=i["quantity"],
                    unit_price_snapshot=Money(
                        Decimal(i["unit_price"]), i.get("currency", "USD")
                    ),
                )
                for i in raw["items"]
            ],
        )
