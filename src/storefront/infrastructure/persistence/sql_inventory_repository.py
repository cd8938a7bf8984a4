"""SQL implementation of InventoryRepository.

``reserve`` is one conditional UPDATE: the database evaluates the stock
check and the decrement as a single statement, so concurrent callers
can never both pass the check against the same units.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection

from storefront.domain.exceptions import (
    EntityNotFoundError,
    InsufficientStockError,
    ValidationError,
)
from storefront.domain.model.inventory import ProductVariant
from storefront.domain.model.value_objects import Money, VariantKey
from storefront.domain.repository.inventory_repository import InventoryRepository
from storefront.infrastructure.persistence.sql_schema import translate_errors, variants


class SqlInventoryRepository(InventoryRepository):

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    # --- InventoryRepository interface ----------------------------------------

    def get(self, variant_key: str) -> ProductVariant | None:
        with translate_errors():
            row = self._conn.execute(
                select(variants).where(variants.c.variant_key == variant_key)
            ).mappings().first()
        return self._to_domain(row) if row is not None else None

    def list_all(self) -> list[ProductVariant]:
        with translate_errors():
            rows = self._conn.execute(
                select(variants).order_by(variants.c.variant_key)
            ).mappings().all()
        return [self._to_domain(row) for row in rows]

    def save(self, variant: ProductVariant) -> None:
        values = self._to_row(variant)
        with translate_errors():
            result = self._conn.execute(
                update(variants)
                .where(variants.c.variant_key == variant.variant_key)
                .values(**values)
            )
            if result.rowcount == 0:
                self._conn.execute(insert(variants).values(**values))

    def delete(self, variant_key: str) -> None:
        with translate_errors():
            self._conn.execute(
                delete(variants).where(variants.c.variant_key == variant_key)
            )

    def reserve(self, variant_key: str, quantity: int) -> int:
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be positive")
        with translate_errors():
            result = self._conn.execute(
                update(variants)
                .where(
                    variants.c.variant_key == variant_key,
                    variants.c.stock_count >= quantity,
                )
                .values(stock_count=variants.c.stock_count - quantity)
            )
            remaining = self._stock_of(variant_key)
        if result.rowcount != 1:
            raise InsufficientStockError(
                variant_key, requested=quantity, remaining=remaining
            )
        return remaining  # type: ignore[return-value]

    def release(self, variant_key: str, quantity: int) -> int:
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive")
        with translate_errors():
            result = self._conn.execute(
                update(variants)
                .where(variants.c.variant_key == variant_key)
                .values(stock_count=variants.c.stock_count + quantity)
            )
            if result.rowcount != 1:
                raise EntityNotFoundError(f"Variant '{variant_key}' not found")
            return self._stock_of(variant_key)  # type: ignore[return-value]

    # --- Serialization --------------------------------------------------------

    def _stock_of(self, variant_key: str) -> int | None:
        return self._conn.execute(
            select(variants.c.stock_count).where(variants.c.variant_key == variant_key)
        ).scalar_one_or_none()

    @staticmethod
    def _to_row(variant: ProductVariant) -> dict:
        return {
            "variant_key": variant.variant_key,
            "product_id": variant.key.product_id,
            "size_label": variant.key.size_label,
            "product_name": variant.product_name,
            "unit_price": str(variant.unit_price.amount),
            "currency": variant.unit_price.currency,
            "stock_count": variant.stock_count,
        }

    @staticmethod
    def _to_domain(row) -> ProductVariant:
        return ProductVariant(
            key=VariantKey(product_id=row["product_id"], size_label=row["size_label"]),
            product_name=row["product_name"],
            unit_price=Money(Decimal(row["unit_price"]), row["currency"]),
            stock_count=row["stock_count"],
        )
