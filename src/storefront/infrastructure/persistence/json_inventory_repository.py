"""JSON-file-backed implementation of InventoryRepository."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from storefront.domain.exceptions import (
    EntityNotFoundError,
    InsufficientStockError,
    ValidationError,
)
from storefront.domain.model.inventory import ProductVariant
from storefront.domain.model.value_objects import Money, VariantKey
from storefront.domain.repository.inventory_repository import InventoryRepository
from storefront.infrastructure.persistence.json_file import DEFAULT_LOCK_TIMEOUT, JsonFile


class JsonInventoryRepository(InventoryRepository):

    def __init__(self, file_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self._file = JsonFile(file_path, timeout)

    # --- InventoryRepository interface ----------------------------------------

    def get(self, variant_key: str) -> ProductVariant | None:
        raw = self._find(self._file.load(), variant_key)
        return self._to_domain(raw) if raw is not None else None

    def list_all(self) -> list[ProductVariant]:
        return [self._to_domain(raw) for raw in self._file.load()]

    def save(self, variant: ProductVariant) -> None:
        with self._file.locked():
            records = self._file.load()
            for i, raw in enumerate(records):
                if raw["variant_key"] == variant.variant_key:
                    records[i] = self._to_raw(variant)
                    break
            else:
                records.append(self._to_raw(variant))
            self._file.persist(records)

    def delete(self, variant_key: str) -> None:
        with self._file.locked():
            records = self._file.load()
            kept = [raw for raw in records if raw["variant_key"] != variant_key]
            if len(kept) != len(records):
                self._file.persist(kept)

    def reserve(self, variant_key: str, quantity: int) -> int:
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be positive")
        # Check and decrement under one lock: no other reserve can interleave.
        with self._file.locked():
            records = self._file.load()
            index = self._index_of(records, variant_key)
            if index is None:
                raise InsufficientStockError(variant_key, requested=quantity)
            variant = self._to_domain(records[index])
            remaining = variant.reserve(quantity)
            records[index] = self._to_raw(variant)
            self._file.persist(records)
            return remaining

    def release(self, variant_key: str, quantity: int) -> int:
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive")
        with self._file.locked():
            records = self._file.load()
            index = self._index_of(records, variant_key)
            if index is None:
                raise EntityNotFoundError(f"Variant '{variant_key}' not found")
            variant = self._to_domain(records[index])
            stock = variant.release(quantity)
            records[index] = self._to_raw(variant)
            self._file.persist(records)
            return stock

    # --- Serialization --------------------------------------------------------

    @classmethod
    def _find(cls, records: list[dict], variant_key: str) -> dict | None:
        index = cls._index_of(records, variant_key)
        return records[index] if index is not None else None

    @staticmethod
    def _index_of(records: list[dict], variant_key: str) -> int | None:
        for i, raw in enumerate(records):
            if raw["variant_key"] == variant_key:
                return i
        return None

    @staticmethod
    def _to_raw(variant: ProductVariant) -> dict:
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
    def _to_domain(raw: dict) -> ProductVariant:
        return ProductVariant(
            key=VariantKey(product_id=raw["product_id"], size_label=raw["size_label"]),
            product_name=raw["product_name"],
            unit_price=Money(Decimal(raw["unit_price"]), raw.get("currency", "USD")),
            stock_count=raw.get("stock_count", 0),
        )
