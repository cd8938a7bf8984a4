"""Abstract repository for the ProductVariant aggregate.

This is the Inventory Store: ``reserve`` and ``release`` are the only legal
ways for checkout to change a stock counter, and ``reserve`` must be a
single compare-and-decrement, never a read followed by a write that a
concurrent caller could interleave with.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.inventory import ProductVariant


class InventoryRepository(ABC):

    @abstractmethod
    def get(self, variant_key: str) -> ProductVariant | None:
        """Return the variant for a key, or None."""

    @abstractmethod
    def list_all(self) -> list[ProductVariant]:
        """Return every variant record."""

    @abstractmethod
    def save(self, variant: ProductVariant) -> None:
        """Create or overwrite a variant record (catalog seeding)."""

    @abstractmethod
    def delete(self, variant_key: str) -> None:
        """Remove a variant; no-op when it does not exist."""

    @abstractmethod
    def reserve(self, variant_key: str, quantity: int) -> int:
        """Atomically take ``quantity`` units if at least that many remain.

        Returns the stock left.  Raises InsufficientStockError when the
        variant is missing or short, ValidationError when quantity <= 0.
        """

    @abstractmethod
    def release(self, variant_key: str, quantity: int) -> int:
        """Add ``quantity`` units back.  Not idempotent.

        Returns the new stock.  Raises EntityNotFoundError if the variant
        no longer exists.
        """
