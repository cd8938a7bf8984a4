"""ProductVariant aggregate — tracks live stock per purchasable variant.

Each product has one ProductVariant per size/label.  Stock is a single
counter: a successful reservation decrements it immediately, there is no
separate "reserved" bucket.
"""

from __future__ import annotations

from dataclasses import dataclass

from storefront.domain.exceptions import InsufficientStockError, ValidationError
from storefront.domain.model.value_objects import Money, VariantKey


@dataclass
class ProductVariant:
    """Aggregate root for inventory tracking.

    Invariants:
    - ``stock_count`` is always >= 0
    """

    key: VariantKey
    product_name: str
    unit_price: Money
    stock_count: int = 0

    def __post_init__(self) -> None:
        if self.stock_count < 0:
            raise ValidationError(
                f"Stock for {self.display_name} cannot be negative, got {self.stock_count}"
            )

    @property
    def variant_key(self) -> str:
        return str(self.key)

    @property
    def display_name(self) -> str:
        return f"{self.product_name} ({self.key.size_label})"

    def reserve(self, quantity: int) -> int:
        """Check-and-decrement in one step.

        Returns the stock left afterwards.  Raises InsufficientStockError
        without touching the counter if there is not enough.
        """
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be positive")
        if quantity > self.stock_count:
            raise InsufficientStockError(
                self.display_name, requested=quantity, remaining=self.stock_count
            )
        self.stock_count -= quantity
        return self.stock_count

    def release(self, quantity: int) -> int:
        """Give back previously reserved stock (compensation)."""
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive")
        self.stock_count += quantity
        return self.stock_count

    def set_stock(self, stock_count: int) -> None:
        if stock_count < 0:
            raise ValidationError("Stock count cannot be negative")
        self.stock_count = stock_count
