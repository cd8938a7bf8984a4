"""Value Objects shared across the domain.

Value Objects are immutable and compared by value, not identity.
They encapsulate validation so invalid values can never exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from storefront.domain.exceptions import ValidationError


@dataclass(frozen=True)
class Money:
    """Monetary amount with currency.

    Uses Decimal to avoid floating-point rounding errors that would be
    unacceptable in financial calculations.
    """

    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValidationError(
                f"Money amount must be a Decimal, got {type(self.amount).__name__}"
            )
        if not self.amount.is_finite():
            raise ValidationError(f"Money amount must be finite, got {self.amount}")
        if self.amount < Decimal("0"):
            raise ValidationError(
                f"Money amount cannot be negative, got {self.amount}"
            )

    # --- Arithmetic helpers ---------------------------------------------------

    def __add__(self, other: Money) -> Money:
        self._assert_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor: int) -> Money:
        if not isinstance(factor, int):
            raise TypeError(f"Can only multiply Money by int, got {type(factor).__name__}")
        return Money(self.amount * factor, self.currency)

    # --- Display --------------------------------------------------------------

    def __str__(self) -> str:
        return f"${self.amount:.2f}"

    # --- Internal helpers -----------------------------------------------------

    def _assert_same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise ValidationError(
                f"Cannot combine {self.currency} with {other.currency}"
            )

    # --- Factory --------------------------------------------------------------

    @staticmethod
    def of(amount: str | float | int | Decimal) -> Money:
        """Convenient factory that coerces to Decimal safely."""
        try:
            return Money(Decimal(str(amount)))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid money amount: {amount!r}") from exc

    @staticmethod
    def zero() -> Money:
        return Money(Decimal("0.00"))


@dataclass(frozen=True)
class Quantity:
    """A positive integer quantity.

    Enforces the invariant that you cannot buy zero or negative items.
    """

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)


SEPARATOR = "::"


@dataclass(frozen=True)
class VariantKey:
    """Identifies one purchasable size/label of a product.

    The canonical text form is ``{product_id}::{size_label}``.  The product
    id may not contain the separator; the size label may contain anything
    except leading/trailing whitespace, so ``"42::1 Piece"`` and
    ``"42::250g::gift"`` (label ``"250g::gift"``) are both valid.
    """

    product_id: str
    size_label: str

    def __post_init__(self) -> None:
        if not self.product_id or not self.product_id.strip():
            raise ValidationError("Variant key requires a product id")
        if SEPARATOR in self.product_id:
            raise ValidationError(
                f"Product id may not contain '{SEPARATOR}': {self.product_id!r}"
            )
        if not self.size_label or not self.size_label.strip():
            raise ValidationError("Variant key requires a size label")
        if self.product_id != self.product_id.strip() or self.size_label != self.size_label.strip():
            raise ValidationError("Variant key parts may not have surrounding whitespace")

    def __str__(self) -> str:
        return f"{self.product_id}{SEPARATOR}{self.size_label}"

    @staticmethod
    def parse(raw: str) -> VariantKey:
        """Parse ``product::label``, splitting on the *first* separator."""
        if not isinstance(raw, str) or SEPARATOR not in raw:
            raise ValidationError(
                f"Invalid variant key {raw!r}. Expected 'productId{SEPARATOR}sizeLabel'."
            )
        product_id, size_label = raw.split(SEPARATOR, 1)
        return VariantKey(product_id=product_id, size_label=size_label)


@dataclass(frozen=True)
class ShippingAddress:
    """Snapshot of where an order ships.

    The address book is owned elsewhere; here it is an opaque, non-empty
    set of string fields copied onto the order.
    """

    fields: tuple[tuple[str, str], ...]

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValidationError("Shipping address is required")
        for key, value in self.fields:
            if not key or not str(key).strip():
                raise ValidationError("Shipping address field names cannot be blank")

    def as_dict(self) -> dict[str, str]:
        return dict(self.fields)

    @staticmethod
    def of(raw: Mapping[str, Any] | None) -> ShippingAddress:
        if not raw:
            raise ValidationError("Shipping address is required")
        return ShippingAddress(
            fields=tuple((str(k), "" if v is None else str(v)) for k, v in raw.items())
        )
