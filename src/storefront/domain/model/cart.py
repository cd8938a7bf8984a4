"""Cart aggregate — a customer's pending, not-yet-purchased line items.

A cart exists only while it has lines.  The single mutation primitive is
``upsert_line`` with a signed delta; there is no "set quantity".
"""

from __future__ import annotations

from dataclasses import dataclass, field

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.value_objects import Money


@dataclass
class CartLine:
    """One entry in a cart with price and name captured at add time."""

    variant_key: str
    quantity: int
    unit_price_snapshot: Money
    display_name: str

    @property
    def line_total(self) -> Money:
        return self.unit_price_snapshot * self.quantity


@dataclass
class Cart:
    """Aggregate root for a customer's cart.

    Invariants:
    - every line has ``quantity > 0``
    - at most one line per ``variant_key``
    """

    customer_id: str
    lines: list[CartLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def upsert_line(
        self,
        variant_key: str,
        delta: int,
        unit_price_snapshot: Money,
        display_name: str,
    ) -> None:
        """Apply a signed quantity change for one variant.

        An existing line absorbs the delta and disappears when it reaches
        zero or below.  A missing line is only created for a positive
        delta; a negative delta against a missing line is a no-op.
        """
        line = self.find_line(variant_key)
        if line is not None:
            line.quantity += delta
            if line.quantity <= 0:
                self.lines.remove(line)
            return

        if delta > 0:
            if not display_name or not display_name.strip():
                raise ValidationError("Display name is required for a new cart line")
            self.lines.append(
                CartLine(
                    variant_key=variant_key,
                    quantity=delta,
                    unit_price_snapshot=unit_price_snapshot,
                    display_name=display_name.strip(),
                )
            )

    def find_line(self, variant_key: str) -> CartLine | None:
        for line in self.lines:
            if line.variant_key == variant_key:
                return line
        return None

    def copy(self) -> Cart:
        """Detached copy, used to restore a cart after a failed checkout."""
        return Cart(
            customer_id=self.customer_id,
            lines=[
                CartLine(
                    variant_key=line.variant_key,
                    quantity=line.quantity,
                    unit_price_snapshot=line.unit_price_snapshot,
                    display_name=line.display_name,
                )
                for line in self.lines
            ],
        )
