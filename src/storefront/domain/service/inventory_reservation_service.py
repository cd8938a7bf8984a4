"""Domain service: Inventory Reservation.

This service coordinates the cross-aggregate operation of reserving stock
for every line of a cart.  It lives in the domain layer because the logic
is a core business rule, not just orchestration.

The two-phase approach (validate-then-reserve) ensures a malformed or
stale cart never causes a single stock mutation.  Every successful
reservation is recorded in a ``CompensationLedger`` so that, on storage
without native transactions, the caller can undo exactly what was applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable

from storefront.domain.exceptions import (
    InsufficientStockError,
    LineItemNotFoundError,
    ValidationError,
)
from storefront.domain.model.cart import Cart, CartLine
from storefront.domain.model.value_objects import VariantKey
from storefront.domain.repository.inventory_repository import InventoryRepository

logger = logging.getLogger(__name__)


@dataclass
class CompensationLedger:
    """Undo actions recorded as effects succeed, replayed newest first."""

    _actions: list[tuple[str, Callable[[], object]]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self._actions)

    def record(self, description: str, undo: Callable[[], object]) -> None:
        self._actions.append((description, undo))

    def discard(self) -> None:
        """Forget every recorded action (the unit committed)."""
        self._actions.clear()

    def compensate(self) -> list[str]:
        """Run every undo action in reverse order.

        A failing undo is logged and skipped so the remaining ones still
        run.  Returns the descriptions of the undo actions that failed.
        """
        failed: list[str] = []
        while self._actions:
            description, undo = self._actions.pop()
            try:
                undo()
            except Exception:
                logger.exception("Compensation failed: %s", description)
                failed.append(description)
            else:
                logger.warning("Compensated: %s", description)
        return failed


class InventoryReservationService:

    def __init__(self, inventory_repo: InventoryRepository) -> None:
        self._inventory_repo = inventory_repo

    def validate_cart(self, cart: Cart) -> None:
        """Phase 1: every line must name a well-formed, existing variant.

        Raises LineItemNotFoundError on the first line that does not.
        """
        for line in cart.lines:
            try:
                VariantKey.parse(line.variant_key)
            except ValidationError as exc:
                raise LineItemNotFoundError(line.display_name, line.variant_key) from exc
            if self._inventory_repo.get(line.variant_key) is None:
                raise LineItemNotFoundError(line.display_name, line.variant_key)

    def reserve_for_cart(self, cart: Cart, ledger: CompensationLedger) -> None:
        """Phase 2: reserve each line in cart order.

        Each success is pushed onto ``ledger`` before moving on.  On the
        first failure an InsufficientStockError naming the cart line is
        raised; reservations already made stay applied and recorded, and
        undoing them is the caller's decision.
        """
        for line in cart.lines:
            remaining = self._reserve_line(line)
            logger.debug(
                "Reserved %d x %s (%d left)",
                line.quantity, line.variant_key, remaining,
            )
            ledger.record(
                f"release {line.quantity} x {line.variant_key}",
                partial(self.release, line.variant_key, line.quantity),
            )

    def release(self, variant_key: str, quantity: int) -> int:
        return self._inventory_repo.release(variant_key, quantity)

    # --- Internal helpers -----------------------------------------------------

    def _reserve_line(self, line: CartLine) -> int:
        try:
            return self._inventory_repo.reserve(line.variant_key, line.quantity)
        except InsufficientStockError as exc:
            # Re-raise under the name the customer saw in their cart.
            raise InsufficientStockError(
                line.display_name, requested=line.quantity, remaining=exc.remaining
            ) from exc
