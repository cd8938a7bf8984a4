"""Application service: Update Cart use case.

The single entry point for cart mutation.  A positive delta adds units
(creating the line on first add), a negative delta removes units and
drops the line once it reaches zero.
"""

from __future__ import annotations

import logging

from storefront.application.dto import CartDTO, cart_to_dto
from storefront.domain.exceptions import ValidationError
from storefront.domain.model.value_objects import Money, VariantKey
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory

logger = logging.getLogger(__name__)


class UpdateCartHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(
        self,
        customer_id: str,
        variant_key: str,
        quantity_delta: int,
        unit_price_snapshot: str,
        display_name: str = "",
    ) -> CartDTO:
        """Apply one signed change and return the resulting cart."""
        if not customer_id or not customer_id.strip():
            raise ValidationError("Customer id is required")
        if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int):
            raise ValidationError("Quantity delta must be an integer")
        if quantity_delta == 0:
            raise ValidationError("Quantity delta cannot be zero")

        key = str(VariantKey.parse(variant_key))
        price = Money.of(unit_price_snapshot)

        with self._uow_factory() as uow:
            cart = uow.carts.get(customer_id)
            cart.upsert_line(key, quantity_delta, price, display_name)
            uow.carts.save(cart)
            uow.commit()

        logger.debug(
            "Cart of %s: %+d x %s -> %d line(s)",
            customer_id, quantity_delta, key, len(cart.lines),
        )
        return cart_to_dto(cart)
