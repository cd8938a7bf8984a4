"""Application service: Set Inventory use case.

The hook through which the catalog side seeds or corrects a variant's
stock and price.  Checkout never goes through here.
"""

from __future__ import annotations

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.inventory import ProductVariant
from storefront.domain.model.value_objects import Money, VariantKey
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory


class SetInventoryHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(
        self,
        variant_key: str,
        stock: int,
        product_name: str | None = None,
        unit_price: str | None = None,
    ) -> ProductVariant:
        """Set the stock of a variant, creating it when it does not exist.

        Name and price are required for a new variant and optional
        (left unchanged) for an existing one.
        """
        key = VariantKey.parse(variant_key)
        if stock < 0:
            raise ValidationError("Stock count cannot be negative")

        with self._uow_factory() as uow:
            variant = uow.inventory.get(str(key))
            if variant is None:
                if not product_name or not product_name.strip():
                    raise ValidationError(
                        f"Product name is required for new variant '{key}'"
                    )
                if unit_price is None:
                    raise ValidationError(
                        f"Unit price is required for new variant '{key}'"
                    )
                variant = ProductVariant(
                    key=key,
                    product_name=product_name.strip(),
                    unit_price=Money.of(unit_price),
                    stock_count=stock,
                )
            else:
                variant.set_stock(stock)
                if product_name and product_name.strip():
                    variant.product_name = product_name.strip()
                if unit_price is not None:
                    variant.unit_price = Money.of(unit_price)
            uow.inventory.save(variant)
            uow.commit()
        return variant
