"""Application service: Show Inventory use case (query)."""

from __future__ import annotations

from storefront.application.dto import InventoryLineDTO
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory


class ShowInventoryHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(self) -> list[InventoryLineDTO]:
        with self._uow_factory() as uow:
            variants = uow.inventory.list_all()
        return [
            InventoryLineDTO(
                variant_key=v.variant_key,
                product_name=v.product_name,
                size_label=v.key.size_label,
                unit_price=f"{v.unit_price.amount:.2f}",
                stock=v.stock_count,
            )
            for v in sorted(variants, key=lambda v: v.variant_key)
        ]
