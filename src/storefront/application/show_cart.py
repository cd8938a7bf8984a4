"""Application service: Show Cart use case (query)."""

from __future__ import annotations

from storefront.application.dto import CartDTO, cart_to_dto
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory


class ShowCartHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(self, customer_id: str) -> CartDTO:
        with self._uow_factory() as uow:
            cart = uow.carts.get(customer_id)
        return cart_to_dto(cart)
