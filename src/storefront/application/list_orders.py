"""Application service: List Orders use case (query).

Returns a customer's order history, most recent first.
"""

from __future__ import annotations

from storefront.application.dto import OrderDTO, order_to_dto
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory


class ListOrdersHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(self, customer_id: str) -> list[OrderDTO]:
        with self._uow_factory() as uow:
            orders = uow.orders.list_by_customer(customer_id)
        return [order_to_dto(order) for order in orders]
