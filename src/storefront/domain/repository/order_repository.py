"""Abstract repository for the Order aggregate.

Orders are append-only: there is no update and no delete.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.order import Order


class OrderRepository(ABC):

    @abstractmethod
    def create(self, order: Order) -> str:
        """Assign an id and timestamp, persist, and return the id.

        Raises ValidationError if the order already carries an id.
        """

    @abstractmethod
    def get_by_id(self, order_id: str) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    def list_by_customer(self, customer_id: str) -> list[Order]:
        """Return a customer's orders, most recent first."""
