"""Abstract Unit of Work spanning the three checkout stores.

Defined in the domain layer so the checkout coordinator can ask for
atomicity without knowing what storage sits underneath.  Concrete units
(JSON files, SQL) live in the infrastructure layer.

Usage::

    with uow_factory() as uow:
        uow.inventory.reserve(...)
        uow.orders.create(...)
        uow.commit()

Leaving the block without ``commit()`` calls ``rollback()``.  Only a unit
whose ``supports_transactions`` is True actually undoes anything on
rollback; for the others the caller must compensate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.inventory_repository import InventoryRepository
from storefront.domain.repository.order_repository import OrderRepository


class UnitOfWork(ABC):

    inventory: InventoryRepository
    carts: CartRepository
    orders: OrderRepository

    supports_transactions: bool = False

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    @abstractmethod
    def commit(self) -> None:
        """Make every change since the unit began durable."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard uncommitted changes where the storage allows it."""


UnitOfWorkFactory = Callable[[], UnitOfWork]
