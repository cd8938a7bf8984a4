"""Unit of Work over the JSON data directory.

JSON files cannot take part in a shared transaction: every repository
call is durable the moment it returns.  ``supports_transactions`` is
therefore False and the checkout coordinator compensates instead.
"""

from __future__ import annotations

from pathlib import Path

from storefront.domain.repository.unit_of_work import UnitOfWork
from storefront.infrastructure.persistence.json_cart_repository import JsonCartRepository
from storefront.infrastructure.persistence.json_file import DEFAULT_LOCK_TIMEOUT
from storefront.infrastructure.persistence.json_inventory_repository import (
    JsonInventoryRepository,
)
from storefront.infrastructure.persistence.json_order_repository import JsonOrderRepository


class JsonUnitOfWork(UnitOfWork):

    supports_transactions = False

    def __init__(self, data_dir: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.inventory = JsonInventoryRepository(data_dir / "variants.json", timeout)
        self.carts = JsonCartRepository(data_dir / "carts.json", timeout)
        self.orders = JsonOrderRepository(data_dir / "orders.json", timeout)

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass
