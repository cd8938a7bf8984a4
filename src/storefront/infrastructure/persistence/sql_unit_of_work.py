"""Unit of Work backed by a single database transaction.

Everything the three repositories do between ``__enter__`` and
``commit()`` shares one connection and one transaction, so a checkout's
stock decrements, order insert and cart delete become visible together
or not at all.
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Connection, Engine, RootTransaction
from sqlalchemy.exc import DBAPIError

from storefront.domain.repository.unit_of_work import UnitOfWork
from storefront.infrastructure.persistence.sql_cart_repository import SqlCartRepository
from storefront.infrastructure.persistence.sql_inventory_repository import (
    SqlInventoryRepository,
)
from storefront.infrastructure.persistence.sql_order_repository import SqlOrderRepository
from storefront.infrastructure.persistence.sql_schema import translate_errors

logger = logging.getLogger(__name__)


class SqlUnitOfWork(UnitOfWork):

    supports_transactions = True

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._connection: Connection | None = None
        self._transaction: RootTransaction | None = None

    def __enter__(self) -> SqlUnitOfWork:
        with translate_errors():
            self._connection = self._engine.connect()
            try:
                self._transaction = self._connection.begin()
            except BaseException:
                self._connection.close()
                raise
        self.inventory = SqlInventoryRepository(self._connection)
        self.carts = SqlCartRepository(self._connection)
        self.orders = SqlOrderRepository(self._connection)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.rollback()
        finally:
            if self._connection is not None:
                self._connection.close()
            self._connection = None
            self._transaction = None

    def commit(self) -> None:
        if self._transaction is None:
            raise RuntimeError("Unit of work used outside a with-block")
        with translate_errors():
            self._transaction.commit()

    def rollback(self) -> None:
        if self._transaction is None or not self._transaction.is_active:
            return
        try:
            self._transaction.rollback()
        except DBAPIError as exc:
            # Usually the connection is already gone; keep the original error.
            logger.warning("Rollback failed: %s", exc)
