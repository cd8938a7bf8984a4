"""SQLAlchemy table definitions and engine setup for the SQL backend.

Prices are stored as decimal strings so amounts round-trip exactly on
every dialect.  On SQLite every transaction is opened with
``BEGIN IMMEDIATE``: the write lock is taken up front, so two checkouts
can never both read stock and then race to write it.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError

from storefront.domain.exceptions import StorageUnavailableError, TransientStorageError

logger = logging.getLogger(__name__)

metadata = MetaData()

variants = Table(
    "variants",
    metadata,
    Column("variant_key", String(255), primary_key=True),
    Column("product_id", String(120), nullable=False, index=True),
    Column("size_label", String(120), nullable=False),
    Column("product_name", String(255), nullable=False),
    Column("unit_price", String(32), nullable=False),
    Column("currency", String(3), nullable=False, default="USD"),
    Column("stock_count", Integer, nullable=False, default=0),
    CheckConstraint("stock_count >= 0", name="ck_variants_stock_non_negative"),
)

carts = Table(
    "carts",
    metadata,
    Column("customer_id", String(255), primary_key=True),
)

cart_lines = Table(
    "cart_lines",
    metadata,
    Column("customer_id", String(255), primary_key=True),
    Column("variant_key", String(255), primary_key=True),
    Column("position", Integer, nullable=False),
    Column("display_name", String(255), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", String(32), nullable=False),
    Column("currency", String(3), nullable=False, default="USD"),
    CheckConstraint("quantity > 0", name="ck_cart_lines_quantity_positive"),
)

orders = Table(
    "orders",
    metadata,
    Column("order_id", String(32), primary_key=True),
    Column("customer_id", String(255), nullable=False, index=True),
    Column("status", String(32), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
    Column("shipping_address", JSON, nullable=False),
    Column("shipping_method", String(120), nullable=False),
    Column("total_amount", String(32), nullable=False),
)

order_lines = Table(
    "order_lines",
    metadata,
    Column("order_id", String(32), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("variant_key", String(255), nullable=False),
    Column("display_name", String(255), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", String(32), nullable=False),
    Column("currency", String(3), nullable=False, default="USD"),
)


# --- Engine -------------------------------------------------------------------


def create_storage_engine(url: str, timeout: float = 5.0) -> Engine:
    """Build an engine whose waits on locks are bounded by ``timeout``."""
    connect_args: dict = {}
    if url.startswith("sqlite"):
        connect_args = {"timeout": timeout, "check_same_thread": False}
    engine = create_engine(url, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        _use_immediate_transactions(engine)
    return engine


def _use_immediate_transactions(engine: Engine) -> None:
    # Take pysqlite's own transaction handling out of the way and emit
    # BEGIN ourselves, as described in the SQLAlchemy SQLite dialect docs.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_schema(engine: Engine) -> None:
    with translate_errors():
        metadata.create_all(engine)


# --- Error mapping ------------------------------------------------------------

_TRANSIENT_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock detected",
    "could not serialize access",
)
_TRANSIENT_SQLSTATES = ("40001", "40P01")


def is_transient(exc: DBAPIError) -> bool:
    """True for conflicts that a fresh attempt of the whole unit may clear."""
    if getattr(exc.orig, "pgcode", None) in _TRANSIENT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise driver failures as the domain's storage errors."""
    try:
        yield
    except OperationalError as exc:
        if is_transient(exc):
            raise TransientStorageError(str(exc.orig)) from exc
        raise StorageUnavailableError(f"Storage unavailable: {exc.orig}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StorageUnavailableError(f"Storage connection lost: {exc.orig}") from exc
        if is_transient(exc):
            raise TransientStorageError(str(exc.orig)) from exc
        raise StorageUnavailableError(f"Storage rejected the operation: {exc.orig}") from exc
