"""Tests for the SQL backend: repositories, transactions and contention.

Runs against a SQLite file in ``tmp_path`` so several connections (and
threads) can share it.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from functools import partial

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from storefront.application.checkout import CheckoutHandler
from storefront.application.dto import CheckoutErrorCode
from storefront.domain.exceptions import (
    EntityNotFoundError,
    InsufficientStockError,
    StorageUnavailableError,
    TransientStorageError,
    ValidationError,
)
from storefront.domain.model.cart import Cart
from storefront.domain.model.order import Order
from storefront.domain.model.value_objects import Money, ShippingAddress
from storefront.infrastructure.persistence.sql_order_repository import SqlOrderRepository
from storefront.infrastructure.persistence.sql_schema import (
    create_storage_engine,
    init_schema,
    translate_errors,
)
from storefront.infrastructure.persistence.sql_unit_of_work import SqlUnitOfWork
from tests.fakes import make_variant

ADDRESS = {"street": "1 Main St", "city": "Pune"}


@pytest.fixture
def engine(tmp_path):
    engine = create_storage_engine(f"sqlite:///{tmp_path / 'test.db'}", timeout=5)
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def uow_factory(engine):
    factory = partial(SqlUnitOfWork, engine)
    with factory() as uow:
        uow.inventory.save(make_variant("V1::250g", "Kaju Katli", "10.00", 10))
        uow.inventory.save(make_variant("V2::1kg", "Barfi", "5.00", 4))
        uow.commit()
    return factory


def _put_cart(factory, customer: str, *lines: tuple[str, int, str, str]) -> None:
    cart = Cart(customer_id=customer)
    for key, qty, price, name in lines:
        cart.upsert_line(key, qty, Money.of(price), name)
    with factory() as uow:
        uow.carts.save(cart)
        uow.commit()


def _stock(factory, key: str) -> int:
    with factory() as uow:
        return uow.inventory.get(key).stock_count


def _cart_lines(factory, customer: str) -> list[tuple[str, int]]:
    with factory() as uow:
        return [(l.variant_key, l.quantity) for l in uow.carts.get(customer).lines]


class TestSqlInventoryRepository:

    def test_reserve_and_release(self, uow_factory):
        with uow_factory() as uow:
            assert uow.inventory.reserve("V1::250g", 4) == 6
            assert uow.inventory.release("V1::250g", 1) == 7
            uow.commit()
        assert _stock(uow_factory, "V1::250g") == 7

    def test_reserve_beyond_stock(self, uow_factory):
        with uow_factory() as uow:
            with pytest.raises(InsufficientStockError) as excinfo:
                uow.inventory.reserve("V2::1kg", 5)
        assert excinfo.value.remaining == 4
        assert _stock(uow_factory, "V2::1kg") == 4

    def test_reserve_missing_variant(self, uow_factory):
        with uow_factory() as uow:
            with pytest.raises(InsufficientStockError) as excinfo:
                uow.inventory.reserve("V9::1l", 1)
        assert excinfo.value.remaining is None

    def test_reserve_zero_rejected(self, uow_factory):
        with uow_factory() as uow:
            with pytest.raises(ValidationError):
                uow.inventory.reserve("V1::250g", 0)

    def test_release_missing_variant(self, uow_factory):
        with uow_factory() as uow:
            with pytest.raises(EntityNotFoundError):
                uow.inventory.release("V9::1l", 1)

    def test_uncommitted_changes_are_rolled_back(self, uow_factory):
        with uow_factory() as uow:
            uow.inventory.reserve("V1::250g", 5)
        assert _stock(uow_factory, "V1::250g") == 10

    def test_list_and_delete(self, uow_factory):
        with uow_factory() as uow:
            uow.inventory.delete("V2::1kg")
            keys = [v.variant_key for v in uow.inventory.list_all()]
            uow.commit()
        assert keys == ["V1::250g"]


class TestSqlCartRepository:

    def test_round_trip_and_clear(self, uow_factory):
        _put_cart(
            uow_factory, "alice",
            ("V2::1kg", 1, "5.00", "Barfi"),
            ("V1::250g", 2, "10.00", "Kaju Katli"),
        )
        assert _cart_lines(uow_factory, "alice") == [("V2::1kg", 1), ("V1::250g", 2)]

        with uow_factory() as uow:
            uow.carts.clear("alice")
            uow.carts.clear("alice")
            uow.commit()
        assert _cart_lines(uow_factory, "alice") == []

    def test_resave_replaces_lines(self, uow_factory):
        _put_cart(uow_factory, "alice", ("V1::250g", 2, "10.00", "Kaju Katli"))
        _put_cart(uow_factory, "alice", ("V2::1kg", 3, "5.00", "Barfi"))
        assert _cart_lines(uow_factory, "alice") == [("V2::1kg", 3)]

    def test_take_only_unchanged_cart(self, uow_factory):
        _put_cart(uow_factory, "alice", ("V1::250g", 2, "10.00", "Kaju Katli"))
        with uow_factory() as uow:
            seen = uow.carts.get("alice")
        _put_cart(uow_factory, "alice", ("V1::250g", 3, "10.00", "Kaju Katli"))

        with uow_factory() as uow:
            assert uow.carts.take(seen) is False
            current = uow.carts.get("alice")
            assert uow.carts.take(current) is True
            assert uow.carts.take(current) is False
            uow.commit()

        assert _cart_lines(uow_factory, "alice") == []


class TestSqlOrderRepository:

    def _order(self, customer="alice") -> Order:
        cart = Cart(customer_id=customer)
        cart.upsert_line("V1::250g", 2, Money.of("10.00"), "Kaju Katli")
        return Order.place(cart, ShippingAddress.of(ADDRESS), "standard")

    def test_round_trip(self, uow_factory):
        with uow_factory() as uow:
            order_id = uow.orders.create(self._order())
            uow.commit()

        with uow_factory() as uow:
            loaded = uow.orders.get_by_id(order_id)

        assert loaded.total == Money.of("20.00")
        assert loaded.shipping_address.as_dict() == ADDRESS
        assert loaded.created_at.tzinfo is not None
        assert loaded.items[0].display_name == "Kaju Katli"

    def test_missing_order(self, uow_factory):
        with uow_factory() as uow:
            assert uow.orders.get_by_id("nope") is None

    def test_refuses_to_overwrite(self, uow_factory):
        order = self._order()
        with uow_factory() as uow:
            uow.orders.create(order)
            with pytest.raises(ValidationError, match="already exists"):
                uow.orders.create(order)

    def test_list_by_customer_newest_first(self, uow_factory):
        ids = []
        for customer in ("alice", "bob", "alice"):
            with uow_factory() as uow:
                ids.append(uow.orders.create(self._order(customer)))
                uow.commit()

        with uow_factory() as uow:
            listed = [o.id for o in uow.orders.list_by_customer("alice")]

        assert listed == [ids[2], ids[0]]


class TestSqlCheckout:

    def test_places_order_in_one_transaction(self, uow_factory):
        _put_cart(
            uow_factory, "alice",
            ("V1::250g", 2, "10.00", "Kaju Katli"),
            ("V2::1kg", 1, "5.00", "Barfi"),
        )

        result = CheckoutHandler(uow_factory).handle("alice", ADDRESS, "standard")

        assert result.ok
        assert result.order.total_amount == "25.00"
        assert _stock(uow_factory, "V1::250g") == 8
        assert _stock(uow_factory, "V2::1kg") == 3
        assert _cart_lines(uow_factory, "alice") == []

    def test_insufficient_stock_rolls_back_transaction(self, uow_factory):
        _put_cart(
            uow_factory, "alice",
            ("V1::250g", 2, "10.00", "Kaju Katli"),
            ("V2::1kg", 5, "5.00", "Barfi"),
        )

        result = CheckoutHandler(uow_factory).handle("alice", ADDRESS, "standard")

        assert result.error == CheckoutErrorCode.INSUFFICIENT_STOCK
        assert result.line_item == "Barfi"
        assert result.remaining_stock == 4
        assert _stock(uow_factory, "V1::250g") == 10
        assert _cart_lines(uow_factory, "alice") == [("V1::250g", 2), ("V2::1kg", 5)]

    def test_failure_after_cart_is_taken_rolls_back_everything(self, uow_factory, monkeypatch):
        _put_cart(uow_factory, "alice", ("V1::250g", 2, "10.00", "Kaju Katli"))

        def broken_create(self, order):
            raise StorageUnavailableError("disk I/O error")

        monkeypatch.setattr(SqlOrderRepository, "create", broken_create)

        with pytest.raises(StorageUnavailableError):
            CheckoutHandler(uow_factory).handle("alice", ADDRESS, "standard")

        monkeypatch.undo()
        assert _stock(uow_factory, "V1::250g") == 10
        assert _cart_lines(uow_factory, "alice") == [("V1::250g", 2)]
        with uow_factory() as uow:
            assert uow.orders.list_by_customer("alice") == []

    def test_two_checkouts_for_scarce_stock(self, uow_factory):
        _put_cart(uow_factory, "alice", ("V2::1kg", 2, "5.00", "Barfi"))
        _put_cart(uow_factory, "bob", ("V2::1kg", 2, "5.00", "Barfi"))
        with uow_factory() as uow:
            uow.inventory.save(make_variant("V2::1kg", "Barfi", "5.00", 3))
            uow.commit()

        handler = CheckoutHandler(uow_factory)
        barrier = threading.Barrier(2)

        def go(customer):
            barrier.wait()
            return handler.handle(customer, ADDRESS, "standard")

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(go, ["alice", "bob"]))

        assert sum(r.ok for r in results) == 1
        assert [r.error for r in results if not r.ok] == [CheckoutErrorCode.INSUFFICIENT_STOCK]
        assert _stock(uow_factory, "V2::1kg") == 1

    def test_lock_contention_exhausts_into_conflict(self, tmp_path, uow_factory):
        _put_cart(uow_factory, "alice", ("V1::250g", 1, "10.00", "Kaju Katli"))
        impatient = create_storage_engine(f"sqlite:///{tmp_path / 'test.db'}", timeout=0.05)
        try:
            # Another writer holds the database lock for the whole checkout.
            with uow_factory():
                result = CheckoutHandler(
                    partial(SqlUnitOfWork, impatient), max_attempts=2
                ).handle("alice", ADDRESS, "standard")
        finally:
            impatient.dispose()

        assert result.error == CheckoutErrorCode.CHECKOUT_CONFLICT
        assert result.attempts == 2
        assert _stock(uow_factory, "V1::250g") == 10


class TestSqlErrors:

    def test_locked_database_is_transient(self, tmp_path, uow_factory):
        impatient = create_storage_engine(f"sqlite:///{tmp_path / 'test.db'}", timeout=0.05)
        try:
            with uow_factory():
                with pytest.raises(TransientStorageError):
                    with SqlUnitOfWork(impatient):
                        pass
        finally:
            impatient.dispose()

    def test_unreachable_database_is_unavailable(self, tmp_path):
        engine = create_storage_engine(
            f"sqlite:///{tmp_path / 'missing-dir' / 'x.db'}", timeout=0.05
        )
        try:
            with pytest.raises(StorageUnavailableError):
                init_schema(engine)
        finally:
            engine.dispose()

    def test_constraint_violation_is_storage_error(self):
        with pytest.raises(StorageUnavailableError, match="rejected"):
            with translate_errors():
                raise IntegrityError(
                    "INSERT INTO orders", {}, Exception("UNIQUE constraint failed: orders.order_id")
                )

    def test_lock_message_is_transient(self):
        with pytest.raises(TransientStorageError):
            with translate_errors():
                raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
