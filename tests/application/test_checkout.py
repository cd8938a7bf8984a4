"""Integration tests for the Checkout use case.

Uses in-memory fake repositories, which have no transactions, so every
failure path here goes through compensating rollback.
"""

import logging

import pytest

from storefront.application.checkout import CheckoutHandler
from storefront.application.dto import CheckoutErrorCode, CheckoutState
from storefront.domain.exceptions import (
    StorageUnavailableError,
    TransientStorageError,
    ValidationError,
)
from storefront.domain.model.cart import Cart
from storefront.domain.model.value_objects import Money
from tests.fakes import FakeStore, make_variant

ADDRESS = {"street": "1 Main St", "city": "Pune", "zip": "411001"}


def _cart(customer: str, *lines: tuple[str, int, str, str]) -> Cart:
    cart = Cart(customer_id=customer)
    for key, qty, price, name in lines:
        cart.upsert_line(key, qty, Money.of(price), name)
    return cart


def _setup(cart: Cart | None = None) -> FakeStore:
    variants = [
        make_variant("V1::250g", "Kaju Katli", "10.00", 10),
        make_variant("V2::1kg", "Barfi", "5.00", 4),
    ]
    if cart is None:
        cart = _cart(
            "alice",
            ("V1::250g", 2, "10.00", "Kaju Katli 250g"),
            ("V2::1kg", 1, "5.00", "Barfi 1kg"),
        )
    return FakeStore(variants, [cart])


class TestCheckoutHappyPath:

    def test_places_order_and_updates_everything(self):
        store = _setup()
        handler = CheckoutHandler(store)

        result = handler.handle("alice", ADDRESS, "standard")

        assert result.ok
        assert result.state == CheckoutState.SUCCEEDED
        assert result.order.total_amount == "25.00"
        assert result.order.status == "Pending"
        assert result.order.shipping_method == "standard"
        assert result.order.shipping_address == ADDRESS
        assert [i.quantity for i in result.order.items] == [2, 1]
        assert store.inventory.stock_of("V1::250g") == 8
        assert store.inventory.stock_of("V2::1kg") == 3
        assert not store.carts.has_cart("alice")

    def test_order_is_persisted(self):
        store = _setup()
        result = CheckoutHandler(store).handle("alice", ADDRESS, "standard")

        saved = store.orders.get_by_id(result.order.order_id)
        assert saved is not None
        assert saved.customer_id == "alice"
        assert saved.total == Money.of("25.00")
        assert result.order.created_at == saved.created_at.isoformat()

    def test_result_serializes_to_external_shape(self):
        store = _setup()
        body = CheckoutHandler(store).handle("alice", ADDRESS, "standard").to_dict()

        assert body["ok"] is True
        order = body["order"]
        assert set(order) == {
            "order_id", "customer_id", "items", "total_amount",
            "shipping_address", "shipping_method", "status", "created_at",
        }
        assert order["status"] == "Pending"

    def test_price_snapshot_beats_current_price(self):
        store = _setup()
        v1 = store.inventory.get("V1::250g")
        v1.unit_price = Money.of("99.00")
        store.inventory.save(v1)

        result = CheckoutHandler(store).handle("alice", ADDRESS, "standard")

        assert result.order.total_amount == "25.00"


class TestCheckoutTotal:

    def test_client_total_is_ignored(self, caplog):
        store = _setup()
        with caplog.at_level(logging.WARNING, logger="storefront.application.checkout"):
            result = CheckoutHandler(store).handle(
                "alice", ADDRESS, "standard", client_total="1.00"
            )

        assert result.order.total_amount == "25.00"
        assert str(store.orders.get_by_id(result.order.order_id).total) == "$25.00"
        assert "differs from computed" in caplog.text

    def test_unparseable_client_total_is_ignored(self):
        store = _setup()
        result = CheckoutHandler(store).handle(
            "alice", ADDRESS, "standard", client_total="free"
        )
        assert result.ok
        assert result.order.total_amount == "25.00"


class TestCheckoutEmptyCart:

    def test_missing_cart(self):
        store = _setup()
        result = CheckoutHandler(store).handle("nobody", ADDRESS, "standard")

        assert not result.ok
        assert result.state == CheckoutState.ABORTED
        assert result.error == CheckoutErrorCode.EMPTY_CART
        assert store.inventory.reserve_calls == []
        assert store.orders.all() == []

    def test_cart_emptied_by_removals(self):
        cart = _cart("bob", ("V1::250g", 1, "10.00", "Kaju Katli"))
        cart.upsert_line("V1::250g", -1, Money.of("0"), "")
        store = _setup(cart)

        result = CheckoutHandler(store).handle("bob", ADDRESS, "standard")

        assert result.error == CheckoutErrorCode.EMPTY_CART


class TestCheckoutLineItemNotFound:

    def test_deleted_product(self):
        store = _setup()
        store.inventory.delete("V2::1kg")

        result = CheckoutHandler(store).handle("alice", ADDRESS, "standard")

        assert result.error == CheckoutErrorCode.LINE_ITEM_NOT_FOUND
        assert result.line_item == "Barfi 1kg"
        assert "Barfi 1kg" in result.message
        # No stock mutation at all, not even for the valid first line
        assert store.inventory.reserve_calls == []
        assert store.inventory.stock_of("V1::250g") == 10
        assert len(store.carts.get("alice").lines) == 2
        assert store.orders.all() == []

    def test_malformed_key(self):
        store = _setup(_cart("carol", ("V1-250g", 1, "10.00", "Old style")))

        result = CheckoutHandler(store).handle("carol", ADDRESS, "standard")

        assert result.error == CheckoutErrorCode.LINE_ITEM_NOT_FOUND
        assert result.line_item == "Old style"


class TestCheckoutInsufficientStock:

    def test_rolls_back_earlier_reservations(self):
        store = _setup(_cart(
            "alice",
            ("V1::250g", 2, "10.00", "Kaju Katli 250g"),
            ("V2::1kg", 5, "5.00", "Barfi 1kg"),
        ))

        result = CheckoutHandler(store).handle("alice", ADDRESS, "standard")

        assert result.error == CheckoutErrorCode.INSUFFICIENT_STOCK
        assert result.line_item == "Barfi 1kg"
        assert result.remaining_stock == 4
        assert "Barfi 1kg" in result.message
        assert store.inventory.stock_of("V1::250g") == 10
        assert store.inventory.stock_of("V2::1kg") == 4
        assert store.inventory.release_calls == [("V1::250g", 2)]
        assert len(store.carts.get("alice").lines) == 2
        assert store.orders.all() == []

    def test_first_line_short(self):
        store = _setup(_cart("alice", ("V2::1kg", 9, "5.00", "Barfi 1kg")))

        result = CheckoutHandler(store).handle("alice", ADDRESS, "standard")

        assert result.error == CheckoutErrorCode.INSUFFICIENT_STOCK
        assert store.inventory.release_calls == []
        assert store.inventory.stock_of("V2::1kg") == 4


class TestCheckoutCommitFailure:

    def test_order_store_failure_restores_stock_and_cart(self):
        store = _setup()
        store.orders.fail_with = StorageUnavailableError("orders offline")

        with pytest.raises(StorageUnavailableError):
            CheckoutHandler(store).handle("alice", ADDRESS, "standard")

        assert store.inventory.stock_of("V1::250g") == 10
        assert store.inventory.stock_of("V2::1kg") == 4
        restored = store.carts.get("alice")
        assert [(line.variant_key, line.quantity) for line in restored.lines] == [
            ("V1::250g", 2), ("V2::1kg", 1),
        ]
        assert store.orders.all() == []

    def test_storage_unavailable_is_not_retried(self):
        store = _setup()
        store.orders.fail_with = StorageUnavailableError("orders offline")

        with pytest.raises(StorageUnavailableError):
            CheckoutHandler(store, max_attempts=3).handle("alice", ADDRESS, "standard")

        assert len(store.units) == 1


class TestCheckoutRetry:

    def test_transient_conflict_is_retried(self):
        store = _setup()
        failures = iter([TransientStorageError("database is locked")])

        def flaky_factory():
            uow = store()
            exc = next(failures, None)
            if exc is not None:
                uow.orders = _FailingOrders(uow.orders, exc)
            return uow

        result = CheckoutHandler(flaky_factory, max_attempts=3).handle(
            "alice", ADDRESS, "standard"
        )

        assert result.ok
        assert result.attempts == 2
        # The failed attempt was compensated before the retry
        assert store.inventory.stock_of("V1::250g") == 8
        assert store.inventory.stock_of("V2::1kg") == 3
        assert len(store.orders.all()) == 1

    def test_exhausted_retries_become_conflict(self):
        store = _setup()

        def always_conflicting():
            uow = store()
            uow.orders = _FailingOrders(uow.orders, TransientStorageError("database is locked"))
            return uow

        result = CheckoutHandler(always_conflicting, max_attempts=2).handle(
            "alice", ADDRESS, "standard"
        )

        assert result.error == CheckoutErrorCode.CHECKOUT_CONFLICT
        assert result.attempts == 2
        assert len(store.units) == 2
        assert store.inventory.stock_of("V1::250g") == 10
        assert len(store.carts.get("alice").lines) == 2

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValidationError, match="max_attempts"):
            CheckoutHandler(FakeStore(), max_attempts=0)


class TestCheckoutInputValidation:

    def test_blank_shipping_method(self):
        store = _setup()
        with pytest.raises(ValidationError, match="Shipping method"):
            CheckoutHandler(store).handle("alice", ADDRESS, " ")
        assert store.units == []

    def test_missing_address(self):
        store = _setup()
        with pytest.raises(ValidationError, match="Shipping address"):
            CheckoutHandler(store).handle("alice", {}, "standard")

    def test_blank_customer(self):
        with pytest.raises(ValidationError, match="Customer id"):
            CheckoutHandler(_setup()).handle("", ADDRESS, "standard")


class TestCheckoutCartRace:

    def test_cart_checked_out_elsewhere_mid_flight(self):
        store = _setup()
        factory = _interfering(store, lambda: store.carts.clear("alice"))

        result = CheckoutHandler(factory).handle("alice", ADDRESS, "standard")

        assert result.error == CheckoutErrorCode.EMPTY_CART
        assert result.attempts == 2
        assert store.inventory.stock_of("V1::250g") == 10
        assert store.inventory.stock_of("V2::1kg") == 4
        assert store.orders.all() == []

    def test_line_added_mid_flight_is_not_lost(self):
        store = _setup()

        def add_line():
            cart = store.carts.get("alice")
            cart.upsert_line("V2::1kg", 1, Money.of("5.00"), "Barfi 1kg")
            store.carts.save(cart)

        result = CheckoutHandler(_interfering(store, add_line)).handle(
            "alice", ADDRESS, "standard"
        )

        assert result.ok
        assert result.attempts == 2
        assert [i.quantity for i in result.order.items] == [2, 2]
        assert result.order.total_amount == "30.00"
        assert store.inventory.stock_of("V1::250g") == 8
        assert store.inventory.stock_of("V2::1kg") == 2
        assert not store.carts.has_cart("alice")
        assert len(store.orders.all()) == 1


def _interfering(store: FakeStore, interfere):
    """Factory whose first unit runs ``interfere`` just before taking the cart."""
    pending = [interfere]

    def factory():
        uow = store()
        if pending:
            uow.carts = _InterferingCarts(uow.carts, pending.pop())
        return uow

    return factory


class _InterferingCarts:
    """Cart store stand-in that lets another request act before ``take``."""

    def __init__(self, inner, interfere):
        self._inner = inner
        self._interfere = interfere

    def take(self, expected):
        self._interfere()
        return self._inner.take(expected)

    def __getattr__(self, name):
        return getattr(self._inner, name)


class _FailingOrders:
    """Order store stand-in whose ``create`` always raises ``exc``."""

    def __init__(self, inner, exc):
        self._inner = inner
        self._exc = exc

    def create(self, order):
        raise self._exc

    def __getattr__(self, name):
        return getattr(self._inner, name)
