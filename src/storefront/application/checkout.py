"""Application service: Checkout use case.

Turns a customer's cart into a pending order.  The four effects of a
successful checkout (N stock decrements, one order insert, one cart
delete) either all happen or none do:

- On transactional storage the whole attempt runs inside one unit of
  work and any failure simply rolls it back.
- On storage without transactions every applied effect is recorded in a
  compensation ledger and undone, newest first, on failure.  A crash in
  the middle of that window can leave stock under-counted; this is the
  accepted limitation of the fallback.

Transient conflicts restart the attempt from scratch, up to
``max_attempts`` times.  The cart is consumed with a conditional take, so
a cart that changed or was already checked out since it was read counts
as such a conflict; the fresh attempt sees the new cart or an empty one.
Validation and stock failures come back as a tagged ``CheckoutResult``;
only storage outages escape as exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from storefront.application.dto import (
    CheckoutErrorCode,
    CheckoutResult,
    CheckoutState,
    order_to_dto,
)
from storefront.domain.exceptions import (
    CheckoutConflictError,
    EmptyCartError,
    InsufficientStockError,
    LineItemNotFoundError,
    TransientStorageError,
    ValidationError,
)
from storefront.domain.model.order import Order
from storefront.domain.model.value_objects import Money, ShippingAddress
from storefront.domain.repository.unit_of_work import UnitOfWork, UnitOfWorkFactory
from storefront.domain.service.inventory_reservation_service import (
    CompensationLedger,
    InventoryReservationService,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

# Which states may move to which.  ABORTED is terminal, as is SUCCEEDED.
_TRANSITIONS: dict[CheckoutState, tuple[CheckoutState, ...]] = {
    CheckoutState.STARTED: (CheckoutState.VALIDATING,),
    CheckoutState.VALIDATING: (CheckoutState.RESERVING, CheckoutState.ABORTED),
    CheckoutState.RESERVING: (CheckoutState.COMMITTING, CheckoutState.ABORTED),
    CheckoutState.COMMITTING: (CheckoutState.SUCCEEDED, CheckoutState.ABORTED),
    CheckoutState.SUCCEEDED: (),
    CheckoutState.ABORTED: (),
}


class _CheckoutRun:
    """Tracks the state of a single checkout attempt."""

    def __init__(self, customer_id: str, attempt: int) -> None:
        self.customer_id = customer_id
        self.attempt = attempt
        self.state = CheckoutState.STARTED

    def advance(self, new_state: CheckoutState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal checkout transition {self.state.value} -> {new_state.value}"
            )
        logger.debug(
            "checkout customer=%s attempt=%d %s -> %s",
            self.customer_id, self.attempt, self.state.value, new_state.value,
        )
        self.state = new_state

    def abort(self) -> None:
        # STARTED has nothing to undo and cannot fail before VALIDATING.
        if self.state not in (CheckoutState.SUCCEEDED, CheckoutState.ABORTED):
            self.advance(CheckoutState.ABORTED)


class CheckoutHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        self._uow_factory = uow_factory
        self._max_attempts = max_attempts

    def handle(
        self,
        customer_id: str,
        shipping_address: Mapping[str, Any],
        shipping_method: str,
        client_total: str | None = None,
    ) -> CheckoutResult:
        """Check out the customer's cart.

        Raises ValidationError for malformed input (blank customer,
        address or method) before touching storage, and
        StorageUnavailableError if the store cannot be reached.  Every
        other failure is returned as an aborted ``CheckoutResult``.
        """
        if not customer_id or not customer_id.strip():
            raise ValidationError("Customer id is required")
        address = ShippingAddress.of(shipping_address)
        if not shipping_method or not shipping_method.strip():
            raise ValidationError("Shipping method is required")

        for attempt in range(1, self._max_attempts + 1):
            run = _CheckoutRun(customer_id, attempt)
            try:
                order = self._attempt(run, address, shipping_method)
            except TransientStorageError as exc:
                logger.warning(
                    "Checkout for %s conflicted on attempt %d/%d: %s",
                    customer_id, attempt, self._max_attempts, exc,
                )
                continue
            except EmptyCartError as exc:
                return self._aborted(CheckoutErrorCode.EMPTY_CART, exc, attempt)
            except LineItemNotFoundError as exc:
                return self._aborted(
                    CheckoutErrorCode.LINE_ITEM_NOT_FOUND, exc, attempt,
                    line_item=exc.display_name,
                )
            except InsufficientStockError as exc:
                return self._aborted(
                    CheckoutErrorCode.INSUFFICIENT_STOCK, exc, attempt,
                    line_item=exc.display_name,
                    remaining_stock=exc.remaining,
                )

            self._check_client_total(order, client_total)
            logger.info(
                "Order %s placed for %s: %d item(s), total %s",
                order.id, customer_id, len(order.items), order.total,
            )
            return CheckoutResult(
                state=CheckoutState.SUCCEEDED,
                order=order_to_dto(order),
                attempts=attempt,
            )

        conflict = CheckoutConflictError(self._max_attempts)
        logger.warning("Checkout for %s gave up: %s", customer_id, conflict)
        return self._aborted(
            CheckoutErrorCode.CHECKOUT_CONFLICT, conflict, self._max_attempts
        )

    # --- One attempt ----------------------------------------------------------

    def _attempt(
        self,
        run: _CheckoutRun,
        address: ShippingAddress,
        shipping_method: str,
    ) -> Order:
        with self._uow_factory() as uow:
            ledger = CompensationLedger()
            try:
                return self._execute(uow, ledger, run, address, shipping_method)
            except Exception:
                run.abort()
                self._unwind(uow, ledger, run)
                raise

    def _execute(
        self,
        uow: UnitOfWork,
        ledger: CompensationLedger,
        run: _CheckoutRun,
        address: ShippingAddress,
        shipping_method: str,
    ) -> Order:
        run.advance(CheckoutState.VALIDATING)
        cart = uow.carts.get(run.customer_id)
        if cart.is_empty:
            raise EmptyCartError(run.customer_id)

        svc = InventoryReservationService(uow.inventory)
        svc.validate_cart(cart)

        run.advance(CheckoutState.RESERVING)
        svc.reserve_for_cart(cart, ledger)

        run.advance(CheckoutState.COMMITTING)
        order = Order.place(cart, address, shipping_method)

        snapshot = cart.copy()
        if not uow.carts.take(snapshot):
            raise TransientStorageError(
                f"Cart for '{run.customer_id}' changed during checkout"
            )
        ledger.record(
            f"restore cart of {run.customer_id}",
            lambda: uow.carts.save(snapshot),
        )
        # Append-only and last: nothing after it can fail except commit.
        uow.orders.create(order)
        uow.commit()
        ledger.discard()

        run.advance(CheckoutState.SUCCEEDED)
        return order

    def _unwind(
        self,
        uow: UnitOfWork,
        ledger: CompensationLedger,
        run: _CheckoutRun,
    ) -> None:
        if uow.supports_transactions:
            # The unit rolls back on exit.
            ledger.discard()
            return
        if not len(ledger):
            return
        logger.warning(
            "Rolling back %d effect(s) of checkout for %s (attempt %d)",
            len(ledger), run.customer_id, run.attempt,
        )
        failed = ledger.compensate()
        if failed:
            logger.error(
                "Checkout for %s could not be fully rolled back; "
                "manual correction needed for: %s",
                run.customer_id, "; ".join(failed),
            )

    # --- Helpers --------------------------------------------------------------

    @staticmethod
    def _aborted(
        code: CheckoutErrorCode,
        exc: Exception,
        attempts: int,
        line_item: str | None = None,
        remaining_stock: int | None = None,
    ) -> CheckoutResult:
        logger.info("Checkout aborted (%s): %s", code.value, exc)
        return CheckoutResult(
            state=CheckoutState.ABORTED,
            error=code,
            message=str(exc),
            line_item=line_item,
            remaining_stock=remaining_stock,
            attempts=attempts,
        )

    @staticmethod
    def _check_client_total(order: Order, client_total: str | None) -> None:
        """The persisted total is always the server's; only report drift."""
        if client_total is None:
            return
        try:
            claimed = Money.of(client_total)
        except ValidationError:
            logger.warning("Ignoring unparseable client total %r", client_total)
            return
        if claimed.amount != order.total.amount:
            logger.warning(
                "Client total %s for order %s differs from computed %s; "
                "keeping computed value",
                claimed, order.id, order.total,
            )
