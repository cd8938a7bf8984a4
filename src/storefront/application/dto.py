"""Data Transfer Objects — plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.  Amounts are plain
decimal strings ("25.00") so they survive JSON and display alike.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

from storefront.domain.model.cart import Cart
from storefront.domain.model.order import Order


def _amount(money) -> str:
    return f"{money.amount:.2f}"


@dataclass(frozen=True)
class CartLineDTO:
    variant_key: str
    display_name: str
    quantity: int
    unit_price: str
    line_total: str


@dataclass(frozen=True)
class CartDTO:
    """Output: ``{customer_id, items: [...]}``."""

    customer_id: str
    items: list[CartLineDTO]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class OrderLineItemDTO:
    variant_key: str
    display_name: str
    quantity: int
    unit_price: str
    line_total: str


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as returned to the caller."""

    order_id: str
    customer_id: str
    items: list[OrderLineItemDTO]
    total_amount: str
    shipping_address: dict[str, str]
    shipping_method: str
    status: str
    created_at: str  # ISO-8601, UTC

    def to_dict(self) -> dict:
        return asdict(self)


class CheckoutState(Enum):
    STARTED = "Started"
    VALIDATING = "Validating"
    RESERVING = "Reserving"
    COMMITTING = "Committing"
    SUCCEEDED = "Succeeded"
    ABORTED = "Aborted"


class CheckoutErrorCode(Enum):
    EMPTY_CART = "EmptyCart"
    LINE_ITEM_NOT_FOUND = "LineItemNotFound"
    INSUFFICIENT_STOCK = "InsufficientStock"
    CHECKOUT_CONFLICT = "CheckoutConflict"


@dataclass(frozen=True)
class CheckoutResult:
    """Tagged outcome of a checkout.

    Exactly one of ``order`` (success) or ``error`` (abort) is set.
    ``line_item`` and ``remaining_stock`` are filled in when the abort
    concerns a particular cart line.
    """

    state: CheckoutState
    order: OrderDTO | None = None
    error: CheckoutErrorCode | None = None
    message: str = ""
    line_item: str | None = None
    remaining_stock: int | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "order": self.order.to_dict()}  # type: ignore[union-attr]
        body: dict = {"ok": False, "error": self.error.value, "message": self.message}  # type: ignore[union-attr]
        if self.line_item is not None:
            body["line_item"] = self.line_item
        if self.remaining_stock is not None:
            body["remaining_stock"] = self.remaining_stock
        return body


@dataclass(frozen=True)
class InventoryLineDTO:
    variant_key: str
    product_name: str
    size_label: str
    unit_price: str
    stock: int


# --- Mapping -----------------------------------------------------------------


def cart_to_dto(cart: Cart) -> CartDTO:
    return CartDTO(
        customer_id=cart.customer_id,
        items=[
            CartLineDTO(
                variant_key=line.variant_key,
                display_name=line.display_name,
                quantity=line.quantity,
                unit_price=_amount(line.unit_price_snapshot),
                line_total=_amount(line.line_total),
            )
            for line in cart.lines
        ],
    )


def order_to_dto(order: Order) -> OrderDTO:
    return OrderDTO(
        order_id=order.id,  # type: ignore[arg-type]
        customer_id=order.customer_id,
        items=[
            OrderLineItemDTO(
                variant_key=item.variant_key,
                display_name=item.display_name,
                quantity=item.quantity.value,
                unit_price=_amount(item.unit_price),
                line_total=_amount(item.line_total),
            )
            for item in order.items
        ],
        total_amount=_amount(order.total),
        shipping_address=order.shipping_address.as_dict(),
        shipping_method=order.shipping_method,
        status=order.status.value,
        created_at=order.created_at.isoformat() if order.created_at else "",
    )
