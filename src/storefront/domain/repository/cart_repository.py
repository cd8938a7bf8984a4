"""Abstract repository for the Cart aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.cart import Cart


class CartRepository(ABC):

    @abstractmethod
    def get(self, customer_id: str) -> Cart:
        """Return the customer's cart; an empty one when none is stored."""

    @abstractmethod
    def save(self, cart: Cart) -> None:
        """Persist the cart.  A cart without lines is removed instead."""

    @abstractmethod
    def clear(self, customer_id: str) -> None:
        """Remove the cart entirely.  Succeeds when there is nothing to remove."""

    @abstractmethod
    def take(self, expected: Cart) -> bool:
        """Remove the stored cart only if it still equals ``expected``.

        Returns False, leaving storage untouched, when the cart is gone or
        has changed since ``expected`` was read.
        """
