"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the application and CLI layers can catch them uniformly and display
user-friendly messages.  Infrastructure failures live under StorageError
and are deliberately *not* DomainExceptions: they are not user-correctable.
"""

from __future__ import annotations


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


# ---------------------------------------------------------------------------
# Checkout taxonomy
# ---------------------------------------------------------------------------


class EmptyCartError(DomainException):
    """Checkout attempted with no cart lines."""

    def __init__(self, customer_id: str) -> None:
        super().__init__(f"Cart for '{customer_id}' is empty")
        self.customer_id = customer_id


class LineItemNotFoundError(DomainException):
    """A cart line's variant key no longer resolves to a real variant."""

    def __init__(self, display_name: str, variant_key: str) -> None:
        super().__init__(
            f"Product {display_name} not found (variant '{variant_key}')"
        )
        self.display_name = display_name
        self.variant_key = variant_key


class InsufficientStockError(DomainException):
    """Requested quantity exceeds available stock at reservation time.

    ``remaining`` is None when the variant vanished between lookup and
    reservation; callers treat that the same as sold out.
    """

    def __init__(
        self,
        display_name: str,
        requested: int,
        remaining: int | None = None,
    ) -> None:
        if remaining is None:
            message = f"Not enough stock for {display_name} (need {requested})"
        else:
            message = (
                f"Not enough stock for {display_name} "
                f"(need {requested}, have {remaining} available)"
            )
        super().__init__(message)
        self.display_name = display_name
        self.requested = requested
        self.remaining = remaining


class CheckoutConflictError(DomainException):
    """Checkout retries were exhausted because of storage contention."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Checkout could not complete after {attempts} attempts "
            f"due to concurrent updates; please retry"
        )
        self.attempts = attempts


# ---------------------------------------------------------------------------
# Infrastructure failures
# ---------------------------------------------------------------------------


class StorageError(Exception):
    """Base class for failures raised by a storage backend."""


class StorageUnavailableError(StorageError):
    """The underlying store is unreachable or timed out.  Never retried."""


class TransientStorageError(StorageError):
    """A write-write conflict that may succeed if the whole unit is retried."""
