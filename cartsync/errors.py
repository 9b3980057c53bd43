"""
Cart error messages and exception taxonomy.

Messages are centralized to avoid string duplication; user-facing texts
live in the locale catalogs, these are for logs and exception args.
"""

# Store errors
ERROR_STORE_READ = "Cart store read failed"
ERROR_STORE_WRITE = "Cart store write failed"
ERROR_STORE_TIMEOUT = "Cart store operation timed out"
ERROR_CORRUPT_SNAPSHOT = "Corrupt cart snapshot"

# Precondition errors
ERROR_CART_EMPTY = "Cart is empty"
ERROR_NOT_AUTHENTICATED = "User is not authenticated"
ERROR_INVALID_QUANTITY = "Quantity must be a positive integer"

# Checkout errors
ERROR_CHECKOUT_INCOMPLETE = "Order committed but cart was not fully drained"


class CartError(Exception):
    """Base class for all cart errors."""


class StoreReadError(CartError):
    """Reading from a cart store failed."""


class StoreWriteError(CartError):
    """Writing to a cart store failed."""


class SerializationError(CartError):
    """A stored payload does not have the shape of a line item."""


class PreconditionError(CartError):
    """An operation was refused before any write was issued."""

    message_key = "cart.failed"


class EmptyCartError(PreconditionError):
    message_key = "checkout.empty_cart"

    def __init__(self) -> None:
        super().__init__(ERROR_CART_EMPTY)


class NotAuthenticatedError(PreconditionError):
    message_key = "checkout.not_authenticated"

    def __init__(self) -> None:
        super().__init__(ERROR_NOT_AUTHENTICATED)


class InvalidQuantityError(PreconditionError):
    message_key = "cart.invalid_quantity"

    def __init__(self, quantity: object) -> None:
        super().__init__(f"{ERROR_INVALID_QUANTITY}: {quantity!r}")
        self.quantity = quantity


class CheckoutIncompleteError(CartError):
    """The order was written but some cart line items could not be deleted."""

    def __init__(self, order, failures: list[BaseException]) -> None:
        super().__init__(f"{ERROR_CHECKOUT_INCOMPLETE} ({len(failures)} deletions failed)")
        self.order = order
        self.failures = failures
