"""
Cart-related exceptions.
"""

from .base import OrderListException


class CartException(OrderListException):
    """Base exception for cart-related errors."""
    pass


class EmptyCartException(CartException):
    """Raised when trying to checkout with an empty cart (or an unknown selected line)."""

    def __init__(self, identity_key: str):
        super().__init__(
            f"Cart is empty for {identity_key}",
            details={'identity_key': identity_key}
        )
        self.identity_key = identity_key


class InvalidCartStateException(CartException):
    """Raised when the cart is in an invalid state for the operation."""

    def __init__(self, identity_key: str, reason: str):
        super().__init__(
            f"Invalid cart state for {identity_key}: {reason}",
            details={'identity_key': identity_key, 'reason': reason}
        )
        self.identity_key = identity_key
        self.reason = reason


class InvalidDeliveryContactException(CartException):
    """Raised when the delivery contact for a checkout is incomplete or malformed."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid delivery contact ({field}): {reason}",
            details={'field': field, 'reason': reason}
        )
        self.field = field
        self.reason = reason
