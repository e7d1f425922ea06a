"""
Order-related exceptions.
"""

from .base import OrderListException


class OrderException(OrderListException):
    """Base exception for order-related errors."""
    pass


class OrderNotFoundException(OrderException):
    """Raised when the order service does not know the order (or it is not ours)."""

    def __init__(self, order_id: str):
        super().__init__(
            f"Order {order_id} not found",
            details={'order_id': order_id}
        )
        self.order_id = order_id


class InsufficientStockException(OrderException):
    """Raised when a line asks for more than the available stock."""

    def __init__(self, product_id: str, available: int, requested: int | None = None):
        if requested is None:
            message = f"Insufficient stock for product {product_id}: available {available}"
        else:
            message = f"Insufficient stock for product {product_id}: requested {requested}, available {available}"
        super().__init__(
            message,
            details={'product_id': product_id, 'requested': requested, 'available': available}
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidTransitionException(OrderException):
    """Raised when a status change is not a legal step of the order state machine."""

    def __init__(self, from_status: str | None, to_status: str, order_id: str | None = None):
        from_label = from_status or "unknown"
        if order_id is None:
            message = f"Invalid status transition: {from_label} -> {to_status}"
        else:
            message = f"Invalid status transition for order {order_id}: {from_label} -> {to_status}"
        super().__init__(
            message,
            details={'order_id': order_id, 'from_status': from_status, 'to_status': to_status}
        )
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status


class TransitionInProgressException(OrderException):
    """Raised when a second transition is requested while one is still in flight."""

    def __init__(self, order_id: str):
        super().__init__(
            f"A status change for order {order_id} is already in progress",
            details={'order_id': order_id}
        )
        self.order_id = order_id
