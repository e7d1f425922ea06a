"""
Exceptions raised by remote collaborators (order service, realtime transport).
"""

from .base import OrderListException


class RemoteServiceException(OrderListException):
    """Base exception for failures talking to the order service."""
    pass


class NetworkException(RemoteServiceException):
    """Raised when the order service cannot be reached or answers with a server error."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Network error during {operation}: {reason}",
            details={'operation': operation, 'reason': reason}
        )
        self.operation = operation
        self.reason = reason


class AuthException(RemoteServiceException):
    """Raised when the order service rejects the session (treat as logged out)."""

    def __init__(self, operation: str):
        super().__init__(
            f"Not authorized for {operation}",
            details={'operation': operation}
        )
        self.operation = operation
