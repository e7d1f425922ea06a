"""
Custom exceptions for the order list core.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application.

Exception Hierarchy:
--------------------
OrderListException (base)
├── OrderException
│   ├── OrderNotFoundException
│   ├── InsufficientStockException
│   ├── InvalidTransitionException
│   └── TransitionInProgressException
├── CartException
│   ├── EmptyCartException
│   ├── InvalidCartStateException
│   └── InvalidDeliveryContactException
└── RemoteServiceException
    ├── NetworkException
    └── AuthException

Usage:
------
Controllers raise specific exceptions:
    raise TransitionInProgressException(order_id="42")

The presentation layer catches and displays user-friendly messages:
    try:
        await controller.transition("42", OrderStatus.CANCELLED)
    except OrderListException as e:
        show_toast(controller.describe_error(e))
"""

from .base import OrderListException
from .cart import CartException, EmptyCartException, InvalidCartStateException, InvalidDeliveryContactException
from .order import (
    OrderException,
    OrderNotFoundException,
    InsufficientStockException,
    InvalidTransitionException,
    TransitionInProgressException,
)
from .remote import RemoteServiceException, NetworkException, AuthException

__all__ = [
    # Base
    'OrderListException',

    # Cart
    'CartException',
    'EmptyCartException',
    'InvalidCartStateException',
    'InvalidDeliveryContactException',

    # Order
    'OrderException',
    'OrderNotFoundException',
    'InsufficientStockException',
    'InvalidTransitionException',
    'TransitionInProgressException',

    # Remote
    'RemoteServiceException',
    'NetworkException',
    'AuthException',
]
