"""
Error Handler Utility for the order views

Provides centralized error handling for the presentation layer with:
- Localized error messages
- A specific message per error kind (generic text only for unknown kinds)
- Logging for debugging

Usage:
    from utils.error_handler import handle_service_error

    try:
        await controller.transition(order_id, OrderStatus.CANCELLED)
    except OrderListException as e:
        show_toast(handle_service_error(e, ActorRole.BUYER))
"""

import logging

from enums.actor_role import ActorRole
from exceptions import (
    OrderListException,
    OrderNotFoundException,
    InsufficientStockException,
    InvalidTransitionException,
    TransitionInProgressException,
    EmptyCartException,
    InvalidCartStateException,
    InvalidDeliveryContactException,
    NetworkException,
    AuthException,
)
from utils.localizator import Localizator

logger = logging.getLogger(__name__)

# Map exception types to localization keys
ERROR_MAPPING = {
    # Order exceptions
    OrderNotFoundException: "error_order_not_found",
    InsufficientStockException: "error_insufficient_stock",
    InvalidTransitionException: "error_invalid_transition",
    TransitionInProgressException: "error_transition_in_progress",

    # Cart exceptions
    EmptyCartException: "error_empty_cart",
    InvalidCartStateException: "error_invalid_cart_state",
    InvalidDeliveryContactException: "error_invalid_contact",

    # Remote exceptions
    NetworkException: "error_network",
    AuthException: "error_auth",
}

# Exception attributes that may appear in message templates
FORMAT_ATTRIBUTES = (
    'order_id', 'product_id', 'available', 'requested',
    'from_status', 'to_status', 'reason', 'field', 'operation',
)


def handle_service_error(exception: OrderListException, role: ActorRole = ActorRole.BUYER) -> str:
    """
    Convert a raised exception into a localized user-facing message.

    Args:
        exception: The custom exception raised by a controller or repository
        role: Viewer role (selects the buyer or staff wording)

    Returns:
        Localized error message string
    """
    logger.warning(f"Service error handled: {type(exception).__name__} - {str(exception)}")

    # Subclasses fall back to the closest mapped parent
    localization_key = None
    for exception_type in type(exception).__mro__:
        localization_key = ERROR_MAPPING.get(exception_type)
        if localization_key:
            break

    if not localization_key:
        logger.error(f"Unmapped exception type: {type(exception).__name__}")
        return Localizator.get_text(None, "error_unexpected")

    exception_data = {}
    for attribute in FORMAT_ATTRIBUTES:
        if hasattr(exception, attribute):
            value = getattr(exception, attribute)
            exception_data[attribute] = "?" if value is None else value

    try:
        return Localizator.get_text(role, localization_key).format(**exception_data)
    except KeyError as e:
        # Missing formatting parameter - log and return without formatting
        logger.error(f"Missing format parameter in error message: {e}")
        return Localizator.get_text(role, localization_key)


def handle_unexpected_error(exception: Exception) -> str:
    """
    Handle unexpected exceptions (non-OrderListException).

    Note:
        Also logs the full exception for debugging
    """
    logger.error(f"Unexpected error: {type(exception).__name__} - {str(exception)}", exc_info=True)
    return Localizator.get_text(None, "error_unexpected")
