from enum import Enum


class OrderTab(str, Enum):
    """
    Tabs of the order views.

    Buyer view: CART, CURRENT, FINISHED, CANCELLED
    Fulfillment view: PENDING, PREPARING, ON_DELIVERY, DELIVERED
    """
    # Buyer tabs
    CART = "cart"
    CURRENT = "current"
    FINISHED = "finished"
    CANCELLED = "cancelled"

    # Fulfillment tabs (one per status)
    PENDING = "pending"
    PREPARING = "preparing"
    ON_DELIVERY = "on_delivery"
    DELIVERED = "delivered"
