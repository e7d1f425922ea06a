from enum import Enum


class OrderStatus(str, Enum):
    CART = "cart"                    # Local pre-checkout cart, never stored server-side
    PENDING = "pending"              # Placed, waiting for the branch to accept
    PREPARING = "preparing"          # Branch is preparing the order
    ON_DELIVERY = "on_delivery"      # Out for delivery (inventory deducted)
    DELIVERED = "delivered"          # Received by the buyer (final)
    CANCELLED = "cancelled"          # Cancelled before delivery (final)
