from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from enums.order_status import OrderStatus

# Reserved order id of the synthetic cart-order (never assigned by the server)
CART_ORDER_ID = "local_cart"


class OrderLineDTO(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal
    product_name: str | None = None
    seller_ref: str | None = None
    image_url: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class DeliveryContactDTO(BaseModel):
    full_name: str
    contact_number: str  # +639XXXXXXXXX
    barangay_id: str | None = None
    delivery_address: str | None = None


class OrderDTO(BaseModel):
    order_id: str
    status: OrderStatus
    lines: list[OrderLineDTO] = []
    total_price: Decimal = Decimal("0")  # Sum of lines, delivery excluded
    delivery_fee: Decimal | None = None  # None = not known yet ("fee may vary")
    ordered_at: datetime | None = None
    delivered_at: datetime | None = None  # Set if and only if status is DELIVERED
    updated_at: datetime | None = None
    contact: DeliveryContactDTO | None = None
    branch_ref: str | None = None
    buyer_name: str | None = None

    @property
    def is_cart_order(self) -> bool:
        return self.order_id == CART_ORDER_ID

    @property
    def last_activity_at(self) -> datetime | None:
        timestamps = [ts for ts in (self.updated_at, self.delivered_at, self.ordered_at) if ts is not None]
        return max(timestamps) if timestamps else None

    def with_status(self, status: OrderStatus, at: datetime) -> "OrderDTO":
        """Copy with a new status, keeping delivered_at in step with DELIVERED."""
        if status == OrderStatus.DELIVERED:
            delivered_at = self.delivered_at or at
        else:
            delivered_at = None
        return self.model_copy(update={
            'status': status,
            'updated_at': at,
            'delivered_at': delivered_at,
        })


def activity_sort_key(order: OrderDTO) -> float:
    """Sort key for newest-activity-first listings; orders without timestamps sort last."""
    last_activity = order.last_activity_at
    if last_activity is None:
        return float("-inf")
    return last_activity.timestamp()
