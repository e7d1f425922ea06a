from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from enums.order_status import OrderStatus
from models.order import OrderDTO


class OrderCreatedEvent(BaseModel):
    kind: Literal["order_created"] = "order_created"
    order: OrderDTO


class OrderStatusChangedEvent(BaseModel):
    kind: Literal["order_status_changed"] = "order_status_changed"
    order_id: str
    status: OrderStatus
    ordered_at: datetime | None = None
    delivered_at: datetime | None = None
    updated_at: datetime | None = None


RealtimeEvent = Annotated[Union[OrderCreatedEvent, OrderStatusChangedEvent], Field(discriminator="kind")]

realtime_event_adapter = TypeAdapter(RealtimeEvent)
