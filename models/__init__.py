"""
Models Package

SQLAlchemy tables (durable cart storage) and the pydantic DTOs shared by
the cart store, the order repository and the order list controllers.
"""

from models.base import Base
from models.cart import CartLine, CartLineDTO, CartDTO
from models.identity import IdentityDTO
from models.notification import NotificationDTO
from models.order import CART_ORDER_ID, OrderDTO, OrderLineDTO, DeliveryContactDTO
from models.realtime_event import OrderCreatedEvent, OrderStatusChangedEvent, RealtimeEvent, realtime_event_adapter

__all__ = [
    'Base',
    'CartLine',
    'CartLineDTO',
    'CartDTO',
    'IdentityDTO',
    'NotificationDTO',
    'CART_ORDER_ID',
    'OrderDTO',
    'OrderLineDTO',
    'DeliveryContactDTO',
    'OrderCreatedEvent',
    'OrderStatusChangedEvent',
    'RealtimeEvent',
    'realtime_event_adapter',
]
