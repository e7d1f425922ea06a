"""
Order projection helpers.

Pure functions that turn the cart, the cached server orders and realtime
events into the ordered list of orders a view renders. Nothing here touches
the network or the cart storage.
"""
import logging
from datetime import datetime
from typing import Iterable

from models.cart import CartDTO
from models.order import CART_ORDER_ID, OrderDTO, OrderLineDTO, activity_sort_key
from models.realtime_event import RealtimeEvent, OrderCreatedEvent
from enums.order_status import OrderStatus
from utils.localizator import Localizator
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)


def build_cart_order(cart: CartDTO) -> OrderDTO | None:
    """
    Synthesize the cart-order for a non-empty cart.

    The delivery fee stays unknown (None) until the server quotes it, so it
    must be shown as "fee may vary" and never as a final zero.
    """
    if cart.is_empty:
        return None
    lines = [
        OrderLineDTO(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            product_name=line.product_name,
            seller_ref=line.seller_ref,
            image_url=line.image_url,
        )
        for line in cart.lines
    ]
    seller_refs = {line.seller_ref for line in cart.lines if line.seller_ref}
    return OrderDTO(
        order_id=CART_ORDER_ID,
        status=OrderStatus.CART,
        lines=lines,
        total_price=cart.total_price,
        delivery_fee=None,
        branch_ref=seller_refs.pop() if len(seller_refs) == 1 else None,
    )


def pick_fresher(held: OrderDTO | None, incoming: OrderDTO) -> OrderDTO:
    """
    Last-write-wins between two copies of the same order.

    Statuses only move forward, so a copy further along the pipeline is the
    later write. Between copies in the same status the later activity
    timestamp wins, and the incoming copy wins a tie.
    """
    if held is None:
        return incoming

    if OrderStateMachine.is_reachable(incoming.status, held.status):
        return held
    if OrderStateMachine.is_reachable(held.status, incoming.status):
        return incoming

    held_at, incoming_at = held.last_activity_at, incoming.last_activity_at
    if held_at is not None and incoming_at is not None and held_at > incoming_at:
        return held
    return incoming


def merge_orders(server_orders: Iterable[OrderDTO], overlay: dict[str, OrderDTO]) -> dict[str, OrderDTO]:
    """De-duplicate by order id: cached server copies overlaid with realtime/reconciled copies."""
    merged: dict[str, OrderDTO] = {}
    for order in server_orders:
        merged[order.order_id] = pick_fresher(merged.get(order.order_id), order)
    for order_id, order in overlay.items():
        merged[order_id] = pick_fresher(merged.get(order_id), order)
    return merged


def sort_orders(cart_order: OrderDTO | None, orders: Iterable[OrderDTO]) -> list[OrderDTO]:
    """Cart-order pinned first, then newest activity first."""
    view = sorted((order for order in orders if not order.is_cart_order), key=activity_sort_key, reverse=True)
    if cart_order is not None:
        view.insert(0, cart_order)
    return view


def merge_realtime_event(current: OrderDTO | None, event: RealtimeEvent, now: datetime) -> OrderDTO | None:
    """
    Apply one realtime event to the locally held copy of its order.

    Args:
        current: Order as currently projected (None if unknown)
        event: OrderCreatedEvent or OrderStatusChangedEvent
        now: Timestamp used when the event carries none

    Returns:
        The new copy of the order, or None when the event is discarded:
        a creation for an order already present, a status change for an
        unknown order, or a status not strictly ahead of the held one
    """
    if isinstance(event, OrderCreatedEvent):
        if current is not None:
            logger.debug(f"Order {event.order.order_id} already present, creation event ignored")
            return None
        # Push payloads of new orders carry no timestamps
        if event.order.last_activity_at is None:
            return event.order.model_copy(update={'ordered_at': now})
        return event.order

    if current is None:
        logger.debug(f"Status event for unknown order {event.order_id} ignored")
        return None

    if not OrderStateMachine.is_reachable(current.status, event.status):
        logger.info(
            f"Stale status event for order {event.order_id} discarded: "
            f"held {current.status.value}, received {event.status.value}"
        )
        return None

    updated = current.with_status(event.status, event.updated_at or now)
    if event.ordered_at is not None:
        updated = updated.model_copy(update={'ordered_at': event.ordered_at})
    if event.status == OrderStatus.DELIVERED and event.delivered_at is not None:
        updated = updated.model_copy(update={'delivered_at': event.delivered_at})
    return updated


def describe_delivery_fee(order: OrderDTO) -> str:
    if order.delivery_fee is None:
        return Localizator.get_text(None, "delivery_fee_may_vary")
    return Localizator.get_text(None, "delivery_fee_amount").format(fee=f"{order.delivery_fee:.2f}")
