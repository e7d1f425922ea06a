import logging
from datetime import datetime, timezone
from typing import Callable

from enums.notification_level import NotificationLevel
from enums.order_status import OrderStatus
from enums.order_tab import OrderTab
from exceptions import (
    AuthException,
    InvalidTransitionException,
    OrderListException,
    OrderNotFoundException,
    RemoteServiceException,
    TransitionInProgressException,
)
from models.identity import IdentityDTO
from models.order import OrderDTO
from models.realtime_event import RealtimeEvent, OrderCreatedEvent
from repositories.order import OrderRepository
from services.in_flight import InFlightLedger
from services.notification import NotificationService
from services.order_projection import merge_orders, merge_realtime_event, pick_fresher, sort_orders
from services.realtime_channel import RealtimeChannel
from utils.error_handler import handle_service_error, handle_unexpected_error
from utils.order_filters import get_statuses_for_tab
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)

ChangeListener = Callable[[list[OrderDTO]], None]


class OrderSyncController:
    """
    Projection of server orders shared by the buyer and fulfillment views.

    The projection is rebuilt from three sources on every change:
    - the repository cache (last successful fetch)
    - the overlay: copies learnt from realtime events and server answers
    - in-flight optimistic transitions, shown at their target status

    Status changes are applied optimistically and rolled back to the exact
    previous copy when the order service refuses them. Realtime events for
    an order with a change in flight are parked and replayed once it resolves.
    """

    def __init__(self, identity: IdentityDTO, order_repository: OrderRepository,
                 notification_service: NotificationService | None = None):
        self.identity = identity
        self._order_repository = order_repository
        self.notifications = notification_service or NotificationService(identity.role)
        self._overlay: dict[str, OrderDTO] = {}
        self._in_flight = InFlightLedger()
        self._listeners: list[ChangeListener] = []
        self._view: list[OrderDTO] = []

    @property
    def view(self) -> list[OrderDTO]:
        return list(self._view)

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get_order(self, order_id: str) -> OrderDTO | None:
        for order in self._view:
            if order.order_id == order_id:
                return order
        return None

    def orders_for_tab(self, tab: OrderTab) -> list[OrderDTO]:
        statuses = get_statuses_for_tab(tab)
        return [order for order in self._view if order.status in statuses]

    def is_in_flight(self, order_id: str) -> bool:
        return self._in_flight.is_in_flight(order_id)

    def describe_error(self, exception: Exception) -> str:
        """Human-readable message for a failed command, specific to the error kind."""
        if isinstance(exception, OrderListException):
            return handle_service_error(exception, self.identity.role)
        return handle_unexpected_error(exception)

    async def refresh(self) -> bool:
        """
        Reload the server orders.

        Returns:
            False if the orders could not be loaded; the last view is kept

        Raises:
            AuthException: The session was rejected
        """
        try:
            orders = await self._order_repository.fetch_orders(self.identity)
        except AuthException:
            raise
        except RemoteServiceException as e:
            logger.warning(f"Keeping last loaded orders for {self.identity.role.value}: {e}")
            self.notifications.error(e, level=NotificationLevel.WARNING)
            return False

        # Overlay copies the fresh fetch has caught up with are no longer needed
        fetched = {order.order_id: order for order in orders}
        for order_id, held in list(self._overlay.items()):
            if order_id in fetched and pick_fresher(held, fetched[order_id]) is fetched[order_id]:
                del self._overlay[order_id]

        self.rebuild()
        return True

    def rebuild(self) -> list[OrderDTO]:
        """Recompute the projection and tell the listeners."""
        orders = self._merged_server_orders()
        for record in self._in_flight.records():
            orders[record.order_id] = record.optimistic_order
        visible = [order for order in orders.values() if self._is_visible(order)]
        self._view = sort_orders(self._build_cart_order(), visible)
        self._fire_change()
        return self.view

    async def transition(self, order_id: str, target_status: OrderStatus) -> OrderDTO:
        return await self._apply_transition(order_id, target_status)

    def handle_event(self, event: RealtimeEvent) -> bool:
        """
        Merge one realtime event into the projection.

        Returns:
            True if the projection changed
        """
        order_id = event.order.order_id if isinstance(event, OrderCreatedEvent) else event.order_id
        if not self._accepts_event(event):
            logger.debug(f"Realtime event for order {order_id} is outside this view, ignored")
            return False

        if self._in_flight.is_in_flight(order_id):
            self._in_flight.buffer(order_id, event)
            return False

        if not self._merge_event(event):
            return False
        self.rebuild()
        return True

    async def run_realtime(self, channel: RealtimeChannel) -> int:
        """Consume the channel until it ends; returns the number of events applied."""
        applied = 0
        async for event in channel.subscribe(self.identity):
            if self.handle_event(event):
                applied += 1
        logger.info(f"Realtime stream ended for {self.identity.role.value} ({applied} events applied)")
        return applied

    async def _apply_transition(self, order_id: str, target_status: OrderStatus) -> OrderDTO:
        if self._in_flight.is_in_flight(order_id):
            raise TransitionInProgressException(order_id)

        order = self.get_order(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)

        if order.status == target_status:
            logger.info(f"Order {order_id} already {target_status.value}, nothing to do")
            return order

        OrderStateMachine.validate_transition(
            order_id, order.status, target_status, self.identity.role,
            actor_id=self.identity.branch_ref or self.identity.user_id
        )

        record = self._in_flight.begin(order, target_status)
        self.rebuild()

        try:
            confirmed = await self._order_repository.update_status(order_id, target_status, self.identity)
        except Exception as e:
            logger.warning(
                f"Rolling back order {order_id} to {record.previous.status.value} "
                f"after failed change to {target_status.value}: {e}"
            )
            self._settle(order_id, record.previous)
            if isinstance(e, InvalidTransitionException) and e.from_status is None:
                raise InvalidTransitionException(
                    record.previous.status.value, target_status.value, order_id=order_id
                ) from e
            raise

        logger.info(f"✅ Order {order_id} confirmed at {confirmed.status.value}")
        self._settle(order_id, confirmed)
        return confirmed

    def _settle(self, order_id: str, order: OrderDTO) -> None:
        self._overlay[order_id] = order
        record = self._in_flight.finish(order_id)
        for event in record.buffered_events:
            self._merge_event(event)
        self.rebuild()

    def _merge_event(self, event: RealtimeEvent) -> bool:
        order_id = event.order.order_id if isinstance(event, OrderCreatedEvent) else event.order_id
        current = self._merged_server_orders().get(order_id)
        merged = merge_realtime_event(current, event, datetime.now(timezone.utc))
        if merged is None:
            return False
        self._overlay[order_id] = merged
        self._on_event_applied(event, merged)
        return True

    def _store(self, order: OrderDTO) -> None:
        self._overlay[order.order_id] = pick_fresher(self._overlay.get(order.order_id), order)

    def _merged_server_orders(self) -> dict[str, OrderDTO]:
        return merge_orders(self._order_repository.get_cached_orders(self.identity), self._overlay)

    def _fire_change(self) -> None:
        view = self.view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as e:
                logger.error(f"Order view listener failed: {e}", exc_info=True)

    def _build_cart_order(self) -> OrderDTO | None:
        return None

    def _is_visible(self, order: OrderDTO) -> bool:
        return True

    def _accepts_event(self, event: RealtimeEvent) -> bool:
        return True

    def _on_event_applied(self, event: RealtimeEvent, order: OrderDTO) -> None:
        pass
