import logging

from enums.actor_role import ActorRole
from enums.notification_level import NotificationLevel
from enums.order_status import OrderStatus
from enums.order_tab import OrderTab
from exceptions import (
    EmptyCartException,
    InsufficientStockException,
    OrderNotFoundException,
    TransitionInProgressException,
)
from models.cart import CartLineDTO
from models.identity import IdentityDTO
from models.order import OrderDTO, DeliveryContactDTO
from models.realtime_event import RealtimeEvent, OrderCreatedEvent
from repositories.order import OrderRepository
from services.notification import NotificationService
from services.order_sync import OrderSyncController
from utils.order_filters import FULFILLMENT_TABS
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)


class IncomingOrderController(OrderSyncController):
    """
    Fulfillment queue of one branch, split into the pending, preparing,
    on_delivery and delivered tabs.

    A new pending order arriving while the viewer is on another tab bumps
    the pending badge; opening the pending tab resets it.
    """

    def __init__(self, identity: IdentityDTO, order_repository: OrderRepository,
                 notification_service: NotificationService | None = None,
                 active_tab: OrderTab = OrderTab.PENDING):
        if identity.role != ActorRole.STAFF:
            raise ValueError(f"Incoming orders are only available to staff, got {identity.role.value}")
        super().__init__(identity, order_repository, notification_service)
        self.active_tab = active_tab
        self._badges: dict[OrderTab, int] = {tab: 0 for tab in FULFILLMENT_TABS}

    def select_tab(self, tab: OrderTab) -> None:
        """Tab-focus input from the UI; clears the badge of the opened tab."""
        if tab not in FULFILLMENT_TABS:
            raise ValueError(f"Unknown fulfillment tab: {tab}")
        self.active_tab = tab
        self._badges[tab] = 0
        self._fire_change()

    def badge_count(self, tab: OrderTab = OrderTab.PENDING) -> int:
        return self._badges.get(tab, 0)

    async def advance(self, order_id: str) -> OrderDTO:
        """
        Move an order one step along the pipeline.

        Raises:
            TransitionInProgressException: A change for the order is already in flight
            InvalidTransitionException: The order is delivered or cancelled
        """
        if self._in_flight.is_in_flight(order_id):
            raise TransitionInProgressException(order_id)
        order = self.get_order(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        target_status = OrderStateMachine.advance(order.status, ActorRole.STAFF)
        updated = await self._apply_transition(order_id, target_status)
        self.notifications.send(
            NotificationLevel.INFO, "order_updated", order_id=order_id, status=target_status.value
        )
        return updated

    async def cancel(self, order_id: str) -> OrderDTO:
        updated = await self._apply_transition(order_id, OrderStatus.CANCELLED)
        self.notifications.send(NotificationLevel.INFO, "order_cancelled", order_id=order_id)
        return updated

    async def record_walk_in(self, lines: list[CartLineDTO], contact: DeliveryContactDTO) -> OrderDTO:
        """
        Record an over-the-counter sale of the branch; it lands in the delivered tab.

        Raises:
            EmptyCartException: No lines given
            InsufficientStockException: A line exceeds its last known stock
        """
        if not lines:
            raise EmptyCartException(f"walk_in_{self.identity.branch_ref}")
        for line in lines:
            if line.stock_ceiling is not None and line.quantity > line.stock_ceiling:
                raise InsufficientStockException(line.product_id, available=line.stock_ceiling,
                                                 requested=line.quantity)

        order = await self._order_repository.create_walk_in_order(self.identity, lines, contact)
        self._store(order)
        self.rebuild()
        self.notifications.send(NotificationLevel.INFO, "walk_in_recorded", order_id=order.order_id)
        return order

    def _is_visible(self, order: OrderDTO) -> bool:
        return order.status != OrderStatus.CART

    def _accepts_event(self, event: RealtimeEvent) -> bool:
        if not isinstance(event, OrderCreatedEvent):
            return True
        branch_ref = event.order.branch_ref
        return branch_ref is None or self.identity.branch_ref is None or branch_ref == self.identity.branch_ref

    def _on_event_applied(self, event: RealtimeEvent, order: OrderDTO) -> None:
        if not isinstance(event, OrderCreatedEvent) or order.status != OrderStatus.PENDING:
            return
        if self.active_tab != OrderTab.PENDING:
            self._badges[OrderTab.PENDING] += 1
            logger.info(f"New pending order {order.order_id}, pending badge now {self._badges[OrderTab.PENDING]}")
        self.notifications.new_order(order)
