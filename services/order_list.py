import logging

from enums.actor_role import ActorRole
from enums.notification_level import NotificationLevel
from enums.order_status import OrderStatus
from exceptions import (
    EmptyCartException,
    InsufficientStockException,
    InvalidCartStateException,
    TransitionInProgressException,
)
from models.cart import CartDTO, CartLineDTO
from models.identity import IdentityDTO
from models.order import CART_ORDER_ID, OrderDTO, DeliveryContactDTO
from models.realtime_event import RealtimeEvent, OrderStatusChangedEvent
from repositories.order import OrderRepository
from services.cart import CartStore
from services.notification import NotificationService
from services.order_projection import build_cart_order
from services.order_sync import OrderSyncController
from utils.contact_validation import validate_delivery_contact

logger = logging.getLogger(__name__)


class OrderListController(OrderSyncController):
    """
    The buyer's unified order list: the local cart shown as a cart-order
    pinned on top, followed by the server orders newest first.

    Cart edits go straight to the CartStore and show up in the projection
    before the call returns. Checkout only touches the cart once the order
    service has confirmed the order.
    """

    def __init__(self, identity: IdentityDTO, cart_store: CartStore, order_repository: OrderRepository,
                 notification_service: NotificationService | None = None):
        super().__init__(identity, order_repository, notification_service)
        self._cart_store = cart_store
        self._checkout_in_flight = False
        self._cart_store.subscribe(identity, self._on_cart_changed)

    def close(self) -> None:
        self._cart_store.unsubscribe(self.identity, self._on_cart_changed)

    @property
    def checkout_in_flight(self) -> bool:
        return self._checkout_in_flight

    def on_external_cart_change(self) -> list[OrderDTO]:
        """Another tab or process wrote the persisted cart; rebuild from storage."""
        logger.debug(f"External change of {self.identity.cart_key}, rebuilding")
        return self.rebuild()

    def update_cart_quantity(self, product_id: str, quantity: int,
                             line: CartLineDTO | None = None) -> CartLineDTO | None:
        return self._cart_store.set_line_quantity(self.identity, product_id, quantity, line)

    def cancel_cart_line(self, product_id: str) -> None:
        cart = self._cart_store.get_cart(self.identity)
        line = cart.get_line(product_id)
        self._cart_store.remove_line(self.identity, product_id)
        if line is not None:
            self.notifications.send(
                NotificationLevel.INFO, "cart_line_removed",
                product_name=line.product_name or line.product_id
            )

    async def checkout(self, contact: DeliveryContactDTO, product_id: str | None = None) -> OrderDTO:
        """
        Place an order for the whole cart, or for one selected line.

        Contact, selection and stock ceilings are checked before the order
        service is contacted. Only the checked-out lines leave the cart, and
        only after the order is confirmed; any failure leaves the cart as it was.

        Args:
            contact: Delivery contact of the buyer
            product_id: Line to check out alone (None = whole cart)

        Returns:
            The created PENDING order

        Raises:
            TransitionInProgressException: A checkout is already in flight
            InvalidDeliveryContactException: Contact is missing or malformed
            EmptyCartException: Nothing to check out
            InsufficientStockException: A line exceeds its last known stock
        """
        if self._checkout_in_flight:
            raise TransitionInProgressException(CART_ORDER_ID)

        contact = validate_delivery_contact(contact)
        lines = self._select_lines(self._cart_store.get_cart(self.identity), product_id)
        for line in lines:
            if line.stock_ceiling is not None and line.quantity > line.stock_ceiling:
                raise InsufficientStockException(line.product_id, available=line.stock_ceiling,
                                                 requested=line.quantity)

        self._checkout_in_flight = True
        try:
            order = await self._order_repository.create_order(self.identity, lines, contact)
        except Exception as e:
            logger.warning(f"Checkout of {len(lines)} lines from {self.identity.cart_key} failed, cart kept: {e}")
            raise
        finally:
            self._checkout_in_flight = False

        self._store(order)
        self._cart_store.consume_lines(self.identity, [line.product_id for line in lines])
        self.rebuild()
        self.notifications.send(NotificationLevel.INFO, "checkout_success", order_id=order.order_id)
        return order

    async def transition(self, order_id: str, target_status: OrderStatus) -> OrderDTO | None:
        """
        Move an order to target_status.

        For the cart-order, cancelling clears the local cart and never reaches
        the order service. Real orders are changed optimistically.

        Returns:
            The order after the change (None once the cart-order is cleared)
        """
        if order_id != CART_ORDER_ID:
            return await self._apply_transition(order_id, target_status)

        if target_status == OrderStatus.CART:
            return self.get_order(CART_ORDER_ID)
        if target_status == OrderStatus.CANCELLED:
            if self._cart_store.get_cart(self.identity).is_empty:
                logger.info(f"Cart {self.identity.cart_key} already empty, nothing to cancel")
                return None
            self._cart_store.clear(self.identity)
            self.notifications.send(NotificationLevel.INFO, "cart_cleared")
            return None
        raise InvalidCartStateException(self.identity.cart_key, "the cart is placed through checkout")

    def _select_lines(self, cart: CartDTO, product_id: str | None) -> list[CartLineDTO]:
        if product_id is None:
            if cart.is_empty:
                raise EmptyCartException(self.identity.cart_key)
            return list(cart.lines)

        line = cart.get_line(product_id)
        if line is None:
            raise EmptyCartException(self.identity.cart_key)
        return [line]

    def _on_cart_changed(self, cart: CartDTO) -> None:
        self.rebuild()

    def _build_cart_order(self) -> OrderDTO | None:
        # Retailers order through the same list but keep no cart-order in it
        if self.identity.role == ActorRole.RETAILER:
            return None
        return build_cart_order(self._cart_store.get_cart(self.identity))

    def _on_event_applied(self, event: RealtimeEvent, order: OrderDTO) -> None:
        if isinstance(event, OrderStatusChangedEvent):
            self.notifications.order_updated(order)
