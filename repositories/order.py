import logging
from abc import ABC, abstractmethod

from enums.order_status import OrderStatus
from models.cart import CartLineDTO
from models.identity import IdentityDTO
from models.order import OrderDTO, DeliveryContactDTO, activity_sort_key

logger = logging.getLogger(__name__)


class OrderRepository(ABC):
    """
    Server-confirmed orders of an identity, backed by the remote order service.

    The remote service is the source of truth. The repository keeps the last
    successful fetch per identity as a last-known-good cache: a failed fetch
    never clears it.
    """

    def __init__(self):
        self._cache: dict[str, list[OrderDTO]] = {}

    @staticmethod
    def cache_key(identity: IdentityDTO) -> str:
        return f"{identity.role.value}:{identity.branch_ref or identity.user_id or 'guest'}"

    async def fetch_orders(self, identity: IdentityDTO) -> list[OrderDTO]:
        """
        Fetch all orders visible to the identity, newest activity first.

        Raises:
            NetworkException: The service could not be reached (cache kept)
            AuthException: The session was rejected (cache kept)
        """
        orders = await self._fetch_orders(identity)
        orders = sorted(orders, key=activity_sort_key, reverse=True)
        self._cache[self.cache_key(identity)] = orders
        logger.info(f"Fetched {len(orders)} orders for {self.cache_key(identity)}")
        return list(orders)

    def get_cached_orders(self, identity: IdentityDTO) -> list[OrderDTO]:
        """Orders from the last successful fetch (empty before the first one)."""
        return list(self._cache.get(self.cache_key(identity), []))

    @abstractmethod
    async def _fetch_orders(self, identity: IdentityDTO) -> list[OrderDTO]:
        ...

    @abstractmethod
    async def create_order(self, identity: IdentityDTO, lines: list[CartLineDTO],
                           contact: DeliveryContactDTO) -> OrderDTO:
        """
        Place one order for the given cart lines.

        The whole request either produces one PENDING order or fails.

        Raises:
            InsufficientStockException: A line asks for more than the server stock
        """
        ...

    @abstractmethod
    async def update_status(self, order_id: str, target_status: OrderStatus,
                            identity: IdentityDTO) -> OrderDTO:
        """
        Move an order to target_status; the server re-validates the step.

        Returns:
            The authoritative order after the change

        Raises:
            InvalidTransitionException: The server-side status cannot reach target_status
            OrderNotFoundException: Unknown order, or not visible to the identity
        """
        ...

    @abstractmethod
    async def create_walk_in_order(self, identity: IdentityDTO, lines: list[CartLineDTO],
                                   contact: DeliveryContactDTO) -> OrderDTO:
        """Record an over-the-counter sale; the order is created DELIVERED."""
        ...
