import asyncio
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import aiohttp

import config
from enums.actor_role import ActorRole
from enums.order_status import OrderStatus
from exceptions import (
    AuthException,
    InsufficientStockException,
    InvalidDeliveryContactException,
    InvalidTransitionException,
    NetworkException,
    OrderNotFoundException,
    RemoteServiceException,
)
from models.cart import CartLineDTO
from models.identity import IdentityDTO
from models.order import OrderDTO, OrderLineDTO, DeliveryContactDTO
from repositories.order import OrderRepository

logger = logging.getLogger(__name__)


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning(f"Ignoring non-numeric amount from order service: {value!r}")
        return None


def parse_order(raw: dict) -> OrderDTO:
    """
    Convert an order as returned by the order service into an OrderDTO.

    Regular items carry product_id, bundle items carry branch_bundle_id; both
    become order lines keyed by that id.
    """
    lines = []
    for item in raw.get("items") or []:
        product_id = item.get("product_id") or item.get("branch_bundle_id")
        if product_id is None:
            continue
        branch_id = item.get("branch_id")
        lines.append(OrderLineDTO(
            product_id=str(product_id),
            quantity=int(item.get("quantity") or 0),
            unit_price=_to_decimal(item.get("price")) or Decimal("0"),
            product_name=item.get("product_name") or item.get("bundle_name"),
            seller_ref=str(branch_id) if branch_id is not None else None,
            image_url=item.get("image_url") or item.get("product_image"),
        ))

    status = OrderStatus(raw["status"])

    contact = None
    if raw.get("full_name"):
        contact = DeliveryContactDTO(
            full_name=raw["full_name"],
            contact_number=raw.get("contact_number") or "",
            barangay_id=str(raw["barangay_id"]) if raw.get("barangay_id") is not None else None,
            delivery_address=raw.get("delivery_address"),
        )

    branch_ref = raw.get("branch_id")
    if branch_ref is None and lines:
        branch_ref = lines[0].seller_ref

    total_price = _to_decimal(raw.get("total_price"))
    if total_price is None:
        total_price = sum((line.line_total for line in lines), Decimal("0"))

    return OrderDTO(
        order_id=str(raw["order_id"]),
        status=status,
        lines=lines,
        total_price=total_price,
        delivery_fee=_to_decimal(raw.get("delivery_fee")),
        ordered_at=raw.get("ordered_at"),
        # delivered_at only accompanies DELIVERED
        delivered_at=raw.get("delivered_at") if status == OrderStatus.DELIVERED else None,
        updated_at=raw.get("updated_at"),
        contact=contact,
        branch_ref=str(branch_ref) if branch_ref is not None else None,
        buyer_name=raw.get("buyer_name"),
    )


class HttpOrderRepository(OrderRepository):
    """OrderRepository talking to the REST order service with aiohttp."""

    BUYER_ORDERS_PATH = "/orders/my-orders"
    STAFF_ORDERS_PATH = "/orders/retailer-orders"
    BUY_PATH = "/orders/buy"
    WALK_IN_PATH = "/orders/walk-in"
    BUYER_STATUS_PATH = "/orders/update-status/{order_id}"
    STAFF_STATUS_PATH = "/orders/retailer/update-status/{order_id}"

    # "Insufficient stock for product 12. Required: 5, Available: 3"
    STOCK_ERROR_PATTERN = re.compile(
        r"Insufficient stock for product (?P<product_id>[^\s.]+)(?: in bundle \S+?)?\.?\s*"
        r"Required: (?P<requested>\d+), Available: (?P<available>\d+)"
    )
    ALREADY_IN_STATUS_PATTERN = re.compile(r"already marked as", re.IGNORECASE)

    def __init__(self, base_url: str | None = None, session: aiohttp.ClientSession | None = None,
                 timeout_seconds: float | None = None):
        super().__init__()
        self._base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds or config.HTTP_TIMEOUT_SECONDS)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _request(self, method: str, path: str, identity: IdentityDTO, operation: str,
                       payload: dict | None = None) -> tuple[int, dict]:
        """
        Perform one HTTP call and return (status, JSON body).

        Raises:
            NetworkException: Transport failure, timeout or 5xx answer
            AuthException: 401 answer
        """
        headers = {}
        if identity.token:
            headers["Authorization"] = f"Bearer {identity.token}"

        try:
            async with self._get_session().request(method, f"{self._base_url}{path}",
                                                   json=payload, headers=headers) as response:
                status = response.status
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Order service unreachable during {operation}: {type(e).__name__} {e}")
            raise NetworkException(operation, str(e) or type(e).__name__) from e

        if not isinstance(body, dict):
            body = {}

        if status == 401:
            raise AuthException(operation)
        if status >= 500:
            raise NetworkException(operation, f"HTTP {status}: {body.get('error', 'server error')}")
        return status, body

    async def _fetch_orders(self, identity: IdentityDTO) -> list[OrderDTO]:
        path = self.STAFF_ORDERS_PATH if identity.role == ActorRole.STAFF else self.BUYER_ORDERS_PATH
        status, body = await self._request("GET", path, identity, "fetch_orders")

        if status == 403:
            raise AuthException("fetch_orders")
        if status >= 400 or body.get("success") is False:
            raise NetworkException("fetch_orders", body.get("error") or f"HTTP {status}")
        return [parse_order(raw) for raw in body.get("orders") or []]

    async def create_order(self, identity: IdentityDTO, lines: list[CartLineDTO],
                           contact: DeliveryContactDTO) -> OrderDTO:
        return await self._create(self.BUY_PATH, identity, lines, contact, "create_order")

    async def create_walk_in_order(self, identity: IdentityDTO, lines: list[CartLineDTO],
                                   contact: DeliveryContactDTO) -> OrderDTO:
        return await self._create(self.WALK_IN_PATH, identity, lines, contact, "create_walk_in_order")

    async def _create(self, path: str, identity: IdentityDTO, lines: list[CartLineDTO],
                      contact: DeliveryContactDTO, operation: str) -> OrderDTO:
        payload = {
            "items": [
                {
                    "product_id": line.product_id,
                    "quantity": line.quantity,
                    "price": str(line.unit_price),
                    "branch_id": line.seller_ref,
                    "product_name": line.product_name,
                }
                for line in lines
            ],
            "full_name": contact.full_name,
            "contact_number": contact.contact_number,
            "barangay_id": contact.barangay_id,
            "delivery_address": contact.delivery_address,
        }
        status, body = await self._request("POST", path, identity, operation, payload)

        if status >= 400 or body.get("success") is False:
            error = body.get("error") or f"HTTP {status}"
            stock_match = self.STOCK_ERROR_PATTERN.search(error)
            if stock_match:
                raise InsufficientStockException(
                    stock_match.group("product_id"),
                    available=int(stock_match.group("available")),
                    requested=int(stock_match.group("requested")),
                )
            if status == 404 and "barangay" in error.lower():
                raise InvalidDeliveryContactException("barangay_id", error)
            if "buyer fields" in error or "contact number" in error:
                raise InvalidDeliveryContactException("contact", error)
            raise RemoteServiceException(error, details={'status': status, 'operation': operation})

        created = body.get("orders") or ([body["order"]] if body.get("order") else [])
        if not created:
            raise RemoteServiceException(f"{operation} returned no order", details={'status': status})
        if len(created) > 1:
            logger.warning(f"{operation} produced {len(created)} orders; tracking {created[0].get('order_id')}")

        order = parse_order(created[0])
        if order.ordered_at is None:
            order = order.model_copy(update={'ordered_at': datetime.now(timezone.utc)})
        logger.info(f"✅ Order {order.order_id} created (Status: {order.status.value}, Total: {order.total_price})")
        return order

    async def update_status(self, order_id: str, target_status: OrderStatus,
                            identity: IdentityDTO) -> OrderDTO:
        template = self.STAFF_STATUS_PATH if identity.role == ActorRole.STAFF else self.BUYER_STATUS_PATH
        status, body = await self._request(
            "PUT", template.format(order_id=order_id), identity, "update_status",
            {"status": target_status.value}
        )

        if status in (403, 404):
            raise OrderNotFoundException(order_id)
        if status >= 400:
            raise InvalidTransitionException(None, target_status.value, order_id=order_id)
        if body.get("success") is False and not self.ALREADY_IN_STATUS_PATTERN.search(body.get("message") or ""):
            raise InvalidTransitionException(None, target_status.value, order_id=order_id)

        if body.get("order"):
            return parse_order(body["order"])

        # The status endpoint answers with a message only; read the order back
        for order in await self.fetch_orders(identity):
            if order.order_id == order_id:
                return order
        raise OrderNotFoundException(order_id)
