"""
Unit Tests: HttpOrderRepository

Runs the repository against an in-process aiohttp order service covering:
- order parsing and the last-known-good cache
- bearer authentication and role-specific endpoints
- error mapping (network, auth, stock, transition, not found)
- status updates answered with a message only (read-back)
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import make_line
from enums.order_status import OrderStatus
from exceptions import (
    AuthException,
    InsufficientStockException,
    InvalidDeliveryContactException,
    InvalidTransitionException,
    NetworkException,
    OrderNotFoundException,
)
from repositories.http_order import HttpOrderRepository, parse_order


def raw_order(order_id=101, status="pending", **overrides):
    order = {
        "order_id": order_id,
        "status": status,
        "total_price": "100.00",
        "delivery_fee": 30,
        "ordered_at": "2025-03-01T09:00:00.000Z",
        "delivered_at": None,
        "full_name": "Juan Dela Cruz",
        "contact_number": "+639171234567",
        "barangay_id": 12,
        "barangay": "San Isidro",
        "buyer_name": "Juan",
        "items": [
            {
                "product_id": 5,
                "product_name": "LPG 11kg",
                "quantity": 2,
                "price": "50.00",
                "image_url": None,
                "branch_id": 3,
            }
        ],
    }
    order.update(overrides)
    return order


class OrderServiceStub:
    """Minimal order service speaking the storefront REST routes."""

    def __init__(self):
        self.orders = [raw_order()]
        self.requests = []
        self.fetch_status = 200
        self.create_error: tuple[int, dict] | None = None
        self.status_response: tuple[int, dict] | None = None

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/orders/my-orders", self.list_orders)
        app.router.add_get("/orders/retailer-orders", self.list_orders)
        app.router.add_post("/orders/buy", self.create)
        app.router.add_post("/orders/walk-in", self.create)
        app.router.add_put("/orders/update-status/{order_id}", self.update_status)
        app.router.add_put("/orders/retailer/update-status/{order_id}", self.update_status)
        return app

    def _record(self, request, body=None):
        self.requests.append((request.method, request.path, request.headers.get("Authorization"), body))

    async def list_orders(self, request):
        self._record(request)
        if not request.headers.get("Authorization"):
            return web.json_response({"error": "Access denied. No token provided."}, status=401)
        if self.fetch_status != 200:
            return web.json_response({"error": "Internal server error"}, status=self.fetch_status)
        return web.json_response({"success": True, "orders": self.orders})

    async def create(self, request):
        body = await request.json()
        self._record(request, body)
        if self.create_error is not None:
            status, payload = self.create_error
            return web.json_response(payload, status=status)
        status = "delivered" if request.path.endswith("walk-in") else "pending"
        created = raw_order(
            202, status, ordered_at=None,
            delivered_at="2025-03-01T10:00:00Z" if status == "delivered" else None,
        )
        return web.json_response({"success": True, "orders": [created]}, status=201)

    async def update_status(self, request):
        body = await request.json()
        self._record(request, body)
        if self.status_response is not None:
            status, payload = self.status_response
            return web.json_response(payload, status=status)
        order_id = int(request.match_info["order_id"])
        for order in self.orders:
            if order["order_id"] == order_id:
                order["status"] = body["status"]
                return web.json_response({"success": True, "message": "Order status updated successfully"})
        return web.json_response({"error": "Order not found"}, status=404)


@pytest_asyncio.fixture
async def service():
    stub = OrderServiceStub()
    server = TestServer(stub.app())
    await server.start_server()
    stub.base_url = str(server.make_url(""))
    yield stub
    await server.close()


@pytest_asyncio.fixture
async def repository(service):
    repository = HttpOrderRepository(base_url=service.base_url, timeout_seconds=5)
    yield repository
    await repository.close()


class TestParseOrder:

    def test_fields(self):
        order = parse_order(raw_order())

        assert order.order_id == "101"
        assert order.status == OrderStatus.PENDING
        assert order.total_price == Decimal("100.00")
        assert order.delivery_fee == Decimal("30")
        assert order.ordered_at == datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert order.branch_ref == "3"
        assert order.contact.contact_number == "+639171234567"
        line = order.lines[0]
        assert (line.product_id, line.quantity, line.unit_price, line.seller_ref) == ("5", 2, Decimal("50.00"), "3")

    def test_unknown_fee_stays_unknown(self):
        assert parse_order(raw_order(delivery_fee=None)).delivery_fee is None

    def test_delivered_at_only_for_delivered(self):
        stray = parse_order(raw_order(status="on_delivery", delivered_at="2025-03-01T10:00:00Z"))
        delivered = parse_order(raw_order(status="delivered", delivered_at="2025-03-01T10:00:00Z"))

        assert stray.delivered_at is None
        assert delivered.delivered_at == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_bundle_items(self):
        order = parse_order(raw_order(items=[
            {"branch_bundle_id": 8, "bundle_name": "Starter kit", "quantity": 1, "price": 1200, "branch_id": 3}
        ]))
        assert order.lines[0].product_id == "8"
        assert order.lines[0].product_name == "Starter kit"


class TestFetchOrders:

    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, repository, service, buyer):
        orders = await repository.fetch_orders(buyer)

        assert [order.order_id for order in orders] == ["101"]
        assert repository.get_cached_orders(buyer) == orders
        assert service.requests[0][:3] == ("GET", "/orders/my-orders", "Bearer buyer-token")

    @pytest.mark.asyncio
    async def test_staff_endpoint(self, repository, service, staff):
        await repository.fetch_orders(staff)
        assert service.requests[0][1] == "/orders/retailer-orders"

    @pytest.mark.asyncio
    async def test_missing_token_is_auth_error(self, repository, buyer):
        with pytest.raises(AuthException):
            await repository.fetch_orders(buyer.model_copy(update={'token': None}))

    @pytest.mark.asyncio
    async def test_server_error_keeps_cache(self, repository, service, buyer):
        cached = await repository.fetch_orders(buyer)
        service.fetch_status = 500

        with pytest.raises(NetworkException):
            await repository.fetch_orders(buyer)

        assert repository.get_cached_orders(buyer) == cached

    @pytest.mark.asyncio
    async def test_rejected_fetch_is_network_error(self, repository, service, buyer):
        cached = await repository.fetch_orders(buyer)
        service.fetch_status = 404

        with pytest.raises(NetworkException) as exc_info:
            await repository.fetch_orders(buyer)

        assert exc_info.value.operation == "fetch_orders"
        assert repository.get_cached_orders(buyer) == cached

    @pytest.mark.asyncio
    async def test_unreachable_service(self, buyer):
        repository = HttpOrderRepository(base_url="http://127.0.0.1:1", timeout_seconds=2)
        try:
            with pytest.raises(NetworkException) as exc_info:
                await repository.fetch_orders(buyer)
        finally:
            await repository.close()

        assert exc_info.value.operation == "fetch_orders"
        assert repository.get_cached_orders(buyer) == []


class TestCreateOrder:

    @pytest.mark.asyncio
    async def test_create_sends_lines_and_contact(self, repository, service, buyer, contact):
        order = await repository.create_order(buyer, [make_line("5", 2)], contact)

        assert order.order_id == "202"
        assert order.status == OrderStatus.PENDING
        assert order.ordered_at is not None
        method, path, auth, body = service.requests[-1]
        assert (method, path, auth) == ("POST", "/orders/buy", "Bearer buyer-token")
        assert body["items"] == [
            {"product_id": "5", "quantity": 2, "price": "50.00", "branch_id": "B1", "product_name": "LPG 5"}
        ]
        assert body["full_name"] == "Juan Dela Cruz"
        assert body["barangay_id"] == "12"

    @pytest.mark.asyncio
    async def test_stock_error_parsed(self, repository, service, buyer, contact):
        service.create_error = (400, {"error": "Insufficient stock for product 5. Required: 2, Available: 1"})

        with pytest.raises(InsufficientStockException) as exc_info:
            await repository.create_order(buyer, [make_line("5", 2)], contact)

        assert exc_info.value.product_id == "5"
        assert exc_info.value.requested == 2
        assert exc_info.value.available == 1

    @pytest.mark.asyncio
    async def test_unknown_barangay(self, repository, service, buyer, contact):
        service.create_error = (404, {"error": "Barangay not found"})

        with pytest.raises(InvalidDeliveryContactException) as exc_info:
            await repository.create_order(buyer, [make_line("5", 2)], contact)
        assert exc_info.value.field == "barangay_id"

    @pytest.mark.asyncio
    async def test_walk_in_is_delivered(self, repository, service, staff, contact):
        order = await repository.create_walk_in_order(staff, [make_line("5", 1)], contact)

        assert order.status == OrderStatus.DELIVERED
        assert order.delivered_at is not None
        assert service.requests[-1][1] == "/orders/walk-in"


class TestUpdateStatus:

    @pytest.mark.asyncio
    async def test_update_reads_order_back(self, repository, service, staff):
        order = await repository.update_status("101", OrderStatus.PREPARING, staff)

        assert order.order_id == "101"
        assert order.status == OrderStatus.PREPARING
        method, path, _, body = service.requests[0]
        assert (method, path, body) == ("PUT", "/orders/retailer/update-status/101", {"status": "preparing"})

    @pytest.mark.asyncio
    async def test_buyer_endpoint(self, repository, service, buyer):
        await repository.update_status("101", OrderStatus.CANCELLED, buyer)
        assert service.requests[0][1] == "/orders/update-status/101"

    @pytest.mark.asyncio
    async def test_already_in_status_is_success(self, repository, service, buyer):
        service.orders = [raw_order(status="delivered", delivered_at="2025-03-01T10:00:00Z")]
        service.status_response = (200, {"success": False, "message": "Order is already marked as delivered"})

        order = await repository.update_status("101", OrderStatus.DELIVERED, buyer)

        assert order.status == OrderStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_invalid_transition(self, repository, service, staff):
        service.status_response = (400, {"error": "Invalid status transition"})

        with pytest.raises(InvalidTransitionException) as exc_info:
            await repository.update_status("101", OrderStatus.DELIVERED, staff)
        assert exc_info.value.order_id == "101"
        assert exc_info.value.to_status == "delivered"

    @pytest.mark.asyncio
    async def test_not_found(self, repository, staff):
        with pytest.raises(OrderNotFoundException):
            await repository.update_status("999", OrderStatus.PREPARING, staff)
