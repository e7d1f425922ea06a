"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# TEST runs keep the cart in memory; must be set before config is imported
os.environ.setdefault("RUNTIME_ENVIRONMENT", "TEST")

from enums.actor_role import ActorRole
from enums.order_status import OrderStatus
from exceptions import OrderNotFoundException
from models.cart import CartLineDTO
from models.identity import IdentityDTO
from models.order import OrderDTO, OrderLineDTO, DeliveryContactDTO
from repositories.order import OrderRepository

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_order(order_id: str, status: OrderStatus = OrderStatus.PENDING, minutes: int = 0,
               branch_ref: str | None = "B1", total: str = "100.00") -> OrderDTO:
    """Server order placed `minutes` after BASE_TIME."""
    at = BASE_TIME + timedelta(minutes=minutes)
    return OrderDTO(
        order_id=order_id,
        status=status,
        lines=[OrderLineDTO(product_id="P1", quantity=2, unit_price=Decimal("50.00"), seller_ref=branch_ref)],
        total_price=Decimal(total),
        delivery_fee=Decimal("30.00"),
        ordered_at=at,
        delivered_at=at if status == OrderStatus.DELIVERED else None,
        updated_at=at,
        branch_ref=branch_ref,
    )


def make_line(product_id: str, quantity: int, price: str = "50.00", stock_ceiling: int | None = 10,
              seller_ref: str | None = "B1") -> CartLineDTO:
    return CartLineDTO(
        product_id=product_id,
        quantity=quantity,
        unit_price=Decimal(price),
        stock_ceiling=stock_ceiling,
        seller_ref=seller_ref,
        product_name=f"LPG {product_id}",
    )


class FakeOrderRepository(OrderRepository):
    """
    In-memory order service.

    fail_with: exception raised by the next write call (then cleared)
    gate: when set, write calls wait on it before answering
    """

    def __init__(self, orders: list[OrderDTO] | None = None):
        super().__init__()
        self.server_orders: dict[str, OrderDTO] = {order.order_id: order for order in orders or []}
        self.fail_with: Exception | None = None
        self.fetch_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.created_ids: list[str] = []
        self.next_order_id = "O1"
        self.calls: list[tuple] = []

    async def _wait_and_maybe_fail(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error

    async def _fetch_orders(self, identity: IdentityDTO) -> list[OrderDTO]:
        self.calls.append(("fetch_orders",))
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.server_orders.values())

    async def create_order(self, identity, lines, contact) -> OrderDTO:
        self.calls.append(("create_order", [line.product_id for line in lines]))
        await self._wait_and_maybe_fail()
        return self._create(lines, OrderStatus.PENDING)

    async def create_walk_in_order(self, identity, lines, contact) -> OrderDTO:
        self.calls.append(("create_walk_in_order", [line.product_id for line in lines]))
        await self._wait_and_maybe_fail()
        return self._create(lines, OrderStatus.DELIVERED, branch_ref=identity.branch_ref)

    async def update_status(self, order_id, target_status, identity) -> OrderDTO:
        self.calls.append(("update_status", order_id, target_status))
        await self._wait_and_maybe_fail()
        if order_id not in self.server_orders:
            raise OrderNotFoundException(order_id)
        updated = self.server_orders[order_id].with_status(target_status, datetime.now(timezone.utc))
        self.server_orders[order_id] = updated
        return updated

    def _create(self, lines, status, branch_ref=None) -> OrderDTO:
        now = datetime.now(timezone.utc)
        order = OrderDTO(
            order_id=self.next_order_id,
            status=status,
            lines=[
                OrderLineDTO(product_id=line.product_id, quantity=line.quantity,
                             unit_price=line.unit_price, seller_ref=line.seller_ref)
                for line in lines
            ],
            total_price=sum((line.line_total for line in lines), Decimal("0")),
            ordered_at=now,
            delivered_at=now if status == OrderStatus.DELIVERED else None,
            branch_ref=branch_ref or lines[0].seller_ref,
        )
        self.server_orders[order.order_id] = order
        self.created_ids.append(order.order_id)
        return order


@pytest.fixture
def cart_store():
    """CartStore on a fresh in-memory SQLite database."""
    from db import create_cart_engine, create_session_maker
    from services.cart import CartStore

    engine = create_cart_engine("sqlite://")
    yield CartStore(create_session_maker(engine))
    engine.dispose()


@pytest.fixture
def buyer():
    return IdentityDTO(token="buyer-token", user_id="7", role=ActorRole.BUYER)


@pytest.fixture
def staff():
    return IdentityDTO(token="staff-token", user_id="21", role=ActorRole.STAFF, branch_ref="B1")


@pytest.fixture
def contact():
    return DeliveryContactDTO(
        full_name="Juan Dela Cruz",
        contact_number="09171234567",
        barangay_id="12",
        delivery_address="Purok 3, San Isidro",
    )


@pytest.fixture
def order_repository():
    return FakeOrderRepository()
