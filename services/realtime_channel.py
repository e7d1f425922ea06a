import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

import aiohttp
from pydantic import ValidationError

import config
from enums.actor_role import ActorRole
from exceptions import AuthException, NetworkException
from models.identity import IdentityDTO
from models.realtime_event import (
    RealtimeEvent,
    OrderCreatedEvent,
    OrderStatusChangedEvent,
    realtime_event_adapter,
)
from repositories.http_order import parse_order

logger = logging.getLogger(__name__)


class RealtimeChannel(ABC):
    """
    Push stream of order events for an identity.

    Events for the same order arrive in the order they were published; there is
    no ordering guarantee across orders.
    """

    @abstractmethod
    def subscribe(self, identity: IdentityDTO) -> AsyncIterator[RealtimeEvent]:
        ...


class QueueRealtimeChannel(RealtimeChannel):
    """
    In-process channel: every published event is fanned out to each open subscription.
    """

    _CLOSED = object()

    def __init__(self):
        self._subscribers: list[asyncio.Queue] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: RealtimeEvent) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(event)

    def close(self) -> None:
        """End every open subscription once the queued events are drained."""
        for queue in list(self._subscribers):
            queue.put_nowait(self._CLOSED)

    async def subscribe(self, identity: IdentityDTO) -> AsyncIterator[RealtimeEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        logger.debug(f"Realtime subscription opened for {identity.role.value}")
        try:
            while True:
                event = await queue.get()
                if event is self._CLOSED:
                    break
                yield event
        finally:
            self._subscribers.remove(queue)


def parse_frame(frame: dict) -> RealtimeEvent | None:
    """
    Decode one push frame of the order service.

    Frames look like {"event": "newOrder" | "order-updated", "data": {...}};
    frames already in the internal tagged shape ({"kind": ...}) are accepted as-is.

    Returns:
        The event, or None for frames that are not order events
    """
    if "kind" in frame:
        return realtime_event_adapter.validate_python(frame)

    data = frame.get("data") or {}
    event_name = frame.get("event")
    if event_name == "newOrder":
        return OrderCreatedEvent(order=parse_order(data))
    if event_name == "order-updated":
        return OrderStatusChangedEvent(
            order_id=str(data["order_id"]),
            status=data["status"],
            ordered_at=data.get("ordered_at"),
            delivered_at=data.get("delivered_at"),
            updated_at=data.get("updated_at"),
        )
    return None


class WebSocketRealtimeChannel(RealtimeChannel):
    """RealtimeChannel reading JSON frames from the order service websocket."""

    def __init__(self, url: str | None = None, session: aiohttp.ClientSession | None = None):
        self._url = url if url is not None else config.REALTIME_URL
        self._session = session

    def _build_url(self, identity: IdentityDTO) -> str:
        # Staff listen on their branch room, buyers on their own user room
        if identity.role == ActorRole.STAFF and identity.branch_ref:
            room = f"branch_{identity.branch_ref}"
        else:
            room = f"user_{identity.user_id or 'guest'}"
        separator = "&" if "?" in self._url else "?"
        return f"{self._url}{separator}room={room}"

    async def subscribe(self, identity: IdentityDTO) -> AsyncIterator[RealtimeEvent]:
        if not self._url:
            raise NetworkException("realtime_subscribe", "REALTIME_URL is not configured")

        headers = {}
        if identity.token:
            headers["Authorization"] = f"Bearer {identity.token}"

        session = self._session or aiohttp.ClientSession()
        try:
            try:
                ws = await session.ws_connect(self._build_url(identity), headers=headers, heartbeat=30)
            except aiohttp.WSServerHandshakeError as e:
                if e.status == 401:
                    raise AuthException("realtime_subscribe") from e
                raise NetworkException("realtime_subscribe", str(e)) from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise NetworkException("realtime_subscribe", str(e) or type(e).__name__) from e

            logger.info(f"Realtime channel connected ({identity.role.value})")
            async with ws:
                async for message in ws:
                    if message.type == aiohttp.WSMsgType.ERROR:
                        logger.warning(f"Realtime channel error: {ws.exception()}")
                        break
                    if message.type != aiohttp.WSMsgType.TEXT:
                        continue
                    try:
                        event = parse_frame(json.loads(message.data))
                    except (ValueError, KeyError, TypeError, ValidationError) as e:
                        logger.warning(f"Skipping malformed realtime frame: {e}")
                        continue
                    if event is not None:
                        yield event
            logger.info("Realtime channel closed")
        finally:
            if self._session is None:
                await session.close()
