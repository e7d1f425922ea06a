import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from enums.order_status import OrderStatus
from exceptions import TransitionInProgressException
from models.order import OrderDTO
from models.realtime_event import RealtimeEvent

logger = logging.getLogger(__name__)


class InFlightTransition(BaseModel):
    """
    An optimistic status change waiting for the order service.

    previous is the order exactly as projected when the change was applied;
    it is what a failed call rolls back to. Realtime events for the order
    are parked in buffered_events until the call resolves.
    """
    order_id: str
    previous: OrderDTO
    target: OrderStatus
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    buffered_events: list[RealtimeEvent] = []

    @property
    def optimistic_order(self) -> OrderDTO:
        return self.previous.with_status(self.target, self.started_at)


class InFlightLedger:
    """At most one in-flight transition per order id."""

    def __init__(self):
        self._records: dict[str, InFlightTransition] = {}

    def begin(self, previous: OrderDTO, target: OrderStatus) -> InFlightTransition:
        """
        Raises:
            TransitionInProgressException: The order already has a transition in flight
        """
        if previous.order_id in self._records:
            raise TransitionInProgressException(previous.order_id)
        record = InFlightTransition(order_id=previous.order_id, previous=previous, target=target)
        self._records[previous.order_id] = record
        return record

    def is_in_flight(self, order_id: str) -> bool:
        return order_id in self._records

    def buffer(self, order_id: str, event: RealtimeEvent) -> None:
        record = self._records[order_id]
        record.buffered_events.append(event)
        logger.debug(f"Buffered realtime event for in-flight order {order_id} ({len(record.buffered_events)} waiting)")

    def finish(self, order_id: str) -> InFlightTransition:
        return self._records.pop(order_id)

    def records(self) -> list[InFlightTransition]:
        return list(self._records.values())
